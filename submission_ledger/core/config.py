from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LEDGER_", env_file=None, extra="ignore")

    database_url: str = f"sqlite:///{BASE_DIR}/submission_ledger.db"

    # Submit: attempts at version assignment before giving up with Conflict
    submit_max_attempts: int = 3

    # Transient store failures (lost connection, lock timeout)
    store_retry_attempts: int = 3
    store_retry_base_delay: float = 0.05  # seconds, doubled per attempt

    # Default per-operation deadline when the caller passes none
    store_timeout: float = 5.0
    sqlite_busy_timeout: float = 5.0

    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
