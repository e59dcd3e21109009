import os

TEST_DB_FILE = "test_submission_ledger.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"

# must be set before the application settings are first loaded
os.environ["LEDGER_DATABASE_URL"] = TEST_DB_URL

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from submission_ledger.core.config import Settings  # noqa: E402
from submission_ledger.core.deps import get_db  # noqa: E402
from submission_ledger.db.base_class import Base  # noqa: E402
from submission_ledger.db.init_db import init_db  # noqa: E402
from submission_ledger.db.session import make_engine  # noqa: E402
from submission_ledger.main import app  # noqa: E402
from submission_ledger.models.assignment import Assignment  # noqa: E402
from submission_ledger.models.submission import Submission  # noqa: E402
from submission_ledger.services.ledger import SubmissionLedger  # noqa: E402

engine = make_engine(TEST_DB_URL)
TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)

ASSIGNMENT_ID = "hw1"
OTHER_ASSIGNMENT_ID = "hw2"
STUDENT_ID = "student-1"
REVIEWER_ID = "mentor-1"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    init_db(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture(autouse=True)
def seed_data():
    """Seed two assignments and no submissions for each test."""
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        db.query(Submission).delete()
        db.query(Assignment).delete()
        db.commit()

        db.add_all(
            [
                Assignment(id=ASSIGNMENT_ID, name="Essay draft"),
                Assignment(id=OTHER_ASSIGNMENT_ID, name="Project proposal"),
            ]
        )
        db.commit()

        yield
    finally:
        db.close()


@pytest.fixture()
def test_settings():
    return Settings(
        database_url=TEST_DB_URL,
        submit_max_attempts=3,
        store_retry_attempts=3,
        store_retry_base_delay=0.05,
        store_timeout=5.0,
    )


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def make_ledger(test_settings, sleeps):
    """Factory for ledgers on independent sessions, like separate requests."""
    sessions = []

    def factory():
        db = TestingSessionLocal()
        sessions.append(db)
        return SubmissionLedger(db, settings=test_settings, sleep=sleeps.append)

    yield factory

    for db in sessions:
        db.close()


@pytest.fixture()
def ledger(make_ledger):
    return make_ledger()


@pytest.fixture()
def client():
    """Test client that uses the test DB session via dependency override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
