from submission_ledger.db.base_class import Base
from submission_ledger.db.session import engine

# import models so SQLAlchemy registers them
from submission_ledger.models import assignment, submission  # noqa: F401


def init_db(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)
