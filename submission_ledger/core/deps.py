from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from submission_ledger.db.session import SessionLocal
from submission_ledger.services.ledger import SubmissionLedger


# every request that needs DB will get a fresh session, and it will always close.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_ledger(db: Session = Depends(get_db)) -> SubmissionLedger:
    return SubmissionLedger(db)


def get_actor_id(x_actor_id: Optional[str] = Header(default=None)) -> str:
    # identity is resolved upstream; we only require that the caller passed one
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id header required",
        )
    return x_actor_id
