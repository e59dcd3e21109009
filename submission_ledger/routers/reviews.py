from typing import Optional

from fastapi import APIRouter, Depends

from submission_ledger.core.deps import get_actor_id, get_ledger
from submission_ledger.schemas.submission import SubmissionRead
from submission_ledger.services.ledger import SubmissionLedger

router = APIRouter()


@router.get("/reviews/pending", response_model=list[SubmissionRead])
def pending_reviews(
    assignment_id: Optional[str] = None,
    ledger: SubmissionLedger = Depends(get_ledger),
    _reviewer: str = Depends(get_actor_id),
):
    return ledger.list_pending_reviews(assignment_id=assignment_id)
