from typing import Optional

from fastapi import APIRouter, Depends

from submission_ledger.core.deps import get_actor_id, get_ledger
from submission_ledger.schemas.thread import ThreadRead
from submission_ledger.services.ledger import SubmissionLedger

router = APIRouter()


@router.get("/students/{student_id}/history", response_model=list[ThreadRead])
def student_history(
    student_id: str,
    assignment_id: Optional[str] = None,
    ledger: SubmissionLedger = Depends(get_ledger),
    _actor: str = Depends(get_actor_id),
):
    return ledger.get_history(student_id, assignment_id=assignment_id)
