from fastapi import APIRouter, Depends, status

from submission_ledger.core.deps import get_actor_id, get_ledger
from submission_ledger.schemas.assignment import AssignmentCreate, AssignmentRead
from submission_ledger.schemas.thread import ThreadRead
from submission_ledger.services.ledger import SubmissionLedger

router = APIRouter()


@router.post(
    "/assignments",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Assignment id already taken"}},
)
def create_assignment(
    payload: AssignmentCreate,
    ledger: SubmissionLedger = Depends(get_ledger),
    _actor: str = Depends(get_actor_id),
):
    return ledger.create_assignment(payload.name, assignment_id=payload.id)


@router.get(
    "/assignments/{assignment_id}/students/{student_id}/thread",
    response_model=ThreadRead,
)
def get_thread(
    assignment_id: str,
    student_id: str,
    ledger: SubmissionLedger = Depends(get_ledger),
    _actor: str = Depends(get_actor_id),
):
    return ledger.get_thread(assignment_id, student_id)
