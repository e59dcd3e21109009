from typing import Optional

from fastapi import APIRouter, Depends, Header, status

from submission_ledger.core.deps import get_actor_id, get_ledger
from submission_ledger.schemas.submission import ReviewDecision, SubmissionCreate, SubmissionRead
from submission_ledger.services.ledger import SubmissionLedger

router = APIRouter()


@router.post(
    "/assignments/{assignment_id}/submissions",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Latest version is pending or approved"},
        404: {"description": "Assignment not found"},
        409: {"description": "Version race lost after retries"},
    },
)
def submit_assignment(
    assignment_id: str,
    payload: SubmissionCreate,
    idempotency_key: Optional[str] = Header(default=None),
    ledger: SubmissionLedger = Depends(get_ledger),
    me: str = Depends(get_actor_id),
):
    # students always submit for themselves
    return ledger.submit(
        assignment_id,
        me,
        payload.content,
        client_request_id=idempotency_key,
    )


@router.get("/submissions/{submission_id}", response_model=SubmissionRead)
def get_submission(
    submission_id: str,
    ledger: SubmissionLedger = Depends(get_ledger),
    _actor: str = Depends(get_actor_id),
):
    return ledger.get_submission(submission_id)


@router.post(
    "/submissions/{submission_id}/decision",
    response_model=SubmissionRead,
    responses={
        404: {"description": "Submission not found"},
        409: {"description": "Already decided or superseded by a newer version"},
    },
)
def decide_submission(
    submission_id: str,
    payload: ReviewDecision,
    ledger: SubmissionLedger = Depends(get_ledger),
    reviewer: str = Depends(get_actor_id),
):
    return ledger.decide(submission_id, payload.decision, reviewer, notes=payload.notes)
