from typing import Literal

from pydantic import BaseModel

from submission_ledger.schemas.submission import SubmissionRead


class ThreadRead(BaseModel):
    assignment_id: str
    assignment_name: str
    student_id: str
    current_status: Literal["pending", "approved", "declined", "not_submitted"]
    latest_version: int
    can_resubmit: bool
    # most recent first
    submissions: list[SubmissionRead]

    class Config:
        from_attributes = True
