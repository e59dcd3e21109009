from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class SubmissionCreate(BaseModel):
    content: str = Field(min_length=1)


class SubmissionRead(BaseModel):
    id: str
    assignment_id: str
    student_id: str
    version: int
    content: str
    status: Literal["pending", "approved", "declined"]
    created_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class ReviewDecision(BaseModel):
    decision: Literal["approved", "declined"]
    notes: Optional[str] = None
