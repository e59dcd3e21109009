from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AssignmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    id: Optional[str] = Field(default=None, max_length=64)


class AssignmentRead(BaseModel):
    id: str
    name: str
    created_at: datetime

    class Config:
        from_attributes = True
