import enum
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from submission_ledger.db.base_class import Base


class SubmissionStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    declined = "declined"


# status of a thread that has no submissions yet
NOT_SUBMITTED = "not_submitted"


class Submission(Base):
    __tablename__ = "submissions"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))

    assignment_id = Column(
        String(64), ForeignKey("assignments.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    student_id = Column(String(64), nullable=False, index=True)

    # assigned by the ledger only, never by callers
    version = Column(Integer, nullable=False)

    content = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default=SubmissionStatus.pending.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Review fields (null until decided)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    client_request_id = Column(String(128), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "assignment_id", "student_id", "version", name="uq_submission_thread_version"
        ),
        UniqueConstraint(
            "student_id", "client_request_id", name="uq_submission_student_request"
        ),
        CheckConstraint("version > 0", name="ck_submission_version_positive"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'declined')", name="ck_submission_status"
        ),
        Index("ix_submissions_status", "status"),
    )

    assignment = relationship("Assignment", back_populates="submissions")

    @property
    def is_pending(self) -> bool:
        return self.status == SubmissionStatus.pending.value
