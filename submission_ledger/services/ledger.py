"""Submission ledger: versioned submission threads and the review workflow.

Every (assignment, student) pair owns a thread of immutable submissions.
Students append new versions with :meth:`SubmissionLedger.submit`, reviewers
move the tip of a thread out of ``pending`` with
:meth:`SubmissionLedger.decide`. All coordination between concurrent callers
is left to the store: version numbers are protected by the
``(assignment_id, student_id, version)`` unique constraint and a bounded
retry loop, decisions by a single conditional UPDATE.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence, TypeVar, Union

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, aliased

from submission_ledger.core.config import Settings, get_settings
from submission_ledger.core.errors import (
    Conflict,
    InvalidDecision,
    LedgerError,
    NotAllowed,
    NotFound,
    NotPending,
    StaleReview,
    StoreTimeout,
    StoreUnavailable,
)
from submission_ledger.models.assignment import Assignment
from submission_ledger.models.submission import NOT_SUBMITTED, Submission, SubmissionStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

DECISIONS = (SubmissionStatus.approved.value, SubmissionStatus.declined.value)


def _tip(submissions: Sequence[Submission]) -> Optional[Submission]:
    if not submissions:
        return None
    return max(submissions, key=lambda s: s.version)


def derive_current_status(submissions: Sequence[Submission]) -> str:
    tip = _tip(submissions)
    return tip.status if tip is not None else NOT_SUBMITTED


def derive_can_resubmit(submissions: Sequence[Submission]) -> bool:
    """A thread accepts a new version when it is empty or its tip was declined."""
    tip = _tip(submissions)
    return tip is None or tip.status == SubmissionStatus.declined.value


class Thread:
    """All submissions of one student for one assignment, newest first."""

    def __init__(
        self,
        assignment_id: str,
        assignment_name: str,
        student_id: str,
        submissions: Optional[list[Submission]] = None,
    ):
        self.assignment_id = assignment_id
        self.assignment_name = assignment_name
        self.student_id = student_id
        self.submissions = submissions if submissions is not None else []

    def __repr__(self) -> str:
        return (
            f"Thread(assignment_id={self.assignment_id!r}, student_id={self.student_id!r}, "
            f"versions={[s.version for s in self.submissions]!r})"
        )

    @property
    def current_status(self) -> str:
        return derive_current_status(self.submissions)

    @property
    def latest_version(self) -> int:
        tip = _tip(self.submissions)
        return tip.version if tip is not None else 0

    @property
    def can_resubmit(self) -> bool:
        return derive_can_resubmit(self.submissions)


def _is_transient(exc: DBAPIError) -> bool:
    if isinstance(exc, IntegrityError):
        return False
    return isinstance(exc, OperationalError) or exc.connection_invalidated


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionLedger:
    """Request-scoped facade over one SQLAlchemy session.

    Holds no state between calls besides the session, so one instance per
    request (or per unit of work) is the expected usage.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self._clock = clock
        self._sleep = sleep

    # -- store plumbing -------------------------------------------------

    def _run(self, operation: str, fn: Callable[[float], T], timeout: Optional[float]) -> T:
        """Run ``fn`` in its own transaction, retrying transient store failures.

        ``fn`` receives the absolute deadline (``time.monotonic()`` based).
        Domain errors are rolled back and re-raised untouched.
        """
        if timeout is None:
            timeout = self.settings.store_timeout
        deadline = time.monotonic() + timeout

        attempt = 0
        while True:
            attempt += 1
            try:
                return fn(deadline)
            except DBAPIError as exc:
                self.db.rollback()
                if not _is_transient(exc):
                    raise
                if attempt >= self.settings.store_retry_attempts:
                    logger.error("%s: store unavailable after %d attempts: %s", operation, attempt, exc)
                    raise StoreUnavailable(
                        f"Storage is unavailable, {operation} was not applied"
                    ) from exc
                delay = self.settings.store_retry_base_delay * (2 ** (attempt - 1))
                if time.monotonic() + delay > deadline:
                    raise StoreTimeout(f"{operation} timed out after {timeout:.2f}s") from exc
                logger.warning(
                    "%s: transient store error (attempt %d/%d), retrying in %.3fs: %s",
                    operation,
                    attempt,
                    self.settings.store_retry_attempts,
                    delay,
                    exc,
                )
                self._sleep(delay)
            except Exception:
                self.db.rollback()
                raise

    def _begin(self, operation: str, deadline: float) -> None:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise StoreTimeout(f"{operation} timed out before reaching the store")
        if self.db.get_bind().dialect.name == "postgresql":
            # SET LOCAL does not accept bind parameters
            self.db.execute(text(f"SET LOCAL statement_timeout = {max(1, int(remaining * 1000))}"))

    def _read_tip(self, assignment_id: str, student_id: str) -> Optional[Submission]:
        stmt = (
            select(Submission)
            .where(
                Submission.assignment_id == assignment_id,
                Submission.student_id == student_id,
            )
            .order_by(Submission.version.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return self.db.scalars(stmt).first()

    def _get_assignment(self, assignment_id: str) -> Assignment:
        assignment = self.db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFound(f"Assignment {assignment_id} not found")
        return assignment

    # -- reads ----------------------------------------------------------

    def get_history(
        self,
        student_id: str,
        assignment_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> list[Thread]:
        """Every thread of ``student_id``, newest version first within each.

        One SELECT, so all threads come from the same snapshot. Unknown
        students or assignments produce an empty list.
        """

        def read(deadline: float) -> list[Thread]:
            self._begin("get_history", deadline)
            stmt = (
                select(Submission, Assignment.name)
                .join(Assignment, Assignment.id == Submission.assignment_id)
                .where(Submission.student_id == student_id)
                .order_by(Assignment.name, Assignment.id, Submission.version.desc())
                .execution_options(populate_existing=True)
            )
            if assignment_id is not None:
                stmt = stmt.where(Submission.assignment_id == assignment_id)
            rows = self.db.execute(stmt).all()
            self.db.commit()

            threads: dict[str, Thread] = {}
            for submission, assignment_name in rows:
                thread = threads.get(submission.assignment_id)
                if thread is None:
                    thread = threads[submission.assignment_id] = Thread(
                        assignment_id=submission.assignment_id,
                        assignment_name=assignment_name,
                        student_id=student_id,
                    )
                thread.submissions.append(submission)
            return list(threads.values())

        return self._run("get_history", read, timeout)

    def get_thread(
        self, assignment_id: str, student_id: str, timeout: Optional[float] = None
    ) -> Thread:
        def read(deadline: float) -> Thread:
            self._begin("get_thread", deadline)
            assignment = self._get_assignment(assignment_id)
            stmt = (
                select(Submission)
                .where(
                    Submission.assignment_id == assignment_id,
                    Submission.student_id == student_id,
                )
                .order_by(Submission.version.desc())
                .execution_options(populate_existing=True)
            )
            submissions = list(self.db.scalars(stmt))
            self.db.commit()
            return Thread(
                assignment_id=assignment.id,
                assignment_name=assignment.name,
                student_id=student_id,
                submissions=submissions,
            )

        return self._run("get_thread", read, timeout)

    def get_submission(self, submission_id: str, timeout: Optional[float] = None) -> Submission:
        def read(deadline: float) -> Submission:
            self._begin("get_submission", deadline)
            submission = self.db.get(Submission, submission_id, populate_existing=True)
            if submission is None:
                raise NotFound(f"Submission {submission_id} not found")
            self.db.commit()
            return submission

        return self._run("get_submission", read, timeout)

    def list_pending_reviews(
        self, assignment_id: Optional[str] = None, timeout: Optional[float] = None
    ) -> list[Submission]:
        """Review queue: submissions awaiting a decision, oldest first."""

        def read(deadline: float) -> list[Submission]:
            self._begin("list_pending_reviews", deadline)
            stmt = (
                select(Submission)
                .where(Submission.status == SubmissionStatus.pending.value)
                .order_by(Submission.created_at, Submission.id)
                .execution_options(populate_existing=True)
            )
            if assignment_id is not None:
                stmt = stmt.where(Submission.assignment_id == assignment_id)
            pending = list(self.db.scalars(stmt))
            self.db.commit()
            return pending

        return self._run("list_pending_reviews", read, timeout)

    # -- writes ---------------------------------------------------------

    def create_assignment(
        self,
        name: str,
        assignment_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Assignment:
        def write(deadline: float) -> Assignment:
            self._begin("create_assignment", deadline)
            assignment = Assignment(name=name, created_at=self._clock())
            if assignment_id is not None:
                if self.db.get(Assignment, assignment_id) is not None:
                    raise Conflict(f"Assignment {assignment_id} already exists")
                assignment.id = assignment_id
            self.db.add(assignment)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise Conflict(f"Assignment {assignment_id} already exists")
            return assignment

        return self._run("create_assignment", write, timeout)

    def submit(
        self,
        assignment_id: str,
        student_id: str,
        content: str,
        client_request_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Submission:
        """Append a new ``pending`` version to the thread.

        The version is always ``tip + 1`` as read inside the write
        transaction. A concurrent writer that wins the same number makes
        our insert fail the unique constraint; we then start over from the
        read, at most ``submit_max_attempts`` times, before raising
        :class:`Conflict`. Passing ``client_request_id`` makes the call
        safe to repeat: a replay returns the submission created first.
        """

        def write(deadline: float) -> Submission:
            attempts = self.settings.submit_max_attempts
            for attempt in range(1, attempts + 1):
                self._begin("submit", deadline)

                if client_request_id is not None:
                    replay = self._find_replay(assignment_id, student_id, client_request_id)
                    if replay is not None:
                        self.db.commit()
                        return replay

                self._get_assignment(assignment_id)
                tip = self._read_tip(assignment_id, student_id)
                if not derive_can_resubmit([tip] if tip is not None else []):
                    raise NotAllowed(
                        f"Version {tip.version} is {tip.status}; "
                        "a new submission is allowed only after it is declined"
                    )

                next_version = tip.version + 1 if tip is not None else 1
                submission = Submission(
                    assignment_id=assignment_id,
                    student_id=student_id,
                    version=next_version,
                    content=content,
                    status=SubmissionStatus.pending.value,
                    created_at=self._clock(),
                    client_request_id=client_request_id,
                )
                self.db.add(submission)
                try:
                    self.db.commit()
                except IntegrityError:
                    self.db.rollback()
                    logger.warning(
                        "version race on assignment=%s student=%s version=%d (attempt %d/%d)",
                        assignment_id,
                        student_id,
                        next_version,
                        attempt,
                        attempts,
                    )
                    continue

                logger.info(
                    "submission %s created: assignment=%s student=%s version=%d",
                    submission.id,
                    assignment_id,
                    student_id,
                    next_version,
                )
                return submission

            raise Conflict(
                f"Could not assign a version after {attempts} attempts, "
                "another submission is in progress; retry later"
            )

        return self._run("submit", write, timeout)

    def _find_replay(
        self, assignment_id: str, student_id: str, client_request_id: str
    ) -> Optional[Submission]:
        stmt = (
            select(Submission)
            .where(
                Submission.student_id == student_id,
                Submission.client_request_id == client_request_id,
            )
            .execution_options(populate_existing=True)
        )
        previous = self.db.scalars(stmt).first()
        if previous is None:
            return None
        if previous.assignment_id != assignment_id:
            raise Conflict(
                f"Request id {client_request_id} was already used for another assignment"
            )
        logger.info("submit replayed for request id %s -> %s", client_request_id, previous.id)
        return previous

    def decide(
        self,
        submission_id: str,
        decision: Union[str, SubmissionStatus],
        reviewer_id: str,
        notes: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Submission:
        """Approve or decline the tip of a thread.

        Only a ``pending`` submission that is still the latest version can be
        decided. The check and the write are the same UPDATE statement, so
        two reviewers racing on one submission cannot both succeed.
        """
        decision = decision.value if isinstance(decision, SubmissionStatus) else decision
        if decision not in DECISIONS:
            raise InvalidDecision(f"Decision must be one of {', '.join(DECISIONS)}, got {decision!r}")

        def write(deadline: float) -> Submission:
            self._begin("decide", deadline)
            thread = aliased(Submission)
            latest_version = (
                select(func.max(thread.version))
                .where(
                    thread.assignment_id == Submission.assignment_id,
                    thread.student_id == Submission.student_id,
                )
                .correlate(Submission)
                .scalar_subquery()
            )
            stmt = (
                update(Submission)
                .where(
                    Submission.id == submission_id,
                    Submission.status == SubmissionStatus.pending.value,
                    Submission.version == latest_version,
                )
                .values(
                    status=decision,
                    reviewed_at=self._clock(),
                    reviewed_by=reviewer_id,
                    notes=notes,
                )
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(stmt)
            if result.rowcount != 1:
                raise self._rejected_decision(submission_id)
            self.db.commit()

            submission = self.db.get(Submission, submission_id, populate_existing=True)
            logger.info(
                "submission %s %s by %s (version %d)",
                submission_id,
                decision,
                reviewer_id,
                submission.version,
            )
            return submission

        return self._run("decide", write, timeout)

    def _rejected_decision(self, submission_id: str) -> LedgerError:
        submission = self.db.get(Submission, submission_id, populate_existing=True)
        if submission is None:
            return NotFound(f"Submission {submission_id} not found")
        tip = self._read_tip(submission.assignment_id, submission.student_id)
        if tip is not None and tip.version != submission.version:
            return StaleReview(
                f"Version {submission.version} was superseded by version {tip.version}; "
                "refresh the history before reviewing"
            )
        return NotPending(f"Submission {submission_id} is already {submission.status}")
