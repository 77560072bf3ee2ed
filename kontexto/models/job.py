"""Job model: the durable record of one asynchronous analysis task."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Column, String, Text, Integer, DateTime, JSON, Index, text

from ..database import Base


class JobStatus(str, Enum):
    """Wire values of a job's status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobType(str, Enum):
    """Kinds of work a job can carry."""
    ANALYZE_REPO = "analyze_repo"
    ANALYZE_COMMIT = "analyze_commit"
    GENERATE_DOCS = "generate_docs"


# Plain strings: str-mixin enum members hash by name, not by value.
ACTIVE_STATUSES = frozenset({JobStatus.PENDING.value, JobStatus.PROCESSING.value})
TERMINAL_STATUSES = frozenset({
    JobStatus.COMPLETED.value, JobStatus.FAILED.value, JobStatus.CANCELLED.value,
})


_ACTIVE_SQL = "status IN ('pending', 'processing')"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Job(Base):
    """
    Tracks one analysis job from creation to a terminal status.

    Status transitions: pending -> processing -> completed | failed,
    pending | processing -> cancelled, failed -> pending (retry).
    Rows are never deleted; termination is a status value.

    ``context_id`` and ``user_id`` are copied out of the payload at creation
    so the store can filter and index on them. Like the payload, they never
    change afterwards.
    """

    __tablename__ = "jobs"

    id = Column(String(50), primary_key=True)
    type = Column(String(30), nullable=False, index=True)

    # Allowed values: see JobStatus
    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value, index=True)

    payload = Column(JSON, nullable=False)
    context_id = Column(String(50), nullable=False, index=True)
    user_id = Column(String(50), nullable=False, index=True)

    result = Column(JSON, nullable=True)
    # Failure message, or the reason given when the job was cancelled
    error = Column(Text, nullable=True)

    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # At most one active job per (context, type). Losing a concurrent insert
    # race surfaces as IntegrityError.
    __table_args__ = (
        Index(
            "uq_jobs_active_context_type",
            "context_id",
            "type",
            unique=True,
            sqlite_where=text(_ACTIVE_SQL),
            postgresql_where=text(_ACTIVE_SQL),
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def stuck_minutes(self, now: Optional[datetime] = None) -> int:
        """Whole minutes since the last status update."""
        now = now or utcnow()
        return int((now - as_utc(self.updated_at)).total_seconds() // 60)
