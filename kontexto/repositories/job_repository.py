"""Job store: persistence for job records.

Every write is a single conditional UPDATE or INSERT followed by a commit,
which is the only atomicity the rest of the system relies on. The store
applies the field rules that go with a status (``completed_at`` on terminal
statuses, ``result`` only on completion, ``error`` only on failure or
cancellation) but does not decide which transitions are legal; that is the
lifecycle manager's job.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Union

import pydantic
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..exceptions import ConflictError, DatabaseError, JobNotFoundError, ValidationError
from ..models.job import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Job,
    JobStatus,
    JobType,
    utcnow,
)
from ..schemas.job import PAYLOAD_TYPES, JobPayload, parse_payload
from .base import BaseRepository

logger = logging.getLogger(__name__)

_ERROR_STATUSES = frozenset({JobStatus.FAILED.value, JobStatus.CANCELLED.value})


def _status_value(status: Union[JobStatus, str]) -> str:
    return JobStatus(status).value


class JobRepository(BaseRepository[Job]):
    """Repository for job records."""

    model_class = Job
    not_found_error = JobNotFoundError

    def create(
        self,
        job_type: Union[JobType, str],
        payload: Union[JobPayload, Mapping[str, Any]],
        max_attempts: int = 3,
    ) -> Job:
        """Validate the payload for *job_type* and insert a pending job.

        Raises:
            ValidationError: Unknown type, bad ``max_attempts`` or a payload
                missing required fields.
            ConflictError: Another job of this type is already active for the
                payload's context.
            DatabaseError: The insert failed for any other reason.
        """
        job_type_value = self._validate_type(job_type)
        if max_attempts < 1:
            raise ValidationError("maxAttempts must be at least 1", field="maxAttempts")

        model = self._validate_payload(job_type_value, payload)
        now = utcnow()
        job = Job(
            id=str(uuid.uuid4()),
            type=job_type_value,
            status=JobStatus.PENDING.value,
            payload=model.model_dump(by_alias=True),
            context_id=model.context_id,
            user_id=model.user_id,
            result=None,
            error=None,
            attempts=0,
            max_attempts=max_attempts,
            created_at=now,
            updated_at=now,
            completed_at=None,
        )
        self.db.add(job)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info(
                "Active %s job already exists for context %s", job_type_value, model.context_id
            )
            raise ConflictError(
                model.context_id, "An active job of this type already exists for the context"
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to insert job for context %s: %s", model.context_id, e)
            raise DatabaseError("Failed to store job", operation="create") from e
        self.db.refresh(job)
        return job

    def find_by_type(self, job_type: Union[JobType, str]) -> List[Job]:
        """All jobs of a type, unordered."""
        return self.db.query(Job).filter(Job.type == JobType(job_type).value).all()

    def find_by_status(self, status: Union[JobStatus, str], limit: Optional[int] = None) -> List[Job]:
        """Jobs in *status*, most recently updated first."""
        query = (
            self.db.query(Job)
            .filter(Job.status == _status_value(status))
            .order_by(Job.updated_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def find_active_for_context(
        self, context_id: str, job_type: Optional[Union[JobType, str]] = None
    ) -> List[Job]:
        """Pending or processing jobs for a context, optionally of one type."""
        query = self.db.query(Job).filter(
            Job.context_id == context_id,
            Job.status.in_(ACTIVE_STATUSES),
        )
        if job_type is not None:
            query = query.filter(Job.type == JobType(job_type).value)
        return query.order_by(Job.created_at.asc()).all()

    def find_oldest_pending(self, job_type: Optional[Union[JobType, str]] = None) -> Optional[Job]:
        query = self.db.query(Job).filter(Job.status == JobStatus.PENDING.value)
        if job_type is not None:
            query = query.filter(Job.type == JobType(job_type).value)
        return query.order_by(Job.created_at.asc()).first()

    def find_stuck_jobs(self, timeout_minutes: int, now: Optional[datetime] = None) -> List[Job]:
        """Active jobs whose ``updated_at`` is more than *timeout_minutes* old."""
        cutoff = (now or utcnow()) - timedelta(minutes=timeout_minutes)
        return (
            self.db.query(Job)
            .filter(Job.status.in_(ACTIVE_STATUSES), Job.updated_at < cutoff)
            .order_by(Job.updated_at.asc())
            .all()
        )

    def count_by_status(self) -> Dict[str, int]:
        """Job counts keyed by status value, one grouped query."""
        rows = self.db.query(Job.status, func.count(Job.id)).group_by(Job.status).all()
        return {status: count for status, count in rows}

    def update_status(
        self,
        job_id: str,
        status: Union[JobStatus, str],
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        expected_status: Optional[Union[JobStatus, str]] = None,
    ) -> Job:
        """Set *status* and stamp ``updated_at`` in one atomic update.

        ``completed_at`` is set for terminal statuses and cleared otherwise.
        ``result`` is kept only for ``completed``; ``error`` only for
        ``failed`` and ``cancelled`` (where it holds the reason).

        When *expected_status* is given the update only applies if the row
        still has that status, so a concurrent writer cannot be overwritten.

        Raises:
            JobNotFoundError: No job with this id.
            ConflictError: The job's status no longer matches *expected_status*.
        """
        status_value = _status_value(status)
        now = utcnow()
        values = {
            Job.status: status_value,
            Job.updated_at: now,
            Job.completed_at: now if status_value in TERMINAL_STATUSES else None,
            Job.result: result if status_value == JobStatus.COMPLETED.value else None,
            Job.error: error if status_value in _ERROR_STATUSES else None,
        }

        query = self.db.query(Job).filter(Job.id == job_id)
        if expected_status is not None:
            query = query.filter(Job.status == _status_value(expected_status))
        self._apply(job_id, query, values)

        logger.info(
            "Job %s -> %s", job_id, status_value,
            extra={"job_id": job_id, "status": status_value},
        )
        return self.get_by_id(job_id)

    def increment_attempts(self, job_id: str, error: Optional[str] = None) -> Job:
        """Consume one attempt and requeue the job, or fail it at the ceiling.

        Reaching ``max_attempts`` forces ``failed`` (keeping *error*, or the
        previous error when none is given); otherwise the job goes back to
        ``pending`` with ``error`` cleared. ``attempts`` never exceeds
        ``max_attempts``: a job requeued on its last attempt fails in place.

        Raises:
            JobNotFoundError: No job with this id.
            ConflictError: The job changed between the read and the write.
        """
        job = self.get_by_id(job_id)
        attempts = min(job.attempts + 1, job.max_attempts)
        exhausted = attempts >= job.max_attempts
        now = utcnow()
        values = {
            Job.attempts: attempts,
            Job.status: JobStatus.FAILED.value if exhausted else JobStatus.PENDING.value,
            Job.updated_at: now,
            Job.completed_at: now if exhausted else None,
            Job.result: None,
            Job.error: (error or job.error) if exhausted else None,
        }

        query = self.db.query(Job).filter(
            Job.id == job_id,
            Job.attempts == job.attempts,
            Job.status == job.status,
        )
        self._apply(job_id, query, values)

        if exhausted:
            logger.warning(
                "Job %s failed permanently after %d attempt(s)", job_id, attempts,
                extra={"job_id": job_id, "attempts": attempts},
            )
        else:
            logger.info(
                "Job %s requeued (attempt %d of %d)", job_id, attempts, job.max_attempts,
                extra={"job_id": job_id, "attempts": attempts},
            )
        return self.get_by_id(job_id)

    def requeue(self, job_id: str) -> Job:
        """Move a failed job back to ``pending``, consuming one attempt.

        Only the status change is guarded here (the row must still be
        ``failed`` with the attempt count that was read); whether attempts
        remain is the caller's check.

        Raises:
            JobNotFoundError: No job with this id.
            ConflictError: The job changed between the read and the write.
        """
        job = self.get_by_id(job_id)
        attempts = job.attempts + 1
        values = {
            Job.attempts: attempts,
            Job.status: JobStatus.PENDING.value,
            Job.updated_at: utcnow(),
            Job.completed_at: None,
            Job.result: None,
            Job.error: None,
        }
        query = self.db.query(Job).filter(
            Job.id == job_id,
            Job.attempts == job.attempts,
            Job.status == JobStatus.FAILED.value,
        )
        self._apply(job_id, query, values)
        logger.info(
            "Job %s requeued by retry (attempt %d of %d)", job_id, attempts, job.max_attempts,
            extra={"job_id": job_id, "attempts": attempts},
        )
        return self.get_by_id(job_id)

    def _apply(self, job_id: str, query, values: dict) -> None:
        """Run a conditional UPDATE and commit, translating a miss into an error."""
        try:
            updated = query.update(values, synchronize_session=False)
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(
                job_id, "Another active job of this type already exists for the context"
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to update job %s: %s", job_id, e, extra={"job_id": job_id})
            raise DatabaseError("Failed to update job", operation="update") from e

        if updated == 0:
            self.db.rollback()
            if self.find_by_id(job_id) is None:
                raise JobNotFoundError(job_id)
            raise ConflictError(job_id, "Job was modified by another request")

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to commit job %s: %s", job_id, e, extra={"job_id": job_id})
            raise DatabaseError("Failed to update job", operation="commit") from e

    @staticmethod
    def _validate_type(job_type: Union[JobType, str]) -> str:
        try:
            return JobType(job_type).value
        except ValueError:
            raise ValidationError(
                f"Unknown job type '{job_type}'. Expected one of: {sorted(PAYLOAD_TYPES)}",
                field="type",
            )

    @staticmethod
    def _validate_payload(job_type: str, payload: Union[JobPayload, Mapping[str, Any]]) -> JobPayload:
        expected = PAYLOAD_TYPES[job_type]
        if isinstance(payload, expected):
            return payload
        data = payload.model_dump(by_alias=True) if isinstance(payload, JobPayload) else dict(payload)
        try:
            return parse_payload(job_type, data)
        except pydantic.ValidationError as e:
            missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ValidationError(
                f"Invalid payload for {job_type} job: {missing}", field="payload"
            ) from e
