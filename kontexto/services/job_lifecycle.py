"""Job lifecycle manager: the state machine over job records.

States: pending (initial), processing, completed, failed, cancelled.

    pending    -> processing   worker claims the job
    processing -> completed    worker reports success (result required)
    processing -> failed       worker reports failure (error required)
    processing -> pending      failed attempt requeued (attempts < max)
    pending    -> cancelled    user or operator cancel
    processing -> cancelled    user or operator cancel
    failed     -> pending      retry (attempts < max)

completed and cancelled are final. failed is final except for an explicit
retry while attempts remain. Any other move raises InvalidTransitionError;
nothing is ever skipped silently.

Every write goes through the store with the status that was checked, so a
concurrent writer turns into a re-check rather than a lost update.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..exceptions import ConflictError, InvalidTransitionError, ValidationError
from ..models.job import Job, JobStatus, JobType
from ..repositories.job_repository import JobRepository
from ..schemas.job import JobPayload

logger = logging.getLogger(__name__)

_PENDING = JobStatus.PENDING.value
_PROCESSING = JobStatus.PROCESSING.value
_COMPLETED = JobStatus.COMPLETED.value
_FAILED = JobStatus.FAILED.value
_CANCELLED = JobStatus.CANCELLED.value

TRANSITIONS: Dict[str, frozenset] = {
    _PENDING: frozenset({_PROCESSING, _CANCELLED}),
    _PROCESSING: frozenset({_COMPLETED, _FAILED, _CANCELLED, _PENDING}),
    _FAILED: frozenset({_PENDING}),
    _COMPLETED: frozenset(),
    _CANCELLED: frozenset(),
}

# Claims that lose a race move on to the next pending job this many times.
_CLAIM_RETRIES = 3


def can_transition(current: str, target: str) -> bool:
    """Whether the table allows *current* -> *target* (attempt guards aside)."""
    return JobStatus(target).value in TRANSITIONS[JobStatus(current).value]


def check_transition(job: Job, target: Union[JobStatus, str]) -> None:
    """Raise InvalidTransitionError unless *job* may move to *target*.

    Moves back to ``pending`` additionally need an attempt left.
    """
    target_value = JobStatus(target).value
    if not can_transition(job.status, target_value):
        reason = "job is already in a terminal state" if job.is_terminal else None
        raise InvalidTransitionError(job.id, job.status, target_value, reason)

    if target_value == _PENDING and job.attempts >= job.max_attempts:
        raise InvalidTransitionError(
            job.id, job.status, target_value,
            f"all {job.max_attempts} attempts used",
        )


class JobLifecycle:
    """
    Applies lifecycle transitions to stored jobs.

    Works on the caller's session and holds no job state of its own; the
    record is re-read before every transition.
    """

    def __init__(self, db: Session):
        self.db = db
        self.jobs = JobRepository(db)

    def create(
        self,
        job_type: Union[JobType, str],
        payload: Union[JobPayload, Mapping[str, Any]],
        max_attempts: Optional[int] = None,
    ) -> Job:
        """Create a pending job. ``max_attempts`` defaults to the configured ceiling."""
        job = self.jobs.create(
            job_type,
            payload,
            max_attempts=max_attempts if max_attempts is not None else settings.job_max_attempts,
        )
        logger.info(
            "Created %s job %s for context %s", job.type, job.id, job.context_id,
            extra={"job_id": job.id, "context_id": job.context_id},
        )
        return job

    def start_processing(self, job_id: str) -> Job:
        return self._transition(job_id, _PROCESSING)

    def complete(self, job_id: str, result: Dict[str, Any]) -> Job:
        if result is None:
            raise ValidationError("A result is required to complete a job", field="result")
        return self._transition(job_id, _COMPLETED, result=result)

    def fail(self, job_id: str, error: str) -> Job:
        if not error:
            raise ValidationError("An error message is required to fail a job", field="error")
        return self._transition(job_id, _FAILED, error=error)

    def cancel(self, job_id: str, reason: str) -> Job:
        """Cancel an active job, storing *reason* in ``error``.

        Cancellation is cooperative: the worker is expected to notice the
        status and stop.
        """
        return self._transition(job_id, _CANCELLED, error=reason)

    def record_failed_attempt(self, job_id: str, error: str) -> Job:
        """Count a failed run of a processing job.

        The job is requeued while attempts remain and becomes terminally
        ``failed`` when this attempt reaches ``max_attempts``.
        """
        job = self.jobs.get_by_id(job_id)
        if job.status != _PROCESSING:
            raise InvalidTransitionError(
                job.id, job.status, _PENDING, "only processing jobs can record a failed attempt"
            )
        return self.jobs.increment_attempts(job_id, error=error)

    def retry(self, job_id: str) -> Job:
        """Requeue a failed job that still has attempts left.

        The retry consumes one attempt and always lands on ``pending``; the
        next failed run then decides whether the job is done for good.
        """
        job = self.jobs.get_by_id(job_id)
        if job.status != _FAILED:
            raise InvalidTransitionError(job.id, job.status, _PENDING, "only failed jobs can be retried")
        check_transition(job, _PENDING)
        return self.jobs.requeue(job_id)

    def claim_next(self, job_type: Optional[Union[JobType, str]] = None) -> Optional[Job]:
        """Claim the oldest pending job for a worker, or None if there is none."""
        for _ in range(_CLAIM_RETRIES):
            job = self.jobs.find_oldest_pending(job_type)
            if job is None:
                return None
            try:
                claimed = self.jobs.update_status(
                    job.id, _PROCESSING, expected_status=_PENDING
                )
            except ConflictError:
                logger.debug("Lost claim race for job %s", job.id)
                continue
            logger.info("Claimed job %s", claimed.id, extra={"job_id": claimed.id})
            return claimed
        return None

    def _transition(
        self,
        job_id: str,
        target: str,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Job:
        job = self.jobs.get_by_id(job_id)
        check_transition(job, target)
        try:
            return self.jobs.update_status(
                job_id, target, result=result, error=error, expected_status=job.status
            )
        except ConflictError:
            # Someone else moved the job; decide again from its new status.
            job = self.jobs.get_by_id(job_id)
            check_transition(job, target)
            return self.jobs.update_status(
                job_id, target, result=result, error=error, expected_status=job.status
            )
