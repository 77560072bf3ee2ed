"""Health monitoring for analysis jobs.

Stuck-job detection is purely time based: an active job whose ``updated_at``
has not moved for ``timeout_minutes`` is stuck. Checks run on demand (health
endpoint, auto-fix) or from the scheduled sweeper; there is no internal timer.

Batch operations isolate failures: one job that cannot be cancelled or
retried is logged and skipped, the rest of the batch still runs.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..exceptions import ValidationError
from ..models.job import Job, JobStatus, utcnow
from ..repositories.job_repository import JobRepository
from ..schemas.analysis import AutoFixResults, HealthResponse, HealthSummary
from ..schemas.job import StuckJob
from .job_lifecycle import JobLifecycle
from .stats_service import build_recommendations, get_job_stats

logger = logging.getLogger(__name__)

STUCK_CANCEL_REASON = "Automatically cancelled: job stuck for more than {timeout} minutes"
AUTO_FIX_CANCEL_REASON = "Auto-fix: cancelled after being stuck for {timeout}+ minutes"


def _resolve_timeout(timeout_minutes: Optional[int]) -> int:
    if timeout_minutes is None:
        return settings.job_timeout_minutes
    if timeout_minutes < 1:
        raise ValidationError("timeoutMinutes must be at least 1", field="timeoutMinutes")
    return timeout_minutes


@dataclass
class SweepReport:
    """Result of a cross-user sweep run by the scheduler."""
    stuck: List[StuckJob] = field(default_factory=list)
    cancelled: int = 0
    failed: int = 0


class HealthService:
    """Detects stuck jobs, reports health, and applies automatic fixes."""

    def __init__(self, db: Session):
        self.db = db
        self.jobs = JobRepository(db)
        self.lifecycle = JobLifecycle(db)

    def find_stuck_jobs(
        self, user_id: str, timeout_minutes: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[Job]:
        """The caller's active jobs that have not been updated within the timeout."""
        timeout = _resolve_timeout(timeout_minutes)
        return [job for job in self.jobs.find_stuck_jobs(timeout, now=now) if job.user_id == user_id]

    def check_health(
        self, user_id: str, timeout_minutes: Optional[int] = None, auto_cancel: bool = False
    ) -> HealthResponse:
        """
        Report on the caller's stuck jobs plus global job statistics.

        Args:
            user_id: Resolved caller
            timeout_minutes: Staleness threshold (defaults to the configured timeout)
            auto_cancel: Cancel every stuck job found

        Returns:
            HealthResponse; status is "healthy" with no stuck jobs, "warning" otherwise
        """
        timeout = _resolve_timeout(timeout_minutes)
        now = utcnow()
        stuck_jobs = self.find_stuck_jobs(user_id, timeout, now=now)
        snapshots = [StuckJob.from_job(job, now) for job in stuck_jobs]

        auto_cancelled = 0
        if auto_cancel and snapshots:
            auto_cancelled, _ = self._cancel_all(
                [job.id for job in snapshots], STUCK_CANCEL_REASON.format(timeout=timeout)
            )

        stats = get_job_stats(self.db)
        return HealthResponse(
            health=HealthSummary(
                status="healthy" if not snapshots else "warning",
                stuck_jobs_count=len(snapshots),
                timeout_minutes=timeout,
                auto_cancelled_count=auto_cancelled,
            ),
            stats=stats,
            stuck_jobs=snapshots,
            recommendations=build_recommendations(len(snapshots), stats),
        )

    def auto_fix(
        self,
        user_id: str,
        timeout_minutes: Optional[int] = None,
        cancel_stuck_jobs: bool = True,
        retry_failed_jobs: bool = False,
    ) -> AutoFixResults:
        """Cancel the caller's stuck jobs and/or retry their failed ones.

        Only failed jobs with attempts left are retried, taken from the most
        recently updated ``failed_jobs_retry_limit`` failures.
        """
        timeout = _resolve_timeout(timeout_minutes)
        results = AutoFixResults()

        if cancel_stuck_jobs:
            stuck_ids = [job.id for job in self.find_stuck_jobs(user_id, timeout)]
            results.cancelled_jobs, _ = self._cancel_all(
                stuck_ids, AUTO_FIX_CANCEL_REASON.format(timeout=timeout)
            )

        if retry_failed_jobs:
            failed = self.jobs.find_by_status(JobStatus.FAILED, limit=settings.failed_jobs_retry_limit)
            retryable = [
                job.id for job in failed
                if job.user_id == user_id and job.attempts < job.max_attempts
            ]
            for job_id in retryable:
                try:
                    self.lifecycle.retry(job_id)
                except Exception:
                    self.db.rollback()
                    logger.exception("Failed to retry job %s", job_id, extra={"job_id": job_id})
                    continue
                results.retried_jobs += 1

        logger.info(
            "Auto-fix for user %s: %d cancelled, %d retried",
            user_id, results.cancelled_jobs, results.retried_jobs,
            extra={"user_id": user_id},
        )
        return results

    def sweep(self, timeout_minutes: Optional[int] = None, auto_cancel: bool = False) -> SweepReport:
        """Scan stuck jobs of every user; used by the scheduled sweeper."""
        timeout = _resolve_timeout(timeout_minutes)
        now = utcnow()
        report = SweepReport(
            stuck=[StuckJob.from_job(job, now) for job in self.jobs.find_stuck_jobs(timeout, now=now)]
        )
        for job in report.stuck:
            logger.warning(
                "Job %s stuck in %s for %d minutes", job.id, job.status.value, job.stuck_duration_minutes,
                extra={"job_id": job.id, "context_id": job.context_id},
            )

        if auto_cancel and report.stuck:
            report.cancelled, report.failed = self._cancel_all(
                [job.id for job in report.stuck], STUCK_CANCEL_REASON.format(timeout=timeout)
            )
        return report

    def _cancel_all(self, job_ids: List[str], reason: str) -> Tuple[int, int]:
        """Cancel each job independently. Returns (cancelled, failed)."""
        cancelled = failed = 0
        for job_id in job_ids:
            try:
                self.lifecycle.cancel(job_id, reason)
                cancelled += 1
            except Exception:
                self.db.rollback()
                failed += 1
                logger.exception("Failed to cancel stuck job %s", job_id, extra={"job_id": job_id})
        return cancelled, failed
