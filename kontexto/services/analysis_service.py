"""Analysis orchestration on top of the job lifecycle.

Owns the domain rules for repository analysis jobs: who may start or cancel
them, at most one active analysis per context, and what goes into a job's
payload. ``payload.userId`` (mirrored in ``Job.user_id``) is the only
authorization anchor for job mutations.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..exceptions import ConflictError, ForbiddenError, InvalidTransitionError, ValidationError
from ..models import Context, Job, JobType
from ..models.job import as_utc
from ..repositories import ContextRepository, JobRepository
from ..schemas.job import AnalyzeRepoPayload
from .job_lifecycle import JobLifecycle

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_REASON = "Cancelled by user"


@dataclass(frozen=True)
class StartedAnalysis:
    """Outcome of ``start_analysis``. ``created`` is False on a dedup hit."""
    job: Job
    context: Context
    created: bool


class AnalysisService:
    """
    Starts, lists and cancels repository analyses.

    Dedup is enforced twice: an explicit read of the context's active jobs,
    and the store's unique index on active (context, type) pairs which
    catches concurrent starts that both passed the read.
    """

    def __init__(self, db: Session):
        self.db = db
        self.jobs = JobRepository(db)
        self.contexts = ContextRepository(db)
        self.lifecycle = JobLifecycle(db)

    def get_authorized_context(self, context_id: str, user_id: str) -> Context:
        """Load a context the caller owns. Raises 404 / 403 otherwise."""
        context = self.contexts.get_by_id(context_id)
        if context.owner_id != user_id:
            raise ForbiddenError("You do not have permission to analyze this context")
        return context

    def start_analysis(
        self, context_id: str, user_id: str, access_token: Optional[str] = None
    ) -> StartedAnalysis:
        """
        Create an analysis job for a context, or return the one already running.

        Args:
            context_id: Context to analyze
            user_id: Resolved caller; must own the context
            access_token: GitHub token handed to the worker through the payload

        Returns:
            StartedAnalysis with the new or existing job
        """
        context = self.get_authorized_context(context_id, user_id)
        if not context.is_active:
            raise ValidationError("Context is deactivated", field="contextId")

        existing = self._find_active_analysis(context_id)
        if existing is not None:
            logger.info(
                "Analysis already in progress for context %s: %s", context_id, existing.id,
                extra={"job_id": existing.id, "context_id": context_id},
            )
            return StartedAnalysis(job=existing, context=context, created=False)

        payload = AnalyzeRepoPayload(
            context_id=context.id,
            user_id=user_id,
            repo_url=context.repo_url,
            branch=context.branch or settings.default_branch,
            context_name=context.name,
            access_token=access_token,
        )
        try:
            job = self.lifecycle.create(JobType.ANALYZE_REPO, payload)
        except ConflictError:
            # A concurrent start won the insert; hand back its job.
            winner = self._find_active_analysis(context_id)
            if winner is None:
                raise
            logger.info("Concurrent start for context %s resolved to %s", context_id, winner.id)
            return StartedAnalysis(job=winner, context=context, created=False)

        logger.info(
            "Background analysis job %s created for context %s", job.id, context.name,
            extra={"job_id": job.id, "context_id": context_id},
        )
        return StartedAnalysis(job=job, context=context, created=True)

    def get_jobs_for_user(self, user_id: str) -> List[Job]:
        """All of the user's analysis jobs, newest first."""
        jobs = [job for job in self.jobs.find_by_type(JobType.ANALYZE_REPO) if job.user_id == user_id]
        jobs.sort(key=lambda job: as_utc(job.created_at), reverse=True)
        return jobs

    def get_job_for_user(self, job_id: str, user_id: str) -> Job:
        """Load a job the caller owns. Raises 404 / 403 otherwise."""
        job = self.jobs.get_by_id(job_id)
        if job.user_id != user_id:
            raise ForbiddenError("Access denied")
        return job

    def cancel_job(self, job_id: str, user_id: str, reason: Optional[str] = None) -> int:
        """Cancel one job the caller owns.

        Returns the number of jobs cancelled: 0 when the job had already
        reached a terminal state.
        """
        job = self.get_job_for_user(job_id, user_id)
        if job.is_terminal:
            logger.info("Job %s already %s, nothing to cancel", job_id, job.status)
            return 0
        try:
            self.lifecycle.cancel(job_id, reason or DEFAULT_CANCEL_REASON)
        except InvalidTransitionError:
            logger.info("Job %s finished before it could be cancelled", job_id)
            return 0
        return 1

    def cancel_for_context(self, context_id: str, user_id: str, reason: Optional[str] = None) -> int:
        """Cancel every active job of a context, of any type, owned by the caller."""
        context = self.contexts.find_by_id(context_id)
        if context is not None and context.owner_id != user_id:
            raise ForbiddenError("You do not have permission to cancel jobs for this context")

        cancelled = 0
        for job in self.jobs.find_active_for_context(context_id):
            if job.user_id != user_id:
                continue
            try:
                self.lifecycle.cancel(job.id, reason or DEFAULT_CANCEL_REASON)
                cancelled += 1
            except (InvalidTransitionError, ConflictError) as e:
                logger.info("Skipped cancelling job %s: %s", job.id, e.message)

        logger.info(
            "Cancelled %d job(s) for context %s", cancelled, context_id,
            extra={"context_id": context_id, "cancelled": cancelled},
        )
        return cancelled

    def retry_job(self, job_id: str, user_id: str) -> Job:
        """Retry a failed job the caller owns."""
        self.get_job_for_user(job_id, user_id)
        return self.lifecycle.retry(job_id)

    def _find_active_analysis(self, context_id: str) -> Optional[Job]:
        active = self.jobs.find_active_for_context(context_id, JobType.ANALYZE_REPO)
        return active[0] if active else None
