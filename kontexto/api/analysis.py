"""Analysis endpoints: start, list, cancel, and job health."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Response
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_user
from ..core.config import settings
from ..database import get_db
from ..schemas.analysis import (
    AutoFixRequest,
    AutoFixResponse,
    CancelRequest,
    CancelResponse,
    HealthResponse,
    JobListResponse,
    StartAnalysisRequest,
    StartAnalysisResponse,
    StuckJobsResponse,
)
from ..schemas.job import JobSummary, StuckJob
from ..services.analysis_service import AnalysisService
from ..services.health_service import HealthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analysis", tags=["analysis"])

MSG_STARTED = "Analysis started in the background. You can keep working while it runs."
MSG_ALREADY_RUNNING = "An analysis is already in progress for this context"


@router.post("", response_model=StartAnalysisResponse, status_code=201)
def start_analysis(
    request: StartAnalysisRequest,
    response: Response,
    x_github_token: Optional[str] = Header(None, alias="X-GitHub-Token"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Start a background analysis of a context's repository.

    Returns 201 with the new job, or 200 with the job already running for the
    context.
    """
    service = AnalysisService(db)
    started = service.start_analysis(request.context_id, auth.user_id, access_token=x_github_token)
    job, context = started.job, started.context

    if not started.created:
        response.status_code = 200

    return StartAnalysisResponse(
        message=MSG_STARTED if started.created else MSG_ALREADY_RUNNING,
        job_id=job.id,
        status=job.status,
        context_id=context.id,
        context_name=context.name,
        repo_url=context.repo_url,
        estimated_time=settings.analysis_estimated_time if started.created else None,
        already_running=not started.created,
    )


@router.get("", response_model=JobListResponse)
def list_analyses(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """List the caller's analysis jobs, newest first."""
    jobs = AnalysisService(db).get_jobs_for_user(auth.user_id)
    return JobListResponse(jobs=[JobSummary.from_job(job) for job in jobs], total=len(jobs))


@router.post("/cancel", response_model=CancelResponse)
def cancel_analysis(
    request: CancelRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Cancel one job by ``jobId``, or every active job of a ``contextId``."""
    service = AnalysisService(db)
    if request.job_id:
        cancelled = service.cancel_job(request.job_id, auth.user_id, request.reason)
    else:
        cancelled = service.cancel_for_context(request.context_id, auth.user_id, request.reason)

    return CancelResponse(message=f"{cancelled} job(s) cancelled", cancelled_count=cancelled)


@router.get("/stuck", response_model=StuckJobsResponse)
def list_stuck_jobs(
    timeout: int = Query(settings.job_timeout_minutes, ge=1, description="Minutes without an update"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    stuck = HealthService(db).find_stuck_jobs(auth.user_id, timeout)
    return StuckJobsResponse(
        stuck_jobs=[StuckJob.from_job(job) for job in stuck],
        total=len(stuck),
        timeout_minutes=timeout,
    )


@router.get("/health", response_model=HealthResponse)
def job_health(
    timeout: int = Query(settings.job_timeout_minutes, ge=1),
    auto_cancel: bool = Query(False, alias="autoCancel"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Stuck jobs of the caller, global stats, and recommendations."""
    return HealthService(db).check_health(auth.user_id, timeout, auto_cancel=auto_cancel)


@router.post("/health/fix", response_model=AutoFixResponse)
def fix_job_health(
    request: Optional[AutoFixRequest] = None,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Cancel the caller's stuck jobs and optionally retry failed ones."""
    request = request or AutoFixRequest()
    results = HealthService(db).auto_fix(
        auth.user_id,
        timeout_minutes=request.timeout_minutes,
        cancel_stuck_jobs=request.cancel_stuck_jobs,
        retry_failed_jobs=request.retry_failed_jobs,
    )
    fixed = results.cancelled_jobs + results.retried_jobs
    return AutoFixResponse(
        message=f"Auto-fix completed: {fixed} job(s) fixed",
        results=results,
        fixed_count=fixed,
    )
