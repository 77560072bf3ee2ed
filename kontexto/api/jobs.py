"""Job detail and manual retry endpoints."""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..core.auth import AuthContext, require_user
from ..schemas.job import JobResponse
from ..services.analysis_service import AnalysisService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Get one of the caller's jobs. The access token is never returned."""
    job = AnalysisService(db).get_job_for_user(job_id, auth.user_id)
    return JobResponse.from_job(job)


@router.post("/{job_id}/retry", response_model=JobResponse)
def retry_job(
    job_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_user),
):
    """Requeue a failed job while it has attempts left.

    Each retry consumes one attempt; 409 once they are used up.
    """
    job = AnalysisService(db).retry_job(job_id, auth.user_id)
    logger.info(
        "Job %s retried by user %s (status=%s)", job_id, auth.user_id, job.status,
        extra={"job_id": job_id, "user_id": auth.user_id},
    )
    return JobResponse.from_job(job)
