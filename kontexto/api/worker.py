"""Worker contract endpoints (service tokens only).

The analysis worker claims pending jobs here and reports their outcome. It
is trusted with the full payload, access token included.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..database import get_db
from ..core.auth import AuthContext, require_service
from ..schemas.job import WorkerJobResponse
from ..schemas.worker import ClaimRequest, StatusUpdateRequest
from ..services.job_lifecycle import JobLifecycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/worker", tags=["worker"])


@router.post(
    "/jobs/claim",
    response_model=WorkerJobResponse,
    responses={204: {"description": "No pending job"}},
)
def claim_job(
    request: Optional[ClaimRequest] = None,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_service),
):
    """Claim the oldest pending job and move it to ``processing``."""
    job_type = request.type if request else None
    job = JobLifecycle(db).claim_next(job_type)
    if job is None:
        return Response(status_code=204)
    return WorkerJobResponse.model_validate(job)


@router.put("/jobs/{job_id}/status", response_model=WorkerJobResponse)
def update_job_status(
    job_id: str,
    request: StatusUpdateRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_service),
):
    """Apply a worker status report.

    ``failed`` with ``retry`` set consumes an attempt and requeues the job,
    or fails it for good once the attempt ceiling is reached.
    """
    lifecycle = JobLifecycle(db)
    if request.status == "processing":
        job = lifecycle.start_processing(job_id)
    elif request.status == "completed":
        job = lifecycle.complete(job_id, request.result)
    elif request.retry:
        job = lifecycle.record_failed_attempt(job_id, request.error)
    else:
        job = lifecycle.fail(job_id, request.error)

    logger.info(
        "Worker set job %s to %s", job_id, job.status,
        extra={"job_id": job_id, "requested_status": request.status},
    )
    return WorkerJobResponse.model_validate(job)
