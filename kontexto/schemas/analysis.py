"""Analysis, cancellation and health schemas."""

from typing import List, Literal, Optional

from pydantic import Field, model_validator

from ..models.job import JobStatus
from .base import CamelModel
from .job import JobSummary, StuckJob


class StartAnalysisRequest(CamelModel):
    """Request to analyze a context's repository."""
    context_id: str = Field(min_length=1)


class StartAnalysisResponse(CamelModel):
    """Returned for both a newly created job and a dedup hit."""
    message: str
    job_id: str
    status: JobStatus
    context_id: str
    context_name: str
    repo_url: str
    estimated_time: Optional[str] = None
    already_running: bool = False
    can_navigate_away: bool = True


class JobListResponse(CamelModel):
    jobs: List[JobSummary]
    total: int


class CancelRequest(CamelModel):
    """Cancel one job, or every active job of a context."""
    context_id: Optional[str] = None
    job_id: Optional[str] = None
    reason: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _require_target(self) -> "CancelRequest":
        if not self.context_id and not self.job_id:
            raise ValueError("contextId or jobId is required")
        return self


class CancelResponse(CamelModel):
    message: str
    cancelled_count: int


class StuckJobsResponse(CamelModel):
    stuck_jobs: List[StuckJob]
    total: int
    timeout_minutes: int


class JobStats(CamelModel):
    """Job counts per status. ``total`` also includes cancelled jobs."""
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0


class HealthSummary(CamelModel):
    status: Literal["healthy", "warning"]
    stuck_jobs_count: int
    timeout_minutes: int
    auto_cancelled_count: int = 0


class HealthResponse(CamelModel):
    health: HealthSummary
    stats: JobStats
    stuck_jobs: List[StuckJob]
    recommendations: List[str]


class AutoFixRequest(CamelModel):
    timeout_minutes: int = Field(default=30, ge=1)
    cancel_stuck_jobs: bool = True
    retry_failed_jobs: bool = False


class AutoFixResults(CamelModel):
    cancelled_jobs: int = 0
    retried_jobs: int = 0


class AutoFixResponse(CamelModel):
    message: str
    results: AutoFixResults
    fixed_count: int
