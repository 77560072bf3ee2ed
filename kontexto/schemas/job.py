"""Job payload variants and job wire schemas.

Each job type has its own payload model. All of them share ``context_id`` and
``user_id``, which the dedup and authorization checks read without caring
about the concrete type.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Type

from pydantic import Field

from ..models.job import Job, JobStatus, JobType, utcnow
from .base import CamelModel


class JobPayload(CamelModel):
    """Fields every job payload carries."""
    context_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


class AnalyzeRepoPayload(JobPayload):
    """Full-repository analysis of one branch."""
    repo_url: str = Field(min_length=1)
    branch: str = Field(min_length=1)
    context_name: str
    access_token: Optional[str] = None


class AnalyzeCommitPayload(AnalyzeRepoPayload):
    """Analysis of a single commit."""
    commit_sha: str = Field(min_length=7, max_length=40)


class GenerateDocsPayload(JobPayload):
    """Documentation generation from a previous analysis."""
    repo_url: str = Field(min_length=1)
    branch: str = Field(min_length=1)
    context_name: str
    access_token: Optional[str] = None


PAYLOAD_TYPES: Dict[str, Type[JobPayload]] = {
    JobType.ANALYZE_REPO.value: AnalyzeRepoPayload,
    JobType.ANALYZE_COMMIT.value: AnalyzeCommitPayload,
    JobType.GENERATE_DOCS.value: GenerateDocsPayload,
}


def parse_payload(job_type: str, data: Dict[str, Any]) -> JobPayload:
    """Validate a stored or incoming payload against its job type's model.

    Raises:
        KeyError: Unknown job type.
        pydantic.ValidationError: Missing or malformed fields.
    """
    return PAYLOAD_TYPES[job_type].model_validate(data)


class PublicPayload(CamelModel):
    """Payload subset safe to show to the job's owner."""
    context_id: Optional[str] = None
    context_name: Optional[str] = None
    repo_url: Optional[str] = None
    branch: Optional[str] = None
    commit_sha: Optional[str] = None


def _public_payload(job: Job) -> PublicPayload:
    data = job.payload or {}
    return PublicPayload(
        context_id=data.get("contextId"),
        context_name=data.get("contextName"),
        repo_url=data.get("repoUrl"),
        branch=data.get("branch"),
        commit_sha=data.get("commitSha"),
    )


class JobResponse(CamelModel):
    """Single job as seen by its owner. Never includes the access token."""
    id: str
    type: JobType
    status: JobStatus
    payload: PublicPayload
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    attempts: int
    max_attempts: int
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls(
            id=job.id,
            type=job.type,
            status=job.status,
            payload=_public_payload(job),
            result=job.result,
            error=job.error,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            created_at=job.created_at,
            updated_at=job.updated_at,
            completed_at=job.completed_at,
        )


class JobSummary(CamelModel):
    """Job list entry with payload fields flattened for the dashboard."""
    id: str
    status: JobStatus
    context_id: Optional[str] = None
    context_name: Optional[str] = None
    repo_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    attempts: int
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobSummary":
        data = job.payload or {}
        return cls(
            id=job.id,
            status=job.status,
            context_id=data.get("contextId"),
            context_name=data.get("contextName"),
            repo_url=data.get("repoUrl"),
            created_at=job.created_at,
            updated_at=job.updated_at,
            completed_at=job.completed_at,
            attempts=job.attempts,
            error=job.error,
            result=job.result,
        )


class StuckJob(CamelModel):
    """Active job whose ``updatedAt`` is older than the timeout."""
    id: str
    type: JobType
    status: JobStatus
    context_id: Optional[str] = None
    context_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    attempts: int
    error: Optional[str] = None
    stuck_duration_minutes: int

    @classmethod
    def from_job(cls, job: Job, now: Optional[datetime] = None) -> "StuckJob":
        data = job.payload or {}
        return cls(
            id=job.id,
            type=job.type,
            status=job.status,
            context_id=data.get("contextId"),
            context_name=data.get("contextName"),
            created_at=job.created_at,
            updated_at=job.updated_at,
            attempts=job.attempts,
            error=job.error,
            stuck_duration_minutes=job.stuck_minutes(now or utcnow()),
        )


class WorkerJobResponse(CamelModel):
    """Full job record handed to the worker, payload included."""
    id: str
    type: JobType
    status: JobStatus
    payload: Dict[str, Any]
    attempts: int
    max_attempts: int
    created_at: datetime
    updated_at: datetime
