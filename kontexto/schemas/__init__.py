"""Pydantic schemas for API validation."""

from .job import (
    JobPayload,
    AnalyzeRepoPayload,
    AnalyzeCommitPayload,
    GenerateDocsPayload,
    JobResponse,
    JobSummary,
    StuckJob,
    WorkerJobResponse,
)
from .analysis import (
    StartAnalysisRequest,
    StartAnalysisResponse,
    CancelRequest,
    CancelResponse,
    JobStats,
    HealthResponse,
    AutoFixRequest,
    AutoFixResponse,
)
from .context import ContextCreate, ContextResponse

__all__ = [
    "JobPayload",
    "AnalyzeRepoPayload",
    "AnalyzeCommitPayload",
    "GenerateDocsPayload",
    "JobResponse",
    "JobSummary",
    "StuckJob",
    "WorkerJobResponse",
    "StartAnalysisRequest",
    "StartAnalysisResponse",
    "CancelRequest",
    "CancelResponse",
    "JobStats",
    "HealthResponse",
    "AutoFixRequest",
    "AutoFixResponse",
    "ContextCreate",
    "ContextResponse",
]
