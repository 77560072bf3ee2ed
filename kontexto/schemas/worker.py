"""Schemas for the worker-facing job endpoints."""

from typing import Any, Dict, Literal, Optional

from pydantic import Field, model_validator

from ..models.job import JobType
from .base import CamelModel


class ClaimRequest(CamelModel):
    """Claim the oldest pending job, optionally of one type."""
    type: Optional[JobType] = None


class StatusUpdateRequest(CamelModel):
    """Status report from the worker.

    ``completed`` needs a result and ``failed`` needs an error. With
    ``retry`` set, a failure consumes one attempt and requeues the job
    until the attempt ceiling is reached.
    """
    status: Literal["processing", "completed", "failed"]
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = Field(default=None, max_length=10000)
    retry: bool = False

    @model_validator(mode="after")
    def _check_outcome(self) -> "StatusUpdateRequest":
        if self.status == "completed" and self.result is None:
            raise ValueError("result is required when status is 'completed'")
        if self.status == "failed" and not self.error:
            raise ValueError("error is required when status is 'failed'")
        return self
