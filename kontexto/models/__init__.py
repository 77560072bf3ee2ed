"""Database models."""

from .job import Job, JobStatus, JobType, ACTIVE_STATUSES, TERMINAL_STATUSES
from .context import Context
from .user import User

__all__ = [
    "Job", "JobStatus", "JobType", "ACTIVE_STATUSES", "TERMINAL_STATUSES",
    "Context",
    "User",
]
