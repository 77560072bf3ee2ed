"""Data access repositories."""

from .base import BaseRepository
from .job_repository import JobRepository
from .context_repository import ContextRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "JobRepository",
    "ContextRepository",
    "UserRepository",
]
