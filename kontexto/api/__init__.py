"""API routes."""

from .analysis import router as analysis_router
from .jobs import router as jobs_router
from .worker import router as worker_router
from .contexts import router as contexts_router

__all__ = [
    "analysis_router",
    "jobs_router",
    "worker_router",
    "contexts_router",
]
