"""Business logic services."""

from .analysis_service import AnalysisService, StartedAnalysis
from .context_service import ContextService, normalize_repo_url
from .health_service import HealthService, SweepReport
from .job_lifecycle import JobLifecycle, can_transition, check_transition
from .stats_service import build_recommendations, get_job_stats

__all__ = [
    "AnalysisService",
    "StartedAnalysis",
    "ContextService",
    "normalize_repo_url",
    "HealthService",
    "SweepReport",
    "JobLifecycle",
    "can_transition",
    "check_transition",
    "build_recommendations",
    "get_job_stats",
]
