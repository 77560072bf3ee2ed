"""Job statistics and the health recommendation policy."""

from typing import List

from sqlalchemy.orm import Session

from ..models.job import JobStatus
from ..repositories.job_repository import JobRepository
from ..schemas.analysis import JobStats

# Recommendation thresholds.
MANY_STUCK_JOBS = 3
HIGH_FAILURE_MIN_FAILED = 5
PROCESSING_BACKLOG = 10

MSG_STUCK = "You have {count} stuck job(s). Consider cancelling them."
MSG_WORKER_OUTAGE = "High number of stuck jobs. Check that the analysis worker is running."
MSG_HIGH_FAILURE_RATE = "High failure rate. Review the worker logs to identify common errors."
MSG_BOTTLENECK = "Many jobs are processing at once. This may indicate a worker bottleneck."
MSG_HEALTHY = "The analysis system is working correctly."


def get_job_stats(db: Session) -> JobStats:
    """Count all stored jobs per status. ``total`` includes cancelled jobs."""
    counts = JobRepository(db).count_by_status()
    return JobStats(
        pending=counts.get(JobStatus.PENDING.value, 0),
        processing=counts.get(JobStatus.PROCESSING.value, 0),
        completed=counts.get(JobStatus.COMPLETED.value, 0),
        failed=counts.get(JobStatus.FAILED.value, 0),
        total=sum(counts.values()),
    )


def build_recommendations(stuck_count: int, stats: JobStats) -> List[str]:
    """Turn stuck-job count and stats into operator advice.

    Always returns at least one message.
    """
    recommendations: List[str] = []

    if stuck_count > 0:
        recommendations.append(MSG_STUCK.format(count=stuck_count))
        if stuck_count > MANY_STUCK_JOBS:
            recommendations.append(MSG_WORKER_OUTAGE)

    if stats.failed > stats.completed and stats.failed > HIGH_FAILURE_MIN_FAILED:
        recommendations.append(MSG_HIGH_FAILURE_RATE)

    if stats.processing > PROCESSING_BACKLOG:
        recommendations.append(MSG_BOTTLENECK)

    if not recommendations:
        recommendations.append(MSG_HEALTHY)

    return recommendations
