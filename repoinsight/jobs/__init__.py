"""Job model and queue module."""

from repoinsight.jobs.models import AnalysisJob, JobClaim, JobKind, JobPayload
from repoinsight.jobs.queue import InMemoryJobQueue, JobQueue

__all__ = [
    "AnalysisJob",
    "InMemoryJobQueue",
    "JobClaim",
    "JobKind",
    "JobPayload",
    "JobQueue",
]
