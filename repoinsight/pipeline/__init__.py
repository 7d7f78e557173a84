"""Analysis pipeline and job consumer module."""

from repoinsight.pipeline.consumer import AnalysisConsumer, backoff_delay
from repoinsight.pipeline.locks import ProjectLocks
from repoinsight.pipeline.outcomes import (
    Completed,
    Failed,
    FailureKind,
    ProcessOutcome,
    classify_error,
    is_transient,
)
from repoinsight.pipeline.pipeline import AnalysisPipeline
from repoinsight.pipeline.resources import WorkerResources, build_pipeline, build_resources

__all__ = [
    "AnalysisConsumer",
    "AnalysisPipeline",
    "Completed",
    "Failed",
    "FailureKind",
    "ProcessOutcome",
    "ProjectLocks",
    "WorkerResources",
    "backoff_delay",
    "build_pipeline",
    "build_resources",
    "classify_error",
    "is_transient",
]
