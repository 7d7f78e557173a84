"""Observability module for metrics, events and monitoring."""

from repoinsight.observability.events import (
    EventSink,
    EventType,
    MetricsEventSink,
    PipelineEvent,
)
from repoinsight.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    set_jobs_in_flight,
    track_embedding_batch,
    track_embedding_request,
    track_job,
    track_job_retry,
    track_llm_request,
    track_search,
)

__all__ = [
    "EventSink",
    "EventType",
    "MetricsEventSink",
    "MetricsMiddleware",
    "PipelineEvent",
    "get_metrics",
    "set_jobs_in_flight",
    "track_embedding_batch",
    "track_embedding_request",
    "track_job",
    "track_job_retry",
    "track_llm_request",
    "track_search",
]
