"""Pipeline lifecycle events and their sinks."""

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from repoinsight.logging_config import get_logger
from repoinsight.observability.metrics import track_job, track_job_retry

logger = get_logger(__name__)


class EventType(str, Enum):
    """Lifecycle points reported by the consumer and pipeline."""

    JOB_STARTED = "job_started"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"
    JOB_RETRY_SCHEDULED = "job_retry_scheduled"
    JOB_RELEASED = "job_released"


class PipelineEvent(BaseModel):
    """One lifecycle event.

    Attributes:
        type: What happened.
        job_id: Job the event concerns.
        project_id: Project of the job.
        attempt: Delivery attempt of the job.
        duration: Seconds spent, for completion and failure events.
        failure_kind: Failure kind for failure and retry events.
        reason: Human-readable detail.
        timestamp: When the event was emitted.
    """

    type: EventType
    job_id: str
    project_id: str
    attempt: int = 1
    duration: float | None = None
    failure_kind: str | None = None
    reason: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class EventSink(ABC):
    """Receiver of pipeline events."""

    @abstractmethod
    def emit(self, event: PipelineEvent) -> None:
        """Record an event. Must not raise."""
        ...


class MetricsEventSink(EventSink):
    """Logs events and updates the Prometheus job metrics."""

    def emit(self, event: PipelineEvent) -> None:
        extra = event.model_dump(mode="json", exclude_none=True, exclude={"type", "timestamp"})
        extra["event"] = event.type.value

        if event.type is EventType.JOB_COMPLETED:
            track_job("completed", event.duration or 0.0)
            logger.info(f"Job {event.job_id} completed", extra=extra)
        elif event.type is EventType.JOB_FAILED:
            track_job("failed", event.duration or 0.0, event.failure_kind or "")
            logger.error(f"Job {event.job_id} failed: {event.reason}", extra=extra)
        elif event.type is EventType.JOB_RETRY_SCHEDULED:
            track_job_retry(event.failure_kind or "")
            logger.warning(f"Job {event.job_id} will be retried", extra=extra)
        else:
            logger.info(f"Job {event.job_id} {event.type.value.removeprefix('job_')}", extra=extra)
