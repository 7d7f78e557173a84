"""Job outcomes and failure classification."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from repoinsight.exceptions import (
    DimensionMismatchError,
    EmbeddingError,
    ExtractorError,
    FetchError,
    JobPayloadError,
    PersistenceError,
    PipelineTimeoutError,
    ScoringError,
)


class FailureKind(str, Enum):
    """Classified cause of a failed job."""

    NETWORK = "network"
    EXTRACTOR = "extractor"
    EMBEDDING_BACKEND = "embedding_backend"
    PERSISTENCE = "persistence"
    TIMEOUT = "timeout"
    SCORING = "scoring"
    PAYLOAD = "payload"
    INTERNAL = "internal"


TRANSIENT_KINDS = frozenset(
    {
        FailureKind.NETWORK,
        FailureKind.TIMEOUT,
        FailureKind.EMBEDDING_BACKEND,
        FailureKind.PERSISTENCE,
    }
)


def classify_error(error: BaseException) -> FailureKind:
    """Map an exception raised by a pipeline stage to a failure kind."""
    # Subclasses before their bases
    if isinstance(error, JobPayloadError):
        return FailureKind.PAYLOAD
    if isinstance(error, FetchError):
        return FailureKind.NETWORK
    if isinstance(error, PipelineTimeoutError | TimeoutError):
        return FailureKind.TIMEOUT
    if isinstance(error, ExtractorError):
        return FailureKind.EXTRACTOR
    if isinstance(error, DimensionMismatchError):
        return FailureKind.INTERNAL
    if isinstance(error, EmbeddingError):
        return FailureKind.EMBEDDING_BACKEND
    if isinstance(error, PersistenceError):
        return FailureKind.PERSISTENCE
    if isinstance(error, ScoringError):
        return FailureKind.SCORING
    return FailureKind.INTERNAL


def is_transient(kind: FailureKind) -> bool:
    """Whether a failure of this kind is worth retrying."""
    return kind in TRANSIENT_KINDS


class Completed(BaseModel):
    """A job that produced an AnalysisResult."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    result_id: str
    duration: float = Field(ge=0.0, description="Seconds spent processing")


class Failed(BaseModel):
    """A job that stopped at some stage.

    Attributes:
        job_id: Failed job.
        kind: Classified cause.
        reason: Human-readable explanation.
        transient: Whether a retry may succeed.
        duration: Seconds spent before failing.
    """

    model_config = ConfigDict(frozen=True)

    job_id: str
    kind: FailureKind
    reason: str
    transient: bool
    duration: float = Field(ge=0.0)


ProcessOutcome = Completed | Failed
