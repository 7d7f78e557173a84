"""Application exception hierarchy.

All custom exceptions inherit from RepoInsightError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "RI-1000"
    CONFIGURATION_ERROR = "RI-1001"
    VALIDATION_ERROR = "RI-1002"

    # Job and queue errors (2xxx)
    JOB_PAYLOAD_INVALID = "RI-2000"
    QUEUE_ERROR = "RI-2001"
    CLAIM_NOT_HELD = "RI-2002"
    PIPELINE_TIMEOUT = "RI-2003"

    # Embedding errors (3xxx)
    EMBEDDING_SERVICE_ERROR = "RI-3000"
    EMBEDDING_DIMENSION_MISMATCH = "RI-3001"
    EMBEDDING_UNAVAILABLE = "RI-3002"

    # Persistence errors (4xxx)
    PERSISTENCE_ERROR = "RI-4000"
    PROJECT_NOT_FOUND = "RI-4001"

    # LLM errors (5xxx)
    LLM_SERVICE_ERROR = "RI-5000"
    LLM_TIMEOUT = "RI-5001"
    LLM_RATE_LIMIT = "RI-5002"

    # Search errors (6xxx)
    SEARCH_ERROR = "RI-6000"
    INVALID_QUERY = "RI-6001"

    # Analysis errors (7xxx)
    FETCH_ERROR = "RI-7000"
    EXTRACTOR_ERROR = "RI-7001"
    NO_APPLICABLE_WEIGHTS = "RI-7002"


class RepoInsightError(Exception):
    """Base exception for all RepoInsight errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for status reporting."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(RepoInsightError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(RepoInsightError):
    """Input validation error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class JobPayloadError(RepoInsightError):
    """Malformed job payload. Never retried."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.JOB_PAYLOAD_INVALID, details)


class QueueError(RepoInsightError):
    """Queue contract violation or queue failure."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.QUEUE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class PipelineTimeoutError(RepoInsightError):
    """A job exceeded its total stage time."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.PIPELINE_TIMEOUT, details)


class FetchError(RepoInsightError):
    """Repository could not be fetched."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.FETCH_ERROR, details)


class ExtractorError(RepoInsightError):
    """Metric computation failed."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EXTRACTOR_ERROR, details)


class EmbeddingError(RepoInsightError):
    """Embedding backend error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class EmbeddingUnavailableError(EmbeddingError):
    """No embedding backend could produce a vector."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EMBEDDING_UNAVAILABLE, details)


class DimensionMismatchError(EmbeddingError):
    """Vectors of different lengths were compared."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EMBEDDING_DIMENSION_MISMATCH, details)


class ScoringError(RepoInsightError):
    """Score aggregation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.NO_APPLICABLE_WEIGHTS,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class NoApplicableWeightsError(ScoringError):
    """No category had both a value and a usable weight."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.NO_APPLICABLE_WEIGHTS, details)


class PersistenceError(RepoInsightError):
    """Persistence collaborator error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PERSISTENCE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class LLMError(RepoInsightError):
    """LLM service error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.LLM_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class SearchError(RepoInsightError):
    """Search operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SEARCH_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class InvalidQueryError(SearchError):
    """Search was invoked without a usable query."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INVALID_QUERY, details)
