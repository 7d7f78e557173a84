"""Job data models."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from repoinsight.exceptions import JobPayloadError


class JobKind(str, Enum):
    """Kinds of work the consumer understands."""

    ANALYZE_PROJECT = "analyze-project"


class JobPayload(BaseModel):
    """What an analyze-project job should analyze.

    Attributes:
        project_id: Project being analyzed.
        organization_id: Organization that owns the project.
        repositories: Repository handles (owner/name), at least one.
    """

    project_id: str = Field(min_length=1, description="Project identifier")
    organization_id: str = Field(min_length=1, description="Owning organization")
    repositories: list[str] = Field(min_length=1, description="Repository handles")

    @field_validator("repositories")
    @classmethod
    def _unique_repositories(cls, value: list[str]) -> list[str]:
        # Keep first occurrence order
        handles = list(dict.fromkeys(handle.strip() for handle in value if handle.strip()))
        if not handles:
            raise ValueError("at least one repository handle is required")
        return handles


class AnalysisJob(BaseModel):
    """A unit of work delivered by the queue.

    Attributes:
        id: Job identifier.
        kind: Job kind.
        requested_at: When the job was first enqueued.
        payload: Job payload.
        attempt: Delivery attempt, starting at 1.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Job identifier")
    kind: JobKind = Field(default=JobKind.ANALYZE_PROJECT)
    requested_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    payload: JobPayload = Field(description="Job payload")
    attempt: int = Field(default=1, ge=1, description="Delivery attempt (1-based)")

    @classmethod
    def from_raw(cls, data: dict[str, Any]) -> "AnalysisJob":
        """Build a job from an untrusted mapping.

        Raises:
            JobPayloadError: If the data does not describe a valid job.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise JobPayloadError(
                "Malformed analysis job",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    def next_attempt(self) -> "AnalysisJob":
        """Copy of this job for its next delivery."""
        return self.model_copy(update={"attempt": self.attempt + 1})


class JobClaim(BaseModel):
    """Exclusive hold on a job while a worker processes it.

    Attributes:
        job: The claimed job.
        token: Claim token; only the holder may settle the claim.
        claimed_at: When the claim was granted.
    """

    job: AnalysisJob = Field(description="Claimed job")
    token: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Claim token")
    claimed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
