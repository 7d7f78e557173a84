"""Persistent entity models."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from repoinsight.extractors.models import RepositoryMetrics
from repoinsight.scoring.models import ScoreBreakdown

# Namespace for deterministic embedding record ids
EMBEDDING_NAMESPACE = uuid.UUID("5b0f4d3e-7c1a-4f59-9a8e-2d6c1b7e4a90")


class ProjectStatus(str, Enum):
    """Lifecycle status of a project's analysis."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


class Project(BaseModel):
    """A set of repositories analyzed together.

    Attributes:
        id: Project identifier.
        organization_id: Owning organization.
        name: Display name.
        status: Current analysis status.
        status_reason: Human-readable reason for a failed status.
        updated_at: Last status change.
    """

    id: str = Field(description="Project identifier")
    organization_id: str = Field(description="Owning organization")
    name: str = Field(default="", description="Display name")
    status: ProjectStatus = Field(default=ProjectStatus.QUEUED)
    status_reason: str | None = Field(default=None)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AnalysisResult(BaseModel):
    """Outcome of one successful analysis run. Never modified after creation.

    Attributes:
        id: Result identifier.
        project_id: Analyzed project.
        organization_id: Owning organization.
        job_id: Job that produced the result.
        created_at: Creation time.
        score: Aggregated project score.
        summary: Free-text project summary.
        repositories: Per-repository metrics.
        embedding_count: Number of content units stored for search.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str = Field(description="Project identifier")
    organization_id: str = Field(description="Owning organization")
    job_id: str = Field(description="Producing job")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    score: ScoreBreakdown = Field(description="Aggregated score")
    summary: str = Field(default="", description="Project summary")
    repositories: tuple[RepositoryMetrics, ...] = Field(default=())
    embedding_count: int = Field(default=0, ge=0)


class ContentKind(str, Enum):
    """Kinds of content units embedded for search."""

    SUMMARY = "summary"
    README = "readme"
    DOC = "doc"


class EmbeddingRecord(BaseModel):
    """A stored content unit with its vector.

    Attributes:
        id: Deterministic identifier (see ``embedding_record_id``).
        project_id: Owning project.
        organization_id: Owning organization.
        repository: Repository handle.
        path: File path within the repository, empty for summaries.
        kind: Content kind.
        text: Embedded text.
        vector: Embedding.
        model: Model that produced the vector.
    """

    id: str = Field(description="Record identifier")
    project_id: str
    organization_id: str
    repository: str
    path: str = ""
    kind: ContentKind
    text: str
    vector: list[float]
    model: str

    def payload(self) -> dict[str, Any]:
        """Metadata stored alongside the vector."""
        return self.model_dump(exclude={"id", "vector"}, mode="json")


def embedding_record_id(project_id: str, repository: str, path: str, chunk_index: int) -> str:
    """Stable id for a content unit, identical across reprocessing."""
    return str(uuid.uuid5(EMBEDDING_NAMESPACE, f"{project_id}|{repository}|{path}|{chunk_index}"))


class CorpusScope(BaseModel):
    """The subset of stored embeddings a search may see.

    Attributes:
        organization_id: Organization whose embeddings are searched.
        project_ids: Optional restriction to these projects.
    """

    organization_id: str = Field(description="Organization to search")
    project_ids: list[str] | None = Field(default=None, description="Optional project filter")

    def includes(self, organization_id: str, project_id: str) -> bool:
        """Whether a record with these owners is inside the scope."""
        if organization_id != self.organization_id:
            return False
        return self.project_ids is None or project_id in self.project_ids
