"""Search result models."""

from pydantic import BaseModel, Field

from repoinsight.storage.models import ContentKind


class SearchHit(BaseModel):
    """A stored content unit matching a query.

    Attributes:
        id: Embedding record identifier.
        score: Cosine similarity to the query.
        repository: Repository handle.
        path: File path, empty for repository summaries.
        kind: Content kind.
        snippet: Leading part of the matched text.
        project_id: Owning project.
    """

    id: str = Field(description="Record identifier")
    score: float = Field(description="Cosine similarity to the query")
    repository: str = Field(description="Repository handle")
    path: str = Field(default="", description="File path")
    kind: ContentKind = Field(description="Content kind")
    snippet: str = Field(description="Text excerpt")
    project_id: str = Field(description="Owning project")
