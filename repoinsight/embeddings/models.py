"""Embedding data models."""

from pydantic import BaseModel, ConfigDict, Field, computed_field

from repoinsight.exceptions import RepoInsightError


class EmbeddingRequest(BaseModel):
    """Text to embed plus an optional model hint.

    Attributes:
        text: The text to embed.
        model: Preferred model; the generator picks a backend from it.
    """

    text: str = Field(description="Text to embed")
    model: str | None = Field(default=None, description="Optional model hint")


class EmbeddingUsage(BaseModel):
    """Token accounting reported by a backend (zero when not reported)."""

    prompt_tokens: int = Field(default=0, ge=0, description="Prompt tokens")
    total_tokens: int = Field(default=0, ge=0, description="Total tokens")


class EmbeddingVector(BaseModel):
    """A fixed-dimension embedding produced by one backend.

    Attributes:
        vector: The embedding values.
        model: Model that produced the vector.
        backend: Name of the backend that served the request.
        usage: Token usage for the request.
    """

    vector: list[float] = Field(description="Embedding vector")
    model: str = Field(description="Model used for embedding")
    backend: str = Field(description="Backend that produced the vector")
    usage: EmbeddingUsage = Field(default_factory=EmbeddingUsage)

    def model_post_init(self, __context: object) -> None:
        """Reject empty vectors."""
        if not self.vector:
            raise ValueError("embedding vector must not be empty")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def dimensions(self) -> int:
        """Number of dimensions in the vector."""
        return len(self.vector)


class EmbeddingOutcome(BaseModel):
    """Per-item result of a batch embedding call.

    Exactly one of ``embedding`` and ``error`` is set.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: int = Field(description="Position of the text in the input")
    text: str = Field(description="The input text")
    embedding: EmbeddingVector | None = Field(default=None)
    error: RepoInsightError | None = Field(default=None, exclude=True)

    @property
    def ok(self) -> bool:
        """Whether this item was embedded."""
        return self.embedding is not None
