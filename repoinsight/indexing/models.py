"""Content unit models."""

from typing import Any

from pydantic import BaseModel, Field

from repoinsight.storage.models import ContentKind


class ChunkerConfig(BaseModel):
    """Configuration for text chunking.

    Attributes:
        chunk_size: Target size of each chunk in characters.
        chunk_overlap: Number of characters to overlap between chunks.
        min_chunk_size: Shortest chunk worth cutting at whitespace.
    """

    chunk_size: int = Field(default=1000, ge=100, description="Target chunk size")
    chunk_overlap: int = Field(default=200, ge=0, description="Overlap between chunks")
    min_chunk_size: int = Field(default=100, ge=10, description="Minimum chunk size")

    def model_post_init(self, __context: Any) -> None:
        """Validate overlap is less than chunk size."""
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")


class TextChunk(BaseModel):
    """A window of a larger text.

    Attributes:
        content: The chunk text, stripped.
        index: Position of this chunk in the sequence.
        start_char: Start offset in the source text.
        end_char: End offset in the source text.
    """

    content: str
    index: int
    start_char: int
    end_char: int


class ContentUnit(BaseModel):
    """A piece of repository content selected for embedding.

    Attributes:
        id: Deterministic identifier.
        repository: Repository handle.
        path: Source file path, empty for summaries.
        kind: Content kind.
        text: Text to embed.
    """

    id: str = Field(description="Deterministic unit identifier")
    repository: str = Field(description="Repository handle")
    path: str = Field(default="", description="Source file path")
    kind: ContentKind = Field(description="Content kind")
    text: str = Field(description="Text to embed")
