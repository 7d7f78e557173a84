"""Content selection and chunking module."""

from repoinsight.indexing.chunker import CharacterChunker
from repoinsight.indexing.models import ChunkerConfig, ContentUnit, TextChunk
from repoinsight.indexing.selector import select_content_units

__all__ = [
    "CharacterChunker",
    "ChunkerConfig",
    "ContentUnit",
    "TextChunk",
    "select_content_units",
]
