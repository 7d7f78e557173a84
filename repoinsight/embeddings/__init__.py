"""Embedding generation and similarity module."""

from repoinsight.embeddings.backends import (
    EmbeddingBackend,
    OllamaEmbeddingBackend,
    OpenAIEmbeddingBackend,
    select_backends,
)
from repoinsight.embeddings.models import (
    EmbeddingOutcome,
    EmbeddingRequest,
    EmbeddingUsage,
    EmbeddingVector,
)
from repoinsight.embeddings.service import EmbeddingGenerator
from repoinsight.embeddings.similarity import (
    RankedItem,
    SimilarityCandidate,
    cosine_similarity,
    rank,
)

__all__ = [
    "EmbeddingBackend",
    "EmbeddingGenerator",
    "EmbeddingOutcome",
    "EmbeddingRequest",
    "EmbeddingUsage",
    "EmbeddingVector",
    "OllamaEmbeddingBackend",
    "OpenAIEmbeddingBackend",
    "RankedItem",
    "SimilarityCandidate",
    "cosine_similarity",
    "rank",
    "select_backends",
]
