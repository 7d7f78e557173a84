"""Cosine similarity and top-K ranking over embeddings."""

import math
from collections.abc import Sequence

from pydantic import BaseModel, Field

from repoinsight.exceptions import DimensionMismatchError, ValidationError


class SimilarityCandidate(BaseModel):
    """A stored embedding eligible for ranking.

    Attributes:
        id: Identifier of the stored record.
        vector: The stored embedding.
        model: Model that produced the vector, when known.
    """

    id: str = Field(description="Record identifier")
    vector: list[float] = Field(description="Stored embedding")
    model: str | None = Field(default=None, description="Embedding model")


class RankedItem(BaseModel):
    """A candidate with its similarity to the query."""

    id: str = Field(description="Record identifier")
    similarity: float = Field(description="Cosine similarity in [-1, 1]")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute the cosine similarity of two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"Cannot compare vectors of dimension {len(a)} and {len(b)}",
            details={"left": len(a), "right": len(b)},
        )

    dot = math.fsum(x * y for x, y in zip(a, b, strict=True))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))

    magnitude = norm_a * norm_b
    if magnitude == 0.0:
        return 0.0

    # Rounding can push |cos| a hair past 1
    return max(-1.0, min(1.0, dot / magnitude))


def rank(
    query: Sequence[float],
    candidates: Sequence[SimilarityCandidate],
    top_k: int,
) -> list[RankedItem]:
    """Rank candidates by similarity to the query.

    Sorted descending; ties keep candidate order. At most ``top_k``
    items are returned.

    Raises:
        ValidationError: If top_k is less than 1.
        DimensionMismatchError: If any candidate differs in dimension.
    """
    if top_k < 1:
        raise ValidationError("top_k must be at least 1", details={"top_k": top_k})

    scored = [
        RankedItem(id=candidate.id, similarity=cosine_similarity(query, candidate.vector))
        for candidate in candidates
    ]
    # sorted() is stable, so equal scores stay in insertion order
    scored = sorted(scored, key=lambda item: item.similarity, reverse=True)
    return scored[:top_k]
