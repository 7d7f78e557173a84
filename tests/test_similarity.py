"""Tests for cosine similarity and ranking."""

import math

import pytest

from repoinsight.embeddings.similarity import (
    SimilarityCandidate,
    cosine_similarity,
    rank,
)
from repoinsight.exceptions import DimensionMismatchError, ValidationError


class TestCosineSimilarity:
    """Tests for cosine_similarity."""

    def test_identical_vectors(self) -> None:
        """A vector is perfectly similar to itself."""
        assert cosine_similarity([0.3, -1.2, 4.0], [0.3, -1.2, 4.0]) == pytest.approx(1.0)

    def test_symmetric(self) -> None:
        """Argument order does not matter."""
        a = [1.0, 2.0, 3.0]
        b = [-2.0, 0.5, 1.0]
        assert cosine_similarity(a, b) == cosine_similarity(b, a)

    def test_orthogonal_and_opposite(self) -> None:
        """Orthogonal vectors score 0 and opposite vectors -1."""
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_scale_invariant(self) -> None:
        """Scaling a vector does not change similarity."""
        a = [1.0, 2.0, 3.0]
        b = [4.0, 5.0, 6.0]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity([10 * x for x in a], b))

    def test_zero_vector(self) -> None:
        """A zero-magnitude vector scores 0 instead of dividing by zero."""
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_bounded(self) -> None:
        """Results stay within [-1, 1] despite rounding."""
        v = [1e-8, 1e8, math.pi]
        assert -1.0 <= cosine_similarity(v, v) <= 1.0

    def test_dimension_mismatch(self) -> None:
        """Vectors of different lengths cannot be compared."""
        with pytest.raises(DimensionMismatchError) as exc_info:
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
        assert exc_info.value.details == {"left": 2, "right": 3}


class TestRank:
    """Tests for top-K ranking."""

    @pytest.fixture
    def candidates(self) -> list[SimilarityCandidate]:
        return [
            SimilarityCandidate(id="far", vector=[0.0, 1.0]),
            SimilarityCandidate(id="near", vector=[1.0, 0.1]),
            SimilarityCandidate(id="exact", vector=[2.0, 0.0]),
            SimilarityCandidate(id="opposite", vector=[-1.0, 0.0]),
        ]

    def test_sorted_descending(self, candidates: list[SimilarityCandidate]) -> None:
        """Results are ordered by similarity, highest first."""
        ranked = rank([1.0, 0.0], candidates, top_k=4)
        assert [item.id for item in ranked] == ["exact", "near", "far", "opposite"]
        scores = [item.similarity for item in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_top_k_limits_results(self, candidates: list[SimilarityCandidate]) -> None:
        """At most top_k items are returned."""
        assert len(rank([1.0, 0.0], candidates, top_k=2)) == 2

    def test_top_k_larger_than_candidates(self, candidates: list[SimilarityCandidate]) -> None:
        """Asking for more than exists returns everything."""
        assert len(rank([1.0, 0.0], candidates, top_k=50)) == len(candidates)

    def test_ties_keep_candidate_order(self) -> None:
        """Equal scores keep their input order."""
        tied = [
            SimilarityCandidate(id="first", vector=[1.0, 1.0]),
            SimilarityCandidate(id="second", vector=[1.0, 1.0]),
        ]
        assert [item.id for item in rank([1.0, 1.0], tied, top_k=2)] == ["first", "second"]

    def test_empty_candidates(self) -> None:
        """No candidates means no results."""
        assert rank([1.0, 0.0], [], top_k=3) == []

    def test_invalid_top_k(self, candidates: list[SimilarityCandidate]) -> None:
        """top_k must be positive."""
        with pytest.raises(ValidationError):
            rank([1.0, 0.0], candidates, top_k=0)

    def test_mismatched_candidate(self) -> None:
        """A candidate of another dimension aborts ranking."""
        mixed = [SimilarityCandidate(id="bad", vector=[1.0, 0.0, 0.0])]
        with pytest.raises(DimensionMismatchError):
            rank([1.0, 0.0], mixed, top_k=1)
