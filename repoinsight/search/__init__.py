"""Semantic search module."""

from repoinsight.search.engine import SemanticSearchEngine, make_snippet
from repoinsight.search.models import SearchHit

__all__ = [
    "SearchHit",
    "SemanticSearchEngine",
    "make_snippet",
]
