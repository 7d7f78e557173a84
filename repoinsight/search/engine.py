"""Semantic search over stored repository embeddings."""

import time
from collections import Counter

from repoinsight.embeddings.service import EmbeddingGenerator
from repoinsight.embeddings.similarity import SimilarityCandidate
from repoinsight.exceptions import InvalidQueryError, RepoInsightError, ValidationError
from repoinsight.logging_config import get_logger
from repoinsight.observability.metrics import track_search
from repoinsight.search.models import SearchHit
from repoinsight.storage.models import CorpusScope
from repoinsight.storage.vectorstore import EmbeddingStore

logger = get_logger(__name__)

SNIPPET_LENGTH = 200


def make_snippet(text: str, limit: int = SNIPPET_LENGTH) -> str:
    """Collapse whitespace and truncate to ``limit`` characters."""
    collapsed = " ".join(text.split())
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: limit - 3].rstrip() + "..."


def _corpus_model(candidates: list[SimilarityCandidate]) -> str | None:
    counts = Counter(c.model for c in candidates if c.model is not None)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


class SemanticSearchEngine:
    """Embeds a query and ranks the scoped corpus by cosine similarity.

    Candidates are loaded fresh on every call; nothing is cached. The
    query is embedded with the corpus's most common model, and records
    from other models are left out of the ranking.
    """

    def __init__(
        self,
        generator: EmbeddingGenerator,
        embedding_store: EmbeddingStore,
    ) -> None:
        """Initialize the search engine.

        Args:
            generator: Embeds queries and ranks candidates.
            embedding_store: Source of candidate vectors and metadata.
        """
        self._generator = generator
        self._embedding_store = embedding_store

    async def search(
        self,
        query_text: str,
        scope: CorpusScope,
        top_k: int = 5,
    ) -> list[SearchHit]:
        """Find the stored units most similar to a query.

        Args:
            query_text: Free-text query.
            scope: Organization (and optional projects) to search.
            top_k: Maximum number of hits.

        Returns:
            Hits sorted by descending similarity; empty for an empty corpus.

        Raises:
            InvalidQueryError: If the query is empty or whitespace.
            ValidationError: If top_k is less than 1.
            EmbeddingUnavailableError: If the query cannot be embedded.
            DimensionMismatchError: If stored vectors of the query's model
                differ from it in dimension.
        """
        if not query_text or not query_text.strip():
            raise InvalidQueryError("Search query must not be empty")
        if top_k < 1:
            raise ValidationError("top_k must be at least 1", details={"top_k": top_k})

        start = time.perf_counter()
        try:
            hits = await self._search(query_text.strip(), scope, top_k)
        except RepoInsightError:
            track_search(time.perf_counter() - start, 0, 0.0, success=False)
            raise

        track_search(
            time.perf_counter() - start,
            len(hits),
            hits[0].score if hits else 0.0,
        )
        logger.info(
            f"Search returned {len(hits)} hits",
            extra={"organization_id": scope.organization_id, "top_k": top_k},
        )
        return hits

    async def _search(self, query: str, scope: CorpusScope, top_k: int) -> list[SearchHit]:
        candidates = await self._embedding_store.load_candidates(scope)
        if not candidates:
            return []

        query_vector = await self._generator.embed(query, model_hint=_corpus_model(candidates))
        # Vectors are only compared within the model that produced the query
        comparable = [c for c in candidates if c.model in (None, query_vector.model)]
        if len(comparable) < len(candidates):
            logger.warning(
                f"Skipping {len(candidates) - len(comparable)} embeddings from other models",
                extra={"organization_id": scope.organization_id, "model": query_vector.model},
            )
        ranked = self._generator.rank(query_vector.vector, comparable, top_k)
        records = await self._embedding_store.describe([item.id for item in ranked])

        hits: list[SearchHit] = []
        for item in ranked:
            record = records.get(item.id)
            if record is None:
                # Deleted between load and describe
                continue
            hits.append(
                SearchHit(
                    id=item.id,
                    score=item.similarity,
                    repository=record.repository,
                    path=record.path,
                    kind=record.kind,
                    snippet=make_snippet(record.text),
                    project_id=record.project_id,
                )
            )
        return hits
