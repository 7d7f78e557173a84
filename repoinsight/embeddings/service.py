"""Embedding generator with backend fallback and throttled batching."""

import asyncio
from collections.abc import Sequence

from repoinsight.config import EmbeddingSettings
from repoinsight.embeddings import similarity as sim
from repoinsight.embeddings.backends import EmbeddingBackend, select_backends
from repoinsight.embeddings.models import EmbeddingOutcome, EmbeddingVector
from repoinsight.exceptions import (
    EmbeddingError,
    EmbeddingUnavailableError,
    RepoInsightError,
    ValidationError,
)
from repoinsight.logging_config import get_logger
from repoinsight.observability.metrics import track_embedding_batch

logger = get_logger(__name__)


class EmbeddingGenerator:
    """Turns text into vectors using interchangeable backends.

    Holds no state across calls other than its backends. The preferred
    backend is chosen per call by ``select_backends``; when it is
    unavailable or fails, the configured fallback is tried.
    """

    def __init__(
        self,
        backends: Sequence[EmbeddingBackend],
        settings: EmbeddingSettings,
    ) -> None:
        """Initialize the generator.

        Args:
            backends: Registered backends, in preference order for hints.
            settings: Default/fallback names and batching parameters.
        """
        if not backends:
            raise ValidationError("At least one embedding backend is required")
        self._backends = list(backends)
        self._settings = settings

    @property
    def backends(self) -> list[EmbeddingBackend]:
        """Registered backends."""
        return list(self._backends)

    async def embed(
        self,
        text: str,
        model_hint: str | None = None,
        fallback: bool = True,
    ) -> EmbeddingVector:
        """Embed one text, falling back across backends.

        Args:
            text: Text to embed.
            model_hint: Optional model name steering backend choice.
            fallback: Whether to try the fallback backend after the
                preferred one. Without it every vector comes from the
                preferred backend.

        Returns:
            EmbeddingVector from the first backend that succeeded.

        Raises:
            ValidationError: If the text is empty.
            EmbeddingUnavailableError: If no backend produced a vector.
        """
        if not text.strip():
            raise ValidationError("Cannot embed empty text")

        attempts = select_backends(
            model_hint,
            self._backends,
            default=self._settings.default_backend,
            fallback=self._settings.fallback_backend,
        )
        if not fallback:
            attempts = attempts[:1]

        reasons: dict[str, str] = {}
        for backend, model in attempts:
            if not backend.is_available:
                reasons[backend.name] = "not configured"
                logger.debug(f"Skipping unavailable embedding backend {backend.name}")
                continue
            try:
                return await backend.embed(text, model)
            except EmbeddingError as e:
                reasons[backend.name] = e.message
                logger.warning(
                    f"Embedding backend {backend.name} failed, trying next",
                    extra={"backend": backend.name, "model": model},
                )

        raise EmbeddingUnavailableError(
            "No embedding backend could embed the text",
            details={"attempts": reasons},
        )

    async def embed_batch(
        self,
        texts: Sequence[str],
        model_hint: str | None = None,
        fallback: bool = True,
    ) -> list[EmbeddingOutcome]:
        """Embed many texts in throttled batches.

        Items in a batch are embedded concurrently; the next batch starts
        after the whole batch settles and a short delay. A failed item is
        reported in its own outcome and does not affect the others.

        Args:
            texts: Texts to embed.
            model_hint: Optional model name for every item.
            fallback: Passed to ``embed`` for every item.

        Returns:
            One outcome per input text, in input order.
        """
        outcomes: list[EmbeddingOutcome] = []
        batch_size = self._settings.batch_size

        for start in range(0, len(texts), batch_size):
            batch = list(texts[start : start + batch_size])
            results = await asyncio.gather(
                *(self.embed(text, model_hint, fallback) for text in batch),
                return_exceptions=True,
            )

            failed = 0
            for offset, (text, result) in enumerate(zip(batch, results, strict=True)):
                index = start + offset
                if isinstance(result, EmbeddingVector):
                    outcomes.append(EmbeddingOutcome(index=index, text=text, embedding=result))
                    continue
                if isinstance(result, asyncio.CancelledError):
                    raise result
                failed += 1
                outcomes.append(
                    EmbeddingOutcome(index=index, text=text, error=_as_embedding_error(result))
                )

            track_embedding_batch(size=len(batch), failed=failed)

            if start + batch_size < len(texts) and self._settings.batch_delay > 0:
                await asyncio.sleep(self._settings.batch_delay)

        return outcomes

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        """Cosine similarity of two vectors (see ``similarity.cosine_similarity``)."""
        return sim.cosine_similarity(a, b)

    def rank(
        self,
        query: Sequence[float],
        candidates: Sequence[sim.SimilarityCandidate],
        top_k: int,
    ) -> list[sim.RankedItem]:
        """Top-K candidates by similarity (see ``similarity.rank``)."""
        return sim.rank(query, candidates, top_k)

    async def close(self) -> None:
        """Close every backend."""
        for backend in self._backends:
            await backend.close()


def _as_embedding_error(error: BaseException) -> RepoInsightError:
    if isinstance(error, RepoInsightError):
        return error
    return EmbeddingError(f"Unexpected embedding failure: {error}", details={"error": repr(error)})
