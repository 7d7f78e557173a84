"""Embedding persistence: in-memory and Qdrant implementations."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchAny,
    MatchValue,
    PointStruct,
    VectorParams,
)

from repoinsight.config import QdrantSettings
from repoinsight.embeddings.similarity import SimilarityCandidate
from repoinsight.exceptions import ErrorCode, PersistenceError
from repoinsight.logging_config import get_logger
from repoinsight.storage.models import CorpusScope, EmbeddingRecord

logger = get_logger(__name__)

SCROLL_PAGE_SIZE = 256


class EmbeddingStore(ABC):
    """Abstract base class for embedding stores.

    Records are keyed by deterministic ids; a project's records are
    replaced wholesale so reprocessing never duplicates them.
    """

    @abstractmethod
    async def replace_project_embeddings(
        self,
        project_id: str,
        records: Sequence[EmbeddingRecord],
    ) -> int:
        """Delete a project's records, then write the new ones.

        Returns:
            Number of records written.

        Raises:
            PersistenceError: If the store cannot be updated.
        """
        ...

    @abstractmethod
    async def load_candidates(self, scope: CorpusScope) -> list[SimilarityCandidate]:
        """Vectors of every record inside the scope."""
        ...

    @abstractmethod
    async def describe(self, ids: Sequence[str]) -> dict[str, EmbeddingRecord]:
        """Records for the given ids; unknown ids are omitted."""
        ...

    @abstractmethod
    async def count(self, scope: CorpusScope) -> int:
        """Number of records inside the scope."""
        ...

    async def close(self) -> None:
        """Release any held connections."""
        return None


class InMemoryEmbeddingStore(EmbeddingStore):
    """Insertion-ordered in-process store."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._records: dict[str, EmbeddingRecord] = {}

    async def replace_project_embeddings(
        self,
        project_id: str,
        records: Sequence[EmbeddingRecord],
    ) -> int:
        async with self._lock:
            self._records = {
                record_id: record
                for record_id, record in self._records.items()
                if record.project_id != project_id
            }
            for record in records:
                self._records[record.id] = record
        return len(records)

    async def load_candidates(self, scope: CorpusScope) -> list[SimilarityCandidate]:
        async with self._lock:
            return [
                SimilarityCandidate(id=record.id, vector=record.vector, model=record.model)
                for record in self._records.values()
                if scope.includes(record.organization_id, record.project_id)
            ]

    async def describe(self, ids: Sequence[str]) -> dict[str, EmbeddingRecord]:
        async with self._lock:
            return {
                record_id: self._records[record_id]
                for record_id in ids
                if record_id in self._records
            }

    async def count(self, scope: CorpusScope) -> int:
        async with self._lock:
            return sum(
                1
                for record in self._records.values()
                if scope.includes(record.organization_id, record.project_id)
            )


class QdrantEmbeddingStore(EmbeddingStore):
    """Qdrant-backed embedding store.

    The collection is created lazily with cosine distance, sized by the
    first vector written.
    """

    def __init__(
        self,
        settings: QdrantSettings,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize the Qdrant store.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
        """
        self._settings = settings
        self._client = client
        self._owns_client = client is None
        self._collection_ready = False

    @property
    def collection(self) -> str:
        """Collection holding the embeddings."""
        return self._settings.collection_name

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._settings.api_key:
                api_key = self._settings.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key,
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def _ensure_collection(self, client: AsyncQdrantClient, dimensions: int) -> None:
        if self._collection_ready:
            return
        if not await client.collection_exists(self.collection):
            await client.create_collection(
                collection_name=self.collection,
                vectors_config=VectorParams(size=dimensions, distance=Distance.COSINE),
            )
            logger.info(
                f"Created collection: {self.collection}",
                extra={"dimensions": dimensions},
            )
        self._collection_ready = True

    def _scope_filter(self, scope: CorpusScope) -> Filter:
        conditions = [
            FieldCondition(key="organization_id", match=MatchValue(value=scope.organization_id))
        ]
        if scope.project_ids is not None:
            conditions.append(
                FieldCondition(key="project_id", match=MatchAny(any=list(scope.project_ids)))
            )
        return Filter(must=conditions)  # type: ignore[arg-type]

    async def replace_project_embeddings(
        self,
        project_id: str,
        records: Sequence[EmbeddingRecord],
    ) -> int:
        client = await self._get_client()

        try:
            if await client.collection_exists(self.collection):
                await client.delete(
                    collection_name=self.collection,
                    points_selector=FilterSelector(
                        filter=Filter(
                            must=[
                                FieldCondition(key="project_id", match=MatchValue(value=project_id))
                            ]
                        )
                    ),
                )
            if not records:
                return 0

            await self._ensure_collection(client, len(records[0].vector))
            await client.upsert(
                collection_name=self.collection,
                points=[
                    PointStruct(id=record.id, vector=record.vector, payload=record.payload())
                    for record in records
                ],
            )
            logger.debug(
                f"Stored {len(records)} embeddings",
                extra={"collection": self.collection, "project_id": project_id},
            )
            return len(records)

        except Exception as e:
            raise PersistenceError(
                f"Failed to store embeddings: {e}",
                code=ErrorCode.PERSISTENCE_ERROR,
                details={"collection": self.collection, "project_id": project_id},
            ) from e

    async def load_candidates(self, scope: CorpusScope) -> list[SimilarityCandidate]:
        client = await self._get_client()

        try:
            if not await client.collection_exists(self.collection):
                return []

            candidates: list[SimilarityCandidate] = []
            offset = None
            while True:
                points, offset = await client.scroll(
                    collection_name=self.collection,
                    scroll_filter=self._scope_filter(scope),
                    limit=SCROLL_PAGE_SIZE,
                    offset=offset,
                    with_payload=["model"],
                    with_vectors=True,
                )
                for point in points:
                    if isinstance(point.vector, list):
                        candidates.append(
                            SimilarityCandidate(
                                id=str(point.id),
                                vector=point.vector,  # type: ignore[arg-type]
                                model=(point.payload or {}).get("model"),
                            )
                        )
                if offset is None:
                    return candidates

        except Exception as e:
            raise PersistenceError(
                f"Failed to load embeddings: {e}",
                code=ErrorCode.PERSISTENCE_ERROR,
                details={"collection": self.collection, "organization_id": scope.organization_id},
            ) from e

    async def describe(self, ids: Sequence[str]) -> dict[str, EmbeddingRecord]:
        if not ids:
            return {}

        client = await self._get_client()

        try:
            points = await client.retrieve(
                collection_name=self.collection,
                ids=list(ids),
                with_payload=True,
                with_vectors=True,
            )
            return {
                str(point.id): EmbeddingRecord(
                    id=str(point.id),
                    vector=point.vector if isinstance(point.vector, list) else [],  # type: ignore[arg-type]
                    **(point.payload or {}),
                )
                for point in points
            }

        except Exception as e:
            raise PersistenceError(
                f"Failed to describe embeddings: {e}",
                code=ErrorCode.PERSISTENCE_ERROR,
                details={"collection": self.collection},
            ) from e

    async def count(self, scope: CorpusScope) -> int:
        client = await self._get_client()

        try:
            if not await client.collection_exists(self.collection):
                return 0
            result = await client.count(
                collection_name=self.collection,
                count_filter=self._scope_filter(scope),
                exact=True,
            )
            return result.count

        except Exception as e:
            raise PersistenceError(
                f"Failed to count embeddings: {e}",
                code=ErrorCode.PERSISTENCE_ERROR,
                details={"collection": self.collection},
            ) from e
