"""Process-scoped worker resources and pipeline assembly."""

from repoinsight.config import Settings, VectorBackend
from repoinsight.embeddings.backends import (
    EmbeddingBackend,
    OllamaEmbeddingBackend,
    OpenAIEmbeddingBackend,
)
from repoinsight.embeddings.service import EmbeddingGenerator
from repoinsight.extractors.service import MetricExtractor
from repoinsight.fetch.git import GitRepositoryFetcher, RepositoryFetcher
from repoinsight.llm.client import LLMClient, OpenAICompatibleClient
from repoinsight.llm.summarizer import RepositorySummarizer
from repoinsight.logging_config import get_logger
from repoinsight.observability.events import EventSink
from repoinsight.pipeline.pipeline import AnalysisPipeline
from repoinsight.storage.analysis_store import AnalysisStore
from repoinsight.storage.vectorstore import (
    EmbeddingStore,
    InMemoryEmbeddingStore,
    QdrantEmbeddingStore,
)

logger = get_logger(__name__)


class WorkerResources:
    """Long-lived handles shared by every job in the process.

    Created once at startup and closed once at shutdown.
    """

    def __init__(
        self,
        backends: list[EmbeddingBackend],
        embedding_store: EmbeddingStore,
        llm_client: LLMClient | None = None,
    ) -> None:
        self.backends = backends
        self.embedding_store = embedding_store
        self.llm_client = llm_client
        self._started = False
        self._closed = False

    async def startup(self) -> None:
        """Log which backends can be used."""
        if self._started:
            return
        available = [backend.name for backend in self.backends if backend.is_available]
        if not available:
            logger.warning("No embedding backend is configured; every embedding will fail")
        logger.info(
            "Worker resources ready",
            extra={
                "embedding_backends": available,
                "llm": self.llm_client.model_name if self.llm_client else None,
            },
        )
        self._started = True

    async def close(self) -> None:
        """Close every handle once."""
        if self._closed:
            return
        self._closed = True
        for backend in self.backends:
            await backend.close()
        if self.llm_client is not None:
            await self.llm_client.close()
        await self.embedding_store.close()


def build_resources(settings: Settings) -> WorkerResources:
    """Create the worker resources described by the settings."""
    timeout = settings.embedding.timeout
    backends: list[EmbeddingBackend] = [
        OpenAIEmbeddingBackend(settings.openai, timeout=timeout),
        OllamaEmbeddingBackend(settings.ollama, timeout=timeout),
    ]

    embedding_store: EmbeddingStore
    if settings.vector_backend is VectorBackend.QDRANT:
        embedding_store = QdrantEmbeddingStore(settings.qdrant)
    else:
        embedding_store = InMemoryEmbeddingStore()

    llm_client = OpenAICompatibleClient(settings.llm) if settings.llm.enabled else None

    return WorkerResources(backends, embedding_store, llm_client)


def build_pipeline(
    settings: Settings,
    resources: WorkerResources,
    store: AnalysisStore,
    events: EventSink,
    fetcher: RepositoryFetcher | None = None,
) -> AnalysisPipeline:
    """Assemble an AnalysisPipeline from resources and settings."""
    return AnalysisPipeline(
        fetcher=fetcher or GitRepositoryFetcher(settings.fetch),
        extractor=MetricExtractor(),
        summarizer=RepositorySummarizer(resources.llm_client),
        generator=EmbeddingGenerator(resources.backends, settings.embedding),
        store=store,
        embedding_store=resources.embedding_store,
        events=events,
        settings=settings,
    )
