"""Persistence module for projects, results and embeddings."""

from repoinsight.storage.analysis_store import AnalysisStore, InMemoryAnalysisStore
from repoinsight.storage.models import (
    AnalysisResult,
    ContentKind,
    CorpusScope,
    EmbeddingRecord,
    Project,
    ProjectStatus,
    embedding_record_id,
)
from repoinsight.storage.vectorstore import (
    EmbeddingStore,
    InMemoryEmbeddingStore,
    QdrantEmbeddingStore,
)

__all__ = [
    "AnalysisResult",
    "AnalysisStore",
    "ContentKind",
    "CorpusScope",
    "EmbeddingRecord",
    "EmbeddingStore",
    "InMemoryAnalysisStore",
    "InMemoryEmbeddingStore",
    "Project",
    "ProjectStatus",
    "QdrantEmbeddingStore",
    "embedding_record_id",
]
