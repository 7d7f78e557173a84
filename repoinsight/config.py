"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class VectorBackend(str, Enum):
    """Where embedding records are persisted."""

    MEMORY = "memory"
    QDRANT = "qdrant"


class EmbeddingSettings(BaseSettings):
    """Embedding generator configuration.

    Backend names refer to the registered backends ("openai", "ollama").
    """

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    default_backend: str = Field(
        default="openai",
        description="Backend used when no model hint is given",
    )
    fallback_backend: str | None = Field(
        default="ollama",
        description="Backend tried when the preferred one fails",
    )
    batch_size: int = Field(
        default=10,
        ge=1,
        description="Texts embedded concurrently per batch",
    )
    batch_delay: float = Field(
        default=0.1,
        ge=0.0,
        description="Pause between batches in seconds",
    )
    timeout: float = Field(
        default=60.0,
        description="Per-request timeout in seconds",
    )


class OpenAIEmbeddingSettings(BaseSettings):
    """OpenAI embeddings API configuration."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible API base URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key; the backend is unavailable without it",
    )
    model: str = Field(
        default="text-embedding-3-small",
        description="Default embedding model",
    )


class OllamaEmbeddingSettings(BaseSettings):
    """Ollama embeddings API configuration."""

    model_config = SettingsConfigDict(env_prefix="OLLAMA_")

    base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL",
    )
    model: str = Field(
        default="nomic-embed-text",
        description="Default embedding model",
    )


class LLMSettings(BaseSettings):
    """LLM configuration for repository summaries.

    Works with any OpenAI-compatible chat completions endpoint.
    """

    model_config = SettingsConfigDict(env_prefix="LLM_")

    enabled: bool = Field(
        default=False,
        description="Generate summaries with the LLM (template otherwise)",
    )
    base_url: str = Field(
        default="http://localhost:11434/v1",
        description="LLM API base URL (Ollama default)",
    )
    model: str = Field(
        default="llama3:8b",
        description="Model name to use for generation",
    )
    api_key: SecretStr = Field(
        default=SecretStr("not-required"),
        description="API key (not required for Ollama)",
    )
    timeout: float = Field(
        default=120.0,
        description="Request timeout in seconds",
    )
    max_tokens: int = Field(
        default=150,
        description="Maximum tokens in a summary",
    )
    temperature: float = Field(
        default=0.1,
        description="Sampling temperature (lower = more deterministic)",
    )


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="repository_embeddings",
        description="Collection holding content-unit embeddings",
    )


class WorkerSettings(BaseSettings):
    """Job consumer configuration."""

    model_config = SettingsConfigDict(env_prefix="WORKER_")

    concurrency: int = Field(
        default=3,
        ge=1,
        description="Jobs processed simultaneously",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per job before it is marked failed",
    )
    backoff_base: float = Field(
        default=1.0,
        ge=0.0,
        description="First retry delay in seconds (doubles per attempt)",
    )
    backoff_max: float = Field(
        default=60.0,
        ge=0.0,
        description="Upper bound for retry delays in seconds",
    )
    job_timeout: float = Field(
        default=1800.0,
        gt=0.0,
        description="Total stage time allowed per job in seconds",
    )
    shutdown_grace: float = Field(
        default=30.0,
        ge=0.0,
        description="Seconds to wait for in-flight jobs on shutdown",
    )
    claim_timeout: float = Field(
        default=1.0,
        gt=0.0,
        description="How long a claim waits before re-checking shutdown",
    )
    busy_project_delay: float = Field(
        default=5.0,
        ge=0.0,
        description="Delay before a job for a busy project is retried",
    )


class FetchSettings(BaseSettings):
    """Repository fetch configuration."""

    model_config = SettingsConfigDict(env_prefix="FETCH_")

    base_url: str = Field(
        default="https://github.com",
        description="Git host that repository handles are resolved against",
    )
    workdir: Path = Field(
        default=Path("/tmp/repoinsight"),
        description="Directory where snapshots are cloned",
    )
    clone_depth: int = Field(
        default=1,
        ge=1,
        description="History depth for shallow clones",
    )
    timeout: float = Field(
        default=300.0,
        description="Clone timeout in seconds",
    )
    cleanup: bool = Field(
        default=True,
        description="Remove snapshots once a job is done with them",
    )


class IndexingSettings(BaseSettings):
    """Content-unit selection for semantic indexing."""

    model_config = SettingsConfigDict(env_prefix="INDEXING_")

    chunk_size: int = Field(default=1000, ge=100, description="Target chunk size")
    chunk_overlap: int = Field(default=200, ge=0, description="Overlap between chunks")
    max_units_per_repository: int = Field(
        default=20,
        ge=1,
        description="Cap on embedded units per repository",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    vector_backend: VectorBackend = Field(
        default=VectorBackend.MEMORY,
        description="Embedding record storage",
    )

    # Operational HTTP surface
    api_host: str = Field(
        default="0.0.0.0",
        description="Health/metrics server host",
    )
    api_port: int = Field(
        default=8000,
        description="Health/metrics server port",
    )

    # Nested settings
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    openai: OpenAIEmbeddingSettings = Field(default_factory=OpenAIEmbeddingSettings)
    ollama: OllamaEmbeddingSettings = Field(default_factory=OllamaEmbeddingSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    indexing: IndexingSettings = Field(default_factory=IndexingSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
