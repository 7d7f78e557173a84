"""Embedding backend interface and HTTP implementations."""

import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import httpx

from repoinsight.config import OllamaEmbeddingSettings, OpenAIEmbeddingSettings
from repoinsight.embeddings.models import EmbeddingUsage, EmbeddingVector
from repoinsight.exceptions import ConfigurationError, EmbeddingError, ErrorCode
from repoinsight.logging_config import get_logger
from repoinsight.observability.metrics import track_embedding_request

logger = get_logger(__name__)


class EmbeddingBackend(ABC):
    """Abstract base class for embedding backends.

    A backend turns one text into one vector using a named model.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier used in configuration."""
        ...

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model used when the caller gives no hint for this backend."""
        ...

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Whether the backend is configured well enough to be called."""
        ...

    @abstractmethod
    def handles(self, model: str) -> bool:
        """Whether this backend can serve the given model."""
        ...

    @abstractmethod
    async def embed(self, text: str, model: str | None = None) -> EmbeddingVector:
        """Embed a single text.

        Args:
            text: Text to embed.
            model: Model override (defaults to ``default_model``).

        Returns:
            EmbeddingVector with vector and usage.

        Raises:
            EmbeddingError: If the backend call fails.
        """
        ...

    async def close(self) -> None:
        """Release any held connections."""
        return None


class HTTPEmbeddingBackend(EmbeddingBackend):
    """Shared plumbing for backends reached over HTTP."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def embed(self, text: str, model: str | None = None) -> EmbeddingVector:
        model = model or self.default_model
        client = await self._get_client()
        url = self._endpoint()
        start = time.perf_counter()

        try:
            response = await client.post(
                url,
                json=self._payload(text, model),
                headers=self._headers(),
            )
            response.raise_for_status()
            result = self._parse(response.json(), model)
        except httpx.HTTPStatusError as e:
            self._track(model, start, success=False)
            logger.error(
                f"Embedding request failed: {e.response.status_code}",
                extra={"backend": self.name, "url": url, "status": e.response.status_code},
            )
            raise EmbeddingError(
                f"{self.name} returned {e.response.status_code}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"backend": self.name, "status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            self._track(model, start, success=False)
            logger.error(
                f"Embedding request error: {e}",
                extra={"backend": self.name, "url": url},
            )
            raise EmbeddingError(
                f"Failed to connect to {self.name}: {e}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"backend": self.name, "url": url},
            ) from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            self._track(model, start, success=False)
            raise EmbeddingError(
                f"Invalid response from {self.name}: {e}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"backend": self.name, "error": str(e)},
            ) from e

        self._track(model, start, success=True)
        return result

    def _track(self, model: str, start: float, success: bool) -> None:
        track_embedding_request(
            model=model,
            backend=self.name,
            duration=time.perf_counter() - start,
            success=success,
        )

    def _headers(self) -> dict[str, str]:
        return {}

    @abstractmethod
    def _endpoint(self) -> str: ...

    @abstractmethod
    def _payload(self, text: str, model: str) -> dict[str, Any]: ...

    @abstractmethod
    def _parse(self, data: dict[str, Any], model: str) -> EmbeddingVector: ...


class OpenAIEmbeddingBackend(HTTPEmbeddingBackend):
    """Embeddings via the OpenAI embeddings API.

    Compatible with any server exposing ``POST /embeddings`` in the
    OpenAI format. Unavailable until an API key is configured.
    """

    MODEL_PREFIX = "text-embedding-"

    def __init__(
        self,
        settings: OpenAIEmbeddingSettings,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._settings = settings

    @property
    def name(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return self._settings.model

    @property
    def is_available(self) -> bool:
        return self._settings.api_key is not None and bool(
            self._settings.api_key.get_secret_value()
        )

    def handles(self, model: str) -> bool:
        return model.startswith(self.MODEL_PREFIX)

    def _endpoint(self) -> str:
        return f"{self._settings.base_url.rstrip('/')}/embeddings"

    def _headers(self) -> dict[str, str]:
        if self._settings.api_key is None:
            return {}
        return {"Authorization": f"Bearer {self._settings.api_key.get_secret_value()}"}

    def _payload(self, text: str, model: str) -> dict[str, Any]:
        return {"input": text, "model": model}

    def _parse(self, data: dict[str, Any], model: str) -> EmbeddingVector:
        embedding = data["data"][0]["embedding"]
        usage = data.get("usage") or {}
        return EmbeddingVector(
            vector=embedding,
            model=data.get("model", model),
            backend=self.name,
            usage=EmbeddingUsage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
        )


class OllamaEmbeddingBackend(HTTPEmbeddingBackend):
    """Embeddings via a local Ollama server.

    Ollama does not report token usage, so usage is always zero.
    """

    def __init__(
        self,
        settings: OllamaEmbeddingSettings,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._settings = settings

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return self._settings.model

    @property
    def is_available(self) -> bool:
        return bool(self._settings.base_url)

    def handles(self, model: str) -> bool:
        # Ollama serves whatever has been pulled; anything non-OpenAI is ours
        return not model.startswith(OpenAIEmbeddingBackend.MODEL_PREFIX)

    def _endpoint(self) -> str:
        return f"{self._settings.base_url.rstrip('/')}/api/embeddings"

    def _payload(self, text: str, model: str) -> dict[str, Any]:
        return {"model": model, "prompt": text}

    def _parse(self, data: dict[str, Any], model: str) -> EmbeddingVector:
        return EmbeddingVector(
            vector=data["embedding"],
            model=data.get("model", model),
            backend=self.name,
        )


def select_backends(
    model_hint: str | None,
    backends: Sequence[EmbeddingBackend],
    default: str,
    fallback: str | None = None,
) -> list[tuple[EmbeddingBackend, str]]:
    """Choose the ordered list of (backend, model) attempts for a request.

    With a hint, the preferred backend is the first one that handles the
    hinted model; otherwise the configured default. The fallback backend
    follows when it differs from the preferred one. The hinted model is
    only sent to a backend that handles it; other backends use their own
    default model.

    Raises:
        ConfigurationError: If a named backend is not registered.
    """
    by_name = {backend.name: backend for backend in backends}
    if default not in by_name:
        raise ConfigurationError(
            f"Unknown embedding backend: {default}",
            details={"registered": sorted(by_name)},
        )
    if fallback is not None and fallback not in by_name:
        raise ConfigurationError(
            f"Unknown fallback embedding backend: {fallback}",
            details={"registered": sorted(by_name)},
        )

    preferred = by_name[default]
    if model_hint:
        preferred = next((b for b in backends if b.handles(model_hint)), preferred)

    order = [preferred]
    if fallback is not None and by_name[fallback] is not preferred:
        order.append(by_name[fallback])

    return [
        (
            backend,
            model_hint
            if model_hint and backend.handles(model_hint)
            else backend.default_model,
        )
        for backend in order
    ]
