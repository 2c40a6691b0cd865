"""
Ollama Embedder - Embeddings from a local Ollama server.

Features:
- Async HTTP client (created lazily, reused)
- Retries with exponential backoff on transport errors, 5xx and 429
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from knowdex.config.errors import DimensionMismatchError, EmbeddingError, ErrorCode

logger = logging.getLogger(__name__)

__all__ = ["OllamaEmbedder"]


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500
    return False


class OllamaEmbedder:
    """
    Ollama embedding client.

    Example:
        >>> embedder = OllamaEmbedder(model_name="nomic-embed-text", dimension=768)
        >>> vector = await embedder.embed("singleton pattern")
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model_name: str = "nomic-embed-text",
        dimension: int = 768,
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Ollama embedder.

        Args:
            base_url: Ollama server URL
            model_name: Embedding model name
            dimension: Expected vector length
            timeout: Request timeout in seconds
            max_attempts: Attempts per embed call
            backoff: Exponential backoff multiplier in seconds (0 disables waiting)
            transport: Optional httpx transport (for tests)
        """
        self.base_url = base_url.rstrip("/")
        self.model_name = model_name
        self.dimension = dimension
        self.timeout = timeout
        self._max_attempts = max_attempts
        self._backoff = backoff
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _post_embedding(self, text: str) -> Any:
        client = await self._get_client()
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff, max=30),
            reraise=True,
        ):
            with attempt:
                response = await client.post(
                    "/api/embeddings",
                    json={"model": self.model_name, "prompt": text},
                )
                response.raise_for_status()
                return response.json()
        raise EmbeddingError("Ollama embedding request was not attempted")

    async def embed(self, text: str) -> list[float]:
        """
        Embed one text.

        Raises:
            EmbeddingError: If the server is unreachable or answers without a vector
            DimensionMismatchError: If the vector length differs from ``dimension``
        """
        details = {"model": self.model_name, "url": self.base_url}
        try:
            data = await self._post_embedding(text)
        except httpx.TimeoutException as e:
            raise EmbeddingError(
                f"Ollama embedding timed out after {self.timeout:.1f}s",
                details,
                code=ErrorCode.EMBEDDING_TIMEOUT,
            ) from e
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Ollama embedding failed: {e}", details) from e
        except ValueError as e:
            raise EmbeddingError(f"Ollama returned invalid JSON: {e}", details) from e

        vector = data.get("embedding") if isinstance(data, dict) else None
        if not vector or not isinstance(vector, list):
            raise EmbeddingError("Ollama returned no embedding", details)
        if len(vector) != self.dimension:
            raise DimensionMismatchError(expected=self.dimension, actual=len(vector))
        try:
            return [float(x) for x in vector]
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Ollama returned a non-numeric embedding: {e}", details) from e

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
