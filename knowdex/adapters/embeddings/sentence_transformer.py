"""
Sentence Transformer Embedder - Local embeddings via sentence-transformers.

The model loads lazily on first use and encodes in a worker thread so the
event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import logging

from sentence_transformers import SentenceTransformer

from knowdex.config.errors import EmbeddingError

logger = logging.getLogger(__name__)

__all__ = ["SentenceTransformerEmbedder"]


class SentenceTransformerEmbedder:
    """
    Embedding provider backed by a local sentence-transformers model.

    Example:
        >>> embedder = SentenceTransformerEmbedder("all-MiniLM-L6-v2")
        >>> vector = await embedder.embed("singleton pattern")
    """

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        dimension: int | None = None,
    ) -> None:
        """
        Initialize embedder.

        Args:
            model_name: Sentence transformer model name
            dimension: Expected output size; read from the model when None
        """
        self.model_name = model_name
        self._dimension = dimension
        self._model: SentenceTransformer | None = None
        self._load_lock = asyncio.Lock()

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            if self._model is None:
                raise EmbeddingError(
                    "Embedding dimension unknown before the model is loaded",
                    {"model": self.model_name},
                )
            self._dimension = int(self._model.get_sentence_embedding_dimension() or 0)
        return self._dimension

    async def _get_model(self) -> SentenceTransformer:
        """Get or load the model."""
        async with self._load_lock:
            if self._model is None:
                logger.info("Loading sentence transformer model %s", self.model_name)
                self._model = await asyncio.to_thread(SentenceTransformer, self.model_name)
        return self._model

    async def embed(self, text: str) -> list[float]:
        """
        Embed one text.

        Raises:
            EmbeddingError: If the model cannot be loaded or fails to encode
        """
        try:
            model = await self._get_model()
            vector = await asyncio.to_thread(model.encode, text)
        except Exception as e:
            raise EmbeddingError(
                f"Sentence transformer failed: {e}", {"model": self.model_name}
            ) from e
        return [float(x) for x in vector]
