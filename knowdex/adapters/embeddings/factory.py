"""
Embedding provider selection from settings.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .ollama import OllamaEmbedder
from .sentence_transformer import SentenceTransformerEmbedder

if TYPE_CHECKING:
    from knowdex.config.settings import Settings
    from knowdex.domains.indexing.contracts import EmbeddingProvider

logger = logging.getLogger(__name__)

__all__ = ["create_embedding_provider"]


def create_embedding_provider(settings: Settings) -> EmbeddingProvider | None:
    """
    Build the configured embedding provider.

    Returns:
        The provider, or None when ``embedding_provider`` is "none"
    """
    if settings.embedding_provider == "sentence-transformers":
        return SentenceTransformerEmbedder(
            model_name=settings.embedding_model,
            dimension=settings.embedding_dimension,
        )
    if settings.embedding_provider == "ollama":
        return OllamaEmbedder(
            base_url=settings.ollama_url,
            model_name=settings.embedding_model,
            dimension=settings.embedding_dimension,
            timeout=settings.embed_timeout_seconds,
        )
    logger.info("No embedding provider configured, indexing keyword-only")
    return None
