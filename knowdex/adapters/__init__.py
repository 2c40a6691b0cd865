"""
Adapters - Storage and external service integrations.

Persistence and embedding backends are wrapped here to isolate domains from
file formats and third-party changes.
"""

from .embedding_cache import EmbeddingCache
from .embeddings import OllamaEmbedder, SentenceTransformerEmbedder, create_embedding_provider
from .vector_store import JsonVectorStore

__all__ = [
    "JsonVectorStore",
    "EmbeddingCache",
    "SentenceTransformerEmbedder",
    "OllamaEmbedder",
    "create_embedding_provider",
]
