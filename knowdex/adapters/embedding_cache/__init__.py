"""
Embedding Cache Adapter - Memory + disk cache of computed embeddings.
"""

from .cache import EmbeddingCache, cache_file_name, cache_key
from .models import CacheConfig, CacheEntry, CacheStats

__all__ = [
    "EmbeddingCache",
    "cache_key",
    "cache_file_name",
    "CacheEntry",
    "CacheStats",
    "CacheConfig",
]
