"""
Vector Store Adapter - Durable item storage with similarity and hybrid search.
"""

from .models import (
    BatchUpsertResult,
    HybridHit,
    IndexedItem,
    ItemMetadata,
    SearchFilter,
    StoreStats,
    VectorHit,
)
from .store import JsonVectorStore, cosine_similarity

__all__ = [
    "JsonVectorStore",
    "cosine_similarity",
    "IndexedItem",
    "ItemMetadata",
    "SearchFilter",
    "VectorHit",
    "HybridHit",
    "BatchUpsertResult",
    "StoreStats",
]
