"""
Vector Store Models - Stored items and search hits.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ItemMetadata(BaseModel):
    """Provenance and classification of an indexed item."""

    model_config = {"coerce_numbers_to_str": True}

    source_type: str = "document"
    source_path: str = ""
    source_content_hash: str | None = None
    content_hash: str | None = None  # hash of this chunk's text
    category: str | None = None
    module: str | None = None
    chunk_index: int = 0
    total_chunks: int = 1
    section_title: str | None = None
    updated_at: datetime | None = None
    language: str | None = None
    tags: set[str] = Field(default_factory=set)
    priority: float = 0.0
    deprecated: bool = False
    author: str | None = None
    version: str | None = None


class IndexedItem(BaseModel):
    """A unit of retrievable content (one chunk of a source document)."""

    id: str
    content: str
    vector: list[float] = Field(default_factory=list)
    metadata: ItemMetadata = Field(default_factory=ItemMetadata)
    parent_id: str | None = None

    @property
    def has_vector(self) -> bool:
        return len(self.vector) > 0


class SearchFilter(BaseModel):
    """Metadata filter for store searches."""

    source_type: str | None = None
    category: str | None = None
    language: str | None = None
    module: str | None = None
    source_path: str | None = None  # substring match
    tags: list[str] | None = None  # any-of
    include_deprecated: bool = True

    def matches(self, item: IndexedItem) -> bool:
        meta = item.metadata
        if self.source_type and meta.source_type != self.source_type:
            return False
        if self.category and meta.category != self.category:
            return False
        if self.language and meta.language != self.language:
            return False
        if self.module and meta.module != self.module:
            return False
        if self.source_path and self.source_path not in meta.source_path:
            return False
        if self.tags and not meta.tags.intersection(self.tags):
            return False
        if not self.include_deprecated and meta.deprecated:
            return False
        return True


class VectorHit(BaseModel):
    """Similarity query result."""

    id: str
    similarity: float
    item: IndexedItem


class HybridHit(BaseModel):
    """Hybrid (vector + keyword) search result with score breakdown."""

    id: str
    score: float
    vector_score: float = 0.0
    keyword_score: float = 0.0
    item: IndexedItem


class BatchUpsertResult(BaseModel):
    """Outcome of a batch upsert; failed items do not abort the batch."""

    upserted: int = 0
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def failed(self) -> int:
        return len(self.errors)


class StoreStats(BaseModel):
    """Store counters."""

    count: int
    has_vector_count: int
    dimension: int | None = None
    index_path: str = ""
    index_bytes: int = 0
    requires_rebuild: bool = False

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()
