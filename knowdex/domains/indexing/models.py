"""
Indexing Models - Source documents, chunks and run statistics.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SourceDocument(BaseModel):
    """A document produced by a document source."""

    path: str  # relative to the scanned directory, forward slashes
    content: str
    source_type: str = "document"
    metadata: dict[str, Any] = Field(default_factory=dict)


class Chunk(BaseModel):
    """A piece of a document small enough to embed."""

    content: str
    chunk_index: int = 0
    total_chunks: int = 1
    section_title: str | None = None


class IndexRunStats(BaseModel):
    """Counters of one pipeline run."""

    documents: int = 0
    scanned: int = 0  # chunks discovered
    upserted: int = 0
    skipped: int = 0
    embedded: int = 0
    removed: int = 0
    errors: int = 0
    full_rebuild: bool = False
    dry_run: bool = False
    duration_ms: float = 0.0
