"""
Indexing Contracts - Interfaces for indexing collaborators.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from .models import Chunk, SourceDocument


@runtime_checkable
class DocumentSource(Protocol):
    """Contract for corpus providers."""

    def documents(self) -> AsyncIterator[SourceDocument]:
        """Yield every document of the corpus."""
        ...


@runtime_checkable
class Chunker(Protocol):
    """Contract for document splitters."""

    def chunk(self, document: SourceDocument) -> list[Chunk]:
        """Split a document; an empty document yields no chunks."""
        ...


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Contract for text-to-vector providers."""

    model_name: str

    @property
    def dimension(self) -> int:
        """Length of produced vectors."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Embed one text."""
        ...
