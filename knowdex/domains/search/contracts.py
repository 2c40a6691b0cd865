"""
Search Contracts - Interfaces for search domain.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from .models import RankingCandidate, SearchContext


@runtime_checkable
class Signal(Protocol):
    """Contract for one multi-signal ranking signal."""

    def compute(self, candidate: RankingCandidate, context: SearchContext) -> float:
        """Score a candidate in [0, 1]."""
        ...


@runtime_checkable
class VectorHitLike(Protocol):
    """Minimal view of a similarity hit."""

    id: str
    similarity: float


@runtime_checkable
class VectorQueryable(Protocol):
    """Contract for stores usable by the semantic rerank stage."""

    @property
    def size(self) -> int:
        """Number of stored items."""
        ...

    async def query(self, vector: Sequence[float], k: int = 10) -> Sequence[VectorHitLike]:
        """Top-k items by similarity."""
        ...


@runtime_checkable
class QueryEmbedder(Protocol):
    """Contract for embedding a search query."""

    async def embed(self, text: str) -> list[float]:
        """Embed one text."""
        ...
