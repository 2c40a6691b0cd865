"""
JSON Vector Store - Durable item store with similarity and hybrid search.

Features:
- Explicit load (no I/O on construction)
- Cosine similarity query with insertion-order tie breaking
- Hybrid search (vector 70% + keyword 30%) degrading to keyword-only
- Atomic persistence and a manifest per store
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

import numpy as np
from pydantic import ValidationError

from knowdex.config.errors import DimensionMismatchError, InvalidItemError
from knowdex.config.manifest import ManifestStore, atomic_write_json, read_json
from knowdex.domains.search.tokenizer import token_set, tokenize

from .models import (
    BatchUpsertResult,
    HybridHit,
    IndexedItem,
    SearchFilter,
    StoreStats,
    VectorHit,
)

logger = logging.getLogger(__name__)

__all__ = ["JsonVectorStore", "cosine_similarity"]

ITEMS_FILENAME = "vector_index.json"
MANIFEST_FILENAME = "manifest.json"

VECTOR_WEIGHT = 0.7
KEYWORD_WEIGHT = 0.3


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Empty or zero-norm vectors score 0.0.

    Raises:
        DimensionMismatchError: If both vectors are non-empty and differ in length
    """
    if len(a) == 0 or len(b) == 0:
        return 0.0
    if len(a) != len(b):
        raise DimensionMismatchError(expected=len(a), actual=len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def _keyword_score(query_tokens: list[str], content: str) -> float:
    """Fraction of distinct query tokens present in the tokenized content."""
    if not query_tokens:
        return 0.0
    distinct = set(query_tokens)
    content_tokens = token_set(content)
    return len(distinct & content_tokens) / len(distinct)


class JsonVectorStore:
    """
    JSON-file vector store for small and medium corpora (<10K items).

    Reads (query, get_by_id, hybrid_search) take no lock and may observe a
    store that is mid-run; writes are serialised per store.

    Example:
        >>> store = JsonVectorStore(".knowdex/context/index")
        >>> await store.load()
        >>> await store.upsert(IndexedItem(id="a", content="singleton pattern"))
        >>> hits = await store.hybrid_search([], "singleton", top_k=5)
    """

    def __init__(
        self,
        index_dir: str | Path,
        dimension: int | None = None,
    ) -> None:
        """
        Initialize the store without touching the filesystem.

        Args:
            index_dir: Directory for the item collection and manifest
            dimension: Expected vector dimension; learned from the first
                vector written when not given
        """
        self._index_dir = Path(index_dir)
        self._items_path = self._index_dir / ITEMS_FILENAME
        self._manifests = ManifestStore(self._index_dir / MANIFEST_FILENAME)
        self._items: dict[str, IndexedItem] = {}
        self._dimension = dimension
        self._dirty = False
        self._requires_rebuild = False
        self._write_lock = asyncio.Lock()
        self._run_lock = asyncio.Lock()

    # --- Accessors ---

    @property
    def dimension(self) -> int | None:
        return self._dimension

    @property
    def manifests(self) -> ManifestStore:
        return self._manifests

    @property
    def run_lock(self) -> asyncio.Lock:
        """Lock held by an indexing run for its whole duration."""
        return self._run_lock

    @property
    def requires_rebuild(self) -> bool:
        """True when persisted data was missing, corrupt or outdated at load."""
        return self._requires_rebuild

    @property
    def size(self) -> int:
        return len(self._items)

    def mark_rebuilt(self) -> None:
        """Clear ``requires_rebuild`` after a completed full rebuild."""
        self._requires_rebuild = False

    # --- Persistence ---

    async def load(self) -> None:
        """
        Populate memory from disk.

        Missing, corrupt or schema-mismatched data leaves the store empty and
        flags ``requires_rebuild``; it never raises.
        """
        self._items = {}
        self._dirty = False

        manifest = await self._manifests.read()
        if manifest is None:
            logger.info("No usable manifest at %s, full rebuild required", self._manifests.path)
            self._requires_rebuild = True
            return
        if not manifest.is_current:
            logger.warning(
                "Manifest schema version %d is outdated, discarding index at %s",
                manifest.schema_version,
                self._index_dir,
            )
            self._requires_rebuild = True
            return

        try:
            raw = await asyncio.to_thread(read_json, self._items_path)
        except (OSError, ValueError) as e:
            logger.warning("Item file unreadable at %s: %s", self._items_path, e)
            self._requires_rebuild = True
            return

        if not isinstance(raw, list):
            logger.warning("Item file at %s is not a list", self._items_path)
            self._requires_rebuild = True
            return

        skipped = 0
        for record in raw:
            try:
                item = IndexedItem.model_validate(record)
            except ValidationError:
                skipped += 1
                continue
            self._items[item.id] = item
            if self._dimension is None and item.has_vector:
                self._dimension = len(item.vector)

        if self._dimension is None and manifest.embedding_dimension:
            self._dimension = manifest.embedding_dimension

        self._requires_rebuild = False
        logger.info(
            "Vector store loaded from %s (%d items, %d skipped)",
            self._index_dir,
            len(self._items),
            skipped,
        )

    async def flush(self) -> None:
        """Persist pending changes and refresh the manifest count."""
        async with self._write_lock:
            if not self._dirty:
                return
            records = [item.model_dump(mode="json") for item in self._items.values()]
            await asyncio.to_thread(atomic_write_json, self._items_path, records)
            self._dirty = False
            count = len(records)

        await self._manifests.update(count=count, embedding_dimension=self._dimension)
        logger.debug("Vector store flushed to %s (%d items)", self._items_path, count)

    # --- Writes ---

    async def upsert(self, item: IndexedItem, persist: bool = True) -> None:
        """
        Insert or replace one item.

        Args:
            item: Item to store
            persist: Write to disk immediately (otherwise call ``flush``)

        Raises:
            InvalidItemError: If id or content is missing
            DimensionMismatchError: If the vector length differs from the store dimension
        """
        async with self._write_lock:
            self._put(item)
        if persist:
            await self.flush()

    async def batch_upsert(self, items: Sequence[IndexedItem]) -> BatchUpsertResult:
        """Upsert items one by one, collecting per-item errors."""
        result = BatchUpsertResult()
        async with self._write_lock:
            for item in items:
                try:
                    self._put(item)
                    result.upserted += 1
                except (InvalidItemError, DimensionMismatchError) as e:
                    result.errors[item.id or "<missing id>"] = e.message
                    logger.warning("Upsert rejected for %s: %s", item.id, e.message)
        await self.flush()
        return result

    async def remove(self, item_id: str, persist: bool = True) -> bool:
        """Remove an item; returns whether it existed."""
        async with self._write_lock:
            existed = self._items.pop(item_id, None) is not None
            if existed:
                self._dirty = True
        if existed and persist:
            await self.flush()
        return existed

    async def clear(self, persist: bool = True) -> None:
        """Remove all items."""
        async with self._write_lock:
            self._items = {}
            self._dirty = True
        if persist:
            await self.flush()

    def _put(self, item: IndexedItem) -> None:
        if not item.id:
            raise InvalidItemError("Item must have an id")
        if not item.content:
            raise InvalidItemError("Item must have content", {"item_id": item.id})
        if item.has_vector:
            if self._dimension is None:
                self._dimension = len(item.vector)
            elif len(item.vector) != self._dimension:
                raise DimensionMismatchError(
                    expected=self._dimension,
                    actual=len(item.vector),
                    item_id=item.id,
                )
        self._items[item.id] = item.model_copy(deep=True)
        self._dirty = True

    # --- Reads ---

    async def get_by_id(self, item_id: str) -> IndexedItem | None:
        return self._items.get(item_id)

    async def get_by_parent(self, parent_id: str) -> list[IndexedItem]:
        """Items whose ``parent_id`` matches (lookup only)."""
        return [item for item in self._items.values() if item.parent_id == parent_id]

    async def list_ids(self) -> list[str]:
        return list(self._items)

    async def list_items(self) -> list[IndexedItem]:
        return list(self._items.values())

    async def search_by_filter(self, search_filter: SearchFilter) -> list[IndexedItem]:
        return [item for item in self._items.values() if search_filter.matches(item)]

    async def query(self, vector: Sequence[float], k: int = 10) -> list[VectorHit]:
        """
        Top-k items by cosine similarity.

        Args:
            vector: Query vector
            k: Maximum number of results

        Returns:
            Hits sorted by similarity descending, ties in insertion order

        Raises:
            DimensionMismatchError: If the query vector has the wrong dimension
        """
        if len(vector) == 0 or k <= 0:
            return []
        if self._dimension is not None and len(vector) != self._dimension:
            raise DimensionMismatchError(expected=self._dimension, actual=len(vector))

        scored = [
            VectorHit(id=item.id, similarity=cosine_similarity(vector, item.vector), item=item)
            for item in list(self._items.values())
            if item.has_vector
        ]
        # sorted() is stable, so equal similarities keep insertion order
        scored.sort(key=lambda hit: hit.similarity, reverse=True)
        return scored[:k]

    async def hybrid_search(
        self,
        vector: Sequence[float],
        query_text: str,
        top_k: int = 10,
        search_filter: SearchFilter | None = None,
    ) -> list[HybridHit]:
        """
        Blend vector similarity with keyword overlap.

        With an empty ``vector`` the score is the keyword score alone, so a
        store without embeddings still ranks items that share any token.
        """
        if vector and self._dimension is not None and len(vector) != self._dimension:
            raise DimensionMismatchError(expected=self._dimension, actual=len(vector))

        query_tokens = tokenize(query_text)
        use_vector = len(vector) > 0
        hits: list[HybridHit] = []

        for item in list(self._items.values()):
            if search_filter is not None and not search_filter.matches(item):
                continue

            keyword_score = _keyword_score(query_tokens, item.content)
            if use_vector:
                vector_score = cosine_similarity(vector, item.vector) if item.has_vector else 0.0
                score = vector_score * VECTOR_WEIGHT + keyword_score * KEYWORD_WEIGHT
            else:
                vector_score = 0.0
                score = keyword_score

            if score > 0:
                hits.append(
                    HybridHit(
                        id=item.id,
                        score=score,
                        vector_score=vector_score,
                        keyword_score=keyword_score,
                        item=item,
                    )
                )

        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:top_k]

    async def get_stats(self) -> StoreStats:
        index_bytes = 0
        try:
            if self._items_path.exists():
                index_bytes = self._items_path.stat().st_size
        except OSError:
            pass

        return StoreStats(
            count=len(self._items),
            has_vector_count=sum(1 for item in self._items.values() if item.has_vector),
            dimension=self._dimension,
            index_path=str(self._items_path),
            index_bytes=index_bytes,
            requires_rebuild=self._requires_rebuild,
        )
