"""
Indexing Pipeline - scan -> chunk -> detect changes -> embed -> upsert.

Keeps the vector store incrementally fresh: unchanged chunks are skipped by
content hash, embeddings come from the cache before the provider, and stale
chunks of shrunken documents are removed.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from knowdex.adapters.vector_store import IndexedItem, ItemMetadata
from knowdex.config.errors import (
    DimensionMismatchError,
    EmbeddingError,
    ErrorCode,
    InvalidItemError,
    KnowdexError,
)
from knowdex.config.manifest import utc_now_iso

from .chunker import MarkdownChunker
from .models import Chunk, IndexRunStats, SourceDocument

if TYPE_CHECKING:
    from knowdex.adapters.embedding_cache import EmbeddingCache
    from knowdex.adapters.vector_store import JsonVectorStore

    from .contracts import Chunker, DocumentSource, EmbeddingProvider

logger = logging.getLogger(__name__)

__all__ = ["IndexingPipeline", "hash_content", "parent_id_for"]

# Document metadata keys that map onto ItemMetadata fields
_ITEM_METADATA_KEYS = (
    "category",
    "module",
    "language",
    "tags",
    "priority",
    "deprecated",
    "author",
    "version",
    "updated_at",
)


def hash_content(text: str) -> str:
    """Short content hash used for change detection."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def parent_id_for(document: SourceDocument) -> str:
    """Stable id of a document: source type plus a slug of its path."""
    slug = re.sub(r"\s", "-", re.sub(r"[/.]", "_", document.path))
    return f"{document.source_type}_{slug}"


@dataclass
class _ChunkJob:
    id: str
    parent_id: str | None
    chunk: Chunk
    document: SourceDocument
    content_hash: str
    source_hash: str


class IndexingPipeline:
    """
    Incremental indexer over a document source.

    Example:
        >>> pipeline = IndexingPipeline(store, DirectorySource(root), embedder=embedder)
        >>> stats = await pipeline.run()
        >>> stats.upserted, stats.skipped
    """

    def __init__(
        self,
        store: JsonVectorStore,
        source: DocumentSource,
        chunker: Chunker | None = None,
        embedder: EmbeddingProvider | None = None,
        cache: EmbeddingCache | None = None,
        max_concurrency: int = 4,
        embed_timeout: float = 30.0,
        sources: list[str] | None = None,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            store: Vector store to populate
            source: Corpus provider
            chunker: Document splitter (defaults to MarkdownChunker)
            embedder: Optional embedding provider; without one items are keyword-only
            cache: Optional embedding cache consulted before the provider
            max_concurrency: Chunks processed at once
            embed_timeout: Seconds allowed per provider call
            sources: Source descriptions recorded in the manifest
        """
        self._store = store
        self._source = source
        self._chunker = chunker or MarkdownChunker()
        self._embedder = embedder
        self._cache = cache
        self._max_concurrency = max(1, max_concurrency)
        self._embed_timeout = embed_timeout
        self._sources = sources or []

    async def run(self, force: bool = False, dry_run: bool = False) -> IndexRunStats:
        """
        Run the pipeline once.

        Args:
            force: Re-embed and rewrite every chunk, ignoring hashes and cache
            dry_run: Compute everything but write nothing

        Returns:
            Run statistics
        """
        async with self._store.run_lock:
            start = time.perf_counter()
            full_rebuild = force or self._store.requires_rebuild
            stats = IndexRunStats(full_rebuild=full_rebuild, dry_run=dry_run)

            if self._store.requires_rebuild and not dry_run:
                logger.info("Index requires rebuild, clearing store")
                await self._store.clear(persist=False)

            jobs: list[_ChunkJob] = []
            expected_ids: dict[str, set[str]] = {}
            async for document in self._source.documents():
                stats.documents += 1
                document_jobs = self._plan(document)
                jobs.extend(document_jobs)
                expected_ids[parent_id_for(document)] = {job.id for job in document_jobs}
            stats.scanned = len(jobs)

            semaphore = asyncio.Semaphore(self._max_concurrency)
            try:
                await asyncio.gather(
                    *(self._process(job, semaphore, stats, force, dry_run) for job in jobs)
                )
                if not dry_run:
                    stats.removed = await self._remove_stale(expected_ids)
            finally:
                if not dry_run:
                    await self._store.flush()

            if not dry_run:
                await self._update_manifest(full_rebuild)
                if full_rebuild:
                    self._store.mark_rebuilt()

            stats.duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "Indexing %s: %d documents, %d chunks, %d upserted, %d skipped, "
                "%d embedded, %d removed, %d errors (%.0fms)",
                "dry run" if dry_run else ("full rebuild" if full_rebuild else "incremental"),
                stats.documents,
                stats.scanned,
                stats.upserted,
                stats.skipped,
                stats.embedded,
                stats.removed,
                stats.errors,
                stats.duration_ms,
            )
            return stats

    def _plan(self, document: SourceDocument) -> list[_ChunkJob]:
        chunks = self._chunker.chunk(document)
        parent_id = parent_id_for(document)
        source_hash = hash_content(document.content)
        single = len(chunks) == 1

        return [
            _ChunkJob(
                id=parent_id if single else f"{parent_id}_c{chunk.chunk_index}",
                parent_id=None if single else parent_id,
                chunk=chunk,
                document=document,
                content_hash=hash_content(chunk.content),
                source_hash=source_hash,
            )
            for chunk in chunks
        ]

    async def _process(
        self,
        job: _ChunkJob,
        semaphore: asyncio.Semaphore,
        stats: IndexRunStats,
        force: bool,
        dry_run: bool,
    ) -> None:
        async with semaphore:
            if not force:
                existing = await self._store.get_by_id(job.id)
                if existing is not None and existing.metadata.content_hash == job.content_hash:
                    stats.skipped += 1
                    return

            vector: list[float] = []
            from_cache = False
            if self._embedder is not None:
                vector, from_cache = await self._embed(self._embedder, job, force)
            if vector:
                stats.embedded += 1

            if dry_run:
                return

            item = IndexedItem(
                id=job.id,
                content=job.chunk.content,
                vector=vector,
                metadata=self._item_metadata(job),
                parent_id=job.parent_id,
            )
            try:
                await self._store.upsert(item, persist=False)
            except (InvalidItemError, DimensionMismatchError) as e:
                stats.errors += 1
                logger.warning("Chunk %s rejected: %s", job.id, e.message)
                return
            stats.upserted += 1

            if vector and not from_cache and self._cache is not None:
                try:
                    await self._cache.set(
                        job.id,
                        vector,
                        metadata={"source_path": job.document.path},
                        content_hash=job.content_hash,
                    )
                except DimensionMismatchError as e:
                    logger.warning("Embedding for %s not cached: %s", job.id, e.message)

    async def _embed(
        self,
        embedder: EmbeddingProvider,
        job: _ChunkJob,
        force: bool,
    ) -> tuple[list[float], bool]:
        """Vector for a chunk and whether it came from the cache; [] on failure."""
        if self._cache is not None and not force:
            cached = await self._cache.get(job.id, job.content_hash)
            if cached is not None:
                return cached, True

        try:
            vector = await self._embed_with_timeout(embedder, job.chunk.content)
        except KnowdexError as e:
            logger.warning("Embedding failed for %s [%s]: %s", job.id, e.code.value, e.message)
            return [], False
        except Exception as e:
            logger.warning("Embedding failed for %s: %s", job.id, e)
            return [], False
        return vector, False

    async def _embed_with_timeout(self, embedder: EmbeddingProvider, text: str) -> list[float]:
        try:
            vector = await asyncio.wait_for(embedder.embed(text), timeout=self._embed_timeout)
        except asyncio.TimeoutError as e:
            raise EmbeddingError(
                f"Embedding timed out after {self._embed_timeout:.1f}s",
                {"timeout_seconds": self._embed_timeout},
                code=ErrorCode.EMBEDDING_TIMEOUT,
            ) from e
        return list(vector)

    def _item_metadata(self, job: _ChunkJob) -> ItemMetadata:
        doc_meta = job.document.metadata
        provenance: dict[str, Any] = {
            "source_type": job.document.source_type,
            "source_path": job.document.path,
            "source_content_hash": job.source_hash,
            "content_hash": job.content_hash,
            "chunk_index": job.chunk.chunk_index,
            "total_chunks": job.chunk.total_chunks,
            "section_title": job.chunk.section_title or doc_meta.get("title"),
        }
        lifted: dict[str, Any] = {}
        for key in _ITEM_METADATA_KEYS:
            value = doc_meta.get(key)
            if value is None:
                continue
            # Validated alone so one bad value only drops its own key
            try:
                ItemMetadata.model_validate({key: value})
            except ValidationError:
                logger.warning("Ignoring invalid %s %r of %s", key, value, job.document.path)
                continue
            lifted[key] = value

        return ItemMetadata(**provenance, **lifted)

    async def _remove_stale(self, expected_ids: dict[str, set[str]]) -> int:
        """Remove chunks of seen documents that this run did not produce."""
        removed = 0
        for parent_id, keep in expected_ids.items():
            stale = [item.id for item in await self._store.get_by_parent(parent_id)]
            stale.append(parent_id)
            for item_id in stale:
                if item_id not in keep and await self._store.remove(item_id, persist=False):
                    removed += 1
                    logger.debug("Removed stale chunk %s", item_id)
        return removed

    async def _update_manifest(self, full_rebuild: bool) -> None:
        changes: dict[str, Any] = {
            "count": self._store.size,
            "embedding_model": self._embedder.model_name if self._embedder else None,
            "embedding_dimension": self._store.dimension,
            "storage_adapter": "json",
            "sources": self._sources,
        }
        if full_rebuild:
            current = await self._store.manifests.read()
            previous = current.index_version if current is not None and current.is_current else 0
            changes["index_version"] = previous + 1
            changes["last_full_rebuild"] = utc_now_iso()
        await self._store.manifests.update(**changes)
