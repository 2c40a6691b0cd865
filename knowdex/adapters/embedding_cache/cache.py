"""
Embedding Cache - Two-layer (memory + disk) embedding cache with TTL.

Features:
- Keyed by item id, optionally scoped to a content hash
- TTL expiration checked on every read
- Oldest-first eviction when the memory layer exceeds its capacity
- Disk failures degrade to cache misses, never to exceptions
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from knowdex.config.errors import DimensionMismatchError, StorageError
from knowdex.config.manifest import atomic_write_json, read_json

from .models import CacheConfig, CacheEntry, CacheStats

logger = logging.getLogger(__name__)

__all__ = ["EmbeddingCache", "cache_key", "cache_file_name"]

CONFIG_FILENAME = "cache-config.json"

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def cache_key(item_id: str, content_hash: str | None = None) -> str:
    """Cache key for an item, scoped to its content hash when given."""
    return f"{item_id}_{content_hash}" if content_hash else item_id


def cache_file_name(key: str) -> str:
    """On-disk file name of a cache key."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:32] + ".json"


class EmbeddingCache:
    """
    Memory + disk embedding cache.

    Example:
        >>> cache = await EmbeddingCache.from_directory(".knowdex/cache/embeddings", dimension=384)
        >>> await cache.set("recipe_a", vector, content_hash="3f2a...")
        >>> vector = await cache.get("recipe_a", content_hash="3f2a...")
    """

    def __init__(
        self,
        cache_dir: str | Path,
        dimension: int | None = None,
        max_cache_size: int = 1000,
        ttl_seconds: int = 7 * 24 * 3600,
        enabled: bool = True,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize cache without touching the filesystem.

        Args:
            cache_dir: Directory for per-entry JSON files
            dimension: Required embedding length (unchecked when None)
            max_cache_size: Maximum entries held in memory
            ttl_seconds: Lifetime of an entry
            enabled: Whether the disk layer is used
            clock: Time source returning aware datetimes (for tests)
        """
        self._cache_dir = Path(cache_dir)
        self._dimension = dimension
        self._max_size = max_cache_size
        self._ttl = timedelta(seconds=ttl_seconds)
        self._enabled = enabled
        self._clock = clock or _utc_now
        self._memory: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

        self._hits = 0
        self._misses = 0
        self._stores = 0
        self._expires = 0
        self._evictions = 0

    @classmethod
    def from_config_file(
        cls,
        cache_dir: str | Path,
        dimension: int | None = None,
        defaults: CacheConfig | None = None,
        clock: Clock | None = None,
    ) -> EmbeddingCache:
        """
        Create a cache configured by ``cache-config.json`` in ``cache_dir``.

        A missing config file is written from ``defaults``; an unreadable one
        is ignored in favour of ``defaults``.
        """
        cache_dir = Path(cache_dir)
        config_path = cache_dir / CONFIG_FILENAME
        config = defaults or CacheConfig()

        if config_path.exists():
            try:
                # Keys missing from the file keep their default
                config = CacheConfig.model_validate(
                    {**config.model_dump(by_alias=True), **read_json(config_path)}
                )
            except (OSError, TypeError, ValueError, ValidationError) as e:
                logger.warning("Cache config unreadable at %s, using defaults: %s", config_path, e)
        else:
            try:
                atomic_write_json(config_path, config.model_dump(by_alias=True))
            except StorageError as e:
                logger.warning("Could not write default cache config: %s", e.message)

        return cls(
            cache_dir,
            dimension=dimension,
            max_cache_size=config.max_size,
            ttl_seconds=config.ttl_seconds,
            enabled=config.enabled,
            clock=clock,
        )

    @classmethod
    async def from_directory(
        cls,
        cache_dir: str | Path,
        dimension: int | None = None,
        defaults: CacheConfig | None = None,
        clock: Clock | None = None,
    ) -> EmbeddingCache:
        """Async variant of ``from_config_file`` (file I/O runs in a worker thread)."""
        return await asyncio.to_thread(cls.from_config_file, cache_dir, dimension, defaults, clock)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def size(self) -> int:
        return len(self._memory)

    # --- Loading ---

    async def load(self) -> int:
        """
        Pull unexpired disk entries into memory, deleting expired files.

        Returns:
            Number of entries loaded
        """
        if not self._enabled or not self._cache_dir.exists():
            return 0

        now = self._clock()
        loaded = 0
        paths = await asyncio.to_thread(self._entry_paths)
        entries: list[CacheEntry] = []

        for path in paths:
            entry = await self._read_entry(path)
            if entry is None:
                continue
            if entry.is_expired(now):
                await self._unlink(path)
                self._expires += 1
                continue
            entries.append(entry)

        async with self._lock:
            for entry in sorted(entries, key=lambda e: e.created_at):
                self._memory[cache_key(entry.item_id, entry.content_hash)] = entry
                loaded += 1
            await self._evict_overflow()

        logger.info("Embedding cache loaded %d entries from %s", loaded, self._cache_dir)
        return loaded

    # --- Reads ---

    async def get(self, item_id: str, content_hash: str | None = None) -> list[float] | None:
        """
        Look up an embedding.

        Returns:
            The cached vector, or None on miss, expiry or unreadable entry
        """
        key = cache_key(item_id, content_hash)
        now = self._clock()

        entry = self._memory.get(key)
        if entry is None and self._enabled:
            entry = await self._read_entry(self._path_for(key))
            if entry is not None and not entry.is_expired(now):
                async with self._lock:
                    self._memory[key] = entry
                    await self._evict_overflow()

        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired(now):
            await self._drop(key)
            self._expires += 1
            self._misses += 1
            logger.debug("Embedding cache entry expired: %s", key)
            return None

        self._hits += 1
        return list(entry.embedding)

    async def get_multiple(self, item_ids: Sequence[str]) -> dict[str, list[float]]:
        """Look up several items; misses are omitted from the result."""
        found: dict[str, list[float]] = {}
        for item_id in item_ids:
            vector = await self.get(item_id)
            if vector is not None:
                found[item_id] = vector
        return found

    # --- Writes ---

    async def set(
        self,
        item_id: str,
        embedding: Sequence[float],
        metadata: dict[str, Any] | None = None,
        content_hash: str | None = None,
    ) -> None:
        """
        Store an embedding in memory and, when enabled, on disk.

        Raises:
            DimensionMismatchError: If the vector length differs from the cache dimension
        """
        if self._dimension is not None and len(embedding) != self._dimension:
            raise DimensionMismatchError(
                expected=self._dimension,
                actual=len(embedding),
                item_id=item_id,
            )

        now = self._clock()
        entry = CacheEntry(
            item_id=item_id,
            embedding=list(embedding),
            content_hash=content_hash,
            metadata=metadata or {},
            created_at=now,
            expires_at=now + self._ttl,
        )
        key = cache_key(item_id, content_hash)

        async with self._lock:
            # Re-inserting moves the key to the end so ties evict the older write
            self._memory.pop(key, None)
            self._memory[key] = entry
            self._stores += 1
            if self._enabled:
                await self._write_entry(key, entry)
            await self._evict_overflow()

    async def set_multiple(
        self,
        embeddings: Mapping[str, Sequence[float]],
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """
        Store several embeddings; rejected items are logged and skipped.

        Returns:
            Number of entries stored
        """
        stored = 0
        for item_id, vector in embeddings.items():
            try:
                await self.set(item_id, vector, metadata)
                stored += 1
            except DimensionMismatchError as e:
                logger.warning("Skipping cache entry %s: %s", item_id, e.message)
        return stored

    async def delete(self, item_id: str, content_hash: str | None = None) -> bool:
        """Remove one entry from both layers; returns whether memory held it."""
        key = cache_key(item_id, content_hash)
        existed = key in self._memory
        await self._drop(key)
        return existed

    async def clear(self) -> None:
        """Remove every entry from both layers (the config file stays)."""
        async with self._lock:
            count = len(self._memory)
            self._memory.clear()
            if self._enabled and self._cache_dir.exists():
                for path in await asyncio.to_thread(self._entry_paths):
                    await self._unlink(path)
        logger.info("Cleared %d embedding cache entries", count)

    async def cleanup(self) -> int:
        """
        Remove expired entries from memory and disk.

        Returns:
            Number of distinct entries removed
        """
        now = self._clock()
        removed_files: set[str] = set()

        async with self._lock:
            expired_keys = [k for k, e in self._memory.items() if e.is_expired(now)]
            for key in expired_keys:
                del self._memory[key]
                if self._enabled:
                    path = self._path_for(key)
                    await self._unlink(path)
                    removed_files.add(path.name)

        removed = len(expired_keys)
        if self._enabled and self._cache_dir.exists():
            for path in await asyncio.to_thread(self._entry_paths):
                if path.name in removed_files:
                    continue
                entry = await self._read_entry(path)
                if entry is not None and entry.is_expired(now):
                    await self._unlink(path)
                    removed += 1

        self._expires += removed
        if removed:
            logger.info("Embedding cache cleanup removed %d expired entries", removed)
        return removed

    def stats(self) -> CacheStats:
        lookups = self._hits + self._misses
        size = len(self._memory)
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            stores=self._stores,
            expires=self._expires,
            evictions=self._evictions,
            hit_rate=self._hits / lookups if lookups else 0.0,
            size=size,
            max_size=self._max_size,
            utilization=size / self._max_size if self._max_size else 0.0,
        )

    # --- Internals ---

    def _path_for(self, key: str) -> Path:
        return self._cache_dir / cache_file_name(key)

    def _entry_paths(self) -> list[Path]:
        return sorted(p for p in self._cache_dir.glob("*.json") if p.name != CONFIG_FILENAME)

    async def _evict_overflow(self) -> None:
        """Evict oldest entries while over capacity (caller holds the lock)."""
        while len(self._memory) > self._max_size:
            # min() returns the first of equal created_at values, i.e. the earliest inserted
            oldest_key = min(self._memory, key=lambda k: self._memory[k].created_at)
            del self._memory[oldest_key]
            if self._enabled:
                await self._unlink(self._path_for(oldest_key))
            self._evictions += 1
            logger.debug("Evicted embedding cache entry: %s", oldest_key)

    async def _drop(self, key: str) -> None:
        async with self._lock:
            self._memory.pop(key, None)
            if self._enabled:
                await self._unlink(self._path_for(key))

    async def _read_entry(self, path: Path) -> CacheEntry | None:
        if not path.exists():
            return None
        try:
            return CacheEntry.model_validate(await asyncio.to_thread(read_json, path))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Embedding cache entry unreadable at %s: %s", path, e)
            return None

    async def _write_entry(self, key: str, entry: CacheEntry) -> None:
        try:
            await asyncio.to_thread(
                atomic_write_json, self._path_for(key), entry.model_dump(mode="json")
            )
        except StorageError as e:
            logger.warning("Embedding cache write failed for %s: %s", key, e.message)

    async def _unlink(self, path: Path) -> None:
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.warning("Could not delete embedding cache file %s: %s", path, e)
