"""
Index Manifest - Index-level metadata stored beside the item collection.

One manifest exists per vector store. A manifest whose schema version differs
from ``SCHEMA_VERSION`` marks the store as absent: it is rebuilt from scratch,
never migrated in place.

Usage:
    from knowdex.config.manifest import ManifestStore

    manifests = ManifestStore(index_dir / "manifest.json")
    manifest = await manifests.update(count=42, embedding_model="all-MiniLM-L6-v2")
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import StorageError

logger = logging.getLogger(__name__)

__all__ = [
    "SCHEMA_VERSION",
    "IndexManifest",
    "ManifestStore",
    "atomic_write_json",
    "read_json",
    "utc_now_iso",
]

SCHEMA_VERSION = 2


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class IndexManifest:
    """Index-level metadata (counts, versions, embedding model)."""

    schema_version: int = SCHEMA_VERSION
    index_version: int = 0
    count: int = 0
    updated_at: str | None = None
    embedding_model: str | None = None
    embedding_dimension: int | None = None
    storage_adapter: str = "json"
    last_full_rebuild: str | None = None
    sources: list[str] = field(default_factory=list)

    @property
    def is_current(self) -> bool:
        """Whether the manifest was written by this schema version."""
        return self.schema_version == SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexManifest:
        """Create manifest from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def atomic_write_json(path: Path, data: Any) -> None:
    """
    Write JSON through a temporary file and ``os.replace``.

    A crash or cancellation mid-write leaves either the old file or the new
    one on disk, never a truncated file.
    """
    tmp_path = path.with_name(f"{path.name}.tmp.{os.getpid()}")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise StorageError(f"Failed to write {path}", {"error": str(e)}) from e


def read_json(path: Path) -> Any:
    """Read a JSON file (sync helper for to_thread)."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class ManifestStore:
    """
    Single-writer access to one manifest file.

    Read-modify-write cycles are serialised with an asyncio lock so that
    concurrent callers never overwrite the manifest with a stale count.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    async def read(self) -> IndexManifest | None:
        """
        Read the manifest.

        Returns:
            The manifest, or None when the file is missing or corrupt
        """
        if not self._path.exists():
            return None
        try:
            data = await asyncio.to_thread(read_json, self._path)
        except (OSError, ValueError) as e:
            logger.warning("Manifest unreadable at %s: %s", self._path, e)
            return None
        if not isinstance(data, dict) or not isinstance(data.get("schema_version"), int):
            logger.warning("Manifest at %s has no schema version", self._path)
            return None
        return IndexManifest.from_dict(data)

    async def write(self, manifest: IndexManifest) -> None:
        """Write the manifest, stamping ``updated_at``."""
        async with self._lock:
            await self._write_unlocked(manifest)

    async def update(self, **changes: Any) -> IndexManifest:
        """
        Apply changes to the current manifest and persist it.

        A missing, corrupt or outdated manifest is replaced by a fresh one
        before the changes are applied.

        Args:
            **changes: Manifest fields to overwrite

        Returns:
            The manifest as written
        """
        async with self._lock:
            manifest = await self.read()
            if manifest is None or not manifest.is_current:
                manifest = IndexManifest()
            for key, value in changes.items():
                if not hasattr(manifest, key):
                    raise ValueError(f"Unknown manifest field: {key}")
                setattr(manifest, key, value)
            await self._write_unlocked(manifest)
            return manifest

    async def _write_unlocked(self, manifest: IndexManifest) -> None:
        manifest.updated_at = utc_now_iso()
        await asyncio.to_thread(atomic_write_json, self._path, manifest.to_dict())
        logger.debug("Manifest written to %s (count=%d)", self._path, manifest.count)
