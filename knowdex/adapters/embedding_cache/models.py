"""
Embedding Cache Models - Cached vectors, counters and on-disk configuration.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """One cached embedding."""

    item_id: str
    embedding: list[float]
    content_hash: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class CacheStats(BaseModel):
    """Cache counters since construction."""

    hits: int = 0
    misses: int = 0
    stores: int = 0
    expires: int = 0
    evictions: int = 0
    hit_rate: float = 0.0
    size: int = 0
    max_size: int = 0
    utilization: float = 0.0


class CacheConfig(BaseModel):
    """Contents of ``cache-config.json``."""

    max_size: int = Field(default=1000, ge=1, alias="maxSize")
    ttl_seconds: int = Field(default=7 * 24 * 3600, ge=1, alias="ttlSeconds")
    enabled: bool = True

    model_config = {"populate_by_name": True}
