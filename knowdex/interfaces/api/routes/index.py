"""
Index Routes - Store statistics and pipeline runs.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from knowdex.adapters import EmbeddingCache, JsonVectorStore
from knowdex.adapters.embedding_cache import CacheStats
from knowdex.adapters.vector_store import StoreStats
from knowdex.domains.indexing import IndexingPipeline, IndexRunStats
from knowdex.interfaces.api.deps import get_embedding_cache, get_pipeline, get_vector_store

router = APIRouter()


class IndexRunRequest(BaseModel):
    force: bool = False
    dry_run: bool = False


class IndexStatsResponse(BaseModel):
    store: StoreStats
    manifest: dict[str, Any] | None = None
    cache: CacheStats


@router.get("/stats", response_model=IndexStatsResponse)
async def index_stats(
    store: JsonVectorStore = Depends(get_vector_store),
    cache: EmbeddingCache = Depends(get_embedding_cache),
):
    """Item counts, manifest and embedding cache counters."""
    manifest = await store.manifests.read()
    return IndexStatsResponse(
        store=await store.get_stats(),
        manifest=manifest.to_dict() if manifest else None,
        cache=cache.stats(),
    )


@router.post("/run", response_model=IndexRunStats)
async def run_index(
    request: IndexRunRequest,
    pipeline: IndexingPipeline = Depends(get_pipeline),
):
    """
    Run the indexing pipeline once.

    - **force**: Re-embed and rewrite every chunk
    - **dry_run**: Compute everything but write nothing
    """
    return await pipeline.run(force=request.force, dry_run=request.dry_run)
