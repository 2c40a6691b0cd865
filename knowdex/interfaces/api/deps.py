"""
API Dependencies - Dependency injection for FastAPI routes.

Provides singleton instances of the store, cache, embedder and the services
built on them. The CLI shares the same wiring.
"""

from __future__ import annotations

from functools import lru_cache

from knowdex.adapters import EmbeddingCache, JsonVectorStore, create_embedding_provider
from knowdex.adapters.embedding_cache import CacheConfig
from knowdex.config import get_settings
from knowdex.domains.indexing import DirectorySource, EmbeddingProvider, IndexingPipeline, MarkdownChunker
from knowdex.domains.search import CoarseRanker, MultiSignalRanker, RetrievalFunnel


@lru_cache
def get_vector_store() -> JsonVectorStore:
    """Get vector store singleton."""
    settings = get_settings()
    dimension = settings.embedding_dimension if settings.embedding_provider != "none" else None
    return JsonVectorStore(settings.index_path, dimension=dimension)


@lru_cache
def get_embedder() -> EmbeddingProvider | None:
    """Get embedding provider singleton (None when disabled)."""
    return create_embedding_provider(get_settings())


@lru_cache
def get_embedding_cache() -> EmbeddingCache:
    """Get embedding cache singleton, configured by cache-config.json (Settings as defaults)."""
    settings = get_settings()
    dimension = settings.embedding_dimension if settings.embedding_provider != "none" else None
    defaults = CacheConfig(
        max_size=settings.cache_max_size,
        ttl_seconds=settings.cache_ttl_seconds,
        enabled=settings.cache_enabled,
    )
    return EmbeddingCache.from_config_file(settings.cache_path, dimension=dimension, defaults=defaults)


@lru_cache
def get_funnel() -> RetrievalFunnel:
    """Get retrieval funnel singleton."""
    settings = get_settings()
    return RetrievalFunnel(
        vector_store=get_vector_store(),
        embedder=get_embedder(),
        coarse_ranker=CoarseRanker(settings.coarse_weights or None),
        multi_signal_ranker=MultiSignalRanker(settings.scenario_weights or None),
    )


@lru_cache
def get_pipeline() -> IndexingPipeline:
    """Get indexing pipeline singleton."""
    settings = get_settings()
    return IndexingPipeline(
        store=get_vector_store(),
        source=DirectorySource(settings.project_root, scan_dirs=settings.scan_dirs),
        chunker=MarkdownChunker(
            strategy=settings.chunk_strategy,
            max_chunk_tokens=settings.max_chunk_tokens,
            overlap_tokens=settings.chunk_overlap_tokens,
        ),
        embedder=get_embedder(),
        cache=get_embedding_cache(),
        max_concurrency=settings.index_concurrency,
        embed_timeout=settings.embed_timeout_seconds,
        sources=list(settings.scan_dirs),
    )


async def init_services() -> None:
    """
    Load persisted state on startup.

    This should be called from the FastAPI lifespan handler (and once per CLI
    command).
    """
    await get_vector_store().load()
    await get_embedding_cache().load()


async def cleanup_services() -> None:
    """Release provider connections on shutdown."""
    embedder = get_embedder()
    close = getattr(embedder, "close", None)
    if close is not None:
        await close()
