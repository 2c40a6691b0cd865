"""
Search Routes - Funnel ranking and hybrid search over the indexed items.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from knowdex.adapters import JsonVectorStore
from knowdex.adapters.vector_store import SearchFilter
from knowdex.config.errors import DimensionMismatchError, KnowdexError, SearchError
from knowdex.domains.indexing import EmbeddingProvider
from knowdex.domains.search import (
    CoarseSignals,
    FunnelStage,
    RankingCandidate,
    RankingSignals,
    RetrievalFunnel,
    SearchContext,
    SessionTurn,
)
from knowdex.interfaces.api.deps import get_embedder, get_funnel, get_vector_store

logger = logging.getLogger(__name__)

router = APIRouter()


class SearchRequest(BaseModel):
    """Funnel search request body."""

    query: str = Field(..., min_length=1, description="Search query")
    limit: int = Field(default=10, ge=1, le=100)
    scenario: str | None = Field(default=None, description="lint, generate, search, learning")
    intent: str | None = None
    language: str | None = None
    category: str | None = None
    user_level: str | None = None
    session_history: list[SessionTurn] = Field(default_factory=list)


class SearchResultItem(BaseModel):
    """Single ranked result with its score breakdown."""

    id: str
    title: str
    content: str
    language: str | None = None
    category: str | None = None
    source_path: str | None = None
    score: float
    keyword_score: float | None = None
    semantic_score: float | None = None
    coarse_score: float | None = None
    ranker_score: float | None = None
    context_score: float | None = None
    coarse_signals: CoarseSignals | None = None
    signals: RankingSignals | None = None


class SearchResponse(BaseModel):
    """Funnel search response."""

    query: str
    scenario: str
    results: list[SearchResultItem]
    total: int
    stages: list[FunnelStage]


class HybridSearchRequest(BaseModel):
    """Hybrid search request body."""

    query: str = Field(..., min_length=1)
    top_k: int = Field(default=10, ge=1, le=100)
    filter: SearchFilter | None = None


class HybridResultItem(BaseModel):
    id: str
    score: float
    vector_score: float
    keyword_score: float
    content: str
    source_path: str | None = None


class HybridSearchResponse(BaseModel):
    query: str
    results: list[HybridResultItem]
    total: int
    keyword_only: bool


def _final_score(candidate: RankingCandidate) -> float:
    for score in (candidate.context_score, candidate.ranker_score, candidate.coarse_score):
        if score is not None:
            return score
    return 0.0


def _to_result(candidate: RankingCandidate) -> SearchResultItem:
    return SearchResultItem(
        id=candidate.id,
        title=candidate.title,
        content=candidate.content[:500],
        language=candidate.language,
        category=candidate.category,
        source_path=candidate.metadata.get("source_path"),
        score=_final_score(candidate),
        keyword_score=candidate.keyword_score,
        semantic_score=candidate.semantic_score,
        coarse_score=candidate.coarse_score,
        ranker_score=candidate.ranker_score,
        context_score=candidate.context_score,
        coarse_signals=candidate.coarse_signals,
        signals=candidate.signals,
    )


@router.post("", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    store: JsonVectorStore = Depends(get_vector_store),
    funnel: RetrievalFunnel = Depends(get_funnel),
):
    """
    Rank every indexed item through the retrieval funnel.

    - **query**: Search query text
    - **limit**: Maximum results (1-100)
    - **scenario**: Weight table for the multi-signal stage
    - **session_history**: Prior turns used for context rerank
    """
    if not request.query.strip():
        raise SearchError("Query must contain non-whitespace text", {"query": request.query})

    items = await store.list_items()
    candidates = [RankingCandidate.from_item(item) for item in items]
    context = SearchContext(
        scenario=request.scenario,
        intent=request.intent,
        language=request.language,
        category=request.category,
        user_level=request.user_level,
        session_history=request.session_history,
    )

    result = await funnel.execute_with_trace(request.query, candidates, context)
    results = [_to_result(c) for c in result.candidates[: request.limit]]

    return SearchResponse(
        query=request.query,
        scenario=result.scenario,
        results=results,
        total=len(result.candidates),
        stages=result.stages,
    )


@router.post("/hybrid", response_model=HybridSearchResponse)
async def hybrid_search(
    request: HybridSearchRequest,
    store: JsonVectorStore = Depends(get_vector_store),
    embedder: EmbeddingProvider | None = Depends(get_embedder),
):
    """
    Blend vector similarity (0.7) with keyword overlap (0.3).

    Falls back to keyword-only scoring when no embedding is available.
    """
    vector: list[float] = []
    if embedder is not None:
        try:
            vector = await embedder.embed(request.query)
        except KnowdexError as e:
            logger.warning("Query embedding failed, using keyword-only scoring: %s", e.message)

    try:
        hits = await store.hybrid_search(vector, request.query, request.top_k, request.filter)
    except DimensionMismatchError as e:
        logger.warning("Query vector rejected, using keyword-only scoring: %s", e.message)
        vector = []
        hits = await store.hybrid_search(vector, request.query, request.top_k, request.filter)

    results = [
        HybridResultItem(
            id=hit.id,
            score=hit.score,
            vector_score=hit.vector_score,
            keyword_score=hit.keyword_score,
            content=hit.item.content[:500],
            source_path=hit.item.metadata.source_path or None,
        )
        for hit in hits
    ]
    return HybridSearchResponse(
        query=request.query,
        results=results,
        total=len(results),
        keyword_only=not vector,
    )
