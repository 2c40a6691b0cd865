"""
Retrieval Funnel - Multi-stage query pipeline over a candidate set.

Stages:
1. Keyword filter (inverted index OR-lookup, full set when nothing matches)
2. Semantic rerank (vector similarity, Jaccard fallback)
3. Coarse ranking
4. Multi-signal ranking
5. Context-aware rerank (only with session history)

Every stage adds score fields to copies of the candidates; none is removed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

from .coarse_ranker import CoarseRanker
from .inverted_index import InvertedIndex, searchable_text
from .models import FunnelResult, FunnelStage, RankingCandidate, SearchContext
from .multi_signal_ranker import MultiSignalRanker
from .tokenizer import token_set, tokenize

if TYPE_CHECKING:
    from .contracts import QueryEmbedder, VectorQueryable

logger = logging.getLogger(__name__)

__all__ = ["RetrievalFunnel", "jaccard_similarity"]

SESSION_BOOST = 0.2
SESSION_OVERLAP_CAP = 5
LANGUAGE_BOOST = 0.1


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    """Intersection over union of two token sets."""
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def _semantic_text(candidate: RankingCandidate) -> str:
    parts = [
        candidate.title,
        candidate.trigger,
        candidate.content,
        candidate.code,
        candidate.description,
    ]
    return " ".join(p for p in parts if p)


class RetrievalFunnel:
    """
    Composes keyword recall and the rankers into one query pipeline.

    Example:
        >>> funnel = RetrievalFunnel(vector_store=store, embedder=embedder)
        >>> results = await funnel.execute("singleton", candidates, SearchContext(language="swift"))
    """

    def __init__(
        self,
        vector_store: VectorQueryable | None = None,
        embedder: QueryEmbedder | None = None,
        coarse_ranker: CoarseRanker | None = None,
        multi_signal_ranker: MultiSignalRanker | None = None,
    ) -> None:
        """
        Initialize funnel.

        Args:
            vector_store: Store queried for semantic similarity (optional)
            embedder: Query embedder (optional; both are needed for vector rerank)
            coarse_ranker: First-pass ranker
            multi_signal_ranker: Scenario-weighted ranker
        """
        self._store = vector_store
        self._embedder = embedder
        self._coarse = coarse_ranker or CoarseRanker()
        self._ranker = multi_signal_ranker or MultiSignalRanker()

    async def execute(
        self,
        query: str,
        candidates: Sequence[RankingCandidate],
        context: SearchContext | None = None,
    ) -> list[RankingCandidate]:
        """Run the funnel and return ranked candidates."""
        result = await self.execute_with_trace(query, candidates, context)
        return result.candidates

    async def execute_with_trace(
        self,
        query: str,
        candidates: Sequence[RankingCandidate],
        context: SearchContext | None = None,
    ) -> FunnelResult:
        """
        Run the funnel, recording each stage.

        Args:
            query: Query text
            candidates: Full candidate set
            context: Scenario, language, user level and session history

        Returns:
            FunnelResult with ranked candidates and stage records
        """
        context = (context or SearchContext()).model_copy(update={"query": query})
        scenario = self._ranker.resolve_scenario(context)

        if not candidates:
            return FunnelResult(query=query, candidates=[], scenario=scenario)
        if not query or not query.strip():
            return FunnelResult(query=query, candidates=list(candidates), scenario=scenario)

        stages: list[FunnelStage] = []

        start = time.perf_counter()
        results, fallback = self._keyword_filter(query, candidates)
        stages.append(_stage("keyword", len(candidates), results, start, fallback))

        start = time.perf_counter()
        count = len(results)
        results, fallback = await self._semantic_rerank(query, results)
        stages.append(_stage("semantic", count, results, start, fallback))

        start = time.perf_counter()
        results = self._coarse.rank(results)
        stages.append(_stage("coarse", count, results, start))

        start = time.perf_counter()
        results = self._ranker.rank(results, context)
        stages.append(_stage("multi_signal", count, results, start))

        if context.session_history:
            start = time.perf_counter()
            results = self._context_rerank(results, context)
            stages.append(_stage("context", count, results, start))

        logger.debug(
            "Funnel %r: %d -> %d candidates (scenario=%s)",
            query,
            len(candidates),
            len(results),
            scenario,
        )
        return FunnelResult(query=query, candidates=results, stages=stages, scenario=scenario)

    # --- Stages ---

    def _keyword_filter(
        self,
        query: str,
        candidates: Sequence[RankingCandidate],
    ) -> tuple[list[RankingCandidate], bool]:
        """Inverted-index recall; the whole set when no candidate matches."""
        query_tokens = set(tokenize(query))
        index = InvertedIndex.from_candidates(candidates)
        matched = index.lookup(query)

        fallback = not matched
        selected = list(candidates) if fallback else [candidates[i] for i in matched]
        if fallback:
            logger.debug("No keyword matches for %r, keeping all %d candidates", query, len(candidates))

        return [self._with_keyword_score(c, query_tokens) for c in selected], fallback

    @staticmethod
    def _with_keyword_score(candidate: RankingCandidate, query_tokens: set[str]) -> RankingCandidate:
        if candidate.keyword_score is not None or not query_tokens:
            return candidate
        matched = len(query_tokens & token_set(searchable_text(candidate)))
        return candidate.model_copy(update={"keyword_score": matched / len(query_tokens)})

    async def _semantic_rerank(
        self,
        query: str,
        candidates: list[RankingCandidate],
    ) -> tuple[list[RankingCandidate], bool]:
        """Vector similarity when available, Jaccard otherwise."""
        if self._store is not None and self._embedder is not None:
            try:
                embedding = await self._embedder.embed(query)
                if embedding:
                    k = max(len(candidates), self._store.size)
                    hits = await self._store.query(embedding, k=k)
                    if hits:
                        scores = {hit.id: hit.similarity for hit in hits}
                        reranked = [
                            c.model_copy(update={"semantic_score": scores.get(c.id, 0.0)})
                            for c in candidates
                        ]
                        reranked.sort(key=lambda c: c.semantic_score or 0.0, reverse=True)
                        return reranked, False
                logger.debug("No vector hits for %r, using Jaccard", query)
            except Exception as e:
                logger.warning("Semantic rerank failed, falling back to Jaccard: %s", e)

        return self._jaccard_rerank(query, candidates), True

    @staticmethod
    def _jaccard_rerank(query: str, candidates: list[RankingCandidate]) -> list[RankingCandidate]:
        query_tokens = token_set(query)
        if not query_tokens:
            return candidates
        reranked = [
            c.model_copy(
                update={
                    "semantic_score": jaccard_similarity(query_tokens, token_set(_semantic_text(c)))
                }
            )
            for c in candidates
        ]
        reranked.sort(key=lambda c: c.semantic_score or 0.0, reverse=True)
        return reranked

    @staticmethod
    def _context_rerank(
        candidates: list[RankingCandidate],
        context: SearchContext,
    ) -> list[RankingCandidate]:
        """Boost candidates that overlap the session or match the language."""
        session_tokens: set[str] = set()
        for turn in context.session_history:
            session_tokens.update(tokenize(turn.text))

        reranked = []
        for candidate in candidates:
            text = " ".join(p for p in (candidate.title, candidate.trigger, candidate.content) if p)
            overlap = sum(1 for t in tokenize(text) if t in session_tokens)

            boost = 0.0
            if overlap > 0:
                boost += SESSION_BOOST * min(overlap / SESSION_OVERLAP_CAP, 1.0)
            if context.language and candidate.language == context.language:
                boost += LANGUAGE_BOOST

            base = candidate.ranker_score or candidate.coarse_score or 0.0
            reranked.append(
                candidate.model_copy(
                    update={"context_score": base * (1 + boost), "context_boost": boost}
                )
            )
        reranked.sort(key=lambda c: c.context_score or 0.0, reverse=True)
        return reranked


def _stage(
    name: str,
    input_count: int,
    results: Sequence[RankingCandidate],
    start: float,
    fallback: bool = False,
) -> FunnelStage:
    return FunnelStage(
        name=name,
        input_count=input_count,
        output_count=len(results),
        duration_ms=(time.perf_counter() - start) * 1000,
        fallback=fallback,
    )
