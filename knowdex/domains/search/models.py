"""
Search Models - Data types for the retrieval funnel and rankers.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from knowdex.adapters.vector_store import IndexedItem


class Scenario(str, Enum):
    """Scenarios that ship with a default multi-signal weight table."""

    LINT = "lint"
    GENERATE = "generate"
    SEARCH = "search"
    LEARNING = "learning"
    DEFAULT = "default"


class CoarseSignals(BaseModel):
    """Per-signal breakdown of the coarse ranking stage."""

    bm25: float = 0.0
    semantic: float = 0.0
    quality: float = 0.0
    freshness: float = 0.0
    popularity: float = 0.0


class RankingSignals(BaseModel):
    """Per-signal breakdown of the multi-signal ranking stage."""

    relevance: float = 0.0
    authority: float = 0.0
    recency: float = 0.0
    popularity: float = 0.0
    difficulty: float = 0.0
    seasonality: float = 0.0


class RankingCandidate(BaseModel):
    """
    A retrievable item travelling through the funnel.

    Every stage returns copies with additional score fields; fields set by an
    earlier stage are never cleared. Unknown fields passed by callers are kept.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    trigger: str = ""
    content: str = ""
    code: str = ""
    description: str = ""
    category: str | None = None
    language: str | None = None
    tags: list[str] = Field(default_factory=list)
    difficulty: str | None = None
    usage_count: int = 0
    quality_score: float | None = None  # 0-100
    authority_score: float | None = None  # 0-1
    ctr: float = 0.0
    updated_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Stage outputs
    bm25_score: float | None = None
    keyword_score: float | None = None
    semantic_score: float | None = None
    coarse_score: float | None = None
    coarse_signals: CoarseSignals | None = None
    ranker_score: float | None = None
    signals: RankingSignals | None = None
    context_score: float | None = None
    context_boost: float | None = None

    @property
    def lexical_score(self) -> float:
        """BM25 score if present, otherwise the keyword score, otherwise 0."""
        if self.bm25_score is not None:
            return self.bm25_score
        return self.keyword_score or 0.0

    @classmethod
    def from_item(cls, item: IndexedItem) -> RankingCandidate:
        """Build a candidate from a stored item."""
        meta = item.metadata
        return cls(
            id=item.id,
            title=meta.section_title or meta.source_path or item.id,
            content=item.content,
            category=meta.category,
            language=meta.language,
            tags=sorted(meta.tags),
            updated_at=meta.updated_at,
            metadata={
                "source_type": meta.source_type,
                "source_path": meta.source_path,
                "chunk_index": meta.chunk_index,
                "parent_id": item.parent_id,
                "priority": meta.priority,
            },
        )


class SessionTurn(BaseModel):
    """One turn of conversation history."""

    content: str = ""
    raw_input: str = ""

    @property
    def text(self) -> str:
        return self.content or self.raw_input


class SearchContext(BaseModel):
    """Query-time context for ranking."""

    query: str = ""
    scenario: str | None = None
    intent: str | None = None
    language: str | None = None
    category: str | None = None
    user_level: str | None = None
    session_history: list[SessionTurn] = Field(default_factory=list)

    @property
    def scenario_name(self) -> str:
        """Requested scenario, falling back to intent and then ``default``."""
        return self.scenario or self.intent or Scenario.DEFAULT.value


class CoarseWeights(BaseModel):
    """Weights for the coarse ranking stage (defaults sum to 1.0)."""

    bm25: float = Field(default=0.30, ge=0.0)
    semantic: float = Field(default=0.30, ge=0.0)
    quality: float = Field(default=0.20, ge=0.0)
    freshness: float = Field(default=0.10, ge=0.0)
    popularity: float = Field(default=0.10, ge=0.0)

    model_config = {"frozen": True}


class ScenarioWeights(BaseModel):
    """Weight table for the six ranking signals of one scenario."""

    relevance: float = Field(ge=0.0)
    authority: float = Field(ge=0.0)
    recency: float = Field(ge=0.0)
    popularity: float = Field(ge=0.0)
    difficulty: float = Field(ge=0.0)
    seasonality: float = Field(ge=0.0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_sum(self) -> ScenarioWeights:
        """Weights of one table must sum to 1.0."""
        total = sum(self.as_dict().values())
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"scenario weights must sum to 1.0, got {total:.4f}")
        return self

    def as_dict(self) -> dict[str, float]:
        return {
            "relevance": self.relevance,
            "authority": self.authority,
            "recency": self.recency,
            "popularity": self.popularity,
            "difficulty": self.difficulty,
            "seasonality": self.seasonality,
        }


class FunnelStage(BaseModel):
    """Execution record of one funnel stage."""

    name: str
    input_count: int
    output_count: int
    duration_ms: float = 0.0
    fallback: bool = False


class FunnelResult(BaseModel):
    """Ranked candidates plus a per-stage trace."""

    query: str
    candidates: list[RankingCandidate]
    stages: list[FunnelStage] = Field(default_factory=list)
    scenario: str = Scenario.DEFAULT.value
