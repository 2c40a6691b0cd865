"""
Coarse Ranker - Five-signal quality-weighted first-pass ranking.

coarse_score = 0.30*bm25 + 0.30*semantic + 0.20*quality + 0.10*freshness + 0.10*popularity
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone

from .models import CoarseSignals, CoarseWeights, RankingCandidate

logger = logging.getLogger(__name__)

__all__ = [
    "CoarseRanker",
    "compute_quality",
    "compute_freshness",
    "compute_popularity",
    "age_in_days",
]

FRESHNESS_HALF_LIFE_DAYS = 180.0
MIN_REASONABLE_LINES = 3
MAX_REASONABLE_LINES = 500

_COMMENT_PREFIXES = ("//", "#", "/*", "*", "<!--")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def age_in_days(updated_at: datetime, now: datetime) -> float:
    """Age of a timestamp; naive datetimes are taken as UTC."""
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return (now - updated_at).total_seconds() / 86400.0


def _has_comments(text: str) -> bool:
    return any(line.strip().startswith(_COMMENT_PREFIXES) for line in text.splitlines())


def compute_quality(candidate: RankingCandidate) -> float:
    """
    Structural completeness score.

    Three weighted groups: presence of title/content/description (40%),
    classification metadata (30%), and code readability (30%).
    """
    body = candidate.code or candidate.content
    lines = [line for line in body.splitlines() if line.strip()]

    presence = (
        0.15 * bool(candidate.title)
        + 0.15 * bool(candidate.content)
        + 0.10 * bool(candidate.description)
    )
    classification = (
        0.10 * bool(candidate.category)
        + 0.10 * bool(candidate.language)
        + 0.10 * bool(candidate.tags)
    )
    readability = 0.15 * _has_comments(body) + 0.15 * (
        MIN_REASONABLE_LINES <= len(lines) <= MAX_REASONABLE_LINES
    )
    return 0.40 * presence + 0.30 * classification + 0.30 * readability


def compute_freshness(updated_at: datetime | None, now: datetime) -> float:
    """Exponential decay with a 180-day half-life; 0.5 when unknown."""
    if updated_at is None:
        return 0.5
    days = age_in_days(updated_at, now)
    return _clamp(math.exp(-math.log(2) * days / FRESHNESS_HALF_LIFE_DAYS))


def compute_popularity(usage_count: int) -> float:
    """Log-scaled usage: 1 use ~ 0.1, 1000 uses ~ 1.0."""
    if usage_count <= 0:
        return 0.0
    return min(math.log10(usage_count + 1) / 3, 1.0)


class CoarseRanker:
    """
    First-pass ranker over lexical, semantic and quality signals.

    Example:
        >>> ranker = CoarseRanker()
        >>> ranked = ranker.rank(candidates)
        >>> ranked[0].coarse_signals.quality
    """

    def __init__(
        self,
        weights: CoarseWeights | Mapping[str, float] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize ranker.

        Args:
            weights: Signal weights; a mapping overrides individual defaults
            clock: Time source for freshness (defaults to UTC now)
        """
        if weights is None:
            weights = CoarseWeights()
        elif not isinstance(weights, CoarseWeights):
            weights = CoarseWeights(**weights)
        self._weights = weights
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def weights(self) -> CoarseWeights:
        return self._weights

    def signals(self, candidate: RankingCandidate, now: datetime | None = None) -> CoarseSignals:
        now = now or self._clock()
        return CoarseSignals(
            bm25=_clamp(candidate.lexical_score),
            semantic=_clamp(candidate.semantic_score or 0.0),
            quality=_clamp(compute_quality(candidate)),
            freshness=compute_freshness(candidate.updated_at, now),
            popularity=compute_popularity(candidate.usage_count),
        )

    def score(self, signals: CoarseSignals) -> float:
        w = self._weights
        return (
            w.bm25 * signals.bm25
            + w.semantic * signals.semantic
            + w.quality * signals.quality
            + w.freshness * signals.freshness
            + w.popularity * signals.popularity
        )

    def rank(self, candidates: Sequence[RankingCandidate]) -> list[RankingCandidate]:
        """Score candidates and sort by ``coarse_score`` descending (stable)."""
        now = self._clock()
        ranked = []
        for candidate in candidates:
            signals = self.signals(candidate, now)
            ranked.append(
                candidate.model_copy(
                    update={"coarse_score": self.score(signals), "coarse_signals": signals}
                )
            )
        ranked.sort(key=lambda c: c.coarse_score or 0.0, reverse=True)
        logger.debug("Coarse ranked %d candidates", len(ranked))
        return ranked
