"""
Ranking Signals - One small class per multi-signal ranking signal.

Each signal maps a candidate (and the query context) to [0, 1]. Signals are
looked up by name in ``SIGNAL_REGISTRY``.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import datetime, timezone

from .coarse_ranker import age_in_days
from .contracts import Signal
from .models import RankingCandidate, SearchContext

__all__ = [
    "RelevanceSignal",
    "AuthoritySignal",
    "RecencySignal",
    "PopularitySignal",
    "DifficultySignal",
    "SeasonalitySignal",
    "SIGNAL_REGISTRY",
    "DIFFICULTY_LEVELS",
    "default_signals",
]

DIFFICULTY_LEVELS = {"beginner": 1, "intermediate": 2, "advanced": 3, "expert": 4}
RECENCY_HALF_LIFE_DAYS = 90.0


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _log_usage(usage_count: int) -> float:
    if usage_count <= 0:
        return 0.0
    return min(math.log10(usage_count + 1) / 3, 1.0)


class RelevanceSignal:
    """Lexical score plus trigger, title and content match boosts."""

    def compute(self, candidate: RankingCandidate, context: SearchContext) -> float:
        score = candidate.lexical_score
        query = context.query.lower().strip()
        if not query:
            return _clamp(score)

        title = candidate.title.lower()
        trigger = candidate.trigger.lower()
        content = (candidate.content or candidate.code).lower()

        if trigger and query in trigger:
            score += 0.4
        if query in title:
            score += 0.3
        words = query.split()
        score += sum(1 for w in words if w in title) / len(words) * 0.2
        if query in content:
            score += 0.1
        return _clamp(score)


class AuthoritySignal:
    """Stored quality, authority and usage; 0.5 when none is known."""

    def compute(self, candidate: RankingCandidate, context: SearchContext) -> float:
        score = 0.0
        if candidate.quality_score:
            score += candidate.quality_score / 100 * 0.5
        if candidate.authority_score:
            score += candidate.authority_score * 0.3
        score += _log_usage(candidate.usage_count) * 0.2
        return _clamp(score or 0.5)


class RecencySignal:
    """Exponential decay with a 90-day half-life."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def compute(self, candidate: RankingCandidate, context: SearchContext) -> float:
        if candidate.updated_at is None:
            return 0.5
        days = age_in_days(candidate.updated_at, self._clock())
        return _clamp(math.exp(-math.log(2) * days / RECENCY_HALF_LIFE_DAYS))


class PopularitySignal:
    """Log-scaled usage blended with click-through rate."""

    def compute(self, candidate: RankingCandidate, context: SearchContext) -> float:
        return _clamp(_log_usage(candidate.usage_count) * 0.7 + candidate.ctr * 0.3)


class DifficultySignal:
    """Closeness of the candidate's level to the user's level."""

    def compute(self, candidate: RankingCandidate, context: SearchContext) -> float:
        candidate_level = DIFFICULTY_LEVELS.get((candidate.difficulty or "").lower(), 2)
        user_level = DIFFICULTY_LEVELS.get((context.user_level or "").lower(), 2)
        return max(0.0, 1 - abs(candidate_level - user_level) * 0.3)


class SeasonalitySignal:
    """Language or category match with the query context."""

    def compute(self, candidate: RankingCandidate, context: SearchContext) -> float:
        if context.language and candidate.language == context.language:
            return 0.8
        if context.category and candidate.category == context.category:
            return 0.6
        return 0.5


SIGNAL_REGISTRY: dict[str, type[Signal]] = {
    "relevance": RelevanceSignal,
    "authority": AuthoritySignal,
    "recency": RecencySignal,
    "popularity": PopularitySignal,
    "difficulty": DifficultySignal,
    "seasonality": SeasonalitySignal,
}


def default_signals(clock: Callable[[], datetime] | None = None) -> dict[str, Signal]:
    """Instantiate every registered signal."""
    signals: dict[str, Signal] = {}
    for name, signal_cls in SIGNAL_REGISTRY.items():
        signals[name] = RecencySignal(clock) if signal_cls is RecencySignal else signal_cls()
    return signals
