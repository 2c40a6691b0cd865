"""
Multi-Signal Ranker - Six-signal, scenario-weighted second-pass ranking.

Scenarios select a weight table; unknown scenarios use ``default``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime

from .contracts import Signal
from .models import RankingCandidate, RankingSignals, ScenarioWeights, SearchContext
from .signals import default_signals

logger = logging.getLogger(__name__)

__all__ = ["MultiSignalRanker", "DEFAULT_SCENARIO_WEIGHTS"]

DEFAULT_SCENARIO_WEIGHTS: dict[str, ScenarioWeights] = {
    "lint": ScenarioWeights(
        relevance=0.40, authority=0.25, recency=0.15, popularity=0.10, difficulty=0.05, seasonality=0.05
    ),
    "generate": ScenarioWeights(
        relevance=0.30, authority=0.20, recency=0.10, popularity=0.20, difficulty=0.10, seasonality=0.10
    ),
    "search": ScenarioWeights(
        relevance=0.30, authority=0.20, recency=0.15, popularity=0.15, difficulty=0.10, seasonality=0.10
    ),
    "learning": ScenarioWeights(
        relevance=0.20, authority=0.15, recency=0.05, popularity=0.10, difficulty=0.30, seasonality=0.20
    ),
    "default": ScenarioWeights(
        relevance=0.30, authority=0.20, recency=0.15, popularity=0.15, difficulty=0.10, seasonality=0.10
    ),
}


class MultiSignalRanker:
    """
    Scenario-aware ranker over six signals.

    Example:
        >>> ranker = MultiSignalRanker()
        >>> ranked = ranker.rank(candidates, SearchContext(query="singleton", scenario="lint"))
        >>> ranked[0].signals.relevance
    """

    def __init__(
        self,
        scenario_weights: Mapping[str, ScenarioWeights | Mapping[str, float]] | None = None,
        signals: Mapping[str, Signal] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize ranker.

        Args:
            scenario_weights: Tables merged over the defaults; each is validated
                (six non-negative weights summing to 1.0)
            signals: Signal implementations by name (defaults to the registry)
            clock: Time source for the recency signal

        Raises:
            pydantic.ValidationError: If an override table is invalid
        """
        tables = dict(DEFAULT_SCENARIO_WEIGHTS)
        for name, table in (scenario_weights or {}).items():
            tables[name] = table if isinstance(table, ScenarioWeights) else ScenarioWeights(**table)
        self._tables = tables
        self._signals = dict(signals) if signals is not None else default_signals(clock)

    @property
    def scenarios(self) -> list[str]:
        return list(self._tables)

    def resolve_scenario(self, context: SearchContext) -> str:
        """Scenario name used for ``context``; unknown names resolve to default."""
        name = context.scenario_name
        if name not in self._tables:
            logger.debug("Unknown scenario %r, using default weights", name)
            return "default"
        return name

    def weights_for(self, scenario: str) -> ScenarioWeights:
        return self._tables.get(scenario, self._tables["default"])

    def rank(
        self,
        candidates: Sequence[RankingCandidate],
        context: SearchContext | None = None,
    ) -> list[RankingCandidate]:
        """Score candidates and sort by ``ranker_score`` descending (stable)."""
        if not candidates:
            return []
        context = context or SearchContext()
        weights = self.weights_for(self.resolve_scenario(context)).as_dict()

        ranked = []
        for candidate in candidates:
            values = {name: signal.compute(candidate, context) for name, signal in self._signals.items()}
            total = sum(value * weights.get(name, 0.0) for name, value in values.items())
            known = {k: v for k, v in values.items() if k in RankingSignals.model_fields}
            ranked.append(
                candidate.model_copy(
                    update={"ranker_score": total, "signals": RankingSignals(**known)}
                )
            )
        ranked.sort(key=lambda c: c.ranker_score or 0.0, reverse=True)
        return ranked
