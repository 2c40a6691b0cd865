"""
Search Domain - Keyword recall and multi-stage ranking.

This domain handles:
- Tokenization and inverted-index keyword recall
- Semantic rerank (vector similarity or Jaccard fallback)
- Coarse quality ranking
- Scenario-weighted multi-signal ranking
- Context-aware rerank from session history
"""

from .coarse_ranker import CoarseRanker
from .contracts import QueryEmbedder, Signal, VectorQueryable
from .funnel import RetrievalFunnel, jaccard_similarity
from .inverted_index import InvertedIndex, build_inverted_index, lookup, lookup_all
from .models import (
    CoarseSignals,
    CoarseWeights,
    FunnelResult,
    FunnelStage,
    RankingCandidate,
    RankingSignals,
    Scenario,
    ScenarioWeights,
    SearchContext,
    SessionTurn,
)
from .multi_signal_ranker import DEFAULT_SCENARIO_WEIGHTS, MultiSignalRanker
from .signals import SIGNAL_REGISTRY
from .tokenizer import token_set, tokenize

__all__ = [
    # Contracts
    "Signal",
    "VectorQueryable",
    "QueryEmbedder",
    # Models
    "RankingCandidate",
    "SearchContext",
    "SessionTurn",
    "Scenario",
    "CoarseSignals",
    "RankingSignals",
    "CoarseWeights",
    "ScenarioWeights",
    "FunnelStage",
    "FunnelResult",
    # Implementations
    "RetrievalFunnel",
    "CoarseRanker",
    "MultiSignalRanker",
    "InvertedIndex",
    "DEFAULT_SCENARIO_WEIGHTS",
    "SIGNAL_REGISTRY",
    # Functions
    "tokenize",
    "token_set",
    "build_inverted_index",
    "lookup",
    "lookup_all",
    "jaccard_similarity",
]
