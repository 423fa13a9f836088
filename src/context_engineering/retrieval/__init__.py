"""Retrieval module for context-engineering.

Finds recorded patterns, rules and research for a feature request:

- **HybridRetriever**: similarity search first, filtered fallback when the
  vector index is unavailable or returns nothing
- **RelevanceScorer**: deterministic [0, 1] composite scores per entity kind

Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                    Retrieval Pipeline                         │
    │                                                               │
    │  embed ─┬─> patterns  ─┐                                      │
    │         ├─> rules     ─┼─> score ─> sort ─> research response │
    │         └─> research  ─┘                                      │
    │  (concurrent; each kind: similarity -> fallback -> outcome)   │
    └──────────────────────────────────────────────────────────────┘

Usage:
    from context_engineering.retrieval import HybridRetriever, RelevanceScorer

    retriever = HybridRetriever(stores)
    outcomes = await retriever.retrieve_all(vector, ["fastapi"], 0.7, 10)
    scored = RelevanceScorer().score_hits(outcomes[EntityKind.PATTERN].hits)
"""

from .protocols import (
    EmbeddingProvider,
    EntityStore,
    SearchFilter,
    TemplateStore,
)
from .retriever import (
    HybridRetriever,
    OutcomeStatus,
    RetrievalOutcome,
    RetrievalSettings,
)
from .scoring import (
    DEFAULT_WEIGHTS,
    RelevanceScorer,
    ScoringWeights,
)

__all__ = [
    # Retriever
    "HybridRetriever",
    "OutcomeStatus",
    "RetrievalOutcome",
    "RetrievalSettings",
    # Scoring
    "DEFAULT_WEIGHTS",
    "RelevanceScorer",
    "ScoringWeights",
    # Protocols
    "EmbeddingProvider",
    "EntityStore",
    "SearchFilter",
    "TemplateStore",
]
