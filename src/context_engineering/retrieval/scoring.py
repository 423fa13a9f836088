"""Relevance scoring for retrieved candidates.

Each entity kind gets a weighted composite of vector similarity and its own
domain signals (success rate, enforcement level, freshness). When a candidate
came from the fallback query there is no similarity value; the similarity
term is then dropped and the remaining weights are rescaled to sum to 1, so
fallback rankings stay comparable with vector rankings.
"""

from __future__ import annotations

from dataclasses import dataclass

from context_engineering.models import (
    ComplexityLevel,
    EnforcementLevel,
    Entity,
    Pattern,
    ResearchItem,
    Rule,
    ScoredCandidate,
    StoreHit,
    clamp,
    round_score,
)


@dataclass(frozen=True)
class ScoringWeights:
    """Weights for the relevance formulas.

    The defaults reproduce the established ranking behaviour; override them
    to tune ranking without touching the formulas.
    """

    # Pattern: 0.4*sim + 0.3*success + 0.2*usage + 0.1*approachable
    pattern_similarity: float = 0.4
    pattern_success_rate: float = 0.3
    pattern_usage: float = 0.2
    pattern_complexity: float = 0.1
    pattern_usage_saturation: int = 100

    # Rule: 0.5*sim + 0.3*mandatory + 0.2*recommended
    rule_similarity: float = 0.5
    rule_mandatory: float = 0.3
    rule_recommended: float = 0.2

    # Research: 0.6*sim + 0.4*freshness
    research_similarity: float = 0.6
    research_freshness: float = 0.4


DEFAULT_WEIGHTS = ScoringWeights()

_APPROACHABLE = {ComplexityLevel.BEGINNER, ComplexityLevel.INTERMEDIATE}


def _combine(
    similarity: float | None,
    similarity_weight: float,
    terms: list[tuple[float, float]],
) -> float:
    """Weighted sum of ``(weight, value)`` terms plus the similarity term.

    Without a similarity value the other weights are renormalized.
    """
    total = sum(weight * clamp(value) for weight, value in terms)
    if similarity is not None:
        return round_score(similarity_weight * clamp(similarity) + total)

    remaining = sum(weight for weight, _ in terms)
    if remaining <= 0:
        return 0.0
    return round_score(total / remaining)


class RelevanceScorer:
    """Computes bounded [0, 1] relevance scores per entity kind."""

    def __init__(self, weights: ScoringWeights | None = None):
        self.weights = weights or DEFAULT_WEIGHTS

    def score_pattern(self, pattern: Pattern, similarity: float | None = None) -> float:
        w = self.weights
        usage = min(pattern.usage_count / w.pattern_usage_saturation, 1.0)
        approachable = 1.0 if pattern.complexity_level in _APPROACHABLE else 0.0
        return _combine(
            similarity,
            w.pattern_similarity,
            [
                (w.pattern_success_rate, pattern.success_rate),
                (w.pattern_usage, usage),
                (w.pattern_complexity, approachable),
            ],
        )

    def score_rule(self, rule: Rule, similarity: float | None = None) -> float:
        w = self.weights
        mandatory = 1.0 if rule.enforcement_level == EnforcementLevel.MANDATORY else 0.0
        recommended = 1.0 if rule.enforcement_level == EnforcementLevel.RECOMMENDED else 0.0
        return _combine(
            similarity,
            w.rule_similarity,
            [(w.rule_mandatory, mandatory), (w.rule_recommended, recommended)],
        )

    def score_research(self, item: ResearchItem, similarity: float | None = None) -> float:
        w = self.weights
        return _combine(
            similarity,
            w.research_similarity,
            [(w.research_freshness, item.freshness_score)],
        )

    def score(self, entity: Entity, similarity: float | None = None) -> float:
        """Dispatch to the formula for the entity's kind."""
        if isinstance(entity, Pattern):
            return self.score_pattern(entity, similarity)
        if isinstance(entity, Rule):
            return self.score_rule(entity, similarity)
        if isinstance(entity, ResearchItem):
            return self.score_research(entity, similarity)
        raise TypeError(f"Cannot score {type(entity).__name__}")

    def score_hits(self, hits: list[StoreHit]) -> list[ScoredCandidate]:
        """Score store hits and sort them by relevance, highest first.

        Ties keep the kind's natural order so output is reproducible
        regardless of the order the store returned rows in.
        """
        scored = [
            ScoredCandidate(
                entity=hit.entity,
                relevance_score=self.score(hit.entity, hit.similarity),
                similarity=hit.similarity,
            )
            for hit in hits
        ]
        scored.sort(key=lambda c: (-c.relevance_score, c.entity.natural_sort_key()))
        return scored
