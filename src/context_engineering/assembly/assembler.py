"""Context assembly: filter, rank and truncate retrieved candidates.

The assembler turns the scored lists returned by ``research`` into the
bounded context a guidance document is generated from, and rates how good
that context is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from context_engineering.models import (
    AssembledContext,
    ComplexityLevel,
    EnforcementLevel,
    Pattern,
    ScoredCandidate,
    round_score,
)

logger = logging.getLogger(__name__)

RANKING_ALGORITHM = "relevance_success_hybrid"


@dataclass(frozen=True)
class AssemblyWeights:
    """Ranking weights, caps and context-quality weights."""

    blend_relevance: float = 0.6
    blend_success_rate: float = 0.4
    max_patterns: int = 5
    max_research: int = 3

    quality_patterns: float = 0.4
    quality_rules: float = 0.3
    quality_research: float = 0.2
    quality_completeness: float = 0.1
    mandatory_rule_saturation: int = 3

    completeness_patterns: float = 0.4
    completeness_rules: float = 0.4
    completeness_research: float = 0.2


DEFAULT_ASSEMBLY_WEIGHTS = AssemblyWeights()

_COMPLEXITY_FILTERS: dict[ComplexityLevel, set[ComplexityLevel] | None] = {
    ComplexityLevel.BEGINNER: {ComplexityLevel.BEGINNER},
    ComplexityLevel.INTERMEDIATE: None,  # accepts all
    ComplexityLevel.ADVANCED: {ComplexityLevel.INTERMEDIATE, ComplexityLevel.ADVANCED},
}


def filter_by_complexity(
    patterns: list[ScoredCandidate],
    preference: ComplexityLevel,
) -> list[ScoredCandidate]:
    """Keep the patterns a caller at ``preference`` level should see."""
    allowed = _COMPLEXITY_FILTERS[preference]
    if allowed is None:
        return list(patterns)
    return [c for c in patterns if c.entity.complexity_level in allowed]


def count_mandatory(rules: list[ScoredCandidate]) -> int:
    return sum(1 for c in rules if c.entity.enforcement_level == EnforcementLevel.MANDATORY)


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class ContextAssembler:
    """Selects, orders and rates the context for one guidance document."""

    def __init__(self, weights: AssemblyWeights | None = None):
        self.weights = weights or DEFAULT_ASSEMBLY_WEIGHTS

    def blended_score(self, candidate: ScoredCandidate) -> float:
        """Pattern ranking score: relevance blended with success rate."""
        pattern: Pattern = candidate.entity
        return (
            self.weights.blend_relevance * candidate.relevance_score
            + self.weights.blend_success_rate * pattern.success_rate
        )

    def rank_patterns(self, patterns: list[ScoredCandidate]) -> list[ScoredCandidate]:
        return sorted(
            patterns,
            key=lambda c: (-self.blended_score(c), c.entity.natural_sort_key()),
        )

    @staticmethod
    def rank_rules(rules: list[ScoredCandidate]) -> list[ScoredCandidate]:
        """Mandatory first, then recommended, then optional; priority ascending."""
        return sorted(rules, key=lambda c: c.entity.natural_sort_key())

    @staticmethod
    def rank_research(research: list[ScoredCandidate]) -> list[ScoredCandidate]:
        return sorted(
            research,
            key=lambda c: (-c.relevance_score, c.entity.natural_sort_key()),
        )

    def context_quality(
        self,
        patterns: list[ScoredCandidate],
        rules: list[ScoredCandidate],
        research: list[ScoredCandidate],
    ) -> float:
        """Rate the assembled context in [0, 1].

        Empty components contribute 0 to their term.
        """
        w = self.weights
        pattern_term = _average([c.relevance_score for c in patterns])
        rule_term = min(count_mandatory(rules) / w.mandatory_rule_saturation, 1.0)
        research_term = _average([c.entity.freshness_score for c in research])
        completeness = (
            (w.completeness_patterns if patterns else 0.0)
            + (w.completeness_rules if rules else 0.0)
            + (w.completeness_research if research else 0.0)
        )
        return round_score(
            w.quality_patterns * pattern_term
            + w.quality_rules * rule_term
            + w.quality_research * research_term
            + w.quality_completeness * completeness
        )

    def assemble(
        self,
        patterns: list[ScoredCandidate],
        rules: list[ScoredCandidate],
        research: list[ScoredCandidate],
        complexity_preference: ComplexityLevel = ComplexityLevel.INTERMEDIATE,
    ) -> AssembledContext:
        """Assemble the bounded context for a document.

        Args:
            patterns: Scored pattern candidates
            rules: Scored rule candidates
            research: Scored research candidates
            complexity_preference: Which skill-level patterns to keep

        Returns:
            AssembledContext with at most ``max_patterns`` patterns, all
            rules, and at most ``max_research`` research items
        """
        filtered = filter_by_complexity(patterns, complexity_preference)
        ranked_patterns = self.rank_patterns(filtered)
        selected_patterns = ranked_patterns[: self.weights.max_patterns]

        prioritized_rules = self.rank_rules(rules)

        ranked_research = self.rank_research(research)
        relevant_research = ranked_research[: self.weights.max_research]

        quality = self.context_quality(selected_patterns, prioritized_rules, relevant_research)

        logger.info(
            f"[ASSEMBLY] patterns={len(selected_patterns)}/{len(patterns)} "
            f"rules={len(prioritized_rules)} research={len(relevant_research)} "
            f"quality={quality:.2f}"
        )

        return AssembledContext(
            selected_patterns=selected_patterns,
            prioritized_rules=prioritized_rules,
            relevant_research=relevant_research,
            context_quality_score=quality,
            assembly_metadata={
                "complexity_filter_applied": complexity_preference.value,
                "patterns_filtered": len(patterns) - len(filtered),
                "patterns_truncated": len(ranked_patterns) - len(selected_patterns),
                "research_truncated": len(ranked_research) - len(relevant_research),
                "ranking_algorithm": RANKING_ALGORITHM,
            },
        )
