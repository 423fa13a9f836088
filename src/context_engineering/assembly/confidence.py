"""Overall confidence for a generated guidance document."""

from __future__ import annotations

from dataclasses import dataclass

from context_engineering.assembly.assembler import count_mandatory
from context_engineering.models import (
    AssembledContext,
    ConfidenceMetrics,
    clamp,
    round_score,
)


@dataclass(frozen=True)
class ConfidenceWeights:
    """Weights for combining sub-confidences."""

    template: float = 0.2
    context: float = 0.3
    pattern: float = 0.3
    rule: float = 0.15
    research: float = 0.05
    mandatory_rule_saturation: int = 3


class ConfidenceCalculator:
    """Combines template, context, pattern, rule and research confidence."""

    def __init__(self, weights: ConfidenceWeights | None = None):
        self.weights = weights or ConfidenceWeights()

    def calculate(
        self,
        template_confidence: float,
        context: AssembledContext,
    ) -> ConfidenceMetrics:
        """Compute confidence metrics for an assembled context.

        Args:
            template_confidence: The selected template's compatibility score
            context: The assembled context the document was built from

        Returns:
            ConfidenceMetrics with every field in [0, 1]
        """
        w = self.weights
        patterns = context.patterns
        research = context.research

        pattern_confidence = (
            sum(p.success_rate for p in patterns) / len(patterns) if patterns else 0.0
        )
        rule_confidence = min(
            count_mandatory(context.prioritized_rules) / w.mandatory_rule_saturation, 1.0
        )
        research_confidence = (
            sum(r.freshness_score for r in research) / len(research) if research else 0.0
        )

        terms = {
            "template": clamp(template_confidence),
            "context": clamp(context.context_quality_score),
            "pattern": clamp(pattern_confidence),
            "rule": clamp(rule_confidence),
            "research": clamp(research_confidence),
        }
        overall = (
            w.template * terms["template"]
            + w.context * terms["context"]
            + w.pattern * terms["pattern"]
            + w.rule * terms["rule"]
            + w.research * terms["research"]
        )

        return ConfidenceMetrics(
            template_confidence=round_score(terms["template"]),
            context_confidence=round_score(terms["context"]),
            pattern_confidence=round_score(terms["pattern"]),
            rule_confidence=round_score(terms["rule"]),
            research_confidence=round_score(terms["research"]),
            overall_confidence=round_score(overall),
        )
