"""Template selection by compatibility with the assembled context."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from context_engineering.models import ComplexityLevel, Pattern, Template, round_score

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = Template(
    template_id="builtin-default",
    template_name="Standard Implementation Template",
    complexity_level=ComplexityLevel.INTERMEDIATE,
    feature_types=[],
    success_rate=0.0,
    usage_count=0,
    created_at=datetime(1970, 1, 1, tzinfo=timezone.utc),
)


@dataclass(frozen=True)
class CompatibilityWeights:
    """Weights for the template compatibility formula."""

    success_rate: float = 0.4
    usage: float = 0.2
    usage_saturation: int = 50
    complexity_overlap: float = 0.3
    high_success_bonus: float = 0.1
    high_success_threshold: float = 0.9


@dataclass
class TemplateSelection:
    """The chosen template and how it was chosen."""

    template: Template
    compatibility_score: float
    is_default: bool = False
    candidates_considered: int = 0

    def to_dict(self) -> dict:
        data = self.template.to_dict()
        data["compatibility_score"] = self.compatibility_score
        data["is_default"] = self.is_default
        return data


class TemplateSelector:
    """Picks the best-fit template for a set of selected patterns."""

    def __init__(self, weights: CompatibilityWeights | None = None):
        self.weights = weights or CompatibilityWeights()

    def compatibility(
        self,
        template: Template,
        patterns: list[Pattern],
        include_overlap: bool = True,
    ) -> float:
        """Score how well ``template`` fits the selected patterns."""
        w = self.weights
        usage = min(template.usage_count / w.usage_saturation, 1.0)

        overlap = 0.0
        if include_overlap and patterns:
            matching = sum(1 for p in patterns if p.complexity_level == template.complexity_level)
            overlap = matching / len(patterns)

        high_success = any(p.success_rate >= w.high_success_threshold for p in patterns)

        return round_score(
            w.success_rate * template.success_rate
            + w.usage * usage
            + w.complexity_overlap * overlap
            + (w.high_success_bonus if high_success else 0.0)
        )

    def select(
        self,
        templates: list[Template],
        patterns: list[Pattern],
        requested_types: list[str] | None = None,
    ) -> TemplateSelection:
        """Select the most compatible template.

        Candidates are templates whose feature types intersect
        ``requested_types`` (all templates when none are requested). Ties go
        to the most recently created template. With no candidates the
        built-in default template is used, scored without the overlap term.
        """
        candidates = templates
        if requested_types:
            wanted = set(requested_types)
            candidates = [t for t in templates if wanted.intersection(t.feature_types)]

        if not candidates:
            logger.info("[TEMPLATES] No matching templates, using built-in default")
            return TemplateSelection(
                template=DEFAULT_TEMPLATE,
                compatibility_score=self.compatibility(
                    DEFAULT_TEMPLATE, patterns, include_overlap=False
                ),
                is_default=True,
                candidates_considered=0,
            )

        scored = [(self.compatibility(t, patterns), t) for t in candidates]
        scored.sort(
            key=lambda item: (-item[0], -item[1].created_at.timestamp(), item[1].template_id)
        )
        best_score, best = scored[0]

        logger.info(
            f"[TEMPLATES] Selected {best.template_id} ({best_score:.2f}) "
            f"from {len(candidates)} candidates"
        )
        return TemplateSelection(
            template=best,
            compatibility_score=best_score,
            candidates_considered=len(candidates),
        )
