"""Tests for TemplateSelector."""

from datetime import datetime, timezone

import pytest

from context_engineering.assembly import DEFAULT_TEMPLATE, TemplateSelector
from context_engineering.models import ComplexityLevel


@pytest.fixture
def selector():
    return TemplateSelector()


class TestCompatibility:
    """Tests for the compatibility formula."""

    def test_weighted_terms(self, selector, template_factory, pattern_factory):
        template = template_factory("t", success_rate=0.8, usage_count=25)
        patterns = [
            pattern_factory("a", success_rate=0.95),
            pattern_factory("b", success_rate=0.5, complexity=ComplexityLevel.BEGINNER),
        ]

        # 0.4*0.8 + 0.2*0.5 + 0.3*0.5 + 0.1
        assert selector.compatibility(template, patterns) == 0.67

    def test_usage_saturates_at_fifty(self, selector, template_factory):
        heavy = template_factory("heavy", success_rate=0.0, usage_count=500)
        assert selector.compatibility(heavy, []) == 0.2

    def test_no_patterns_no_overlap(self, selector, template_factory):
        template = template_factory("t", success_rate=1.0, usage_count=0)
        assert selector.compatibility(template, []) == 0.4


class TestSelect:
    """Tests for template selection."""

    def test_picks_highest_score(self, selector, sample_templates, pattern_factory):
        selection = selector.select(sample_templates, [pattern_factory("p")])

        assert selection.template.template_id == "api-standard"
        assert selection.is_default is False
        assert selection.candidates_considered == 2

    def test_requested_types_restrict_candidates(self, selector, sample_templates):
        selection = selector.select(sample_templates, [], requested_types=["ui"])

        assert selection.template.template_id == "ui-basic"
        assert selection.candidates_considered == 1

    def test_tie_goes_to_most_recent(self, selector, template_factory):
        older = template_factory("older", created_at=datetime(2023, 1, 1, tzinfo=timezone.utc))
        newer = template_factory("newer", created_at=datetime(2024, 6, 1, tzinfo=timezone.utc))

        selection = selector.select([older, newer], [])

        assert selection.template.template_id == "newer"

    def test_full_tie_goes_to_template_id(self, selector, template_factory):
        selection = selector.select(
            [template_factory("b"), template_factory("a")],
            [],
        )
        assert selection.template.template_id == "a"

    def test_no_templates_uses_default(self, selector, pattern_factory):
        selection = selector.select([], [pattern_factory("p", success_rate=0.95)])

        assert selection.template is DEFAULT_TEMPLATE
        assert selection.is_default is True
        # Only the high-success bonus applies to the default template
        assert selection.compatibility_score == 0.1

    def test_unmatched_types_use_default(self, selector, sample_templates):
        selection = selector.select(sample_templates, [], requested_types=["cli"])

        assert selection.is_default is True
        assert selection.to_dict()["template_id"] == DEFAULT_TEMPLATE.template_id
