"""Tests for ContextEngine research and assemble."""

import pytest
from conftest import FROZEN_NOW, MockEmbeddingProvider

from context_engineering.engine import (
    EMPTY_RESULTS_GUIDANCE,
    RESEARCH_GUIDANCE,
    ContextEngine,
    calculate_summary,
)
from context_engineering.exceptions import EmbeddingError, StoreError, ValidationError
from context_engineering.models import (
    ComplexityLevel,
    EnforcementLevel,
    EntityKind,
    ScoredCandidate,
)
from context_engineering.stores.memory import InMemoryEntityStore, InMemoryTemplateStore

FEATURE = "User authentication with JWT"


class BrokenStore:
    """Entity store whose backend is unreachable."""

    def __init__(self, kind: EntityKind):
        self.kind = kind

    async def similarity_search(self, query_vector, search_filter, limit):
        raise StoreError("connection refused", kind=self.kind.value)

    async def filtered_search(self, search_filter, limit):
        raise StoreError("connection refused", kind=self.kind.value)


class BrokenTemplateStore:
    async def list_templates(self, feature_types=None):
        raise StoreError("templates collection missing")


def build_engine(embedder, engine_config, stores=None, template_store=None, clock=None):
    stores = stores or {kind: InMemoryEntityStore(kind) for kind in EntityKind}
    return ContextEngine(
        embedder=embedder,
        stores=stores,
        template_store=template_store or InMemoryTemplateStore(),
        config=engine_config,
        clock=clock or (lambda: FROZEN_NOW),
    )


# =============================================================================
# research
# =============================================================================


class TestResearch:
    """Tests for the research operation."""

    @pytest.mark.asyncio
    async def test_response_shape(self, engine):
        result = await engine.research(FEATURE, technology_stack=["fastapi"])

        assert set(result) == {"patterns", "rules", "research", "summary", "guidance", "metadata"}
        assert [p["pattern_id"] for p in result["patterns"]][0] == "jwt-auth"
        assert len(result["rules"]) == 3
        # stale research is below the freshness floor
        assert [r["research_id"] for r in result["research"]] == ["fastapi-security"]

    @pytest.mark.asyncio
    async def test_lists_sorted_by_relevance(self, engine):
        result = await engine.research(FEATURE)

        for key in ("patterns", "rules", "research"):
            scores = [item["relevance_score"] for item in result[key]]
            assert scores == sorted(scores, reverse=True)
            assert all(0.0 <= s <= 1.0 for s in scores)

    @pytest.mark.asyncio
    async def test_metadata(self, engine):
        result = await engine.research(FEATURE, technology_stack=["fastapi"], success_rate_threshold=0.8)

        metadata = result["metadata"]
        assert metadata["query_embedding_generated"] is True
        assert metadata["search_timestamp"] == FROZEN_NOW.isoformat()
        assert metadata["tech_stack_used"] == ["fastapi"]
        assert metadata["success_threshold_applied"] == 0.8
        assert metadata["retrieval"]["patterns"] == {"status": "ok", "used_fallback": False}
        assert metadata["warnings"] == []

    @pytest.mark.asyncio
    async def test_summary(self, engine):
        summary = (await engine.research(FEATURE))["summary"]

        assert summary["total_patterns"] == 3
        assert summary["total_rules"] == 3
        assert summary["total_research_sources"] == 1
        assert summary["complexity_distribution"] == {
            "intermediate": 1,
            "beginner": 1,
            "advanced": 1,
        }
        assert summary["confidence_indicators"] == {
            "high_success_patterns": 2,
            "mandatory_rules": 1,
            "fresh_research": 1,
        }
        assert summary["avg_success_rate"] == 0.87

    @pytest.mark.asyncio
    async def test_threshold_filters_patterns(self, mock_embedder, engine_config, pattern_factory):
        stores = {kind: InMemoryEntityStore(kind) for kind in EntityKind}
        for pattern_id, rate in (("p95", 0.95), ("p50", 0.5), ("p90", 0.9)):
            stores[EntityKind.PATTERN].add(pattern_factory(pattern_id, success_rate=rate))
        engine = build_engine(mock_embedder, engine_config, stores)

        result = await engine.research(FEATURE, success_rate_threshold=0.7)

        rates = [p["success_metrics"]["success_rate"] for p in result["patterns"]]
        assert rates == [0.95, 0.9]

    @pytest.mark.asyncio
    async def test_rules_without_vector_index(self, mock_embedder, engine_config, sample_rules):
        stores = {kind: InMemoryEntityStore(kind) for kind in EntityKind}
        stores[EntityKind.RULE] = InMemoryEntityStore(
            EntityKind.RULE, sample_rules, vector_index_ready=False
        )
        engine = build_engine(mock_embedder, engine_config, stores)

        result = await engine.research(FEATURE)

        assert result["metadata"]["retrieval"]["rules"]["used_fallback"] is True
        levels = [r["enforcement_level"] for r in result["rules"]]
        assert levels == ["mandatory", "recommended", "optional"]
        # No similarity term: mandatory 0.3/0.5, recommended 0.2/0.5
        assert [r["relevance_score"] for r in result["rules"]] == [0.6, 0.4, 0.0]

    @pytest.mark.asyncio
    async def test_nothing_found_is_not_an_error(self, mock_embedder, engine_config):
        engine = build_engine(mock_embedder, engine_config)

        result = await engine.research(FEATURE)

        assert result["patterns"] == result["rules"] == result["research"] == []
        summary = result["summary"]
        assert summary["total_patterns"] == 0
        assert summary["total_rules"] == 0
        assert summary["total_research_sources"] == 0
        assert summary["avg_success_rate"] == 0.0
        assert summary["avg_relevance_score"] == 0.0
        assert set(summary["confidence_indicators"].values()) == {0}
        assert result["guidance"][: len(RESEARCH_GUIDANCE)] == RESEARCH_GUIDANCE
        assert result["guidance"][-1] == EMPTY_RESULTS_GUIDANCE

    @pytest.mark.asyncio
    async def test_store_failure_degrades_one_kind(
        self, mock_embedder, engine_config, memory_stores
    ):
        memory_stores[EntityKind.RULE] = BrokenStore(EntityKind.RULE)
        engine = build_engine(mock_embedder, engine_config, memory_stores)

        result = await engine.research(FEATURE)

        assert result["rules"] == []
        assert len(result["patterns"]) == 3
        assert result["metadata"]["retrieval"]["rules"]["status"] == "fatal"
        assert len(result["metadata"]["warnings"]) == 1
        assert "rules unavailable" in result["metadata"]["warnings"][0]

    @pytest.mark.asyncio
    async def test_exclude_research(self, engine):
        result = await engine.research(FEATURE, include_research=False)

        assert result["research"] == []
        assert result["metadata"]["retrieval"]["research"]["status"] == "ok"

    @pytest.mark.asyncio
    async def test_unmatched_technology(self, engine):
        result = await engine.research(FEATURE, technology_stack=["django"])
        assert result["patterns"] == []


class TestResearchErrors:
    """Tests for caller-visible research failures."""

    @pytest.mark.asyncio
    async def test_embedding_failure_is_fatal(self, failing_embedder, engine_config):
        engine = build_engine(failing_embedder, engine_config)

        with pytest.raises(EmbeddingError):
            await engine.research(FEATURE)

    @pytest.mark.asyncio
    async def test_embedding_timeout_is_fatal(self, engine_config):
        engine = build_engine(MockEmbeddingProvider(delay=2.0), engine_config)

        with pytest.raises(EmbeddingError) as exc_info:
            await engine.research(FEATURE)

        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unexpected_embedding_error_wrapped(self, engine_config):
        engine = build_engine(MockEmbeddingProvider(error=RuntimeError("boom")), engine_config)

        with pytest.raises(EmbeddingError) as exc_info:
            await engine.research(FEATURE)

        assert isinstance(exc_info.value.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_empty_vector_is_fatal(self, engine_config):
        engine = build_engine(MockEmbeddingProvider(vector=[]), engine_config)

        with pytest.raises(EmbeddingError):
            await engine.research(FEATURE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"feature_request": "  "}, "feature_request"),
            ({"technology_stack": "fastapi"}, "technology_stack"),
            ({"success_rate_threshold": 1.5}, "success_rate_threshold"),
            ({"success_rate_threshold": "high"}, "success_rate_threshold"),
            ({"max_results": 0}, "max_results"),
            ({"max_results": 51}, "max_results"),
            ({"include_research": "yes"}, "include_research"),
        ],
    )
    async def test_validation_before_any_call(self, engine, mock_embedder, kwargs, field):
        arguments = {"feature_request": FEATURE, **kwargs}

        with pytest.raises(ValidationError) as exc_info:
            await engine.research(**arguments)

        assert exc_info.value.field == field
        assert mock_embedder.calls == []


# =============================================================================
# assemble
# =============================================================================


class TestAssemble:
    """Tests for the assemble operation."""

    @pytest.mark.asyncio
    async def test_research_then_assemble(self, engine):
        research = await engine.research(FEATURE, technology_stack=["fastapi"])

        result = await engine.assemble(FEATURE, research)

        assert set(result) == {
            "document_text",
            "template_used",
            "assembled_context",
            "confidence_metrics",
            "metadata",
        }
        assert result["document_text"].startswith(f"# PRP: {FEATURE}")
        assert result["template_used"]["template_id"] == "api-standard"
        assert 0.0 <= result["confidence_metrics"]["overall_confidence"] <= 1.0
        metadata = result["metadata"]
        assert metadata["generation_timestamp"] == FROZEN_NOW.isoformat()
        assert metadata["validation_strictness"] == "standard"
        assert metadata["template_compatibility_score"] == result["template_used"]["compatibility_score"]
        assert metadata["warnings"] == []

    @pytest.mark.asyncio
    async def test_idempotent_with_frozen_clock(self, engine):
        research = await engine.research(FEATURE)

        first = await engine.assemble(FEATURE, research)
        second = await engine.assemble(FEATURE, research)

        assert first["document_text"] == second["document_text"]

    @pytest.mark.asyncio
    async def test_strict_adds_checklist_lines(self, engine):
        research = await engine.research(FEATURE)

        standard = (await engine.assemble(FEATURE, research))["document_text"]
        strict = (
            await engine.assemble(FEATURE, research, validation_strictness="strict")
        )["document_text"]

        assert ">= 0.9" not in standard
        assert "All known gotchas mitigated" not in standard
        assert ">= 0.9" in strict
        assert "All known gotchas mitigated" in strict

    @pytest.mark.asyncio
    async def test_beginner_preference(self, engine):
        research = await engine.research(FEATURE)

        result = await engine.assemble(FEATURE, research, complexity_preference="beginner")

        patterns = result["assembled_context"]["selected_patterns"]
        assert [p["complexity_level"] for p in patterns] == ["beginner"]

    @pytest.mark.asyncio
    async def test_template_preferences(self, engine):
        research = await engine.research(FEATURE)

        result = await engine.assemble(FEATURE, research, template_preferences=["ui"])

        assert result["template_used"]["template_id"] == "ui-basic"

    @pytest.mark.asyncio
    async def test_template_store_failure_uses_default(self, mock_embedder, engine_config, memory_stores):
        engine = build_engine(
            mock_embedder, engine_config, memory_stores, template_store=BrokenTemplateStore()
        )
        research = await engine.research(FEATURE)

        result = await engine.assemble(FEATURE, research)

        assert result["template_used"]["is_default"] is True
        assert len(result["metadata"]["warnings"]) == 1

    @pytest.mark.asyncio
    async def test_assemble_does_not_embed(self, engine, mock_embedder):
        await engine.assemble(FEATURE, {"patterns": [], "rules": [], "research": []})
        assert mock_embedder.calls == []

    @pytest.mark.asyncio
    async def test_accepts_partial_results(self, engine):
        result = await engine.assemble(
            FEATURE,
            {
                "patterns": [
                    {
                        "pattern_id": "p1",
                        "pattern_name": "Repository layer",
                        "complexity_level": "intermediate",
                        "success_metrics": {"success_rate": 0.9, "usage_count": 3},
                        "relevance_score": 0.8,
                    }
                ]
            },
        )

        context = result["assembled_context"]
        assert context["selected_patterns"][0]["pattern_id"] == "p1"
        assert context["prioritized_rules"] == []


class TestAssembleErrors:
    """Tests for assemble input validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"feature_request": ""}, "feature_request"),
            ({"research_results": []}, "research_results"),
            ({"research_results": {"patterns": "many"}}, "research_results.patterns"),
            ({"complexity_preference": "expert"}, "complexity_preference"),
            ({"validation_strictness": "paranoid"}, "validation_strictness"),
            ({"template_preferences": [1, 2]}, "template_preferences"),
        ],
    )
    async def test_rejected(self, engine, kwargs, field):
        arguments = {"feature_request": FEATURE, "research_results": {}, **kwargs}

        with pytest.raises(ValidationError) as exc_info:
            await engine.assemble(**arguments)

        assert exc_info.value.field == field

    @pytest.mark.asyncio
    async def test_malformed_record(self, engine):
        with pytest.raises(ValidationError):
            await engine.assemble(
                FEATURE,
                {"rules": [{"rule_id": "r", "enforcement_level": "sometimes"}]},
            )


# =============================================================================
# Summary
# =============================================================================


class TestCalculateSummary:
    def test_averages(self, pattern_factory, rule_factory):
        patterns = [
            ScoredCandidate(pattern_factory("a", success_rate=0.9), 0.8),
            ScoredCandidate(
                pattern_factory("b", success_rate=0.6, complexity=ComplexityLevel.ADVANCED), 0.5
            ),
        ]
        rules = [ScoredCandidate(rule_factory("r", EnforcementLevel.MANDATORY), 0.6)]

        summary = calculate_summary(patterns, rules, [])

        assert summary["avg_success_rate"] == 0.75
        assert summary["avg_relevance_score"] == 0.65
        assert summary["complexity_distribution"] == {"intermediate": 1, "advanced": 1}
        assert summary["confidence_indicators"]["high_success_patterns"] == 1
        assert summary["confidence_indicators"]["mandatory_rules"] == 1
