"""Pytest configuration for context-engineering tests."""

import asyncio
from datetime import datetime, timezone
from typing import Any

import pytest

from context_engineering.config import EngineConfig
from context_engineering.engine import ContextEngine
from context_engineering.exceptions import EmbeddingError
from context_engineering.models import (
    ComplexityLevel,
    EnforcementLevel,
    EntityKind,
    Pattern,
    ResearchItem,
    Rule,
    Template,
)
from context_engineering.retrieval.retriever import RetrievalSettings
from context_engineering.stores.memory import InMemoryEntityStore, InMemoryTemplateStore

FROZEN_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
QUERY_VECTOR = [1.0, 0.0, 0.0]


@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


# =============================================================================
# Mock Embedding Provider
# =============================================================================


class MockEmbeddingProvider:
    """Mock embedding provider returning a fixed vector.

    Usage:
        embedder = MockEmbeddingProvider(vector=[1.0, 0.0, 0.0])
        vector = await embedder.embed("anything")

        failing = MockEmbeddingProvider(error=EmbeddingError("quota exceeded"))
        slow = MockEmbeddingProvider(delay=5.0)
    """

    def __init__(
        self,
        vector: list[float] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.vector = vector if vector is not None else list(QUERY_VECTOR)
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.vector)


# =============================================================================
# Record factories
# =============================================================================


def make_pattern(
    pattern_id: str,
    success_rate: float = 0.8,
    usage_count: int = 10,
    complexity: ComplexityLevel = ComplexityLevel.INTERMEDIATE,
    tags: list[str] | None = None,
    embedding: list[float] | None = None,
    **kwargs: Any,
) -> Pattern:
    return Pattern(
        pattern_id=pattern_id,
        pattern_name=kwargs.pop("pattern_name", f"Pattern {pattern_id}"),
        complexity_level=complexity,
        success_rate=success_rate,
        usage_count=usage_count,
        technology_stack=tags if tags is not None else ["fastapi"],
        embedding=embedding,
        **kwargs,
    )


def make_rule(
    rule_id: str,
    enforcement: EnforcementLevel = EnforcementLevel.RECOMMENDED,
    priority: int = 1,
    tags: list[str] | None = None,
    embedding: list[float] | None = None,
    **kwargs: Any,
) -> Rule:
    return Rule(
        rule_id=rule_id,
        rule_name=kwargs.pop("rule_name", f"Rule {rule_id}"),
        enforcement_level=enforcement,
        priority=priority,
        technology_stack=tags if tags is not None else ["fastapi"],
        embedding=embedding,
        **kwargs,
    )


def make_research(
    research_id: str,
    freshness: float = 0.9,
    tags: list[str] | None = None,
    embedding: list[float] | None = None,
    **kwargs: Any,
) -> ResearchItem:
    return ResearchItem(
        research_id=research_id,
        topic=kwargs.pop("topic", f"Topic {research_id}"),
        freshness_score=freshness,
        technology_stack=tags if tags is not None else ["fastapi"],
        embedding=embedding,
        **kwargs,
    )


def make_template(
    template_id: str,
    success_rate: float = 0.8,
    usage_count: int = 10,
    complexity: ComplexityLevel = ComplexityLevel.INTERMEDIATE,
    feature_types: list[str] | None = None,
    created_at: datetime | None = None,
) -> Template:
    return Template(
        template_id=template_id,
        template_name=f"Template {template_id}",
        complexity_level=complexity,
        feature_types=feature_types if feature_types is not None else ["api"],
        success_rate=success_rate,
        usage_count=usage_count,
        created_at=created_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def pattern_factory():
    return make_pattern


@pytest.fixture
def rule_factory():
    return make_rule


@pytest.fixture
def research_factory():
    return make_research


@pytest.fixture
def template_factory():
    return make_template


# =============================================================================
# Sample data
# =============================================================================


@pytest.fixture
def sample_patterns() -> list[Pattern]:
    return [
        make_pattern(
            "jwt-auth",
            success_rate=0.95,
            usage_count=120,
            embedding=[1.0, 0.0, 0.0],
            pattern_name="JWT Authentication",
            description="Stateless auth with signed tokens",
            implementation_steps=["Create token service", "Add auth dependency"],
            gotchas=["Rotate signing keys", "Check token expiry"],
            implementation_approach="Dependency-injected token verification",
            references=["src/auth/tokens.py"],
        ),
        make_pattern(
            "session-auth",
            success_rate=0.9,
            usage_count=40,
            complexity=ComplexityLevel.BEGINNER,
            embedding=[0.8, 0.6, 0.0],
            pattern_name="Session Authentication",
            gotchas=["Check token expiry", "Use secure cookies"],
        ),
        make_pattern(
            "oauth-flow",
            success_rate=0.75,
            usage_count=15,
            complexity=ComplexityLevel.ADVANCED,
            embedding=[0.5, 0.5, 0.7],
            pattern_name="OAuth Authorization Code Flow",
        ),
    ]


@pytest.fixture
def sample_rules() -> list[Rule]:
    return [
        make_rule(
            "type-hints",
            enforcement=EnforcementLevel.MANDATORY,
            priority=1,
            embedding=[0.9, 0.1, 0.0],
            description="All public functions are type annotated",
            examples=["def handler(request: Request) -> Response"],
        ),
        make_rule(
            "docstrings",
            enforcement=EnforcementLevel.RECOMMENDED,
            priority=2,
            embedding=[0.7, 0.3, 0.0],
            description="Public modules carry a docstring",
        ),
        make_rule(
            "no-print",
            enforcement=EnforcementLevel.OPTIONAL,
            priority=3,
            embedding=[0.2, 0.9, 0.0],
            description="Use logging instead of print",
        ),
    ]


@pytest.fixture
def sample_research() -> list[ResearchItem]:
    return [
        make_research(
            "fastapi-security",
            freshness=0.95,
            embedding=[1.0, 0.0, 0.0],
            topic="FastAPI security",
            documentation_urls=["https://fastapi.tiangolo.com/tutorial/security/"],
            key_insights=["Use OAuth2PasswordBearer for token extraction"],
            common_pitfalls=["Storing tokens in localStorage"],
        ),
        make_research(
            "stale-notes",
            freshness=0.5,
            embedding=[1.0, 0.0, 0.0],
            topic="Old auth notes",
        ),
    ]


@pytest.fixture
def sample_templates() -> list[Template]:
    return [
        make_template("api-standard", success_rate=0.85, usage_count=60, feature_types=["api"]),
        make_template(
            "ui-basic",
            success_rate=0.7,
            usage_count=10,
            complexity=ComplexityLevel.BEGINNER,
            feature_types=["ui"],
        ),
    ]


# =============================================================================
# Stores and engine
# =============================================================================


@pytest.fixture
def memory_stores(sample_patterns, sample_rules, sample_research):
    """In-memory entity stores seeded with the sample records."""
    return {
        EntityKind.PATTERN: InMemoryEntityStore(EntityKind.PATTERN, sample_patterns),
        EntityKind.RULE: InMemoryEntityStore(EntityKind.RULE, sample_rules),
        EntityKind.RESEARCH: InMemoryEntityStore(EntityKind.RESEARCH, sample_research),
    }


@pytest.fixture
def template_store(sample_templates):
    return InMemoryTemplateStore(sample_templates)


@pytest.fixture
def mock_embedder():
    return MockEmbeddingProvider()


@pytest.fixture
def engine_config():
    """Engine config with short timeouts for tests."""
    config = EngineConfig()
    config.store.provider = "in_memory"
    config.embedding.timeout_seconds = 0.5
    config.retrieval = RetrievalSettings(store_timeout_seconds=0.5)
    return config


@pytest.fixture
def engine(mock_embedder, memory_stores, template_store, engine_config):
    """ContextEngine wired to in-memory stores and a frozen clock."""
    return ContextEngine(
        embedder=mock_embedder,
        stores=memory_stores,
        template_store=template_store,
        config=engine_config,
        clock=lambda: FROZEN_NOW,
    )


@pytest.fixture
def failing_embedder():
    return MockEmbeddingProvider(error=EmbeddingError("Invalid API key"))
