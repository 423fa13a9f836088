"""The context engine: ``research`` and ``assemble`` entry points.

Two independent request/response operations:

    research:  validate -> embed -> {patterns, rules, research} concurrently
               -> score -> summarize -> respond
    assemble:  validate -> parse research results -> assemble context
               -> load templates -> select template -> generate document
               -> confidence -> respond

The engine holds no per-request state. Store and embedding handles are
constructed once (``ContextEngine.from_config``) and shared by every call.

Example:
    engine = ContextEngine.from_config(EngineConfig.from_env())

    research = await engine.research(
        "user authentication with JWT",
        technology_stack=["fastapi", "python"],
    )
    prp = await engine.assemble("user authentication with JWT", research)
    print(prp["document_text"])
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from context_engineering.assembly.assembler import ContextAssembler, count_mandatory
from context_engineering.assembly.confidence import ConfidenceCalculator
from context_engineering.assembly.document import DocumentGenerator
from context_engineering.assembly.templates import TemplateSelector
from context_engineering.config import EngineConfig
from context_engineering.embedding import OllamaEmbeddingProvider
from context_engineering.exceptions import EmbeddingError, ValidationError
from context_engineering.models import (
    ComplexityLevel,
    EntityKind,
    RetrievalQuery,
    ScoredCandidate,
    Template,
    ValidationStrictness,
    parse_enum,
    round_score,
)
from context_engineering.retrieval.protocols import (
    EmbeddingProvider,
    EntityStore,
    TemplateStore,
)
from context_engineering.retrieval.retriever import HybridRetriever, OutcomeStatus
from context_engineering.retrieval.scoring import RelevanceScorer
from context_engineering.stores.factory import create_stores

logger = logging.getLogger(__name__)

RESULT_KEYS: dict[EntityKind, str] = {
    EntityKind.PATTERN: "patterns",
    EntityKind.RULE: "rules",
    EntityKind.RESEARCH: "research",
}

RESEARCH_GUIDANCE = [
    "Search the codebase for similar features and note the files worth referencing",
    "Identify existing conventions and test patterns the implementation should follow",
    "Check the official documentation for every library involved and keep the URLs",
    "Look for implementation examples and record common pitfalls",
    "Pass these results to context_assemble_prp to generate the implementation guide",
]

EMPTY_RESULTS_GUIDANCE = (
    "No recorded patterns, rules or research matched this request; rely on codebase "
    "and documentation research, and record successful patterns once implemented"
)

HIGH_SUCCESS_RATE = 0.9
FRESH_RESEARCH = 0.9


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Input validation
# =============================================================================


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string", field=field_name)
    return value.strip()


def _require_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"'{field_name}' must be a list of strings", field=field_name)
    return [v.strip() for v in value if v.strip()]


def _require_fraction(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"'{field_name}' must be a number", field=field_name)
    if not 0.0 <= value <= 1.0:
        raise ValidationError(f"'{field_name}' must be within [0, 1]", field=field_name)
    return float(value)


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def calculate_summary(
    patterns: list[ScoredCandidate],
    rules: list[ScoredCandidate],
    research: list[ScoredCandidate],
) -> dict[str, Any]:
    """Counts, averages and confidence indicators for a research response."""
    complexity_distribution: dict[str, int] = {}
    for candidate in patterns:
        level = candidate.entity.complexity_level.value
        complexity_distribution[level] = complexity_distribution.get(level, 0) + 1

    return {
        "total_patterns": len(patterns),
        "total_rules": len(rules),
        "total_research_sources": len(research),
        "avg_success_rate": round_score(_average([c.entity.success_rate for c in patterns])),
        "avg_relevance_score": round_score(_average([c.relevance_score for c in patterns])),
        "complexity_distribution": complexity_distribution,
        "confidence_indicators": {
            "high_success_patterns": sum(
                1 for c in patterns if c.entity.success_rate >= HIGH_SUCCESS_RATE
            ),
            "mandatory_rules": count_mandatory(rules),
            "fresh_research": sum(
                1 for c in research if c.entity.freshness_score >= FRESH_RESEARCH
            ),
        },
    }


class ContextEngine:
    """Research and assemble guidance documents for a calling assistant.

    Attributes:
        embedder: Embedding provider for feature requests
        retriever: Hybrid retriever over the entity stores
        template_store: Store holding document templates
        config: Engine configuration
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        stores: dict[EntityKind, EntityStore],
        template_store: TemplateStore,
        config: EngineConfig | None = None,
        scorer: RelevanceScorer | None = None,
        assembler: ContextAssembler | None = None,
        selector: TemplateSelector | None = None,
        generator: DocumentGenerator | None = None,
        calculator: ConfidenceCalculator | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """Initialize the engine.

        Args:
            embedder: Embedding provider (shared, never mutated)
            stores: One entity store per kind (shared, never mutated)
            template_store: Template store
            config: Engine configuration (defaults to EngineConfig())
            scorer: Relevance scorer (override to tune weights)
            assembler: Context assembler
            selector: Template selector
            generator: Document generator
            calculator: Confidence calculator
            clock: Source of the generation and search timestamps
        """
        self.config = config or EngineConfig()
        self.embedder = embedder
        self.stores = stores
        self.template_store = template_store
        self.retriever = HybridRetriever(stores, self.config.retrieval)
        self.scorer = scorer or RelevanceScorer()
        self.assembler = assembler or ContextAssembler()
        self.selector = selector or TemplateSelector()
        self.generator = generator or DocumentGenerator(
            commands=self.config.document.validation_commands,
        )
        self.calculator = calculator or ConfidenceCalculator()
        self.clock = clock

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        embedder: EmbeddingProvider | None = None,
    ) -> ContextEngine:
        """Build the engine and its process-wide handles from configuration.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        config.validate()

        if embedder is None:
            embedder = OllamaEmbeddingProvider(
                base_url=config.embedding.url,
                model=config.embedding.model,
                dimension=config.embedding.dimensions,
                timeout_seconds=config.embedding.timeout_seconds,
            )

        stores, template_store = create_stores(
            config.store,
            page_size=config.retrieval.fallback_page_size,
        )
        generator = DocumentGenerator(
            commands=config.document.validation_commands,
            universal_rules=config.document.load_universal_rules(),
        )
        return cls(
            embedder=embedder,
            stores=stores,
            template_store=template_store,
            config=config,
            generator=generator,
        )

    # =========================================================================
    # research
    # =========================================================================

    def validate_query(
        self,
        feature_request: Any,
        technology_stack: Any = None,
        success_rate_threshold: Any = 0.7,
        max_results: Any = 10,
        include_research: Any = True,
    ) -> RetrievalQuery:
        """Validate ``research`` arguments into a RetrievalQuery.

        Raises:
            ValidationError: On any malformed argument.
        """
        limit = self.config.retrieval.max_results_limit
        if isinstance(max_results, bool) or not isinstance(max_results, int):
            raise ValidationError("'max_results' must be an integer", field="max_results")
        if not 1 <= max_results <= limit:
            raise ValidationError(
                f"'max_results' must be between 1 and {limit}", field="max_results"
            )
        if not isinstance(include_research, bool):
            raise ValidationError(
                "'include_research' must be a boolean", field="include_research"
            )

        return RetrievalQuery(
            feature_request=_require_text(feature_request, "feature_request"),
            technology_stack=_require_str_list(technology_stack, "technology_stack"),
            success_rate_threshold=_require_fraction(
                success_rate_threshold, "success_rate_threshold"
            ),
            max_results=max_results,
            include_research=include_research,
        )

    async def embed_query(self, text: str) -> list[float]:
        """Embed the feature request; any failure or timeout is fatal.

        Raises:
            EmbeddingError: If the provider fails, times out, or returns nothing.
        """
        timeout = self.config.embedding.timeout_seconds
        try:
            vector = await asyncio.wait_for(self.embedder.embed(text), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise EmbeddingError(f"Embedding provider timed out after {timeout}s", cause=e)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError("Embedding provider failed", cause=e)

        if not vector:
            raise EmbeddingError("Embedding provider returned an empty vector")
        return vector

    async def research(
        self,
        feature_request: str,
        technology_stack: list[str] | None = None,
        success_rate_threshold: float = 0.7,
        max_results: int = 10,
        include_research: bool = True,
    ) -> dict[str, Any]:
        """Find recorded patterns, rules and research for a feature request.

        Store-level failures never raise: the affected kind comes back empty
        and a warning is added to ``metadata.warnings``.

        Args:
            feature_request: What the caller wants to build
            technology_stack: Technology tags to scope the search (empty = any)
            success_rate_threshold: Minimum pattern success rate
            max_results: Maximum patterns returned (rules get half, rounded up)
            include_research: Whether to retrieve research items

        Returns:
            Dict with patterns, rules, research, summary, guidance and metadata

        Raises:
            ValidationError: On malformed input, before any external call.
            EmbeddingError: If the feature request cannot be embedded.
        """
        query = self.validate_query(
            feature_request,
            technology_stack,
            success_rate_threshold,
            max_results,
            include_research,
        )
        started_at = self.clock()

        query_vector = await self.embed_query(query.feature_request)

        outcomes = await self.retriever.retrieve_all(
            query_vector,
            query.technology_stack,
            query.success_rate_threshold,
            query.max_results,
            include_research=query.include_research,
        )

        scored: dict[EntityKind, list[ScoredCandidate]] = {}
        warnings: list[str] = []
        for kind in EntityKind:
            outcome = outcomes[kind]
            scored[kind] = self.scorer.score_hits(outcome.hits)
            if outcome.status == OutcomeStatus.FATAL:
                warnings.append(
                    f"{RESULT_KEYS[kind]} unavailable: {outcome.error}; "
                    f"continuing without {RESULT_KEYS[kind]}"
                )

        patterns = scored[EntityKind.PATTERN]
        rules = scored[EntityKind.RULE]
        research = scored[EntityKind.RESEARCH]

        guidance = list(RESEARCH_GUIDANCE)
        if not (patterns or rules or research):
            guidance.append(EMPTY_RESULTS_GUIDANCE)

        logger.info(
            f"[RESEARCH] '{query.feature_request[:50]}' -> patterns={len(patterns)} "
            f"rules={len(rules)} research={len(research)} warnings={len(warnings)}"
        )

        return {
            "patterns": [c.to_dict() for c in patterns],
            "rules": [c.to_dict() for c in rules],
            "research": [c.to_dict() for c in research],
            "summary": calculate_summary(patterns, rules, research),
            "guidance": guidance,
            "metadata": {
                "query_embedding_generated": True,
                "search_timestamp": started_at.isoformat(),
                "tech_stack_used": list(query.technology_stack),
                "success_threshold_applied": query.success_rate_threshold,
                "retrieval": {
                    RESULT_KEYS[kind]: {
                        "status": outcomes[kind].status.value,
                        "used_fallback": outcomes[kind].used_fallback,
                    }
                    for kind in EntityKind
                },
                "warnings": warnings,
            },
        }

    # =========================================================================
    # assemble
    # =========================================================================

    @staticmethod
    def parse_research_results(
        research_results: Any,
    ) -> dict[EntityKind, list[ScoredCandidate]]:
        """Parse the dict returned by ``research`` back into candidates.

        Raises:
            ValidationError: If the structure or any record is malformed.
        """
        if not isinstance(research_results, dict):
            raise ValidationError(
                "'research_results' must be an object with patterns, rules and research",
                field="research_results",
            )

        parsed: dict[EntityKind, list[ScoredCandidate]] = {}
        for kind, key in RESULT_KEYS.items():
            items = research_results.get(key) or []
            if not isinstance(items, list):
                raise ValidationError(
                    f"'research_results.{key}' must be a list", field=f"research_results.{key}"
                )
            parsed[kind] = [ScoredCandidate.from_dict(kind, item) for item in items]
        return parsed

    async def load_templates(
        self,
        template_preferences: list[str],
        warnings: list[str],
    ) -> list[Template]:
        """Load candidate templates; failures fall back to the default template."""
        try:
            return await asyncio.wait_for(
                self.template_store.list_templates(template_preferences or None),
                timeout=self.config.retrieval.store_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("[ASSEMBLE] Template store timed out, using default template")
            warnings.append("templates unavailable: store timed out; using default template")
        except Exception as e:
            logger.warning(f"[ASSEMBLE] Template store failed: {e}")
            warnings.append(f"templates unavailable: {e}; using default template")
        return []

    async def assemble(
        self,
        feature_request: str,
        research_results: dict[str, Any],
        template_preferences: list[str] | None = None,
        complexity_preference: str = "intermediate",
        validation_strictness: str = "standard",
    ) -> dict[str, Any]:
        """Assemble a guidance document from ``research`` results.

        Args:
            feature_request: What the caller wants to build
            research_results: The dict returned by ``research``
            template_preferences: Preferred template feature types
            complexity_preference: beginner, intermediate or advanced
            validation_strictness: basic, standard or strict

        Returns:
            Dict with document_text, template_used, assembled_context,
            confidence_metrics and metadata

        Raises:
            ValidationError: On malformed input, before any external call.
        """
        feature_request = _require_text(feature_request, "feature_request")
        preferences = _require_str_list(template_preferences, "template_preferences")
        complexity = parse_enum(ComplexityLevel, complexity_preference, "complexity_preference")
        strictness = parse_enum(
            ValidationStrictness, validation_strictness, "validation_strictness"
        )
        candidates = self.parse_research_results(research_results)

        generated_at = self.clock().isoformat()
        warnings: list[str] = []

        context = self.assembler.assemble(
            candidates[EntityKind.PATTERN],
            candidates[EntityKind.RULE],
            candidates[EntityKind.RESEARCH],
            complexity_preference=complexity,
        )

        templates = await self.load_templates(preferences, warnings)
        selection = self.selector.select(templates, context.patterns, preferences)

        document_text = self.generator.generate(
            feature_request,
            selection.template,
            context,
            strictness=strictness,
            generated_at=generated_at,
        )
        confidence = self.calculator.calculate(selection.compatibility_score, context)

        logger.info(
            f"[ASSEMBLE] '{feature_request[:50]}' template={selection.template.template_id} "
            f"confidence={confidence.overall_confidence:.2f}"
        )

        return {
            "document_text": document_text,
            "template_used": selection.to_dict(),
            "assembled_context": context.to_dict(),
            "confidence_metrics": confidence.to_dict(),
            "metadata": {
                "generation_timestamp": generated_at,
                "complexity_preference": complexity.value,
                "validation_strictness": strictness.value,
                "template_compatibility_score": selection.compatibility_score,
                "context_quality_score": context.context_quality_score,
                "warnings": warnings,
            },
        }

    async def close(self) -> None:
        """Close the shared store client(s), if any."""
        clients = {}
        for store in [*self.stores.values(), self.template_store]:
            client = getattr(store, "client", None)
            if client is not None:
                clients[id(client)] = client
        for client in clients.values():
            await client.close()
