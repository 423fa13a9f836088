"""Context Engineering - retrieval and assembly of implementation guidance.

Given a natural-language feature request, context-engineering finds recorded
implementation patterns, project rules and research notes, ranks them with
deterministic relevance scores, and assembles them into a PRP (product
requirement prompt): a structured guidance document with a confidence score.

Example:
    from context_engineering import ContextEngine, EngineConfig

    engine = ContextEngine.from_config(EngineConfig.from_env())

    research = await engine.research(
        "real-time chat",
        technology_stack=["fastapi", "websockets"],
    )
    prp = await engine.assemble(
        "real-time chat",
        research,
        validation_strictness="strict",
    )
"""

__version__ = "0.1.0"

# Configuration
from context_engineering.config import (
    DocumentConfig,
    EmbeddingConfig,
    EngineConfig,
    StoreConfig,
)

# Engine
from context_engineering.engine import ContextEngine, calculate_summary

# Records
from context_engineering.models import (
    AssembledContext,
    ComplexityLevel,
    ConfidenceMetrics,
    EnforcementLevel,
    EntityKind,
    Pattern,
    ResearchItem,
    RetrievalQuery,
    Rule,
    ScoredCandidate,
    Template,
    ValidationStrictness,
)

# Exceptions
from context_engineering.exceptions import (
    ConfigurationError,
    ContextEngineeringError,
    EmbeddingError,
    MCPError,
    MCPToolError,
    ProviderError,
    SimilarityUnavailable,
    StoreError,
    ValidationError,
)

__all__ = [
    "__version__",
    # Configuration
    "DocumentConfig",
    "EmbeddingConfig",
    "EngineConfig",
    "StoreConfig",
    # Engine
    "ContextEngine",
    "calculate_summary",
    # Records
    "AssembledContext",
    "ComplexityLevel",
    "ConfidenceMetrics",
    "EnforcementLevel",
    "EntityKind",
    "Pattern",
    "ResearchItem",
    "RetrievalQuery",
    "Rule",
    "ScoredCandidate",
    "Template",
    "ValidationStrictness",
    # Exceptions
    "ConfigurationError",
    "ContextEngineeringError",
    "EmbeddingError",
    "MCPError",
    "MCPToolError",
    "ProviderError",
    "SimilarityUnavailable",
    "StoreError",
    "ValidationError",
]
