"""Standard exception hierarchy for context-engineering.

All package exceptions inherit from ContextEngineeringError, making it easy
to catch all library-specific errors.

Exception Hierarchy:
    ContextEngineeringError (base)
    ├── ConfigurationError - Invalid configuration
    ├── ValidationError - Malformed or missing request input
    ├── ProviderError - Base for external collaborator errors
    │   ├── EmbeddingError - Embedding generation failed (fatal to research)
    │   └── StoreError - Entity/template store unreachable or failing
    │       └── SimilarityUnavailable - Vector index missing or not ready
    └── MCPError - MCP-related errors
        └── MCPToolError - Tool execution failed
"""


class ContextEngineeringError(Exception):
    """Base exception for all context-engineering errors.

    Catch this to handle any library-specific exception:
        try:
            result = await engine.research(...)
        except ContextEngineeringError as e:
            logger.error(f"Context engineering error: {e}")
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{super().__str__()} (caused by: {self.cause})"
        return super().__str__()


# =============================================================================
# Configuration / Input Errors
# =============================================================================


class ConfigurationError(ContextEngineeringError):
    """Invalid configuration.

    Raised when EngineConfig has invalid settings, missing required
    values, or an unknown provider name.
    """

    pass


class ValidationError(ContextEngineeringError):
    """Malformed or missing request input.

    Raised before any external call is made, so a rejected request never
    touches the embedding provider or the stores.
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(ContextEngineeringError):
    """Base exception for external collaborator errors."""

    pass


class EmbeddingError(ProviderError):
    """Embedding provider error.

    Raised when:
    - The embedding service is unreachable
    - Credentials are missing or rejected
    - The call times out
    - The provider returns an empty vector
    """

    pass


class StoreError(ProviderError):
    """Entity or template store error.

    Raised when the store itself cannot be reached or rejects the query.
    The retriever treats this as fatal for one entity kind only.
    """

    def __init__(
        self,
        message: str,
        kind: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause)
        self.kind = kind


class SimilarityUnavailable(StoreError):
    """Similarity search capability is unavailable.

    Raised when the vector index is missing, not ready, or incompatible with
    the query vector. Always recovered by falling back to a filtered query.
    """

    pass


# =============================================================================
# MCP Errors
# =============================================================================


class MCPError(ContextEngineeringError):
    """Base exception for MCP-related errors."""

    pass


class MCPToolError(MCPError):
    """MCP tool execution failed.

    Raised when:
    - Tool not found
    - Invalid arguments
    - Tool execution error
    """

    def __init__(
        self,
        message: str,
        tool_name: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause)
        self.tool_name = tool_name
