"""Context Engineering MCP Server.

This module implements an MCP server that exposes the context engine as
tools. A coding assistant calls ``context_research`` first, then passes the
result to ``context_assemble_prp`` to get an implementation guide (PRP).

Usage:
    # Run as module
    python -m context_engineering.mcp

    # Or import and run
    from context_engineering.mcp import create_context_mcp_server
    server = create_context_mcp_server()
    server.run()

Tools provided:
    - context_research: Find recorded patterns, rules and research
    - context_assemble_prp: Assemble a guidance document from research results
"""

import logging
import os
import sys
from typing import Any

from mcp.server.fastmcp import FastMCP

from context_engineering.engine import ContextEngine
from context_engineering.exceptions import (
    ConfigurationError,
    EmbeddingError,
    MCPToolError,
    ValidationError,
)
from context_engineering.mcp.config import MCPConfig

logger = logging.getLogger(__name__)


# =============================================================================
# Error reporting
# =============================================================================


def describe_error(error: Exception, config: MCPConfig | None = None) -> dict[str, Any]:
    """Turn an exception into a caller-facing error payload.

    The payload names probable causes and a remediation; it never carries
    a stack trace.

    Args:
        error: The exception raised by the engine.
        config: Server configuration, used to name the configured endpoints.

    Returns:
        Dict with success=False, error, probable_causes and remediation.
    """
    engine_config = config.engine if config else None

    if isinstance(error, ValidationError):
        causes = [f"Invalid argument '{error.field}'" if error.field else "Invalid arguments"]
        remediation = "Correct the argument and call the tool again."
    elif isinstance(error, EmbeddingError):
        url = engine_config.embedding.url if engine_config else "the embedding service"
        model = engine_config.embedding.model if engine_config else "the embedding model"
        causes = [
            f"Embedding service unreachable at {url}",
            f"Embedding model '{model}' not available",
            "Embedding request timed out",
        ]
        remediation = (
            f"Check that Ollama is running at {url} (OLLAMA_URL) and that "
            f"'{model}' has been pulled, then retry."
        )
    elif isinstance(error, ConfigurationError):
        causes = ["Invalid or incomplete server configuration"]
        remediation = "Check the CONTEXT_ENGINEERING_* environment variables and restart."
    else:
        causes = ["Unexpected internal error"]
        remediation = "Check the server log (stderr) for details and retry."

    return {
        "success": False,
        "error": str(error),
        "probable_causes": causes,
        "remediation": remediation,
    }


# =============================================================================
# Context Engineering MCP Server
# =============================================================================


class ContextEngineeringMCPServer:
    """MCP server exposing the context engine.

    Attributes:
        config: Server configuration.
        mcp: FastMCP server instance.
    """

    def __init__(
        self,
        config: MCPConfig | None = None,
        engine: ContextEngine | None = None,
    ):
        """Initialize the Context Engineering MCP Server.

        Args:
            config: Server configuration (defaults to MCPConfig.from_env()).
            engine: Optional pre-configured engine.
        """
        self.config = config or MCPConfig.from_env()
        self._engine = engine

        # Create FastMCP server
        self.mcp = FastMCP(
            name=self.config.server_name,
        )

        # Register tools
        self._register_tools()

        # Setup logging
        self._setup_logging()

    def _setup_logging(self) -> None:
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            stream=sys.stderr,
        )

    def _get_engine(self) -> ContextEngine:
        """Get or create the context engine.

        Raises:
            ConfigurationError: If the engine cannot be built from config.
        """
        if self._engine is None:
            self._engine = ContextEngine.from_config(self.config.engine)
        return self._engine

    def _tool_error(self, tool_name: str, error: Exception) -> dict[str, Any]:
        failure = MCPToolError(f"{tool_name} failed", tool_name=tool_name, cause=error)
        if isinstance(error, ValidationError):
            logger.warning(str(failure))
        else:
            logger.error(str(failure))
        return describe_error(error, self.config)

    def _register_tools(self) -> None:
        """Register all MCP tools."""

        # =====================================================================
        # context_research
        # =====================================================================
        @self.mcp.tool(name="context_research")
        async def context_research(
            feature_request: str,
            technology_stack: list[str] | None = None,
            success_rate_threshold: float = 0.7,
            max_results: int = 10,
            include_research: bool = True,
        ) -> dict[str, Any]:
            """Research recorded patterns, project rules and documentation.

            Call this FIRST, before context_assemble_prp. Returns proven
            implementation patterns ranked by relevance and success rate,
            the project rules that apply, and fresh research notes.

            Args:
                feature_request: What you want to build (e.g. 'user authentication').
                technology_stack: Technologies in use (e.g. ['fastapi', 'postgres']).
                success_rate_threshold: Minimum pattern success rate, 0.0-1.0 (default 0.7).
                max_results: Maximum patterns to return (default 10, max 50).
                include_research: Include documentation and best practices.

            Returns:
                Dict with patterns, rules, research, summary, guidance and metadata.
            """
            try:
                engine = self._get_engine()

                # Clamp limit
                max_results = min(max_results, self.config.max_results_limit)

                result = await engine.research(
                    feature_request,
                    technology_stack=technology_stack,
                    success_rate_threshold=success_rate_threshold,
                    max_results=max_results,
                    include_research=include_research,
                )

                if self.config.log_requests:
                    summary = result["summary"]
                    logger.info(
                        f"context_research '{feature_request[:50]}' returned "
                        f"{summary['total_patterns']} patterns, {summary['total_rules']} rules"
                    )

                return {"success": True, **result}

            except Exception as e:
                return self._tool_error("context_research", e)

        # =====================================================================
        # context_assemble_prp
        # =====================================================================
        @self.mcp.tool(name="context_assemble_prp")
        async def context_assemble_prp(
            feature_request: str,
            research_results: dict[str, Any],
            template_preferences: list[str] | None = None,
            complexity_preference: str = "intermediate",
            validation_strictness: str = "standard",
        ) -> dict[str, Any]:
            """Assemble an implementation guide (PRP) from research results.

            Call this AFTER context_research, passing its result unchanged.

            Args:
                feature_request: What you want to build.
                research_results: The result returned by context_research.
                template_preferences: Preferred template feature types (optional).
                complexity_preference: beginner, intermediate or advanced.
                validation_strictness: basic, standard or strict.

            Returns:
                Dict with document_text, template_used, assembled_context,
                confidence_metrics and metadata.
            """
            try:
                engine = self._get_engine()

                result = await engine.assemble(
                    feature_request,
                    research_results,
                    template_preferences=template_preferences,
                    complexity_preference=complexity_preference,
                    validation_strictness=validation_strictness,
                )

                if self.config.log_requests:
                    logger.info(
                        f"context_assemble_prp '{feature_request[:50]}' confidence="
                        f"{result['confidence_metrics']['overall_confidence']:.2f}"
                    )

                return {"success": True, **result}

            except Exception as e:
                return self._tool_error("context_assemble_prp", e)

    def run(self, transport: str | None = None) -> None:
        """Run the MCP server.

        Args:
            transport: Transport to use ('stdio' or 'sse'); defaults to config.
        """
        transport = transport or self.config.transport
        logger.info(f"Starting Context Engineering MCP Server: {self.config.server_name}")
        self.mcp.run(transport=transport)

    async def close(self) -> None:
        """Close the server and cleanup resources."""
        if self._engine is not None:
            await self._engine.close()
            self._engine = None


# =============================================================================
# Factory Functions
# =============================================================================


def create_context_mcp_server(
    config: MCPConfig | None = None,
    engine: ContextEngine | None = None,
) -> ContextEngineeringMCPServer:
    """Create a Context Engineering MCP Server instance.

    Args:
        config: Server configuration (defaults to MCPConfig.from_env()).
        engine: Optional pre-configured engine.

    Returns:
        Configured ContextEngineeringMCPServer instance.
    """
    return ContextEngineeringMCPServer(config=config, engine=engine)


# =============================================================================
# CLI Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point for the MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="Context Engineering MCP Server")
    parser.add_argument(
        "--store",
        choices=["qdrant", "in_memory"],
        help="Store provider (default: from environment, else qdrant)",
    )
    parser.add_argument(
        "--qdrant-url",
        help="Qdrant server URL",
    )
    parser.add_argument(
        "--ollama-url",
        help="Ollama server URL",
    )
    parser.add_argument(
        "--collection-prefix",
        help="Qdrant collection name prefix",
    )
    parser.add_argument(
        "--universal-rules",
        help="Path to a universal rules file rendered into every PRP",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default=os.environ.get("MCP_TRANSPORT", "stdio"),
        help="Transport to use (default: stdio)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.environ.get("MCP_LOG_LEVEL", "INFO"),
        help="Logging level",
    )

    args = parser.parse_args()

    # Create config from env, then apply explicit args
    config = MCPConfig.from_env()
    if args.store:
        config.engine.store.provider = args.store
    if args.qdrant_url:
        config.engine.store.url = args.qdrant_url
    if args.collection_prefix:
        config.engine.store.collection_prefix = args.collection_prefix
    if args.ollama_url:
        config.engine.embedding.url = args.ollama_url
    if args.universal_rules:
        config.engine.document.universal_rules_path = args.universal_rules
    config.transport = args.transport
    config.log_level = args.log_level

    # Create and run server
    server = create_context_mcp_server(config=config)
    server.run(transport=args.transport)


if __name__ == "__main__":
    main()
