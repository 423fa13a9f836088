"""Configuration for the Context Engineering MCP Server.

This module defines the server-level settings (name, transport, logging,
result limits) and wraps the EngineConfig used to build the engine.
"""

import os
from dataclasses import dataclass, field
from typing import Literal

from context_engineering.config import EngineConfig


@dataclass
class MCPConfig:
    """Configuration for the Context Engineering MCP Server."""

    # Engine
    engine: EngineConfig = field(default_factory=EngineConfig.from_env)
    """Store, embedding, retrieval and document settings."""

    # Server settings
    server_name: str = "context-engineering"
    """MCP server name."""

    transport: Literal["stdio", "sse"] = field(
        default_factory=lambda: os.environ.get("MCP_TRANSPORT", "stdio")  # type: ignore
    )
    """Transport to serve on."""

    # Limits
    max_results_limit: int = field(
        default_factory=lambda: int(os.environ.get("MCP_MAX_RESULTS", "50"))
    )
    """Largest max_results a client may request."""

    # Logging
    log_level: str = field(
        default_factory=lambda: os.environ.get("MCP_LOG_LEVEL", "INFO")
    )
    """Logging level."""

    log_requests: bool = True
    """Whether to log every tool call."""

    @classmethod
    def from_env(cls) -> "MCPConfig":
        """Create config from environment variables.

        Environment variables:
        - MCP_TRANSPORT: stdio or sse
        - MCP_MAX_RESULTS: Largest max_results a client may request
        - MCP_LOG_LEVEL: Logging level
        - CONTEXT_ENGINEERING_*, QDRANT_URL, QDRANT_API_KEY, OLLAMA_URL:
          see EngineConfig.from_env
        """
        return cls()
