"""MCP Server for Context Engineering.

This module provides an MCP (Model Context Protocol) server that exposes the
research and PRP assembly operations as tools, so coding assistants can pull
recorded patterns, rules and research into their implementation plans.

Example:
    # Start the MCP server
    python -m context_engineering.mcp

    # Or use programmatically
    from context_engineering.mcp import ContextEngineeringMCPServer, MCPConfig

    server = ContextEngineeringMCPServer(MCPConfig.from_env())
    server.run()

Configuration for an MCP client:
    {
      "mcpServers": {
        "context-engineering": {
          "command": "python",
          "args": ["-m", "context_engineering.mcp"],
          "env": {
            "QDRANT_URL": "http://localhost:6333",
            "OLLAMA_URL": "http://localhost:11434"
          }
        }
      }
    }
"""

from context_engineering.mcp.config import MCPConfig
from context_engineering.mcp.server import (
    ContextEngineeringMCPServer,
    create_context_mcp_server,
    describe_error,
)

__all__ = [
    # Config
    "MCPConfig",
    # Server
    "ContextEngineeringMCPServer",
    "create_context_mcp_server",
    "describe_error",
]
