"""Entry point for running the Context Engineering MCP Server as a module.

Usage:
    python -m context_engineering.mcp
    python -m context_engineering.mcp --qdrant-url http://localhost:6333
    python -m context_engineering.mcp --transport sse
"""

from context_engineering.mcp.server import main

if __name__ == "__main__":
    main()
