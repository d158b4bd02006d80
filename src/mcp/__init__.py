"""MCP (Model Context Protocol) server for visual-explainer-mcp.

This module provides the MCP server implementation that exposes poster
generation to LLM clients like Claude Desktop.

Example:
    # Start server in STDIO mode (for Claude Desktop)
    >>> from src.mcp import run_server
    >>> run_server()

    # Start server in HTTP mode
    >>> from src.mcp import run_server, TransportType
    >>> run_server(transport=TransportType.HTTP, port=18080)

Available Tools:
    - ping: Liveness check
    - status: Which request modes the environment supports
    - create_request: Start a poster request from an arXiv link or topic
    - get_request_status: Poll a request
    - preview_layout: Layout geometry for a concept count and audience
"""

from .lib import (
    SERVER_NAME,
    ServerConfig,
    TransportType,
    get_server_health,
    get_server_version,
)
from .server import create_server, get_service, mcp, run_server, set_service

__all__ = [
    # Server instance
    "mcp",
    "create_server",
    "run_server",
    "get_service",
    "set_service",
    # Configuration
    "SERVER_NAME",
    "ServerConfig",
    "TransportType",
    # Utilities
    "get_server_version",
    "get_server_health",
]
