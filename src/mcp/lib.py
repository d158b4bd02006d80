"""Core MCP server logic for visual-explainer-mcp.

Provides configuration and health reporting for the MCP server instance.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.config import (
    EnvVar,
    get_available_llm_providers,
    get_environment,
    get_fibo_api_key,
    get_trace_dir,
)

SERVER_NAME = "visual-explainer-mcp"


class TransportType(str, Enum):
    """Supported MCP transport types."""

    STDIO = "stdio"
    HTTP = "http"
    SSE = "sse"


@dataclass
class ServerConfig:
    """Configuration for MCP server.

    Attributes:
        name: Server display name.
        transport: Transport type for communication.
        host: Bind address for HTTP/SSE transports.
        port: Port for HTTP/SSE transports.
        path: URL path for HTTP transport.
    """

    name: str = SERVER_NAME
    transport: TransportType = TransportType.STDIO
    host: str = "0.0.0.0"
    port: int = 18080
    path: str = "/mcp"

    @classmethod
    def from_env(
        cls,
        transport: TransportType | None = None,
    ) -> "ServerConfig":
        """Create config from environment variables.

        Args:
            transport: Override transport type (default: STDIO).

        Returns:
            ServerConfig with values from environment.
        """
        return cls(
            transport=transport or TransportType.STDIO,
            host=get_environment(EnvVar.MCP_HOST),
            port=get_environment(EnvVar.MCP_PORT),
        )


def get_server_version() -> str:
    """Get server version string."""
    return "0.1.0"


def get_server_health() -> dict[str, Any]:
    """Report which request modes the current environment supports.

    Returns:
        Dictionary with status ("healthy", "degraded" or "unhealthy"),
        version, capabilities and the actions needed to fix what is missing.
    """
    providers = get_available_llm_providers()
    can_generate = bool(get_fibo_api_key())
    capabilities = {
        "create_request": can_generate,
        "compiler_mode": can_generate and bool(providers),
        "preview_layout": True,
        "tracing": get_trace_dir() is not None,
    }

    actions = []
    if not can_generate:
        actions.append("Set FIBO_API_KEY (or BRIA_API_KEY) in .env")
    if not providers:
        actions.append(
            "Set OPENAI_API_KEY or ANTHROPIC_API_KEY in .env for compiler mode"
        )

    if not can_generate:
        status = "unhealthy"
    elif not providers:
        status = "degraded"
    else:
        status = "healthy"

    result: dict[str, Any] = {
        "status": status,
        "version": get_server_version(),
        "capabilities": capabilities,
        "llm_providers": providers,
    }
    if actions:
        result["action_required"] = actions
    return result


__all__ = [
    "SERVER_NAME",
    "TransportType",
    "ServerConfig",
    "get_server_version",
    "get_server_health",
]
