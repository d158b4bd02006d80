"""FastMCP server instance for visual-explainer-mcp.

This module provides the MCP server that exposes poster generation to LLM
clients. The workflow is asynchronous:

    1. create_request: arXiv link or topic -> request id
    2. get_request_status: poll until "complete" or "failed"
    3. preview_layout: inspect the layout a request would use, offline

Usage:
    # STDIO mode (for Claude Desktop)
    python -m src.mcp.server

    # HTTP mode (for web deployment)
    python -m src.mcp.server --transport http --port 18080

    # Via CLI
    python . mcp run
    python . mcp serve --port 18080
"""

import argparse
import logging
import sys
from typing import Any

from fastmcp import FastMCP

from src.core.log import setup_logging
from src.layout import LayoutEngine, format_percent, position_label
from src.service import RequestService

from .lib import SERVER_NAME, TransportType, get_server_health, get_server_version

logger = logging.getLogger(__name__)


# =============================================================================
# Server Instructions (LLM Guidance)
# =============================================================================

SERVER_INSTRUCTIONS = """\
## Visual Explainer MCP Server

Turns research papers into single-image explainer posters for a chosen
audience (beginner, intermediate, advanced).

### Quick Start
1. `status()` -> check readiness
2. `create_request("https://arxiv.org/abs/1706.03762", "beginner")` -> request id
3. `get_request_status(request_id)` every few seconds until status is
   "complete" (image_url is set) or "failed" (error names the stage)

Generation takes roughly 30-60 seconds.

### Layout Preview
`preview_layout(concept_count, audience_tier, tags)` shows which layout a
poster with that many concepts would use, with section geometry and
alternatives. No external services are called.
"""

# =============================================================================
# Server Instance
# =============================================================================

mcp = FastMCP(
    name=SERVER_NAME,
    instructions=SERVER_INSTRUCTIONS,
)

_service: RequestService | None = None


def get_service() -> RequestService:
    """Get the request service, building it from the environment on first use."""
    global _service
    if _service is None:
        _service = RequestService.from_environment()
    return _service


def set_service(service: RequestService | None) -> None:
    """Replace the request service (None resets to lazy construction)."""
    global _service
    _service = service


# =============================================================================
# Request Tools
# =============================================================================


@mcp.tool
async def create_request(
    query: str,
    audience_tier: str = "beginner",
    summary_mode: str = "compiler",
) -> dict[str, Any]:
    """Start generating an explainer poster for a paper.

    Returns immediately; poll get_request_status with the returned id.

    Args:
        query: arXiv link (e.g. "https://arxiv.org/abs/1706.03762"), arXiv
            id, or a topic to search for.
        audience_tier: "beginner", "intermediate" or "advanced".
        summary_mode: "compiler" (LLM summary) or "fallback" (derived from
            the abstract without an LLM).

    Returns:
        Dictionary with request_id, status ("pending") and query_type.
    """
    record = await get_service().create_request(
        query, audience_tier, summary_mode=summary_mode
    )
    return record.to_dict()


@mcp.tool
def get_request_status(request_id: str) -> dict[str, Any]:
    """Get the current status of a poster request.

    Args:
        request_id: Id returned by create_request.

    Returns:
        Dictionary with status. Complete requests also carry paper_title,
        paper_url, image_url and summary; failed ones carry error.
    """
    return get_service().get_status(request_id).to_dict()


@mcp.tool
def preview_layout(
    concept_count: int,
    audience_tier: str = "beginner",
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Preview the poster layout for a concept count and audience.

    Args:
        concept_count: Number of key concepts (1-10).
        audience_tier: "beginner", "intermediate" or "advanced".
        tags: Content tags; diagram-heavy tags pair text with visuals.

    Returns:
        Dictionary with layout_type, reasoning, sections (role, position
        label, height share), warnings and alternatives.
    """
    engine = LayoutEngine()
    tags = tags or []
    layout = engine.layout(concept_count, audience_tier, tags)
    recommendation = engine.recommendations(concept_count, audience_tier, tags)
    validation = engine.validate(layout)

    return {
        "layout_type": layout.type.value,
        "reasoning": recommendation.reasoning,
        "sections": [
            {
                "role": section.role.value,
                "position": position_label(section),
                "height": format_percent(section.height_share),
                "overlay": section.overlay,
            }
            for section in layout.sections
        ],
        "warnings": validation.warnings,
        "alternatives": [
            {"layout_type": alt.type.value, "section_count": len(alt.sections)}
            for alt in engine.alternatives(concept_count, audience_tier, tags).values()
        ],
    }


# =============================================================================
# Status Tools
# =============================================================================


@mcp.tool
def ping() -> dict[str, Any]:
    """Check that the server is responding."""
    return {"status": "ok", "server": SERVER_NAME, "version": get_server_version()}


@mcp.tool
def status() -> dict[str, Any]:
    """Check which request modes are available.

    Use this FIRST to verify the server is ready before creating requests.

    Returns:
        Dictionary with:
        - status: "healthy", "degraded", or "unhealthy"
        - capabilities: Which tools and modes will work
        - action_required: What to configure if degraded/unhealthy
    """
    return get_server_health()


# =============================================================================
# Server Factory & Runner
# =============================================================================


def create_server() -> FastMCP:
    """Create and configure the MCP server instance.

    Returns:
        Configured FastMCP server instance.
    """
    return mcp


def run_server(
    transport: TransportType = TransportType.STDIO,
    host: str = "0.0.0.0",
    port: int = 18080,
) -> None:
    """Run the MCP server with specified transport.

    Args:
        transport: Transport type (stdio, http, sse).
        host: Bind address for HTTP/SSE.
        port: Port for HTTP/SSE.
    """
    logger.info(f"Starting {SERVER_NAME} server v{get_server_version()}")
    logger.info(f"Transport: {transport.value}")

    health = get_server_health()
    logger.info(f"Health: {health['status']}")
    for action in health.get("action_required", []):
        logger.warning(action)

    if transport == TransportType.STDIO:
        logger.info("Running in STDIO mode (for Claude Desktop)")
        mcp.run()
    elif transport == TransportType.HTTP:
        logger.info(f"Running in HTTP mode at http://{host}:{port}/mcp")
        mcp.run(
            transport="http",
            host=host,
            port=port,
            path="/mcp",
        )
    elif transport == TransportType.SSE:
        logger.info(f"Running in SSE mode at http://{host}:{port}")
        mcp.run(
            transport="sse",
            host=host,
            port=port,
        )
    else:
        raise ValueError(f"Unknown transport: {transport}")


# =============================================================================
# CLI Entry Point
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for MCP server.

    Args:
        argv: Command line arguments (uses sys.argv if None).

    Returns:
        Exit code (0 for success).
    """
    parser = argparse.ArgumentParser(
        prog=SERVER_NAME,
        description="MCP server for research paper explainer posters",
    )
    parser.add_argument(
        "--transport",
        "-t",
        type=str,
        choices=["stdio", "http", "sse"],
        default="stdio",
        help="Transport type (default: stdio)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Bind address for HTTP/SSE (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=18080,
        help="Port for HTTP/SSE (default: 18080)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        run_server(
            transport=TransportType(args.transport),
            host=args.host,
            port=args.port,
        )
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Server error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
