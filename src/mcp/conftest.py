"""Pytest fixtures for MCP server tests.

This module provides:
- A request service wired to mock transports, installed on the server
- A connected in-memory MCP client
"""

from __future__ import annotations

from typing import AsyncGenerator, Generator

import httpx
import pytest
from fastmcp import Client

from src.generation import GenerationClient, GenerationClientConfig
from src.papers import ArxivClient
from src.service import RequestService

from .server import create_server, set_service

IMAGE_URL = "https://cdn.test/poster.png"

FEED = """<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <id>http://arxiv.org/abs/1706.03762v7</id>
    <title>Attention Is All You Need</title>
    <summary>The dominant sequence transduction models are based on complex
      recurrent or convolutional neural networks. We propose a new simple
      network architecture based solely on attention mechanisms.</summary>
    <link href="http://arxiv.org/abs/1706.03762v7" rel="alternate"/>
  </entry>
</feed>
"""


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "arxiv.test":
        return httpx.Response(200, text=FEED)
    if request.url.path.endswith("/image/generate"):
        return httpx.Response(
            200, json={"request_id": "r1", "result": {"image_url": IMAGE_URL}}
        )
    return httpx.Response(404)


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def request_service() -> Generator[RequestService, None, None]:
    """Request service without a compiler, installed on the MCP server."""
    transport = httpx.MockTransport(_handler)
    service = RequestService(
        ArxivClient(
            base_url="http://arxiv.test/api/query",
            client=httpx.AsyncClient(transport=transport),
        ),
        GenerationClient(
            GenerationClientConfig(
                api_key="k", base_url="https://fibo.test/v2", poll_interval=0
            ),
            client=httpx.AsyncClient(transport=transport),
        ),
    )
    set_service(service)
    yield service
    set_service(None)


# =============================================================================
# Client Fixtures
# =============================================================================


@pytest.fixture
async def mcp_client() -> AsyncGenerator[Client, None]:
    """Create connected MCP client for testing.

    Yields:
        Connected Client instance for testing.
    """
    async with Client(create_server()) as client:
        yield client
