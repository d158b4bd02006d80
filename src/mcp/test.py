"""Unit tests for MCP server module.

Tests cover:
- Server configuration and health
- Tool registration over the MCP protocol
- Request tools against a mock-transport request service
- Layout preview
"""

import json

import pytest

from .lib import (
    SERVER_NAME,
    ServerConfig,
    TransportType,
    get_server_health,
    get_server_version,
)
from .server import create_server, mcp

IMAGE_URL = "https://cdn.test/poster.png"
HEALTH_KEYS = ["FIBO_API_KEY", "BRIA_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"]


def payload(result) -> dict:
    """Decode the JSON body of a tool call result."""
    return json.loads(result.content[0].text)


# =============================================================================
# Configuration Tests
# =============================================================================


class TestServerConfig:
    """Tests for ServerConfig dataclass."""

    @pytest.mark.unit
    def test_default_config(self):
        """Default config has expected values."""
        config = ServerConfig()

        assert config.name == SERVER_NAME
        assert config.transport == TransportType.STDIO
        assert config.host == "0.0.0.0"
        assert config.port == 18080
        assert config.path == "/mcp"

    @pytest.mark.unit
    def test_from_env(self, monkeypatch):
        """from_env reads host and port and respects the transport override."""
        monkeypatch.setenv("MCP_HOST", "127.0.0.1")
        monkeypatch.setenv("MCP_PORT", "9000")
        config = ServerConfig.from_env(transport=TransportType.HTTP)

        assert config.transport == TransportType.HTTP
        assert config.host == "127.0.0.1"
        assert config.port == 9000

    @pytest.mark.unit
    def test_transport_from_string(self):
        """Transport can be created from string."""
        assert TransportType("stdio") == TransportType.STDIO
        assert TransportType("http") == TransportType.HTTP
        assert TransportType("sse") == TransportType.SSE


class TestServerHealth:
    """Tests for health reporting."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for key in HEALTH_KEYS + ["GRADIENT_API_KEY", "TRACE_DIR"]:
            monkeypatch.delenv(key, raising=False)

    @pytest.mark.unit
    def test_unhealthy_without_image_key(self):
        """No image service key means requests cannot run."""
        health = get_server_health()
        assert health["status"] == "unhealthy"
        assert health["capabilities"]["create_request"] is False
        assert health["capabilities"]["preview_layout"] is True
        assert any("FIBO_API_KEY" in a for a in health["action_required"])

    @pytest.mark.unit
    def test_degraded_without_llm(self, monkeypatch):
        """An image key alone allows fallback mode only."""
        monkeypatch.setenv("FIBO_API_KEY", "k")
        health = get_server_health()
        assert health["status"] == "degraded"
        assert health["capabilities"]["create_request"] is True
        assert health["capabilities"]["compiler_mode"] is False

    @pytest.mark.unit
    def test_healthy(self, monkeypatch):
        """Image key plus an LLM key is fully healthy."""
        monkeypatch.setenv("FIBO_API_KEY", "k")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        health = get_server_health()
        assert health["status"] == "healthy"
        assert health["llm_providers"] == ["openai"]
        assert "action_required" not in health


# =============================================================================
# Server Instance Tests
# =============================================================================


class TestServerInstance:
    """Tests for FastMCP server instance."""

    @pytest.mark.unit
    def test_create_server_returns_mcp(self):
        """create_server returns the module-level instance."""
        assert create_server() is mcp
        assert mcp.name == SERVER_NAME

    @pytest.mark.unit
    async def test_tools_registered(self, mcp_client):
        """Exactly the request, preview and status tools are exposed."""
        tools = await mcp_client.list_tools()
        assert {t.name for t in tools} == {
            "ping",
            "status",
            "create_request",
            "get_request_status",
            "preview_layout",
        }

    @pytest.mark.unit
    async def test_ping(self, mcp_client):
        """ping reports the server version."""
        result = payload(await mcp_client.call_tool("ping", {}))
        assert result["status"] == "ok"
        assert result["version"] == get_server_version()


# =============================================================================
# Request Tool Tests
# =============================================================================


class TestRequestTools:
    """Tests for create_request and get_request_status."""

    @pytest.mark.unit
    async def test_create_and_poll(self, mcp_client, request_service):
        """A fallback request completes and its status carries the image."""
        created = payload(
            await mcp_client.call_tool(
                "create_request",
                {
                    "query": "https://arxiv.org/abs/1706.03762",
                    "audience_tier": "beginner",
                    "summary_mode": "fallback",
                },
            )
        )
        assert created["status"] == "pending"
        assert created["query_type"] == "arxiv_link"

        await request_service.wait(created["request_id"])

        status = payload(
            await mcp_client.call_tool(
                "get_request_status", {"request_id": created["request_id"]}
            )
        )
        assert status["status"] == "complete"
        assert status["image_url"] == IMAGE_URL
        assert status["paper_title"] == "Attention Is All You Need"

    @pytest.mark.unit
    async def test_unknown_request(self, mcp_client, request_service):
        """Unknown ids surface as tool errors."""
        with pytest.raises(Exception, match="Unknown request"):
            await mcp_client.call_tool("get_request_status", {"request_id": "nope"})

    @pytest.mark.unit
    async def test_bad_tier(self, mcp_client, request_service):
        """Invalid tiers are rejected without creating a request."""
        with pytest.raises(Exception, match="audience tier"):
            await mcp_client.call_tool(
                "create_request",
                {"query": "transformers", "audience_tier": "expert"},
            )
        assert request_service.list_requests() == []


# =============================================================================
# Layout Preview Tests
# =============================================================================


class TestPreviewLayout:
    """Tests for preview_layout."""

    @pytest.mark.unit
    async def test_beginner_preview(self, mcp_client):
        """Beginner preview is a flow layout with grid as alternative."""
        result = payload(
            await mcp_client.call_tool(
                "preview_layout", {"concept_count": 3, "audience_tier": "beginner"}
            )
        )
        assert result["layout_type"] == "flow"
        assert len(result["sections"]) == 6
        assert result["sections"][0]["role"] == "header"
        assert result["sections"][0]["position"].startswith("top")
        assert [a["layout_type"] for a in result["alternatives"]] == ["grid"]

    @pytest.mark.unit
    async def test_intermediate_many_concepts(self, mcp_client):
        """Five intermediate concepts use the F-pattern."""
        result = payload(
            await mcp_client.call_tool(
                "preview_layout",
                {"concept_count": 5, "audience_tier": "intermediate", "tags": []},
            )
        )
        assert result["layout_type"] == "f-pattern"

    @pytest.mark.unit
    async def test_count_out_of_range(self, mcp_client):
        """Counts outside 1-10 are rejected."""
        with pytest.raises(Exception):
            await mcp_client.call_tool(
                "preview_layout", {"concept_count": 11, "audience_tier": "beginner"}
            )
