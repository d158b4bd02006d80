"""Tests for the poster orchestrator.

The image service is replaced by httpx.MockTransport; layout and prompt
stages run for real.
"""

import json
from unittest.mock import MagicMock

import httpx
import pytest

from src.core.errors import InputContractViolation
from src.generation import GenerationClient, GenerationClientConfig, JobStatus
from src.layout import LayoutType, SectionRole
from src.prompt import PromptBuildError, StructuredPromptBuilder
from src.schema import AudienceTier
from src.trace import MemoryTraceStore, TraceLayer

from .lib import (
    GenerationStatus,
    PipelineStage,
    PosterOrchestrator,
    generate_request_id,
)

IMAGE_URL = "https://cdn.test/poster.png"

SUCCESS_FLOW = [
    GenerationStatus.GENERATING_LAYOUT,
    GenerationStatus.GENERATING_PROMPT,
    GenerationStatus.GENERATING_FINAL,
    GenerationStatus.COMPLETE,
]


class FakeImageService:
    """Transport handler for the image service, recording submissions."""

    def __init__(self, submit_response: httpx.Response | None = None):
        self.submit_response = submit_response or httpx.Response(
            200, json={"request_id": "r1", "result": {"image_url": IMAGE_URL}}
        )
        self.submissions: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/image/generate"):
            self.submissions.append(json.loads(request.content))
            return self.submit_response
        if request.url.host == "cdn.test":
            return httpx.Response(200, content=b"PNG")
        return httpx.Response(404)


@pytest.fixture
def service():
    return FakeImageService()


@pytest.fixture
def client(service):
    config = GenerationClientConfig(
        api_key="test-token",
        base_url="https://fibo.test/v2",
        poll_interval=0,
        max_polls=3,
    )
    return GenerationClient(
        config, client=httpx.AsyncClient(transport=httpx.MockTransport(service))
    )


class TestRequestId:
    """Tests for request id generation."""

    @pytest.mark.unit
    def test_format(self):
        """Ids are gen_<epoch-ms>_<9 base36 chars>."""
        prefix, millis, suffix = generate_request_id().split("_")
        assert prefix == "gen"
        assert millis.isdigit() and len(millis) >= 13
        assert len(suffix) == 9
        assert all(c.isdigit() or c.islower() for c in suffix)


class TestGenerate:
    """Tests for PosterOrchestrator.generate."""

    @pytest.mark.unit
    async def test_beginner_three_concepts(self, client, service, sample_input):
        """Beginner input runs flow layout through to a completed job."""
        output = await PosterOrchestrator(client).generate(sample_input, seed=42)

        assert output.status == GenerationStatus.COMPLETE
        assert output.success
        assert output.result_url == IMAGE_URL
        assert output.error is None
        assert output.status_history == SUCCESS_FLOW

        layout = output.layout
        assert layout.type == LayoutType.FLOW
        assert len(layout.sections) == 6

        prompt = output.metadata.structured_prompt
        roles = [obj.role for obj in prompt.objects]
        assert roles.count(SectionRole.CONCEPT) == 3
        assert {SectionRole.HEADER, SectionRole.CONNECTOR, SectionRole.FOOTER} <= set(
            roles
        )
        assert len(prompt.text_elements) == 10

        assert output.job.status == JobStatus.COMPLETED
        assert output.metadata.seed == 42
        assert output.metadata.layout_type == "flow"
        assert output.metadata.audience_tier == AudienceTier.BEGINNER
        assert output.metadata.estimated_seconds == 31
        assert output.metadata.failed_stage is None
        assert service.submissions[0]["seed"] == 42

    @pytest.mark.unit
    async def test_generation_failure_names_stage(self, sample_input):
        """An HTTP error ends the run as failed without retry."""
        service = FakeImageService(httpx.Response(500, text="down"))
        config = GenerationClientConfig(api_key="k", base_url="https://fibo.test/v2")
        client = GenerationClient(
            config, client=httpx.AsyncClient(transport=httpx.MockTransport(service))
        )

        output = await PosterOrchestrator(client).generate(sample_input, seed=1)

        assert output.status == GenerationStatus.FAILED
        assert output.error.startswith("generation stage failed:")
        assert output.metadata.failed_stage == PipelineStage.GENERATION
        assert output.result_url is None
        assert output.status_history[-1] == GenerationStatus.FAILED
        assert len(service.submissions) == 1

    @pytest.mark.unit
    async def test_failed_run_reports_drawn_seed(self, sample_input):
        """Without a caller seed the drawn one is still reported on failure."""
        service = FakeImageService(httpx.Response(500, text="down"))
        config = GenerationClientConfig(api_key="k", base_url="https://fibo.test/v2")
        client = GenerationClient(
            config, client=httpx.AsyncClient(transport=httpx.MockTransport(service))
        )

        output = await PosterOrchestrator(client).generate(sample_input)

        assert output.status == GenerationStatus.FAILED
        assert output.metadata.seed is not None
        assert service.submissions[0]["seed"] == output.metadata.seed

    @pytest.mark.unit
    async def test_service_reported_failure(self, sample_input):
        """An explicit failure from the service is surfaced."""
        service = FakeImageService(
            httpx.Response(200, json={"status": "FAILED", "error": "content policy"})
        )
        config = GenerationClientConfig(api_key="k", base_url="https://fibo.test/v2")
        client = GenerationClient(
            config, client=httpx.AsyncClient(transport=httpx.MockTransport(service))
        )
        output = await PosterOrchestrator(client).generate(sample_input)
        assert output.status == GenerationStatus.FAILED
        assert "content policy" in output.error

    @pytest.mark.unit
    async def test_layout_failure(self, client, service, sample_input):
        """Layout errors stop the run before any prompt or submission."""
        engine = MagicMock()
        engine.layout.side_effect = InputContractViolation("unsupported count")

        output = await PosterOrchestrator(client, layout_engine=engine).generate(
            sample_input
        )

        assert output.status == GenerationStatus.FAILED
        assert output.error == "layout stage failed: unsupported count"
        assert output.status_history == [
            GenerationStatus.GENERATING_LAYOUT,
            GenerationStatus.FAILED,
        ]
        assert service.submissions == []

    @pytest.mark.unit
    async def test_prompt_failure(self, client, service, sample_input):
        """Prompt builder errors fail the prompt stage."""
        builder = MagicMock(spec=StructuredPromptBuilder)
        builder.build.side_effect = PromptBuildError("Empty text for slot 'title'")

        output = await PosterOrchestrator(client, prompt_builder=builder).generate(
            sample_input
        )

        assert output.metadata.failed_stage == PipelineStage.PROMPT
        assert output.error.startswith("prompt stage failed:")
        assert output.metadata.layout_type == "flow"
        assert service.submissions == []

    @pytest.mark.unit
    async def test_status_callback(self, client, sample_input):
        """Async status callbacks see every transition in order."""
        seen = []

        async def on_status(request_id, status):
            seen.append((request_id, status))

        output = await PosterOrchestrator(client, on_status=on_status).generate(
            sample_input, request_id="gen_1_test"
        )

        assert [status for _, status in seen] == SUCCESS_FLOW
        assert {rid for rid, _ in seen} == {output.request_id} == {"gen_1_test"}

    @pytest.mark.unit
    async def test_trace_layers(self, client, sample_input):
        """Each stage is traced under the request id."""
        store = MemoryTraceStore()
        output = await PosterOrchestrator(client, trace_store=store).generate(
            sample_input
        )
        assert store.layers(output.request_id) == [
            TraceLayer.INPUT,
            TraceLayer.LAYOUT,
            TraceLayer.PROMPT,
            TraceLayer.GENERATION,
            TraceLayer.FINAL,
        ]

    @pytest.mark.unit
    async def test_trace_failure_ignored(self, client, sample_input):
        """A broken trace store never changes the outcome."""
        store = MagicMock()
        store.record.side_effect = OSError("disk full")
        output = await PosterOrchestrator(client, trace_store=store).generate(
            sample_input
        )
        assert output.status == GenerationStatus.COMPLETE

    @pytest.mark.unit
    async def test_saves_image(self, client, sample_input, tmp_path):
        """Completed images are downloaded when an output dir is set."""
        output = await PosterOrchestrator(client, output_dir=tmp_path).generate(
            sample_input
        )
        assert output.local_path.parent == tmp_path
        assert output.local_path.name.startswith("poster_single_")
        assert output.local_path.read_bytes() == b"PNG"

    @pytest.mark.unit
    async def test_unwritable_output_dir_keeps_result(
        self, client, sample_input, tmp_path
    ):
        """A failed image save leaves the completed poster intact."""
        blocked = tmp_path / "output"
        blocked.write_text("not a directory")

        output = await PosterOrchestrator(client, output_dir=blocked).generate(
            sample_input, seed=1
        )

        assert output.status == GenerationStatus.COMPLETE
        assert output.result_url == IMAGE_URL
        assert output.local_path is None


class TestRegenerate:
    """Tests for PosterOrchestrator.regenerate."""

    @pytest.mark.unit
    async def test_new_tier_recomputes_layout(self, client, sample_input):
        """Advanced regeneration uses the dense layout."""
        output = await PosterOrchestrator(client).regenerate(sample_input, "advanced")
        assert output.status == GenerationStatus.COMPLETE
        assert output.layout.type == LayoutType.DENSE
        assert output.metadata.audience_tier == AudienceTier.ADVANCED
        assert sample_input.audience_tier == AudienceTier.BEGINNER

    @pytest.mark.unit
    async def test_unknown_tier(self, client, service, sample_input):
        """Unknown tiers are rejected before any external call."""
        with pytest.raises(InputContractViolation):
            await PosterOrchestrator(client).regenerate(sample_input, "expert")
        assert service.submissions == []
