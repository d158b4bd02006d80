"""Tests for the generation job client.

Unit tests use httpx.MockTransport (no network).
Integration tests require FIBO_API_KEY or BRIA_API_KEY.
"""

import json

import httpx
import pytest

from src.core.errors import GenerationTimeout, ServiceReportedFailure
from src.layout import compute_layout
from src.prompt import build_structured_prompt

from .lib import (
    MAX_SEED,
    GenerationClient,
    GenerationClientConfig,
    GenerationJob,
    GenerationServiceError,
    GenerationSettings,
    InvalidJobTransition,
    JobStatus,
    download_image,
    poster_filename,
    random_seed,
)

BASE_URL = "https://fibo.test/v2"
IMAGE_URL = "https://cdn.test/poster.png"


@pytest.fixture
def prompt(sample_input):
    layout = compute_layout(3, "beginner", sample_input.tags)
    return build_structured_prompt(sample_input, layout)


@pytest.fixture
def config():
    return GenerationClientConfig(
        api_key="test-token", base_url=BASE_URL, poll_interval=0, max_polls=5
    )


def make_client(config, handler) -> GenerationClient:
    transport = httpx.MockTransport(handler)
    return GenerationClient(config, client=httpx.AsyncClient(transport=transport))


# =============================================================================
# Job Model Tests
# =============================================================================


class TestGenerationJob:
    """Tests for job status transitions."""

    @pytest.mark.unit
    def test_forward_transitions(self):
        """Jobs move submitted -> in_progress -> completed."""
        job = GenerationJob(job_id="j1", status=JobStatus.SUBMITTED, seed=1)
        job.transition(JobStatus.IN_PROGRESS)
        job.transition(JobStatus.IN_PROGRESS)
        job.transition(JobStatus.COMPLETED)
        assert job.status == JobStatus.COMPLETED
        assert job.finished_at is not None
        assert job.elapsed_ms >= 0

    @pytest.mark.unit
    def test_backward_transition_rejected(self):
        """In-progress jobs cannot return to submitted."""
        job = GenerationJob(job_id="j1", status=JobStatus.IN_PROGRESS, seed=1)
        with pytest.raises(InvalidJobTransition):
            job.transition(JobStatus.SUBMITTED)

    @pytest.mark.unit
    @pytest.mark.parametrize("terminal", [JobStatus.COMPLETED, JobStatus.FAILED])
    def test_terminal_states_are_final(self, terminal):
        """Nothing leaves a terminal state."""
        job = GenerationJob(job_id="j1", status=terminal, seed=1)
        for status in JobStatus:
            with pytest.raises(InvalidJobTransition):
                job.transition(status)

    @pytest.mark.unit
    def test_random_seed_range(self):
        """Seeds are drawn from [0, MAX_SEED)."""
        seeds = [random_seed() for _ in range(200)]
        assert all(0 <= seed < MAX_SEED for seed in seeds)


class TestGenerationClientConfig:
    """Tests for client configuration."""

    @pytest.mark.unit
    def test_defaults(self):
        """Defaults follow the service's recommended quality settings."""
        config = GenerationClientConfig(api_key="k")
        assert config.poll_interval == 2.0
        assert config.max_polls == 150
        assert config.settings == GenerationSettings()
        assert config.settings.steps_num == 45
        assert config.settings.text_guidance_scale == 8.5

    @pytest.mark.unit
    def test_from_environment_requires_key(self, monkeypatch):
        """A missing token is reported before any request."""
        monkeypatch.delenv("FIBO_API_KEY", raising=False)
        monkeypatch.delenv("BRIA_API_KEY", raising=False)
        with pytest.raises(ValueError, match="FIBO_API_KEY"):
            GenerationClientConfig.from_environment()

    @pytest.mark.unit
    def test_from_environment_bria_key(self, monkeypatch):
        """BRIA_API_KEY is accepted when FIBO_API_KEY is unset."""
        monkeypatch.delenv("FIBO_API_KEY", raising=False)
        monkeypatch.setenv("BRIA_API_KEY", "bria-token")
        monkeypatch.setenv("FIBO_MAX_POLLS", "7")
        config = GenerationClientConfig.from_environment()
        assert config.api_key == "bria-token"
        assert config.max_polls == 7

    @pytest.mark.unit
    def test_client_requires_key(self):
        """Clients refuse an empty token."""
        with pytest.raises(ValueError):
            GenerationClient(GenerationClientConfig(api_key=""))


# =============================================================================
# Submit Tests
# =============================================================================


class TestSubmit:
    """Tests for GenerationClient.submit."""

    @pytest.mark.unit
    async def test_request_shape(self, config, prompt):
        """Body carries the serialized prompt, seed and quality settings."""
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["token"] = request.headers.get("api_token")
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"request_id": "r1", "result": {"image_url": IMAGE_URL}}
            )

        client = make_client(config, handler)
        job = await client.submit(prompt, seed=42)

        assert captured["url"] == f"{BASE_URL}/image/generate"
        assert captured["token"] == "test-token"
        body = captured["body"]
        assert body["seed"] == 42
        assert body["sync"] is True
        assert body["output_format"] == "png"
        assert body["image_size"] == {"width": 1024, "height": 1024}
        assert body["fast"] is False
        assert "blurry text" in body["negative_prompt"]
        structured = json.loads(body["structured_prompt"])
        assert "background_setting" in structured
        assert len(structured["text_render"]) == 10

        assert job.status == JobStatus.COMPLETED
        assert job.result_url == IMAGE_URL
        assert job.seed == 42

    @pytest.mark.unit
    async def test_random_seed_recorded(self, config, prompt):
        """Without a seed one is generated and recorded on the job."""
        client = make_client(
            config,
            lambda r: httpx.Response(
                200, json={"request_id": "r1", "status": "PENDING"}
            ),
        )
        job = await client.submit(prompt)
        assert job.seed is not None
        assert 0 <= job.seed < MAX_SEED

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "payload",
        [
            {"request_id": "r1", "status": "pending"},
            {"request_id": "r1", "status": "PROCESSING"},
            {"request_id": "r1", "status": "IN_PROGRESS"},
            {"request_id": "r1"},
        ],
    )
    async def test_async_acceptance(self, config, prompt, payload):
        """Pending statuses or a bare request id return a submitted job."""
        client = make_client(config, lambda r: httpx.Response(200, json=payload))
        job = await client.submit(prompt, seed=1)
        assert job.status == JobStatus.SUBMITTED
        assert job.job_id == "r1"

    @pytest.mark.unit
    async def test_completed_status_without_result_block(self, config, prompt):
        """A top-level image URL is accepted for completed responses."""
        client = make_client(
            config,
            lambda r: httpx.Response(
                200,
                json={"request_id": "r1", "status": "COMPLETE", "image_url": IMAGE_URL},
            ),
        )
        job = await client.submit(prompt, seed=1)
        assert job.result_url == IMAGE_URL

    @pytest.mark.unit
    async def test_reported_failure(self, config, prompt):
        """FAILED responses raise ServiceReportedFailure."""
        client = make_client(
            config,
            lambda r: httpx.Response(200, json={"status": "FAILED", "error": "nsfw"}),
        )
        with pytest.raises(ServiceReportedFailure, match="nsfw"):
            await client.submit(prompt, seed=1)

    @pytest.mark.unit
    async def test_http_error(self, config, prompt):
        """Non-2xx responses raise GenerationServiceError with the status."""
        client = make_client(config, lambda r: httpx.Response(401, text="bad token"))
        with pytest.raises(GenerationServiceError) as exc_info:
            await client.submit(prompt, seed=1)
        assert exc_info.value.status_code == 401
        assert exc_info.value.response_body == "bad token"

    @pytest.mark.unit
    async def test_transport_error(self, config, prompt):
        """Connection errors raise GenerationServiceError."""

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(config, handler)
        with pytest.raises(GenerationServiceError):
            await client.submit(prompt, seed=1)

    @pytest.mark.unit
    async def test_unexpected_shape(self, config, prompt):
        """Responses without status, id or image are rejected."""
        client = make_client(config, lambda r: httpx.Response(200, json={"foo": 1}))
        with pytest.raises(GenerationServiceError, match="Unexpected response"):
            await client.submit(prompt, seed=1)


# =============================================================================
# Polling Tests
# =============================================================================


class StatusSequence:
    """Transport handler replaying a list of poll responses."""

    def __init__(self, responses: list):
        self.responses = list(responses)
        self.urls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.urls.append(str(request.url))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def in_progress() -> httpx.Response:
    return httpx.Response(200, json={"status": "IN_PROGRESS"})


def completed() -> httpx.Response:
    return httpx.Response(
        200, json={"status": "COMPLETED", "result": {"image_url": IMAGE_URL}}
    )


def submitted_job(**kwargs) -> GenerationJob:
    return GenerationJob(job_id="r1", status=JobStatus.SUBMITTED, seed=7, **kwargs)


class TestAwaitCompletion:
    """Tests for GenerationClient.await_completion."""

    @pytest.mark.unit
    @pytest.mark.parametrize("pending_polls", [0, 1, 3])
    async def test_completes_after_pending_polls(self, config, pending_polls):
        """N in-progress polls then completed makes N+1 polls."""
        handler = StatusSequence([in_progress()] * pending_polls + [completed()])
        client = make_client(config, handler)

        job = await client.await_completion(submitted_job())

        assert job.status == JobStatus.COMPLETED
        assert job.result_url == IMAGE_URL
        assert job.polls == pending_polls + 1
        assert len(handler.urls) == pending_polls + 1
        assert handler.urls[0] == f"{BASE_URL}/status/r1"

    @pytest.mark.unit
    async def test_uses_status_url(self, config):
        """A status URL from the service takes precedence."""
        handler = StatusSequence([completed()])
        client = make_client(config, handler)
        await client.await_completion(
            submitted_job(status_url="https://fibo.test/v2/status/custom")
        )
        assert handler.urls == ["https://fibo.test/v2/status/custom"]

    @pytest.mark.unit
    async def test_timeout_after_max_polls(self, config):
        """A job that never completes times out after exactly max_polls."""
        handler = StatusSequence([in_progress()] * config.max_polls)
        client = make_client(config, handler)
        job = submitted_job()

        with pytest.raises(GenerationTimeout):
            await client.await_completion(job)

        assert len(handler.urls) == config.max_polls
        assert job.status == JobStatus.IN_PROGRESS

    @pytest.mark.unit
    async def test_reported_failure_stops_polling(self, config):
        """A FAILED status ends the loop immediately."""
        handler = StatusSequence(
            [
                in_progress(),
                httpx.Response(200, json={"status": "ERROR", "error": "boom"}),
            ]
        )
        client = make_client(config, handler)
        job = submitted_job()

        with pytest.raises(ServiceReportedFailure, match="boom"):
            await client.await_completion(job)

        assert job.status == JobStatus.FAILED
        assert job.error == "boom"
        assert len(handler.urls) == 2

    @pytest.mark.unit
    async def test_transient_errors_retried(self, config):
        """Transport errors and non-2xx polls are retried."""
        request = httpx.Request("GET", f"{BASE_URL}/status/r1")
        handler = StatusSequence(
            [
                httpx.ReadTimeout("slow", request=request),
                httpx.Response(503, text="busy"),
                completed(),
            ]
        )
        client = make_client(config, handler)
        job = await client.await_completion(submitted_job())
        assert job.status == JobStatus.COMPLETED
        assert job.polls == 3

    @pytest.mark.unit
    async def test_error_on_final_poll_propagates(self, config):
        """A transient error on the last poll is raised, not swallowed."""
        handler = StatusSequence(
            [in_progress()] * (config.max_polls - 1)
            + [httpx.Response(500, text="oops")]
        )
        client = make_client(config, handler)
        with pytest.raises(GenerationServiceError) as exc_info:
            await client.await_completion(submitted_job())
        assert exc_info.value.status_code == 500

    @pytest.mark.unit
    async def test_completed_without_url(self, config):
        """A completed status without an image URL is an error."""
        handler = StatusSequence([httpx.Response(200, json={"status": "COMPLETED"})])
        client = make_client(config, handler)
        with pytest.raises(GenerationServiceError, match="without an image URL"):
            await client.await_completion(submitted_job())

    @pytest.mark.unit
    async def test_already_completed(self, config):
        """Completed jobs return immediately without polling."""
        handler = StatusSequence([])
        client = make_client(config, handler)
        job = GenerationJob(
            job_id="r1", status=JobStatus.COMPLETED, seed=1, result_url=IMAGE_URL
        )
        assert await client.await_completion(job) is job
        assert job.polls == 0
        assert handler.urls == []

    @pytest.mark.unit
    async def test_bare_job_id(self, config):
        """A job id alone can be awaited."""
        client = make_client(config, StatusSequence([completed()]))
        job = await client.await_completion("r9")
        assert job.job_id == "r9"
        assert job.result_url == IMAGE_URL

    @pytest.mark.unit
    async def test_generate_submits_then_polls(self, config, prompt):
        """generate() chains submit and await_completion."""
        handler = StatusSequence(
            [
                httpx.Response(200, json={"request_id": "r1", "status": "PENDING"}),
                in_progress(),
                completed(),
            ]
        )
        client = make_client(config, handler)
        job = await client.generate(prompt, seed=5)
        assert job.status == JobStatus.COMPLETED
        assert job.seed == 5
        assert job.polls == 2


class TestConnection:
    """Tests for GenerationClient.test_connection."""

    @pytest.mark.unit
    @pytest.mark.parametrize("status,expected", [(200, True), (403, False)])
    async def test_status(self, config, status, expected):
        """Connection test mirrors the response status."""
        client = make_client(config, lambda r: httpx.Response(status, json={}))
        assert await client.test_connection() is expected

    @pytest.mark.unit
    async def test_transport_error(self, config):
        """Transport errors report False."""

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await make_client(config, handler).test_connection() is False


# =============================================================================
# Image Saving Tests
# =============================================================================


class TestImageSaving:
    """Tests for poster file naming and download."""

    @pytest.mark.unit
    def test_poster_filename(self):
        """Filenames embed mode, timestamp and request id."""
        name = poster_filename("gen_1_abc", mode="single")
        prefix, mode, timestamp, rest = name.split("_", 3)
        assert prefix == "poster"
        assert mode == "single"
        assert timestamp.isdigit()
        assert rest == "gen_1_abc"

    @pytest.mark.unit
    async def test_download_image(self, tmp_path):
        """Images are written under the directory with a .png suffix."""
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"PNG"))
        )
        path = await download_image(
            IMAGE_URL, tmp_path / "out", "poster", client=client
        )
        assert path == tmp_path / "out" / "poster.png"
        assert path.read_bytes() == b"PNG"

    @pytest.mark.unit
    async def test_download_failure(self, tmp_path):
        """HTTP errors raise GenerationServiceError."""
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(404))
        )
        with pytest.raises(GenerationServiceError):
            await download_image(IMAGE_URL, tmp_path, "poster.png", client=client)

    @pytest.mark.unit
    async def test_directory_is_a_file(self, tmp_path):
        """Filesystem errors are reported as GenerationServiceError."""
        blocked = tmp_path / "output"
        blocked.write_text("not a directory")
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"PNG"))
        )
        with pytest.raises(GenerationServiceError, match="Cannot create"):
            await download_image(IMAGE_URL, blocked, "poster", client=client)


# =============================================================================
# Integration Tests
# =============================================================================


@pytest.mark.integration
@pytest.mark.fibo
class TestGenerationIntegration:
    """Integration tests against the live service."""

    async def test_connection(self):
        """Configured token is accepted."""
        config = GenerationClientConfig.from_environment()
        async with GenerationClient(config) as client:
            assert await client.test_connection()
