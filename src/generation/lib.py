"""Async client for the Bria FIBO structured-prompt image service.

Submits a structured prompt as a job and tracks it to a terminal state by
polling at a fixed interval with a hard poll ceiling. Transport problems are
retried inside the poll loop; an explicit failure from the service ends the
job immediately.
"""

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import httpx

from src.config import EnvVar, get_environment, get_fibo_api_key
from src.core.errors import (
    GenerationTimeout,
    PipelineError,
    ServiceCallFailure,
    ServiceReportedFailure,
)
from src.prompt import StructuredPrompt

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://engine.prod.bria-api.com/v2"

MAX_SEED = 1_000_000

DEFAULT_NEGATIVE_PROMPT = (
    "blurry text, low resolution, sloppy lines, illegible labels, pixelation, "
    "artifacts, distorted fonts, overcrowded layout, poor contrast, unreadable "
    "text, fuzzy edges, compression artifacts, jpeg artifacts, watermark, low "
    "quality, amateur design, cluttered, messy, unclear typography"
)

# Upper-cased status strings reported by the service
_PENDING_STATUSES = {"PENDING", "PROCESSING", "IN_PROGRESS"}
_COMPLETED_STATUSES = {"COMPLETED", "COMPLETE"}
_FAILED_STATUSES = {"FAILED", "ERROR"}


# =============================================================================
# Errors
# =============================================================================


class GenerationServiceError(ServiceCallFailure):
    """Transport, HTTP or response-shape problem talking to the service."""


class InvalidJobTransition(PipelineError, ValueError):
    """A job was moved backwards or out of a terminal state."""


# =============================================================================
# Job Model
# =============================================================================


class JobStatus(str, Enum):
    """Lifecycle of a generation job.

    Transitions only move forward; completed and failed are final.
    """

    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.SUBMITTED: {JobStatus.IN_PROGRESS, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.IN_PROGRESS: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


@dataclass
class GenerationJob:
    """One image-generation job tracked by a single control flow.

    Attributes:
        job_id: Identifier assigned by the service.
        status: Current lifecycle status.
        seed: Seed sent with the request. None only for a job resumed
            from a bare id.
        result_url: Image URL once completed.
        status_url: Poll URL returned by the service, if any.
        error: Failure reason once failed.
        polls: Status polls made so far.
        started_at: Monotonic clock reading at submission.
        finished_at: Monotonic clock reading at the terminal transition.
    """

    job_id: str
    status: JobStatus
    seed: int | None
    result_url: str | None = None
    status_url: str | None = None
    error: str | None = None
    polls: int = 0
    started_at: float = field(default_factory=time.monotonic)
    finished_at: float | None = None

    @property
    def elapsed_ms(self) -> int:
        """Milliseconds from submission to the terminal state (or now)."""
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return int((end - self.started_at) * 1000)

    def transition(self, status: JobStatus) -> None:
        """Move the job to a new status.

        Re-entering the current non-terminal status is a no-op.

        Raises:
            InvalidJobTransition: If the move is backwards or leaves a
                terminal state.
        """
        if status == self.status and not status.is_terminal:
            return
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidJobTransition(
                f"Job {self.job_id}: cannot move from {self.status.value} "
                f"to {status.value}"
            )
        self.status = status
        if status.is_terminal:
            self.finished_at = time.monotonic()


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class GenerationSettings:
    """Rendering parameters sent with every generation request.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        output_format: Image format.
        steps_num: Diffusion steps (40-50 for high quality).
        enhance_image: Apply sharpening post-processing.
        text_guidance_scale: Prompt adherence for rendered text.
        aspect_ratio: Output aspect ratio.
        fast: Use the lower-quality fast mode.
        negative_prompt: Artifacts to steer away from.
    """

    width: int = 1024
    height: int = 1024
    output_format: str = "png"
    steps_num: int = 45
    enhance_image: bool = True
    text_guidance_scale: float = 8.5
    aspect_ratio: str = "1:1"
    fast: bool = False
    negative_prompt: str = DEFAULT_NEGATIVE_PROMPT

    def to_request_fields(self) -> dict[str, Any]:
        return {
            "image_size": {"width": self.width, "height": self.height},
            "output_format": self.output_format,
            "steps_num": self.steps_num,
            "enhance_image": self.enhance_image,
            "text_guidance_scale": self.text_guidance_scale,
            "aspect_ratio": self.aspect_ratio,
            "fast": self.fast,
            "negative_prompt": self.negative_prompt,
        }


@dataclass(frozen=True)
class GenerationClientConfig:
    """Connection and polling configuration for GenerationClient.

    Attributes:
        api_key: Bria API token.
        base_url: Service base URL.
        poll_interval: Seconds to wait before each status poll.
        max_polls: Poll ceiling before GenerationTimeout.
        timeout: Per-request HTTP timeout in seconds.
        settings: Rendering parameters.
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = 2.0
    max_polls: int = 150
    timeout: float = 60.0
    settings: GenerationSettings = field(default_factory=GenerationSettings)

    @classmethod
    def from_environment(cls, api_key: str | None = None) -> "GenerationClientConfig":
        """Build a config from FIBO_* / BRIA_* environment variables.

        Raises:
            ValueError: If no API token is configured.
        """
        key = get_fibo_api_key(api_key)
        if not key:
            raise ValueError(
                "FIBO_API_KEY or BRIA_API_KEY environment variable is required"
            )
        return cls(
            api_key=key,
            base_url=get_environment(EnvVar.FIBO_API_URL),
            poll_interval=get_environment(EnvVar.FIBO_POLL_INTERVAL),
            max_polls=get_environment(EnvVar.FIBO_MAX_POLLS),
        )


def random_seed() -> int:
    """Random seed in [0, 1_000_000)."""
    return random.randrange(MAX_SEED)


# =============================================================================
# Client
# =============================================================================


class GenerationClient:
    """Async job client for structured-prompt image generation.

    Example:
        >>> config = GenerationClientConfig.from_environment()
        >>> async with GenerationClient(config) as client:
        ...     job = await client.generate(prompt, seed=42)
        ...     print(job.result_url)

    Attributes:
        config: Connection and polling configuration.
    """

    def __init__(
        self,
        config: GenerationClientConfig,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize generation client.

        Args:
            config: Connection and polling configuration.
            client: Pre-built httpx client, mainly for tests. The caller
                keeps ownership of a client passed in.

        Raises:
            ValueError: If the config carries no API token.
        """
        if not config.api_key:
            raise ValueError("FIBO API key is required")
        self.config = config
        self._base_url = config.base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "GenerationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    @property
    def _headers(self) -> dict[str, str]:
        return {"api_token": self.config.api_key}

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def submit(
        self, prompt: StructuredPrompt, seed: int | None = None
    ) -> GenerationJob:
        """Submit a structured prompt as a generation job.

        Args:
            prompt: Structured prompt to render.
            seed: Seed for reproducibility; random when None.

        Returns:
            A completed job when the service answered synchronously, else a
            submitted job to pass to `await_completion`.

        Raises:
            GenerationServiceError: On transport, HTTP or response-shape
                errors.
            ServiceReportedFailure: If the service rejected the job.
        """
        if seed is None:
            seed = random_seed()
        body = {
            "structured_prompt": json.dumps(prompt.to_service_payload()),
            "seed": seed,
            "sync": True,
            **self.config.settings.to_request_fields(),
        }

        logger.info(f"Submitting generation job (seed={seed})")
        data = await self._request_json(
            "POST", f"{self._base_url}/image/generate", json=body
        )
        return self._job_from_submit(data, seed)

    async def await_completion(self, job: GenerationJob | str) -> GenerationJob:
        """Poll a job until it completes, fails or the ceiling is reached.

        Args:
            job: Job returned by `submit`, or a bare job id.

        Returns:
            The completed job with its result URL.

        Raises:
            ServiceReportedFailure: If the service reports the job failed.
            GenerationServiceError: If the final poll hits a transport or
                HTTP error, or a completed job carries no image URL.
            GenerationTimeout: If `max_polls` polls pass without a terminal
                status.
        """
        if isinstance(job, str):
            job = GenerationJob(job_id=job, status=JobStatus.SUBMITTED, seed=None)
        if job.status == JobStatus.COMPLETED:
            return job
        if job.status == JobStatus.FAILED:
            raise ServiceReportedFailure(
                f"Generation job {job.job_id} already failed: {job.error}"
            )

        url = job.status_url or f"{self._base_url}/status/{job.job_id}"
        max_polls = self.config.max_polls

        for poll in range(1, max_polls + 1):
            await asyncio.sleep(self.config.poll_interval)
            job.polls = poll

            try:
                data = await self._request_json("GET", url)
            except GenerationServiceError as e:
                if poll == max_polls:
                    raise
                logger.warning(f"Poll {poll}/{max_polls} for {job.job_id} failed: {e}")
                continue

            status = str(data.get("status") or "").upper()
            if status in _COMPLETED_STATUSES:
                self._complete(job, data)
                logger.info(
                    f"Job {job.job_id} completed after {poll} poll(s) "
                    f"in {job.elapsed_ms}ms"
                )
                return job
            if status in _FAILED_STATUSES:
                self._fail(job, data)

            job.transition(JobStatus.IN_PROGRESS)
            logger.debug(f"Job {job.job_id} in progress (poll {poll}/{max_polls})")

        raise GenerationTimeout(
            f"Generation job {job.job_id} did not finish after {max_polls} polls "
            f"({max_polls * self.config.poll_interval:g} seconds)"
        )

    async def generate(
        self, prompt: StructuredPrompt, seed: int | None = None
    ) -> GenerationJob:
        """Submit a prompt and wait for the finished image."""
        job = await self.submit(prompt, seed=seed)
        return await self.await_completion(job)

    async def test_connection(self) -> bool:
        """Check that the service accepts the configured token.

        There is no health endpoint, so this sends a minimal generation
        request.

        Returns:
            True if the service answered with a 2xx status.
        """
        try:
            response = await self._get_client().post(
                f"{self._base_url}/image/generate",
                headers=self._headers,
                json={"prompt": "test connection", "sync": True},
            )
        except httpx.HTTPError as e:
            logger.error(f"Generation service connection test failed: {e}")
            return False
        if response.is_success:
            return True
        logger.error(
            f"Generation service connection test failed "
            f"({response.status_code}): {response.text[:200]}"
        )
        return False

    async def download(self, url: str, directory: Path | str, filename: str) -> Path:
        """Download a finished image with this client's HTTP session.

        See `download_image`.
        """
        return await download_image(
            url, directory, filename, client=self._get_client()
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _request_json(self, method: str, url: str, **kwargs) -> dict[str, Any]:
        try:
            response = await self._get_client().request(
                method, url, headers=self._headers, **kwargs
            )
        except httpx.TimeoutException as e:
            raise GenerationServiceError(f"Generation request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise GenerationServiceError(f"Generation request failed: {e}") from e

        if not response.is_success:
            raise GenerationServiceError(
                f"Generation service returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:500],
            )
        try:
            data = response.json()
        except ValueError as e:
            raise GenerationServiceError(
                "Generation service returned invalid JSON",
                status_code=response.status_code,
                response_body=response.text[:500],
            ) from e
        if not isinstance(data, dict):
            raise GenerationServiceError(
                f"Unexpected response structure: {response.text[:500]}"
            )
        return data

    def _job_from_submit(self, data: dict[str, Any], seed: int) -> GenerationJob:
        job = GenerationJob(
            job_id=str(data.get("request_id") or ""),
            status=JobStatus.SUBMITTED,
            seed=seed,
            status_url=data.get("status_url"),
        )
        status = str(data.get("status") or "").upper()

        result = data.get("result")
        if isinstance(result, dict) and result.get("image_url"):
            self._complete(job, data)
            logger.info("Generation completed synchronously")
            return job

        if status in _PENDING_STATUSES or (not status and job.job_id):
            logger.info(f"Job {job.job_id} accepted ({status or 'no status'})")
            return job

        if status in _COMPLETED_STATUSES:
            self._complete(job, data)
            return job

        if status in _FAILED_STATUSES:
            self._fail(job, data)

        raise GenerationServiceError(
            f"Unexpected response structure: {json.dumps(data)[:500]}"
        )

    def _complete(self, job: GenerationJob, data: dict[str, Any]) -> None:
        result = data.get("result")
        url = data.get("image_url")
        if isinstance(result, dict) and result.get("image_url"):
            url = result["image_url"]
        if not url:
            raise GenerationServiceError(
                f"Job {job.job_id} completed without an image URL"
            )
        job.result_url = url
        job.transition(JobStatus.COMPLETED)

    def _fail(self, job: GenerationJob, data: dict[str, Any]) -> None:
        job.error = str(data.get("error") or "Unknown error")
        job.transition(JobStatus.FAILED)
        logger.error(f"Job {job.job_id} failed: {job.error}")
        raise ServiceReportedFailure(f"Generation failed: {job.error}")


# =============================================================================
# Image Saving
# =============================================================================


def poster_filename(request_id: str, mode: str = "single") -> str:
    """Unique base filename for a poster, `poster_<mode>_<epoch-ms>_<id>`."""
    return f"poster_{mode}_{int(time.time() * 1000)}_{request_id}"


async def download_image(
    url: str,
    directory: Path | str,
    filename: str,
    client: httpx.AsyncClient | None = None,
) -> Path:
    """Download an image and save it under `directory`.

    Args:
        url: Image URL.
        directory: Output directory, created if missing.
        filename: File name; ".png" is appended when it has no suffix.
        client: Optional httpx client to reuse.

    Returns:
        Path of the saved file.

    Raises:
        GenerationServiceError: If the download or the file write fails.
    """
    directory = Path(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise GenerationServiceError(f"Cannot create {directory}: {e}") from e
    path = directory / filename
    if not path.suffix:
        path = path.with_suffix(".png")

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=60.0)
    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        raise GenerationServiceError(f"Image download failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        raise GenerationServiceError(
            f"Image download returned {response.status_code}",
            status_code=response.status_code,
        )
    try:
        path.write_bytes(response.content)
    except OSError as e:
        raise GenerationServiceError(f"Cannot write {path}: {e}") from e
    logger.info(f"Saved image to {path}")
    return path


__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_NEGATIVE_PROMPT",
    "MAX_SEED",
    "GenerationServiceError",
    "InvalidJobTransition",
    "JobStatus",
    "GenerationJob",
    "GenerationSettings",
    "GenerationClientConfig",
    "GenerationClient",
    "random_seed",
    "poster_filename",
    "download_image",
]
