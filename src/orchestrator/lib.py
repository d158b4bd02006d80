"""Poster generation orchestrator.

Sequences layout, prompt construction and image generation for one
compiled input. Stage errors short-circuit to a failed output naming the
stage; the orchestrator never retries a stage itself.
"""

import inspect
import logging
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

from src.core.errors import InputContractViolation, PipelineError, ValidationFailure
from src.generation import (
    GenerationClient,
    GenerationJob,
    poster_filename,
    random_seed,
)
from src.layout import LayoutEngine, LayoutStrategy
from src.prompt import (
    StructuredPrompt,
    StructuredPromptBuilder,
    estimate_generation_time,
    validate_structured_prompt,
)
from src.schema import AudienceTier, CompiledInput
from src.trace import NullTraceStore, TraceLayer, TraceStore

logger = logging.getLogger(__name__)

_REQUEST_ID_ALPHABET = string.digits + string.ascii_lowercase


class GenerationStatus(str, Enum):
    """Status of a poster request as reported to callers."""

    PENDING = "pending"
    GENERATING_LAYOUT = "generating_layout"
    GENERATING_PROMPT = "generating_prompt"
    GENERATING_FINAL = "generating_final"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationStatus.COMPLETE, GenerationStatus.FAILED)


class PipelineStage(str, Enum):
    """Stages named in failure messages."""

    LAYOUT = "layout"
    PROMPT = "prompt"
    GENERATION = "generation"


# Status entered when each stage starts
_STAGE_STATUS = {
    PipelineStage.LAYOUT: GenerationStatus.GENERATING_LAYOUT,
    PipelineStage.PROMPT: GenerationStatus.GENERATING_PROMPT,
    PipelineStage.GENERATION: GenerationStatus.GENERATING_FINAL,
}


@dataclass
class GenerationMetadata:
    """Facts recorded about one pipeline run.

    Attributes:
        generation_time_ms: Wall time of the whole run.
        audience_tier: Tier the poster was generated for.
        timestamp: ISO-8601 UTC time the run finished.
        seed: Seed sent to the image service.
        structured_prompt: Prompt that was submitted.
        layout_type: Layout chosen for the poster.
        estimated_seconds: Rough rendering estimate for the prompt.
        failed_stage: Stage that failed, if any.
    """

    generation_time_ms: int
    audience_tier: AudienceTier
    timestamp: str
    seed: int | None = None
    structured_prompt: StructuredPrompt | None = None
    layout_type: str | None = None
    estimated_seconds: int | None = None
    failed_stage: PipelineStage | None = None


@dataclass
class GenerationOutput:
    """Terminal result of a pipeline run.

    Attributes:
        request_id: Identifier of the run, `gen_<epoch-ms>_<suffix>`.
        status: COMPLETE or FAILED.
        metadata: Run metadata.
        result_url: Image URL when complete.
        error: Human-readable message naming the failing stage.
        status_history: Every status the run passed through, in order.
        layout: Computed layout, when that stage succeeded.
        job: Generation job, when one was submitted.
        local_path: Saved image, when an output directory was configured.
    """

    request_id: str
    status: GenerationStatus
    metadata: GenerationMetadata
    result_url: str | None = None
    error: str | None = None
    status_history: list[GenerationStatus] = field(default_factory=list)
    layout: LayoutStrategy | None = None
    job: GenerationJob | None = None
    local_path: Path | None = None

    @property
    def success(self) -> bool:
        return self.status == GenerationStatus.COMPLETE


StatusCallback = Callable[[str, GenerationStatus], Awaitable[None] | None]


class StageFailure(PipelineError):
    """A pipeline stage failed; wraps the underlying error.

    Attributes:
        stage: Stage that failed.
        cause: Original error.
    """

    def __init__(self, stage: PipelineStage, cause: Exception):
        super().__init__(f"{stage.value} stage failed: {cause}")
        self.stage = stage
        self.cause = cause


def generate_request_id() -> str:
    """Request id of the form `gen_<epoch-ms>_<9 base36 chars>`."""
    suffix = "".join(random.choices(_REQUEST_ID_ALPHABET, k=9))
    return f"gen_{int(time.time() * 1000)}_{suffix}"


class PosterOrchestrator:
    """Runs layout -> prompt -> generation for a compiled input.

    Holds only read-only collaborators, so one instance can serve
    concurrent requests.

    Example:
        >>> async with GenerationClient(config) as client:
        ...     orchestrator = PosterOrchestrator(client)
        ...     output = await orchestrator.generate(compiled_input, seed=42)
        ...     print(output.status, output.result_url)
    """

    def __init__(
        self,
        generation_client: GenerationClient,
        layout_engine: LayoutEngine | None = None,
        prompt_builder: StructuredPromptBuilder | None = None,
        trace_store: TraceStore | None = None,
        on_status: StatusCallback | None = None,
        output_dir: Path | str | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            generation_client: Client for the image service.
            layout_engine: Layout engine. Default engine if None.
            prompt_builder: Prompt builder. Default builder if None.
            trace_store: Optional per-request trace sink.
            on_status: Called with (request_id, status) on every change.
            output_dir: If set, completed images are downloaded here.
        """
        self._client = generation_client
        self._layout_engine = layout_engine or LayoutEngine()
        self._prompt_builder = prompt_builder or StructuredPromptBuilder()
        self._trace = trace_store or NullTraceStore()
        self._on_status = on_status
        self._output_dir = Path(output_dir) if output_dir is not None else None

    async def generate(
        self,
        compiled_input: CompiledInput,
        seed: int | None = None,
        request_id: str | None = None,
    ) -> GenerationOutput:
        """Generate a poster.

        Never raises for stage failures; those end in a FAILED output.

        Args:
            compiled_input: Schema-valid poster content.
            seed: Image seed; drawn here when None so failed runs report it too.
            request_id: Id to run under; generated when None.

        Returns:
            GenerationOutput with status COMPLETE or FAILED.
        """
        request_id = request_id or generate_request_id()
        seed = random_seed() if seed is None else seed
        started = time.monotonic()
        tier = AudienceTier(compiled_input.audience_tier)
        history: list[GenerationStatus] = []
        logger.info(
            f"[{request_id}] Starting poster generation "
            f"({tier.value}, {compiled_input.concept_count} concepts)"
        )
        self._record(request_id, TraceLayer.INPUT, "compiled-input", compiled_input)

        layout: LayoutStrategy | None = None
        prompt: StructuredPrompt | None = None
        estimate: int | None = None
        job: GenerationJob | None = None

        try:
            await self._enter(request_id, PipelineStage.LAYOUT, history)
            layout = self._run_layout(compiled_input)
            self._record(request_id, TraceLayer.LAYOUT, "layout", layout)
            logger.info(f"[{request_id}] Layout calculated: {layout.type.value}")

            await self._enter(request_id, PipelineStage.PROMPT, history)
            prompt = self._run_prompt(compiled_input, layout)
            estimate = estimate_generation_time(prompt)
            self._record(request_id, TraceLayer.PROMPT, "structured-prompt", prompt)
            logger.info(
                f"[{request_id}] Structured prompt validated, "
                f"estimated generation time {estimate}s"
            )

            await self._enter(request_id, PipelineStage.GENERATION, history)
            job = await self._run_generation(prompt, seed)
            self._record(request_id, TraceLayer.GENERATION, "job", job)
        except StageFailure as failure:
            logger.error(f"[{request_id}] {failure}")
            output = GenerationOutput(
                request_id=request_id,
                status=GenerationStatus.FAILED,
                metadata=self._metadata(
                    started,
                    tier,
                    layout=layout,
                    prompt=prompt,
                    estimate=estimate,
                    seed=seed,
                    failed_stage=failure.stage,
                ),
                error=str(failure),
                status_history=history,
                layout=layout,
            )
            await self._finish(output)
            return output

        output = GenerationOutput(
            request_id=request_id,
            status=GenerationStatus.COMPLETE,
            metadata=self._metadata(
                started,
                tier,
                layout=layout,
                prompt=prompt,
                estimate=estimate,
                seed=job.seed,
            ),
            result_url=job.result_url,
            status_history=history,
            layout=layout,
            job=job,
        )
        output.local_path = await self._save_image(request_id, job)
        logger.info(
            f"[{request_id}] Poster complete in "
            f"{output.metadata.generation_time_ms}ms"
        )
        await self._finish(output)
        return output

    async def regenerate(
        self,
        compiled_input: CompiledInput,
        new_tier: AudienceTier | str,
        seed: int | None = None,
    ) -> GenerationOutput:
        """Re-run the whole pipeline for a different audience tier.

        Nothing from an earlier run is reused.

        Raises:
            InputContractViolation: If the tier is unknown.
        """
        try:
            tier = AudienceTier(new_tier)
        except ValueError:
            raise InputContractViolation(
                f"Unknown audience tier '{new_tier}'"
            ) from None
        logger.info(
            f"Regenerating for {tier.value} (was {compiled_input.audience_tier.value})"
        )
        return await self.generate(
            compiled_input.model_copy(update={"audience_tier": tier}), seed=seed
        )

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _run_layout(self, compiled_input: CompiledInput) -> LayoutStrategy:
        try:
            layout = self._layout_engine.layout(
                compiled_input.concept_count,
                compiled_input.audience_tier,
                compiled_input.tags,
            )
            validation = self._layout_engine.validate(layout)
            if not validation.valid:
                raise ValidationFailure("Invalid layout", validation.errors)
        except PipelineError as e:
            raise StageFailure(PipelineStage.LAYOUT, e) from e
        for warning in validation.warnings:
            logger.warning(f"Layout: {warning}")
        return layout

    def _run_prompt(
        self, compiled_input: CompiledInput, layout: LayoutStrategy
    ) -> StructuredPrompt:
        try:
            prompt = self._prompt_builder.build(compiled_input, layout)
            validation = validate_structured_prompt(prompt)
            if not validation.valid:
                raise ValidationFailure("Invalid structured prompt", validation.errors)
        except PipelineError as e:
            raise StageFailure(PipelineStage.PROMPT, e) from e
        for warning in validation.warnings:
            logger.warning(f"Prompt: {warning}")
        return prompt

    async def _run_generation(
        self, prompt: StructuredPrompt, seed: int | None
    ) -> GenerationJob:
        try:
            return await self._client.generate(prompt, seed=seed)
        except PipelineError as e:
            raise StageFailure(PipelineStage.GENERATION, e) from e

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _enter(
        self,
        request_id: str,
        stage: PipelineStage,
        history: list[GenerationStatus],
    ) -> None:
        status = _STAGE_STATUS[stage]
        history.append(status)
        logger.debug(f"[{request_id}] {status.value}")
        await self._notify(request_id, status)

    async def _finish(self, output: GenerationOutput) -> None:
        output.status_history.append(output.status)
        self._record(output.request_id, TraceLayer.FINAL, "output", output)
        await self._notify(output.request_id, output.status)

    async def _notify(self, request_id: str, status: GenerationStatus) -> None:
        if self._on_status is None:
            return
        result = self._on_status(request_id, status)
        if inspect.isawaitable(result):
            await result

    def _record(
        self, request_id: str, layer: TraceLayer, name: str, payload: Any
    ) -> None:
        try:
            self._trace.record(request_id, layer, name, payload)
        except Exception as e:
            logger.warning(
                f"[{request_id}] Trace write failed for {layer.value}/{name}: {e}"
            )

    async def _save_image(self, request_id: str, job: GenerationJob) -> Path | None:
        if self._output_dir is None or not job.result_url:
            return None
        try:
            return await self._client.download(
                job.result_url, self._output_dir, poster_filename(request_id)
            )
        except PipelineError as e:
            logger.warning(f"[{request_id}] Could not save image: {e}")
            return None

    def _metadata(
        self,
        started: float,
        tier: AudienceTier,
        *,
        layout: LayoutStrategy | None,
        prompt: StructuredPrompt | None,
        estimate: int | None,
        seed: int | None,
        failed_stage: PipelineStage | None = None,
    ) -> GenerationMetadata:
        return GenerationMetadata(
            generation_time_ms=int((time.monotonic() - started) * 1000),
            audience_tier=tier,
            timestamp=datetime.now(timezone.utc).isoformat(),
            seed=seed,
            structured_prompt=prompt,
            layout_type=layout.type.value if layout else None,
            estimated_seconds=estimate,
            failed_stage=failed_stage,
        )


__all__ = [
    "GenerationStatus",
    "PipelineStage",
    "GenerationMetadata",
    "GenerationOutput",
    "StatusCallback",
    "StageFailure",
    "PosterOrchestrator",
    "generate_request_id",
]
