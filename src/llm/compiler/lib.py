"""Summary compiler: unstructured text to schema-valid compiled input.

Treats the language model as a non-deterministic code generator and wraps
it in validate-and-retry. Every model output goes through the lenient JSON
extractor and then the schema validator; failures are fed back verbatim on
the next attempt.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from src.config import EnvVar, get_environment
from src.core.errors import InputContractViolation
from src.schema import AudienceTier, CompiledInput, validate_compiled_input

from ..backend import LLMBackend, create_llm_backend_from_environment
from ..backend.base import GenerationConfig, LLMError
from .extract import ExtractionError, PayloadExtractor
from .templates import (
    SEMANTIC_EXTRACTION_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    build_compilation_prompt,
    build_extraction_prompt,
    build_retry_prompt,
    build_user_prompt,
)

logger = logging.getLogger(__name__)


class CompilationMode(str, Enum):
    """How the compiler talks to the model."""

    SINGLE_PASS = "single-pass"
    TWO_PASS = "two-pass"


@dataclass
class CompilerConfig:
    """Configuration for SummaryCompiler.

    Attributes:
        max_attempts: Model calls allowed per pass before giving up.
        temperature: Sampling temperature for compilation calls.
        max_tokens: Output budget for compilation calls.
        two_pass: Extract semantic data first, then compile it.
        extraction_temperature: Sampling temperature for pass 1.
        extraction_max_tokens: Output budget for pass 1.
    """

    max_attempts: int = 3
    temperature: float = 0.1
    max_tokens: int = 8192
    two_pass: bool = False
    extraction_temperature: float = 0.3
    extraction_max_tokens: int = 2048

    @classmethod
    def from_environment(cls) -> "CompilerConfig":
        """Build a config from COMPILER_* environment variables."""
        return cls(
            max_attempts=get_environment(EnvVar.COMPILER_MAX_ATTEMPTS),
            two_pass=get_environment(EnvVar.COMPILER_TWO_PASS),
        )


@dataclass
class CompilationMetadata:
    """Known facts about the source, passed through instead of inferred."""

    source_id: str | None = None
    audience_tier: AudienceTier | str | None = None
    tags: list[str] | None = None


def _checked_metadata(
    metadata: CompilationMetadata | None,
) -> CompilationMetadata | None:
    """Copy of `metadata` with the tier as an AudienceTier member."""
    if metadata is None or not metadata.audience_tier:
        return metadata
    try:
        tier = AudienceTier(metadata.audience_tier)
    except ValueError:
        raise InputContractViolation(
            f"Unknown audience tier '{metadata.audience_tier}'"
        ) from None
    return replace(metadata, audience_tier=tier)


@dataclass
class CompilationAttempt:
    """One model call and what became of its output.

    Attributes:
        attempt_number: 1-based attempt index within its pass.
        pass_name: "extraction" or "compilation".
        prompt_sent: User prompt sent to the model.
        raw_output: Model output, None when the call failed.
        parsed_value: Extracted JSON object, None when extraction failed.
        validation_errors: Errors recorded for this attempt.
    """

    attempt_number: int
    pass_name: str
    prompt_sent: str
    raw_output: str | None = None
    parsed_value: dict[str, Any] | None = None
    validation_errors: list[str] = field(default_factory=list)


@dataclass
class CompilationResult:
    """Outcome of a compilation.

    Attributes:
        success: True when `data` holds a schema-valid input.
        data: The compiled input, only on success.
        errors: The last attempt's errors, only on failure.
        raw_output: Model output of the last attempt that produced output.
        attempts: Compilation-pass attempts made (0 if pass 1 never succeeded).
        mode: Compilation mode used.
        semantic_data: Enriched pass-1 extraction (two-pass only).
        llm_calls: Model calls made across both passes.
        total_tokens: Tokens reported across all calls.
        history: Every attempt, in order.
    """

    success: bool
    mode: CompilationMode
    data: CompiledInput | None = None
    errors: list[str] = field(default_factory=list)
    raw_output: str | None = None
    attempts: int = 0
    semantic_data: dict[str, Any] | None = None
    llm_calls: int = 0
    total_tokens: int = 0
    history: list[CompilationAttempt] = field(default_factory=list)


@dataclass
class _PassOutcome:
    value: Any = None
    attempts: int = 0
    errors: list[str] = field(default_factory=list)
    raw_output: str | None = None


class SummaryCompiler:
    """Compiles free text into a CompiledInput via validate-and-retry.

    Example:
        >>> compiler = SummaryCompiler(config=CompilerConfig(two_pass=True))
        >>> result = await compiler.compile(abstract, CompilationMetadata(
        ...     source_id="1706.03762", audience_tier="beginner"))
        >>> result.success
        True
    """

    def __init__(
        self,
        backend: LLMBackend | None = None,
        config: CompilerConfig | None = None,
        extractor: PayloadExtractor | None = None,
    ):
        """Initialize SummaryCompiler.

        Args:
            backend: LLM backend for generation. Built from LLM_MODEL if None.
            config: Compiler configuration.
            extractor: JSON extractor for model output.
        """
        self._backend = backend or create_llm_backend_from_environment()
        self._config = config or CompilerConfig()
        self._extractor = extractor or PayloadExtractor()

    @property
    def config(self) -> CompilerConfig:
        return self._config

    async def compile(
        self,
        raw_text: str,
        metadata: CompilationMetadata | None = None,
    ) -> CompilationResult:
        """Compile raw text into schema-valid input.

        Never raises for model call or validation failures; those end in a
        result with `success=False` and the last error set.

        Args:
            raw_text: Unstructured description (e.g. an abstract).
            metadata: Known source id, tier and tags.

        Returns:
            CompilationResult.

        Raises:
            InputContractViolation: If `metadata` names an unknown audience
                tier. Checked before any model call.
        """
        metadata = _checked_metadata(metadata)
        mode = CompilationMode.SINGLE_PASS
        if self._config.two_pass:
            mode = CompilationMode.TWO_PASS
        logger.info(
            f"Compiling with {self._backend.name} ({mode.value}, "
            f"max {self._config.max_attempts} attempts)"
        )
        result = CompilationResult(success=False, mode=mode)

        if mode == CompilationMode.SINGLE_PASS:
            prompt = build_user_prompt(raw_text, **self._metadata_kwargs(metadata))
        else:
            extraction = await self._run_pass(
                result,
                pass_name="extraction",
                base_prompt=build_extraction_prompt(raw_text),
                system_prompt=SEMANTIC_EXTRACTION_SYSTEM_PROMPT,
                config=GenerationConfig(
                    temperature=self._config.extraction_temperature,
                    max_tokens=self._config.extraction_max_tokens,
                ),
                accept=lambda parsed: (parsed, []),
            )
            if extraction.value is None:
                logger.error("Semantic extraction failed on every attempt")
                result.errors = extraction.errors
                result.raw_output = extraction.raw_output
                return result

            result.semantic_data = self._enrich(extraction.value, metadata)
            prompt = build_compilation_prompt(result.semantic_data)

        compilation = await self._run_pass(
            result,
            pass_name="compilation",
            base_prompt=prompt,
            system_prompt=SYSTEM_PROMPT,
            config=GenerationConfig(
                temperature=self._config.temperature,
                max_tokens=self._config.max_tokens,
            ),
            accept=self._validate,
        )
        result.attempts = compilation.attempts
        result.raw_output = compilation.raw_output

        if compilation.value is not None:
            result.success = True
            result.data = compilation.value
            logger.info(
                f"Compilation succeeded after {compilation.attempts} attempt(s)"
            )
        else:
            result.errors = compilation.errors
            logger.error(
                f"Compilation failed after {compilation.attempts} attempts: "
                f"{'; '.join(compilation.errors)}"
            )
        return result

    # -------------------------------------------------------------------------
    # Passes
    # -------------------------------------------------------------------------

    async def _run_pass(
        self,
        result: CompilationResult,
        *,
        pass_name: str,
        base_prompt: str,
        system_prompt: str,
        config: GenerationConfig,
        accept,
    ) -> _PassOutcome:
        """Call the model until `accept` returns a value or attempts run out.

        `accept(parsed)` returns `(value, errors)`; a None value with errors
        triggers a retry prompt carrying those errors.
        """
        outcome = _PassOutcome()
        prompt = base_prompt

        for attempt_number in range(1, self._config.max_attempts + 1):
            outcome.attempts = attempt_number
            attempt = CompilationAttempt(
                attempt_number=attempt_number, pass_name=pass_name, prompt_sent=prompt
            )
            result.history.append(attempt)
            result.llm_calls += 1
            logger.debug(
                f"{pass_name} attempt {attempt_number}/{self._config.max_attempts}"
            )

            try:
                response = await self._backend.generate(
                    prompt, system_prompt=system_prompt, config=config
                )
            except LLMError as e:
                logger.warning(
                    f"Model call failed on {pass_name} attempt {attempt_number}: {e}"
                )
                attempt.validation_errors = [f"Model call failed: {e}"]
                outcome.errors = attempt.validation_errors
                continue

            result.total_tokens += response.total_tokens
            attempt.raw_output = response.content
            outcome.raw_output = response.content

            try:
                parsed = self._extractor.extract(response.content)
            except ExtractionError as e:
                errors = [f"(root): Output is not a parseable JSON object ({e})"]
            else:
                attempt.parsed_value = parsed
                value, errors = accept(parsed)
                if value is not None:
                    outcome.value = value
                    outcome.errors = []
                    return outcome

            logger.warning(
                f"{pass_name} attempt {attempt_number} failed validation: "
                f"{'; '.join(errors)}"
            )
            attempt.validation_errors = errors
            outcome.errors = errors
            prompt = build_retry_prompt(base_prompt, errors)

        return outcome

    def _validate(
        self, parsed: dict[str, Any]
    ) -> tuple[CompiledInput | None, list[str]]:
        validation = validate_compiled_input(parsed)
        return validation.value, validation.errors

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _metadata_kwargs(self, metadata: CompilationMetadata | None) -> dict[str, Any]:
        if metadata is None:
            return {}
        tier = metadata.audience_tier
        return {
            "source_id": metadata.source_id,
            "audience_tier": tier.value if tier else None,
            "tags": metadata.tags,
        }

    def _enrich(
        self,
        semantic_data: dict[str, Any],
        metadata: CompilationMetadata | None,
    ) -> dict[str, Any]:
        """Merge known metadata into the pass-1 extraction."""
        metadata = metadata or CompilationMetadata()

        if metadata.audience_tier:
            tier = metadata.audience_tier.value
        else:
            suggested = semantic_data.get("audienceLevel")
            valid = {t.value for t in AudienceTier}
            tier = suggested if suggested in valid else AudienceTier.BEGINNER.value

        tags = metadata.tags or semantic_data.get("suggestedTags") or []

        return {
            **semantic_data,
            "source_id": metadata.source_id or "unknown",
            "audience_tier": tier,
            "tags": list(tags),
        }


__all__ = [
    "CompilationMode",
    "CompilerConfig",
    "CompilationMetadata",
    "CompilationAttempt",
    "CompilationResult",
    "SummaryCompiler",
]
