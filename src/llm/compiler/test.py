"""Tests for the summary compiler.

Covers:
- PayloadExtractor: lenient JSON recovery
- Prompt templates
- SummaryCompiler: single-pass and two-pass retry behaviour with a
  scripted backend
- Fallback mode
"""

import json

import pytest

from src.core.errors import InputContractViolation
from src.schema import AudienceTier, CompiledInput

from ..backend.base import LLMError
from .extract import ExtractionError, PayloadExtractor
from .fallback import build_fallback_input, split_sentences
from .lib import (
    CompilationMetadata,
    CompilationMode,
    CompilerConfig,
    SummaryCompiler,
)
from .templates import (
    build_compilation_prompt,
    build_extraction_prompt,
    build_retry_prompt,
    build_user_prompt,
)

RAW_TEXT = "The Transformer replaces recurrence with attention."

# =============================================================================
# PayloadExtractor Tests
# =============================================================================


class TestPayloadExtractor:
    """Tests for lenient JSON extraction."""

    @pytest.fixture
    def extractor(self):
        return PayloadExtractor()

    @pytest.mark.unit
    def test_plain_json(self, extractor):
        """Plain JSON parses directly."""
        assert extractor.extract('{"a": 1}') == {"a": 1}

    @pytest.mark.unit
    def test_markdown_fence(self, extractor):
        """Fenced blocks are unwrapped."""
        assert extractor.extract('```json\n{"a": 1}\n```') == {"a": 1}

    @pytest.mark.unit
    def test_leading_prose(self, extractor):
        """Prose before the object is ignored."""
        assert extractor.extract('Here is the JSON:\n{"a": {"b": 2}}') == {
            "a": {"b": 2}
        }

    @pytest.mark.unit
    def test_trailing_commas(self, extractor):
        """Trailing commas in objects and arrays are removed."""
        assert extractor.extract('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    @pytest.mark.unit
    def test_assignment_prefix(self, extractor):
        """Variable assignment wrappers and semicolons are stripped."""
        text = 'export const exampleSummary: GenerationInput = {"a": 1};'
        assert extractor.extract(text) == {"a": 1}

    @pytest.mark.unit
    def test_braces_inside_strings(self, extractor):
        """Braces inside string values do not end the object early."""
        text = '{"a": "curly } brace", "b": 1} trailing words'
        assert extractor.extract(text) == {"a": "curly } brace", "b": 1}

    @pytest.mark.unit
    @pytest.mark.parametrize("text", ["", "no json here", "[1, 2, 3]", '{"a": '])
    def test_failures(self, extractor, text):
        """Unrecoverable output raises ExtractionError."""
        with pytest.raises(ExtractionError):
            extractor.extract(text)

    @pytest.mark.unit
    def test_extraction_error_is_value_error(self):
        """Callers can catch extraction failures as ValueError."""
        assert issubclass(ExtractionError, ValueError)


# =============================================================================
# Template Tests
# =============================================================================


class TestTemplates:
    """Tests for compiler prompt templates."""

    @pytest.mark.unit
    def test_user_prompt_sections(self):
        """Schema, example, raw text and metadata are embedded."""
        prompt = build_user_prompt(
            RAW_TEXT, source_id="1706.03762", audience_tier="advanced", tags=["nlp"]
        )
        assert "TARGET SCHEMA (authoritative):" in prompt
        assert "REFERENCE EXAMPLE:" in prompt
        assert f'"""\n{RAW_TEXT}\n"""' in prompt
        assert "- Source ID: 1706.03762" in prompt
        assert "- Audience Tier: advanced" in prompt
        assert "- Tags: nlp" in prompt

    @pytest.mark.unit
    def test_user_prompt_without_metadata(self):
        """No METADATA block without metadata."""
        assert "METADATA:" not in build_user_prompt(RAW_TEXT)

    @pytest.mark.unit
    def test_retry_prompt_numbers_errors(self):
        """Retry prompts keep the base prompt and number the errors."""
        prompt = build_retry_prompt("BASE", ["first problem", "second problem"])
        assert prompt.startswith("BASE\n\n")
        assert "1. first problem\n2. second problem" in prompt
        assert "Do not change unrelated fields." in prompt

    @pytest.mark.unit
    def test_extraction_and_compilation_prompts(self):
        """Pass prompts embed their inputs."""
        assert RAW_TEXT in build_extraction_prompt(RAW_TEXT)
        prompt = build_compilation_prompt({"title": "T"})
        assert "SEMANTIC DATA (already extracted):" in prompt
        assert '"title": "T"' in prompt


# =============================================================================
# SummaryCompiler Tests
# =============================================================================


class TestCompilerConfig:
    """Tests for CompilerConfig defaults."""

    @pytest.mark.unit
    def test_defaults(self):
        """Default configuration values."""
        config = CompilerConfig()
        assert config.max_attempts == 3
        assert config.temperature == 0.1
        assert config.max_tokens == 8192
        assert config.two_pass is False
        assert config.extraction_temperature == 0.3
        assert config.extraction_max_tokens == 2048


class TestSinglePass:
    """Tests for single-pass compilation."""

    @pytest.mark.unit
    async def test_first_attempt_success(self, scripted_backend, valid_output):
        """A valid first answer compiles in one call."""
        backend = scripted_backend([valid_output])
        result = await SummaryCompiler(backend).compile(RAW_TEXT)

        assert result.success
        assert isinstance(result.data, CompiledInput)
        assert result.attempts == 1
        assert result.llm_calls == 1
        assert result.total_tokens == 100
        assert result.mode == CompilationMode.SINGLE_PASS
        assert result.errors == []

    @pytest.mark.unit
    async def test_retry_carries_errors(
        self, scripted_backend, sample_input_data, valid_output
    ):
        """A schema failure is fed back verbatim on the next attempt."""
        broken = json.loads(valid_output)
        broken["summary"]["concepts"] = broken["summary"]["concepts"][:2]
        backend = scripted_backend([json.dumps(broken), valid_output])

        result = await SummaryCompiler(backend).compile(RAW_TEXT)

        assert result.success
        assert result.attempts == 2
        retry_prompt = backend.calls[1]["prompt"]
        assert retry_prompt.startswith(backend.calls[0]["prompt"])
        assert "1. summary.concepts:" in retry_prompt
        assert result.history[0].validation_errors

    @pytest.mark.unit
    async def test_exhausts_attempts(self, scripted_backend):
        """Persistent failure returns the last errors and no data."""
        backend = scripted_backend(["not json", "still not json", "{}"])
        result = await SummaryCompiler(
            backend, CompilerConfig(max_attempts=3)
        ).compile(RAW_TEXT)

        assert not result.success
        assert result.data is None
        assert result.attempts == 3
        assert len(backend.calls) == 3
        assert any(e.startswith("summary:") for e in result.errors)

    @pytest.mark.unit
    async def test_model_errors_are_retried(self, scripted_backend, valid_output):
        """Model call failures count as attempts and never raise."""
        backend = scripted_backend([LLMError("connection reset"), valid_output])
        result = await SummaryCompiler(backend).compile(RAW_TEXT)

        assert result.success
        assert result.attempts == 2
        assert result.history[0].raw_output is None
        assert "connection reset" in result.history[0].validation_errors[0]

    @pytest.mark.unit
    async def test_model_errors_exhaust(self, scripted_backend):
        """Only model failures still yield a failed result."""
        backend = scripted_backend([LLMError("down")] * 2)
        result = await SummaryCompiler(
            backend, CompilerConfig(max_attempts=2)
        ).compile(RAW_TEXT)

        assert not result.success
        assert result.attempts == 2
        assert "down" in result.errors[0]

    @pytest.mark.unit
    async def test_metadata_in_prompt(self, scripted_backend, valid_output):
        """Known metadata is passed to the model."""
        backend = scripted_backend([valid_output])
        await SummaryCompiler(backend).compile(
            RAW_TEXT,
            CompilationMetadata(
                source_id="2401.00001", audience_tier=AudienceTier.ADVANCED
            ),
        )
        assert "- Source ID: 2401.00001" in backend.calls[0]["prompt"]
        assert "- Audience Tier: advanced" in backend.calls[0]["prompt"]


class TestTwoPass:
    """Tests for two-pass compilation."""

    @pytest.fixture
    def config(self):
        return CompilerConfig(two_pass=True, max_attempts=2)

    @pytest.mark.unit
    async def test_success(
        self, scripted_backend, config, semantic_output, valid_output
    ):
        """Extraction then compilation, with metadata enrichment."""
        backend = scripted_backend([semantic_output, valid_output])
        result = await SummaryCompiler(backend, config).compile(
            RAW_TEXT, CompilationMetadata(source_id="1706.03762")
        )

        assert result.success
        assert result.mode == CompilationMode.TWO_PASS
        assert result.attempts == 1
        assert result.llm_calls == 2
        assert result.semantic_data["source_id"] == "1706.03762"
        assert result.semantic_data["audience_tier"] == "intermediate"
        assert result.semantic_data["tags"] == ["nlp", "transformers"]
        assert backend.calls[0]["config"].temperature == 0.3
        assert backend.calls[1]["config"].temperature == 0.1
        assert "SEMANTIC DATA" in backend.calls[1]["prompt"]

    @pytest.mark.unit
    async def test_enrichment_defaults(self, scripted_backend, config, valid_output):
        """Missing metadata and invalid levels fall back to safe defaults."""
        semantic = json.dumps({"title": "T", "audienceLevel": "expert"})
        backend = scripted_backend([semantic, valid_output])
        result = await SummaryCompiler(backend, config).compile(RAW_TEXT)

        assert result.semantic_data["source_id"] == "unknown"
        assert result.semantic_data["audience_tier"] == "beginner"
        assert result.semantic_data["tags"] == []

    @pytest.mark.unit
    async def test_extraction_failure(self, scripted_backend, config):
        """If pass 1 never succeeds, no compilation attempt is made."""
        backend = scripted_backend(["garbage", LLMError("boom")])
        result = await SummaryCompiler(backend, config).compile(RAW_TEXT)

        assert not result.success
        assert result.attempts == 0
        assert result.llm_calls == 2
        assert result.semantic_data is None

    @pytest.mark.unit
    async def test_call_bound(self, scripted_backend, config, semantic_output):
        """Two-pass never exceeds twice the attempt budget."""
        backend = scripted_backend(
            ["garbage", semantic_output, "bad", "still bad"]
        )
        result = await SummaryCompiler(backend, config).compile(RAW_TEXT)

        assert not result.success
        assert result.attempts == 2
        assert len(backend.calls) == 4 == 2 * config.max_attempts

    @pytest.mark.unit
    @pytest.mark.parametrize("two_pass", [True, False])
    async def test_unknown_tier_rejected_before_model_call(
        self, scripted_backend, semantic_output, valid_output, two_pass
    ):
        """An unknown tier in metadata fails fast without calling the model."""
        backend = scripted_backend([semantic_output, valid_output])
        compiler = SummaryCompiler(backend, CompilerConfig(two_pass=two_pass))

        with pytest.raises(InputContractViolation, match="expert"):
            await compiler.compile(
                RAW_TEXT, CompilationMetadata(audience_tier="expert")
            )
        assert backend.calls == []

    @pytest.mark.unit
    async def test_string_tier_in_metadata(
        self, scripted_backend, config, semantic_output, valid_output
    ):
        """A valid tier given as a string overrides the suggested level."""
        backend = scripted_backend([semantic_output, valid_output])
        result = await SummaryCompiler(backend, config).compile(
            RAW_TEXT, CompilationMetadata(audience_tier="advanced")
        )
        assert result.semantic_data["audience_tier"] == "advanced"


# =============================================================================
# Fallback Tests
# =============================================================================


ABSTRACT = (
    "The dominant sequence transduction models are based on complex recurrent "
    "networks. We propose a new simple network architecture based solely on "
    "attention. Experiments on two translation tasks show superior quality. "
    "The model also trains significantly faster than prior work. "
    "It generalizes well to other tasks such as parsing"
)


class TestFallback:
    """Tests for the explicit fallback summary."""

    @pytest.mark.unit
    def test_sentences_used(self):
        """Abstract sentences fill the one-liner, concepts and finding."""
        compiled = build_fallback_input(
            "Attention Is All You Need", ABSTRACT, "beginner", "1706.03762"
        )
        sentences = split_sentences(ABSTRACT)
        summary = compiled.summary
        assert summary.one_liner == sentences[0]
        assert [c.name for c in summary.concepts] == [
            "Main Approach",
            "Key Innovation",
            "Results",
        ]
        assert summary.concepts[0].explanation == sentences[1]
        assert summary.key_finding == sentences[-1]
        assert compiled.tags == ["research"]

    @pytest.mark.unit
    def test_short_abstract_defaults(self):
        """Missing sentences are replaced by generic defaults."""
        compiled = build_fallback_input("Title", "Too short.", "advanced", "x1")
        assert compiled.summary.one_liner == (
            "A research paper exploring new advances in the field"
        )
        assert compiled.summary.key_finding == "This research advances the field"
        assert compiled.audience_tier is AudienceTier.ADVANCED

    @pytest.mark.unit
    def test_rejects_bad_tier(self):
        """Unknown tiers are a contract violation."""
        with pytest.raises(InputContractViolation):
            build_fallback_input("Title", ABSTRACT, "expert", "x1")
