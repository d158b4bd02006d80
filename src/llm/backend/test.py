"""Tests for LLM backend implementations."""

import os
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from src.core.errors import ServiceCallFailure

from .anthropic import AnthropicBackend
from .base import (
    AuthenticationError,
    ContextLengthError,
    GenerationConfig,
    GenerationResult,
    LLMError,
    RateLimitError,
    classify_provider_error,
)
from .factory import create_llm_backend, create_llm_backend_from_environment
from .model_spec import (
    GRADIENT_BASE_URL,
    LLMCapability,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    get_llm_spec,
)
from .openai import OpenAIBackend


def _openai_client(content: str = '{"ok": true}') -> SimpleNamespace:
    response = SimpleNamespace(
        choices=[
            SimpleNamespace(
                message=SimpleNamespace(content=content), finish_reason="stop"
            )
        ],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        model="gpt-4.1-mini",
    )
    create = AsyncMock(return_value=response)
    return SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create))
    )


def _anthropic_client(text: str = '{"ok": true}') -> SimpleNamespace:
    response = SimpleNamespace(
        content=[SimpleNamespace(text=text)],
        stop_reason="end_turn",
        usage=SimpleNamespace(input_tokens=20, output_tokens=7),
        model="claude-sonnet-4-5",
    )
    return SimpleNamespace(
        messages=SimpleNamespace(create=AsyncMock(return_value=response))
    )


class TestLLMSpec:
    """Tests for LLMSpec dataclass."""

    @pytest.mark.unit
    def test_spec_capabilities(self):
        """Capability checks reflect the declared set."""
        spec = LLMSpec(
            name="test",
            provider=LLMProviderType.OPENAI,
            context_window=128000,
            max_output_tokens=4096,
            capabilities=frozenset({LLMCapability.JSON_MODE}),
        )
        assert spec.supports(LLMCapability.JSON_MODE)
        assert not spec.supports(LLMCapability.SEED)


class TestLLMModel:
    """Tests for LLMModel enum registry."""

    @pytest.mark.unit
    def test_default_openai_model(self):
        """The default compiler model is registered."""
        assert LLMModel.GPT_4_1_MINI.spec.name == "gpt-4.1-mini"
        assert LLMModel.GPT_4_1_MINI.spec.provider == LLMProviderType.OPENAI

    @pytest.mark.unit
    def test_gradient_model_uses_compatible_endpoint(self):
        """Gradient models carry the OpenAI-compatible endpoint."""
        spec = LLMModel.LLAMA_3_3_70B.spec
        assert spec.provider == LLMProviderType.GRADIENT
        assert spec.base_url == GRADIENT_BASE_URL

    @pytest.mark.unit
    def test_by_name_lookup(self):
        """Models can be found by name; unknown names give None."""
        assert LLMModel.by_name("claude-sonnet-4-5") == LLMModel.CLAUDE_SONNET_4_5
        assert LLMModel.by_name("nonexistent") is None

    @pytest.mark.unit
    def test_get_llm_spec_unknown(self):
        """Unknown model names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown model"):
            get_llm_spec("nonexistent-model")


class TestErrors:
    """Tests for provider error classification."""

    @pytest.mark.unit
    def test_llm_error_is_service_call_failure(self):
        """Model call failures belong to the transient-failure family."""
        assert issubclass(LLMError, ServiceCallFailure)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Rate limit reached", RateLimitError),
            ("maximum context length exceeded", ContextLengthError),
            ("Invalid API key provided", AuthenticationError),
            ("connection reset", LLMError),
        ],
    )
    def test_classification(self, message, expected):
        """Messages map onto the expected error type."""
        assert type(classify_provider_error(RuntimeError(message))) is expected


class TestOpenAIBackend:
    """Tests for the OpenAI backend with a mocked async client."""

    @pytest.mark.unit
    def test_requires_api_key(self, preserve_env_keys):
        """Missing key raises AuthenticationError."""
        os.environ.pop("OPENAI_API_KEY", None)
        with pytest.raises(AuthenticationError):
            OpenAIBackend()

    @pytest.mark.unit
    async def test_generate(self):
        """Messages, JSON mode and usage are passed through."""
        client = _openai_client()
        backend = OpenAIBackend(api_key="test", client=client)

        result = await backend.generate(
            "hello",
            system_prompt="sys",
            config=GenerationConfig(temperature=0.1, seed=7),
        )

        assert isinstance(result, GenerationResult)
        assert result.content == '{"ok": true}'
        assert result.total_tokens == 15
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["seed"] == 7
        assert kwargs["temperature"] == 0.1

    @pytest.mark.unit
    async def test_provider_error_is_wrapped(self):
        """SDK exceptions come out as LLMError subclasses."""
        client = _openai_client()
        client.chat.completions.create.side_effect = RuntimeError("rate limit")
        backend = OpenAIBackend(api_key="test", client=client)

        with pytest.raises(RateLimitError):
            await backend.generate("hello")


class TestAnthropicBackend:
    """Tests for the Anthropic backend with a mocked async client."""

    @pytest.mark.unit
    async def test_generate_adds_json_instruction(self):
        """JSON requests get an instruction appended; system goes separately."""
        client = _anthropic_client()
        backend = AnthropicBackend(api_key="test", client=client)

        result = await backend.generate("hello", system_prompt="sys")

        assert result.content == '{"ok": true}'
        assert result.total_tokens == 27
        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["system"] == "sys"
        assert "valid JSON only" in kwargs["messages"][0]["content"]


class TestFactory:
    """Tests for create_llm_backend."""

    @pytest.mark.unit
    def test_openai(self):
        """OpenAI models produce an OpenAIBackend."""
        backend = create_llm_backend("gpt-4.1-mini", api_key="test")
        assert isinstance(backend, OpenAIBackend)
        assert backend.name == "openai:gpt-4.1-mini"

    @pytest.mark.unit
    def test_gradient(self):
        """Gradient models use the OpenAI backend."""
        backend = create_llm_backend(LLMModel.LLAMA_3_3_70B, api_key="test")
        assert isinstance(backend, OpenAIBackend)
        assert backend.provider == "gradient"
        assert not backend.supports_json_mode

    @pytest.mark.unit
    def test_anthropic(self):
        """Anthropic models produce an AnthropicBackend."""
        backend = create_llm_backend("claude-sonnet-4-5", api_key="test")
        assert isinstance(backend, AnthropicBackend)

    @pytest.mark.unit
    def test_from_environment(self, monkeypatch):
        """LLM_MODEL selects the compiler backend."""
        monkeypatch.setenv("LLM_MODEL", "claude-haiku-4-5")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test")
        backend = create_llm_backend_from_environment()
        assert isinstance(backend, AnthropicBackend)
        assert backend.model_name == "claude-haiku-4-5"
