"""Anthropic Claude backend.

Claude has no native JSON mode. When `json_mode` is set the prompt gets an
instruction appended and the compiler's lenient extractor handles the rest.
"""

import logging
from typing import Any

from anthropic import AsyncAnthropic

from src.config import EnvVar, get_environment

from .base import (
    AuthenticationError,
    GenerationConfig,
    GenerationResult,
    LLMBackend,
    classify_provider_error,
)
from .model_spec import DEFAULT_ANTHROPIC_MODEL, LLMSpec, get_llm_spec

logger = logging.getLogger(__name__)

JSON_ONLY_SUFFIX = (
    "IMPORTANT: Respond with valid JSON only. No prose, no markdown fences, "
    "nothing before or after the JSON object."
)


def _messages_request(
    spec: LLMSpec,
    prompt: str,
    system_prompt: str | None,
    config: GenerationConfig,
) -> dict[str, Any]:
    """Keyword arguments for `messages.create`."""
    if config.json_mode:
        prompt = f"{prompt}\n\n{JSON_ONLY_SUFFIX}"
    request: dict[str, Any] = dict(
        model=spec.name,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=config.max_tokens,
        temperature=config.temperature,
    )
    # System text is a top-level field, not a message role
    if system_prompt:
        request["system"] = system_prompt
    if config.stop_sequences:
        request["stop_sequences"] = list(config.stop_sequences)
    return request


def _text_of(response: Any) -> str:
    return "".join(
        getattr(block, "text", None) or "" for block in response.content
    )


class AnthropicBackend(LLMBackend):
    """Async backend for the Claude messages API.

    Environment:
        ANTHROPIC_API_KEY: used when no key is passed.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_ANTHROPIC_MODEL.spec.name,
        timeout: float = 60.0,
        max_retries: int = 2,
        client: Any = None,
    ):
        """Initialize Anthropic backend.

        Args:
            api_key: API key; ANTHROPIC_API_KEY if omitted.
            model: Model name (claude-sonnet-4-5, claude-haiku-4-5, ...).
            timeout: Request timeout in seconds.
            max_retries: SDK-level retries for transient errors.
            client: Pre-built async client, mainly for tests.

        Raises:
            AuthenticationError: If no key is available and no client given.
        """
        self._spec = get_llm_spec(model)
        if client is None:
            key = api_key or get_environment(EnvVar.ANTHROPIC_API_KEY)
            if not key:
                raise AuthenticationError(
                    f"No API key for {self._spec.name}. Set ANTHROPIC_API_KEY "
                    "or pass api_key."
                )
            client = AsyncAnthropic(
                api_key=key, timeout=timeout, max_retries=max_retries
            )
        self._client = client

    @property
    def model_name(self) -> str:
        return self._spec.name

    @property
    def provider(self) -> str:
        return self._spec.provider.value

    @property
    def supports_json_mode(self) -> bool:
        return False

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Send one messages request and join its text blocks."""
        request = _messages_request(
            self._spec, prompt, system_prompt, config or GenerationConfig()
        )
        try:
            response = await self._client.messages.create(**request)
        except Exception as e:
            raise classify_provider_error(e) from e

        logger.debug(f"{self.name} stopped with {response.stop_reason}")
        tokens_in = response.usage.input_tokens
        tokens_out = response.usage.output_tokens
        return GenerationResult(
            content=_text_of(response),
            finish_reason=response.stop_reason or "unknown",
            usage={
                "prompt_tokens": tokens_in,
                "completion_tokens": tokens_out,
                "total_tokens": tokens_in + tokens_out,
            },
            model=response.model,
            raw_response=response,
        )


__all__ = ["AnthropicBackend"]
