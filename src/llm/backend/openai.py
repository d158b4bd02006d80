"""OpenAI chat-completions backend.

Also serves any OpenAI-compatible endpoint (such as DigitalOcean Gradient
inference) through `base_url`.
"""

import logging
from typing import Any

from openai import AsyncOpenAI

from src.config import EnvVar, get_environment

from .base import (
    AuthenticationError,
    GenerationConfig,
    GenerationResult,
    InvalidResponseError,
    LLMBackend,
    classify_provider_error,
)
from .model_spec import DEFAULT_OPENAI_MODEL, LLMCapability, LLMSpec, get_llm_spec

logger = logging.getLogger(__name__)


def _chat_messages(prompt: str, system_prompt: str | None) -> list[dict[str, str]]:
    messages = [{"role": "user", "content": prompt}]
    if system_prompt:
        messages.insert(0, {"role": "system", "content": system_prompt})
    return messages


def _chat_request(
    spec: LLMSpec,
    prompt: str,
    system_prompt: str | None,
    config: GenerationConfig,
) -> dict[str, Any]:
    """Keyword arguments for `chat.completions.create`."""
    request: dict[str, Any] = dict(
        model=spec.name,
        messages=_chat_messages(prompt, system_prompt),
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        top_p=config.top_p,
    )
    # Only models that enforce JSON natively get response_format
    if config.json_mode and spec.supports(LLMCapability.JSON_MODE):
        request["response_format"] = {"type": "json_object"}
    if config.seed is not None and spec.supports(LLMCapability.SEED):
        request["seed"] = config.seed
    if config.stop_sequences:
        request["stop"] = list(config.stop_sequences)
    return request


class OpenAIBackend(LLMBackend):
    """Async backend for OpenAI and OpenAI-compatible chat endpoints.

    The key comes from the model's own variable (OPENAI_API_KEY, or
    GRADIENT_API_KEY for Gradient models) unless passed in.

    Example:
        >>> backend = OpenAIBackend()
        >>> result = await backend.generate("Summarize this abstract")
        >>> result.content
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_OPENAI_MODEL.spec.name,
        base_url: str | None = None,
        timeout: float = 60.0,
        max_retries: int = 2,
        client: Any = None,
    ):
        """Initialize OpenAI backend.

        Args:
            api_key: API key; read from the environment if omitted.
            model: Model name (gpt-4.1-mini, llama3.3-70b-instruct, etc.).
            base_url: Endpoint override; defaults to the model's own.
            timeout: Request timeout in seconds.
            max_retries: SDK-level retries for transient errors.
            client: Pre-built async client, mainly for tests.

        Raises:
            AuthenticationError: If no key is available and no client given.
        """
        self._spec = get_llm_spec(model)
        key_var = self._spec.api_key_env_var or EnvVar.OPENAI_API_KEY.name
        key = api_key or get_environment(EnvVar[key_var])
        if client is None:
            if not key:
                raise AuthenticationError(
                    f"No API key for {self._spec.name}. Set {key_var} "
                    "or pass api_key."
                )
            client = AsyncOpenAI(
                api_key=key,
                base_url=base_url or self._spec.base_url,
                timeout=timeout,
                max_retries=max_retries,
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
        return self._spec.supports(LLMCapability.JSON_MODE)

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Run one chat completion.

        Raises:
            LLMError: Any SDK failure, classified.
            InvalidResponseError: If the response carries no choices.
        """
        request = _chat_request(
            self._spec, prompt, system_prompt, config or GenerationConfig()
        )
        try:
            response = await self._client.chat.completions.create(**request)
        except Exception as e:
            raise classify_provider_error(e) from e

        if not response.choices:
            raise InvalidResponseError(f"{self.name} returned no choices")
        first = response.choices[0]
        logger.debug(f"{self.name} finished with {first.finish_reason}")

        usage = response.usage
        return GenerationResult(
            content=first.message.content or "",
            finish_reason=first.finish_reason or "unknown",
            usage={
                key: getattr(usage, key, 0) if usage else 0
                for key in ("prompt_tokens", "completion_tokens", "total_tokens")
            },
            model=response.model,
            raw_response=response,
        )


__all__ = ["OpenAIBackend"]
