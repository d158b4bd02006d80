"""Async interface between the summary compiler and hosted language models.

A backend wraps one provider SDK client and one model. Each `generate` call
is a single network round trip; retries belong to the compiler.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from src.core.errors import ServiceCallFailure


@dataclass
class GenerationConfig:
    """Per-call sampling settings.

    Backends drop settings their model does not accept (see LLMCapability).
    `json_mode` is on by default.
    """

    temperature: float = 0.7
    max_tokens: int = 4096
    json_mode: bool = True
    stop_sequences: list[str] = field(default_factory=list)
    top_p: float = 1.0
    seed: int | None = None


@dataclass
class GenerationResult:
    """One completion.

    Attributes:
        content: Text of the completion, empty if the model returned none.
        finish_reason: Provider stop reason, "unknown" when missing.
        usage: prompt_tokens, completion_tokens and total_tokens.
        model: Model id echoed by the provider.
        raw_response: SDK response object, kept for tracing.
    """

    content: str
    finish_reason: str
    usage: dict[str, int]
    model: str
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        """Total tokens reported by the provider, 0 when unknown."""
        return self.usage.get("total_tokens", 0)


class LLMBackend(ABC):
    """A model the compiler can prompt.

    Implementations: OpenAIBackend (OpenAI and Gradient), AnthropicBackend.
    """

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        """Complete `prompt` once.

        Raises:
            LLMError: Any provider failure, already classified.
        """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model id sent to the provider."""

    @property
    @abstractmethod
    def provider(self) -> str:
        """LLMProviderType value of the serving provider."""

    @property
    def name(self) -> str:
        """Backend identifier for logging, 'provider:model'."""
        return f"{self.provider}:{self.model_name}"

    @property
    @abstractmethod
    def supports_json_mode(self) -> bool:
        """True if the backend natively enforces JSON output."""


class LLMError(ServiceCallFailure):
    """Base exception for language-model call failures."""


class RateLimitError(LLMError):
    """HTTP 429 or a rate-limit message; `retry_after` is in seconds."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class ContextLengthError(LLMError):
    """The prompt does not fit the model context."""


class InvalidResponseError(LLMError):
    """Raised when the response has no usable content."""


class AuthenticationError(LLMError):
    """Missing or rejected provider key."""


def classify_provider_error(error: Exception) -> LLMError:
    """Wrap an SDK exception in the matching LLMError subclass.

    Classification uses the `status_code` attribute when the SDK sets one
    and falls back to the message text. The result is returned, not raised.
    """
    if isinstance(error, LLMError):
        return error

    message = str(error)
    lowered = message.lower()
    status_code = getattr(error, "status_code", None)

    if status_code == 429 or "rate limit" in lowered or "rate_limit" in lowered:
        return RateLimitError(message)
    if "context length" in lowered or "maximum context" in lowered:
        return ContextLengthError(message, status_code=status_code)
    if (
        status_code == 401
        or "authentication" in lowered
        or "invalid api key" in lowered
    ):
        return AuthenticationError(message, status_code=status_code)
    return LLMError(message, status_code=status_code)


__all__ = [
    "LLMBackend",
    "GenerationConfig",
    "GenerationResult",
    "LLMError",
    "RateLimitError",
    "ContextLengthError",
    "InvalidResponseError",
    "AuthenticationError",
    "classify_provider_error",
]
