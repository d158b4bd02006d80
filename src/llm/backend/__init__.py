"""Language-model backend implementations.

Provides the async backend interface and concrete implementations for
OpenAI (and OpenAI-compatible Gradient) and Anthropic.
"""

from .base import (
    AuthenticationError,
    ContextLengthError,
    GenerationConfig,
    GenerationResult,
    InvalidResponseError,
    LLMBackend,
    LLMError,
    RateLimitError,
    classify_provider_error,
)
from .factory import create_llm_backend, create_llm_backend_from_environment
from .model_spec import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_GRADIENT_MODEL,
    DEFAULT_MODEL,
    DEFAULT_OPENAI_MODEL,
    GRADIENT_BASE_URL,
    LLMCapability,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    get_llm_spec,
)

__all__ = [
    # Base classes and types
    "LLMBackend",
    "GenerationConfig",
    "GenerationResult",
    # Exceptions
    "LLMError",
    "RateLimitError",
    "ContextLengthError",
    "InvalidResponseError",
    "AuthenticationError",
    "classify_provider_error",
    # Model specification
    "LLMCapability",
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "GRADIENT_BASE_URL",
    "get_llm_spec",
    # Defaults
    "DEFAULT_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_GRADIENT_MODEL",
    # Factory
    "create_llm_backend",
    "create_llm_backend_from_environment",
]
