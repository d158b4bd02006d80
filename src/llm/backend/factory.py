"""Backend factory for creating LLM backends from model specifications."""

from src.config import EnvVar, get_environment

from .base import LLMBackend
from .model_spec import (
    DEFAULT_MODEL,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    get_llm_spec,
)


def create_llm_backend(
    model: str | LLMModel | LLMSpec = DEFAULT_MODEL,
    *,
    api_key: str | None = None,
    base_url: str | None = None,
    **kwargs,
) -> LLMBackend:
    """Create an LLM backend from a model specification.

    Routes to the backend class for the model's provider. Gradient models
    use the OpenAI backend against the Gradient endpoint.

    Args:
        model: Model name string, LLMModel value or LLMSpec.
        api_key: API key. Falls back to the provider's environment variable.
        base_url: Optional custom API endpoint.
        **kwargs: Passed to the backend constructor (timeout, max_retries).

    Returns:
        Configured LLMBackend instance.

    Raises:
        ValueError: If model is unknown.
        AuthenticationError: If API key required but not provided.

    Example:
        >>> backend = create_llm_backend("claude-sonnet-4-5")
    """
    spec = get_llm_spec(model)

    if spec.provider == LLMProviderType.OPENAI:
        from .openai import OpenAIBackend

        return OpenAIBackend(
            api_key=api_key, model=spec.name, base_url=base_url, **kwargs
        )

    if spec.provider == LLMProviderType.GRADIENT:
        from .openai import OpenAIBackend

        return OpenAIBackend(
            api_key=api_key or get_environment(EnvVar.GRADIENT_API_KEY),
            model=spec.name,
            base_url=base_url or spec.base_url,
            **kwargs,
        )

    if spec.provider == LLMProviderType.ANTHROPIC:
        from .anthropic import AnthropicBackend

        return AnthropicBackend(api_key=api_key, model=spec.name, **kwargs)

    raise ValueError(f"Unsupported provider type: {spec.provider}")


def create_llm_backend_from_environment(**kwargs) -> LLMBackend:
    """Create the backend named by LLM_MODEL, honouring LLM_BASE_URL."""
    return create_llm_backend(
        get_environment(EnvVar.LLM_MODEL),
        base_url=get_environment(EnvVar.LLM_BASE_URL),
        **kwargs,
    )


__all__ = ["create_llm_backend", "create_llm_backend_from_environment"]
