"""Models the summary compiler can run on.

Each registry entry records the provider, token limits and the request
features the backend may rely on for that model.
"""

from dataclasses import dataclass, field
from enum import Enum


class LLMCapability(Enum):
    """Optional request features a model accepts."""

    JSON_MODE = "json_mode"  # response_format json_object
    SYSTEM_PROMPT = "system_prompt"
    SEED = "seed"


class LLMProviderType(Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GRADIENT = "gradient"  # DigitalOcean, OpenAI-compatible API


@dataclass(frozen=True)
class LLMSpec:
    """Static description of one model.

    Attributes:
        name: Identifier sent to the provider, e.g. 'gpt-4.1-mini'.
        provider: Which backend serves the model.
        context_window: Prompt plus completion token limit.
        max_output_tokens: Completion token limit.
        capabilities: Request features the model accepts.
        description: Short label for `python . models`.
        api_key_env_var: Name of the variable holding the provider key.
        base_url: Endpoint override for OpenAI-compatible providers.
    """

    name: str
    provider: LLMProviderType
    context_window: int
    max_output_tokens: int
    capabilities: frozenset[LLMCapability] = field(default_factory=frozenset)
    description: str = ""
    api_key_env_var: str = ""
    base_url: str | None = None

    def supports(self, capability: LLMCapability) -> bool:
        return capability in self.capabilities


GRADIENT_BASE_URL = "https://inference.do-ai.run/v1"


def _openai(name: str, description: str) -> LLMSpec:
    return LLMSpec(
        name=name,
        provider=LLMProviderType.OPENAI,
        context_window=128_000,
        max_output_tokens=16_384,
        capabilities=frozenset(LLMCapability),
        description=description,
        api_key_env_var="OPENAI_API_KEY",
    )


def _claude(name: str, description: str) -> LLMSpec:
    # JSON is requested through the prompt; there is no seed parameter
    return LLMSpec(
        name=name,
        provider=LLMProviderType.ANTHROPIC,
        context_window=200_000,
        max_output_tokens=64_000,
        capabilities=frozenset({LLMCapability.SYSTEM_PROMPT}),
        description=description,
        api_key_env_var="ANTHROPIC_API_KEY",
    )


class LLMModel(Enum):
    """Known models, keyed by a constant name."""

    GPT_4_1 = _openai("gpt-4.1", "OpenAI flagship for structured output")
    GPT_4_1_MINI = _openai("gpt-4.1-mini", "OpenAI small model, compiler default")
    GPT_4O = _openai("gpt-4o", "OpenAI multimodal general model")

    CLAUDE_SONNET_4_5 = _claude("claude-sonnet-4-5", "Claude mid-size model")
    CLAUDE_HAIKU_4_5 = _claude("claude-haiku-4-5", "Claude low-latency model")

    LLAMA_3_3_70B = LLMSpec(
        name="llama3.3-70b-instruct",
        provider=LLMProviderType.GRADIENT,
        context_window=128_000,
        max_output_tokens=8_192,
        capabilities=frozenset({LLMCapability.SYSTEM_PROMPT}),
        description="Llama 3.3 70B Instruct on DigitalOcean Gradient",
        api_key_env_var="GRADIENT_API_KEY",
        base_url=GRADIENT_BASE_URL,
    )

    @property
    def spec(self) -> LLMSpec:
        return self.value

    @classmethod
    def by_name(cls, name: str) -> "LLMModel | None":
        """Find the member whose spec carries `name`, or None."""
        return next((m for m in cls if m.spec.name == name), None)

    @classmethod
    def list_by_provider(cls, provider: LLMProviderType) -> list["LLMModel"]:
        return [m for m in cls if m.spec.provider is provider]


DEFAULT_OPENAI_MODEL = LLMModel.GPT_4_1_MINI
DEFAULT_ANTHROPIC_MODEL = LLMModel.CLAUDE_SONNET_4_5
DEFAULT_GRADIENT_MODEL = LLMModel.LLAMA_3_3_70B

DEFAULT_MODEL = DEFAULT_OPENAI_MODEL


def get_llm_spec(model: str | LLMModel | LLMSpec) -> LLMSpec:
    """Normalize a model name, registry member or spec to a spec.

    Raises:
        ValueError: If a name matches no registered model.
    """
    if isinstance(model, LLMSpec):
        return model
    if isinstance(model, LLMModel):
        return model.spec
    found = LLMModel.by_name(model)
    if found is None:
        raise ValueError(f"Unknown model: {model}")
    return found.spec


__all__ = [
    "LLMCapability",
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "GRADIENT_BASE_URL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_GRADIENT_MODEL",
    "DEFAULT_MODEL",
    "get_llm_spec",
]
