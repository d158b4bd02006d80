"""Environment-driven settings for visual-explainer-mcp.

Every variable the project reads is declared once as an `EnvVar` member
carrying its default, type and category. `get_environment()` resolves a
member as: explicit override, then the process environment, then the
declared default. Values are converted to the declared type.

Example:
    >>> get_environment(EnvVar.FIBO_POLL_INTERVAL)
    2.0
    >>> get_environment(EnvVar.FIBO_MAX_POLLS, override=10)
    10
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, overload

# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Declaration of one environment variable.

    Attributes:
        name: Variable name as it appears in the environment.
        default: Value used when the variable is unset or unparseable.
        var_type: Target type (str, int, float, bool or Path).
        description: One-line note on what the variable controls.
        category: One of llm, compiler, generation, service, output.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """Registry of the variables visual-explainer-mcp reads.

    Member names match the variable names, so `EnvVar[name]` works for names
    held as strings (such as a model's key variable).
    """

    # -------------------------------------------------------------------------
    # Language Model
    # -------------------------------------------------------------------------
    OPENAI_API_KEY = EnvConfig(
        name="OPENAI_API_KEY",
        default=None,
        var_type=str,
        description="OpenAI API key for GPT models",
        category="llm",
    )
    ANTHROPIC_API_KEY = EnvConfig(
        name="ANTHROPIC_API_KEY",
        default=None,
        var_type=str,
        description="Anthropic API key for Claude models",
        category="llm",
    )
    GRADIENT_API_KEY = EnvConfig(
        name="GRADIENT_API_KEY",
        default=None,
        var_type=str,
        description="DigitalOcean Gradient inference key (OpenAI-compatible)",
        category="llm",
    )
    LLM_MODEL = EnvConfig(
        name="LLM_MODEL",
        default="gpt-4.1-mini",
        var_type=str,
        description="Model used by the summary compiler",
        category="llm",
    )
    LLM_BASE_URL = EnvConfig(
        name="LLM_BASE_URL",
        default=None,
        var_type=str,
        description="Custom OpenAI-compatible endpoint for the compiler model",
        category="llm",
    )

    # -------------------------------------------------------------------------
    # Compiler
    # -------------------------------------------------------------------------
    COMPILER_MAX_ATTEMPTS = EnvConfig(
        name="COMPILER_MAX_ATTEMPTS",
        default=3,
        var_type=int,
        description="Maximum validate-and-retry attempts per compilation pass",
        category="compiler",
    )
    COMPILER_TWO_PASS = EnvConfig(
        name="COMPILER_TWO_PASS",
        default=True,
        var_type=bool,
        description="Use semantic extraction before strict compilation",
        category="compiler",
    )

    # -------------------------------------------------------------------------
    # Image Generation
    # -------------------------------------------------------------------------
    FIBO_API_KEY = EnvConfig(
        name="FIBO_API_KEY",
        default=None,
        var_type=str,
        description="Bria FIBO API token",
        category="generation",
    )
    BRIA_API_KEY = EnvConfig(
        name="BRIA_API_KEY",
        default=None,
        var_type=str,
        description="Alternative name for the Bria API token",
        category="generation",
    )
    FIBO_API_URL = EnvConfig(
        name="FIBO_API_URL",
        default="https://engine.prod.bria-api.com/v2",
        var_type=str,
        description="Bria FIBO API base URL",
        category="generation",
    )
    FIBO_POLL_INTERVAL = EnvConfig(
        name="FIBO_POLL_INTERVAL",
        default=2.0,
        var_type=float,
        description="Seconds between job status polls",
        category="generation",
    )
    FIBO_MAX_POLLS = EnvConfig(
        name="FIBO_MAX_POLLS",
        default=150,
        var_type=int,
        description="Poll count ceiling before a job is reported as timed out",
        category="generation",
    )

    # -------------------------------------------------------------------------
    # Endpoints and Server
    # -------------------------------------------------------------------------
    ARXIV_API_URL = EnvConfig(
        name="ARXIV_API_URL",
        default="http://export.arxiv.org/api/query",
        var_type=str,
        description="arXiv Atom query endpoint",
        category="service",
    )
    MCP_HOST = EnvConfig(
        name="MCP_HOST",
        default="0.0.0.0",
        var_type=str,
        description="MCP server bind address",
        category="service",
    )
    MCP_PORT = EnvConfig(
        name="MCP_PORT",
        default=18080,
        var_type=int,
        description="MCP server port for HTTP/SSE transports",
        category="service",
    )
    LOG_LEVEL = EnvConfig(
        name="LOG_LEVEL",
        default="INFO",
        var_type=str,
        description="Logging level name",
        category="service",
    )

    # -------------------------------------------------------------------------
    # Output Paths
    # -------------------------------------------------------------------------
    TRACE_DIR = EnvConfig(
        name="TRACE_DIR",
        default=None,
        var_type=Path,
        description="Directory for per-request stage traces (disabled if unset)",
        category="output",
    )
    OUTPUT_DIR = EnvConfig(
        name="OUTPUT_DIR",
        default=Path("output"),
        var_type=Path,
        description="Directory for downloaded poster images",
        category="output",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================

_TRUTHY = frozenset({"true", "1", "yes", "on"})
_FALSY = frozenset({"false", "0", "no", "off"})


def _to_bool(raw: str) -> bool:
    token = raw.strip().lower()
    if token in _TRUTHY:
        return True
    if token in _FALSY:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


_CONVERTERS: dict[type, Any] = {
    str: str,
    int: int,
    float: float,
    bool: _to_bool,
    Path: Path,
}


def _coerce(raw: str | None, config: EnvConfig) -> Any:
    """Convert a raw environment string to the declared type.

    Unset variables and values that fail conversion yield the default.
    """
    if raw is None:
        return config.default
    convert = _CONVERTERS.get(config.var_type, str)
    try:
        return convert(raw)
    except ValueError:
        return config.default


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: float) -> float: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: bool) -> bool: ...
@overload
def get_environment(env_var: EnvVar, override: Path) -> Path: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Resolve a variable to a typed value.

    Args:
        env_var: Registry member to resolve.
        override: Returned as-is when not None; the environment is skipped.

    Returns:
        The override, the converted environment value, or the default.
    """
    if override is not None:
        return override
    config: EnvConfig = env_var.value
    return _coerce(os.environ.get(config.name), config)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Return the declaration behind a registry member."""
    return env_var.value


# =============================================================================
# Convenience Functions
# =============================================================================


def get_fibo_api_key(override: str | None = None) -> str | None:
    """Get the Bria FIBO API token.

    Resolution: override > FIBO_API_KEY > BRIA_API_KEY
    """
    if override:
        return override
    return get_environment(EnvVar.FIBO_API_KEY) or get_environment(
        EnvVar.BRIA_API_KEY
    )


def get_trace_dir(override: Path | str | None = None) -> Path | None:
    """Get the trace output directory, or None when tracing is disabled."""
    if override is not None:
        return Path(override)
    return get_environment(EnvVar.TRACE_DIR)


def get_output_dir(override: Path | str | None = None) -> Path:
    """Get the directory downloaded images are written to."""
    if override is not None:
        return Path(override)
    return get_environment(EnvVar.OUTPUT_DIR)


_PROVIDER_KEYS = (
    ("openai", EnvVar.OPENAI_API_KEY),
    ("anthropic", EnvVar.ANTHROPIC_API_KEY),
    ("gradient", EnvVar.GRADIENT_API_KEY),
)


def get_available_llm_providers() -> list[str]:
    """Names of the LLM providers whose key is set, in preference order."""
    return [name for name, key in _PROVIDER_KEYS if get_environment(key)]


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """Registry members, all of them or those in one category."""
    return [var for var in EnvVar if category in (None, var.value.category)]


__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Convenience functions
    "get_fibo_api_key",
    "get_trace_dir",
    "get_output_dir",
    "get_available_llm_providers",
    # Introspection
    "list_environment_variables",
]
