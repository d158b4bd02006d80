"""Typed environment settings.

    >>> from src.config import EnvVar, get_environment
    >>> get_environment(EnvVar.FIBO_MAX_POLLS)
    150

Categories: llm (provider keys, model), compiler (retry budget, pass mode),
generation (Bria FIBO token, endpoint, polling), service (arXiv endpoint,
MCP host and port, log level), output (trace and image directories).
"""

from .lib import (
    # Core types
    EnvConfig,
    EnvVar,
    # Main interface
    get_available_llm_providers,
    get_environment,
    get_environment_info,
    get_fibo_api_key,
    get_output_dir,
    get_trace_dir,
    # Introspection
    list_environment_variables,
)

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
