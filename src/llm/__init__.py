"""LLM integration layer for summary compilation.

This module provides multi-provider async LLM support for turning paper
abstracts into schema-valid compiled input.

Main components:
- SummaryCompiler: Orchestrates prompt building, LLM calls, and validation
- LLMBackend: Abstract interface for LLM providers
- create_llm_backend: Factory function for creating backends

Supported providers:
- OpenAI (GPT-4.1, GPT-4o)
- Anthropic (Claude 4.5)
- Gradient (OpenAI-compatible hosted Llama)

Example:
    >>> from src.llm import SummaryCompiler
    >>> compiler = SummaryCompiler()
    >>> result = await compiler.compile(abstract)
    >>> print(result.data.summary.title)

    >>> # With specific model
    >>> from src.llm import create_llm_backend, LLMModel
    >>> backend = create_llm_backend(LLMModel.CLAUDE_SONNET_4_5)
    >>> compiler = SummaryCompiler(backend=backend)
"""

from .backend import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_GRADIENT_MODEL,
    DEFAULT_MODEL,
    DEFAULT_OPENAI_MODEL,
    AuthenticationError,
    ContextLengthError,
    GenerationConfig,
    GenerationResult,
    InvalidResponseError,
    LLMBackend,
    LLMCapability,
    LLMError,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    RateLimitError,
    create_llm_backend,
    create_llm_backend_from_environment,
    get_llm_spec,
)
from .compiler import (
    CompilationAttempt,
    CompilationMetadata,
    CompilationMode,
    CompilationResult,
    CompilerConfig,
    ExtractionError,
    PayloadExtractor,
    SummaryCompiler,
    build_fallback_input,
)

__all__ = [
    # Main API
    "SummaryCompiler",
    "create_llm_backend",
    "create_llm_backend_from_environment",
    "build_fallback_input",
    # Compiler types
    "CompilerConfig",
    "CompilationMode",
    "CompilationMetadata",
    "CompilationAttempt",
    "CompilationResult",
    "PayloadExtractor",
    "ExtractionError",
    # Backend types
    "LLMBackend",
    "GenerationConfig",
    "GenerationResult",
    # Model specification
    "LLMCapability",
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "get_llm_spec",
    # Defaults
    "DEFAULT_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_GRADIENT_MODEL",
    # Exceptions
    "LLMError",
    "RateLimitError",
    "ContextLengthError",
    "InvalidResponseError",
    "AuthenticationError",
]
