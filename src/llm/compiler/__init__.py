"""Summary compiler.

Provides SummaryCompiler, which turns unstructured text into schema-valid
compiled input via validate-and-retry, plus the lenient JSON extractor,
prompt templates and the explicit fallback mode.
"""

from .extract import ExtractionError, PayloadExtractor, extract_payload
from .fallback import build_fallback_input, split_sentences
from .lib import (
    CompilationAttempt,
    CompilationMetadata,
    CompilationMode,
    CompilationResult,
    CompilerConfig,
    SummaryCompiler,
)
from .templates import (
    SEMANTIC_EXTRACTION_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    build_compilation_prompt,
    build_extraction_prompt,
    build_retry_prompt,
    build_user_prompt,
)

__all__ = [
    "SummaryCompiler",
    "CompilerConfig",
    "CompilationMode",
    "CompilationMetadata",
    "CompilationAttempt",
    "CompilationResult",
    "ExtractionError",
    "PayloadExtractor",
    "extract_payload",
    "build_fallback_input",
    "split_sentences",
    "SYSTEM_PROMPT",
    "SEMANTIC_EXTRACTION_SYSTEM_PROMPT",
    "build_user_prompt",
    "build_extraction_prompt",
    "build_compilation_prompt",
    "build_retry_prompt",
]
