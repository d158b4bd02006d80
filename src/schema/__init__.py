"""Compiled input schema and validator.

Example:
    >>> from src.schema import validate_compiled_input
    >>> result = validate_compiled_input({"summary": {}})
    >>> result.ok
    False
    >>> result.errors[0]
    'summary.title: Field required'
"""

from .lib import (
    MAX_CONCEPTS,
    MIN_CONCEPTS,
    REFERENCE_EXAMPLE,
    AudienceTier,
    CompiledInput,
    Concept,
    GenerationOptions,
    SchemaValidationResult,
    StylePreference,
    Summary,
    UserPreferences,
    export_json_schema,
    is_valid_compiled_input,
    reference_example_json,
    schema_definition,
    validate_compiled_input,
)

__all__ = [
    # Limits
    "MIN_CONCEPTS",
    "MAX_CONCEPTS",
    # Enums
    "AudienceTier",
    "StylePreference",
    # Models
    "Concept",
    "Summary",
    "UserPreferences",
    "GenerationOptions",
    "CompiledInput",
    "SchemaValidationResult",
    # Validation
    "validate_compiled_input",
    "is_valid_compiled_input",
    # Prompt material
    "export_json_schema",
    "schema_definition",
    "REFERENCE_EXAMPLE",
    "reference_example_json",
]
