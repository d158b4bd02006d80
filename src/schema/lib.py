"""Authoritative schema for compiled poster input.

This module is the single source of truth for the structured data the
compiler must produce and every downstream stage consumes. It provides:
- Pydantic models for the compiled input and its parts
- The schema validator that turns arbitrary values into ok/errors results
- The schema text and worked example embedded in compiler prompts

Concept count, concept uniqueness and required-field rules live only here.
"""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

MIN_CONCEPTS = 3
MAX_CONCEPTS = 7


class AudienceTier(str, Enum):
    """Audience level driving layout, typography, colour and text density."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class StylePreference(str, Enum):
    """Optional visual style hint from the requester."""

    MINIMALIST = "minimalist"
    DETAILED = "detailed"
    ACADEMIC = "academic"


_MODEL_CONFIG = {
    "frozen": True,
    "extra": "forbid",
    "str_strip_whitespace": True,
}


class Concept(BaseModel):
    """One discrete idea paired with a concrete visual metaphor."""

    model_config = _MODEL_CONFIG

    name: str = Field(..., min_length=1, description="Short concept name")
    explanation: str = Field(
        ..., min_length=10, description="What the concept means, in tier language"
    )
    visual_metaphor: str = Field(
        ...,
        min_length=5,
        description="A concrete, visualizable analogy for image generation",
    )


class Summary(BaseModel):
    """Paper summary content rendered onto the poster."""

    model_config = _MODEL_CONFIG

    title: str = Field(..., min_length=1, max_length=200, description="Paper title")
    one_liner: str = Field(
        ..., min_length=10, max_length=300, description="Single-sentence summary"
    )
    concepts: list[Concept] = Field(
        ...,
        min_length=MIN_CONCEPTS,
        max_length=MAX_CONCEPTS,
        description=f"{MIN_CONCEPTS}-{MAX_CONCEPTS} key concepts",
    )
    key_finding: str = Field(
        ..., min_length=10, description="Main result or contribution"
    )
    impact: str | None = Field(None, description="Real-world impact")

    @field_validator("concepts")
    @classmethod
    def concepts_are_distinct(cls, concepts: list[Concept]) -> list[Concept]:
        seen: set[str] = set()
        for concept in concepts:
            key = concept.name.strip().casefold()
            if key in seen:
                raise ValueError(f"Duplicate concept name '{concept.name}'")
            seen.add(key)
        return concepts


class UserPreferences(BaseModel):
    """Optional requester preferences that colour the prompt context."""

    model_config = _MODEL_CONFIG

    background: str | None = Field(None, description="Viewer's field of background")
    preferred_colors: list[str] | None = None
    style_preference: StylePreference | None = None
    style_hints: str | None = None


class GenerationOptions(BaseModel):
    """Optional generation switches carried through from the requester."""

    model_config = _MODEL_CONFIG

    include_layout_previews: bool | None = None
    include_variations: bool | None = None
    generation_mode: str | None = None


class CompiledInput(BaseModel):
    """Schema-valid input for the poster generation pipeline.

    Produced by the compiler (or the explicit fallback mode) and consumed
    read-only by every downstream stage.
    """

    model_config = _MODEL_CONFIG

    summary: Summary
    audience_tier: AudienceTier
    tags: list[str] = Field(..., min_length=1, description="Content tags")
    source_id: str = Field(
        ..., min_length=1, description="Source identifier, e.g. an arXiv id"
    )
    user_preferences: UserPreferences | None = None
    options: GenerationOptions | None = None

    @property
    def concept_count(self) -> int:
        """Number of concepts in the summary."""
        return len(self.summary.concepts)


class SchemaValidationResult(BaseModel):
    """Tagged outcome of validating an arbitrary value.

    Attributes:
        ok: True when the value satisfies the schema.
        value: The parsed input when ok.
        errors: "<path>: <message>" strings when not ok.
    """

    ok: bool
    value: CompiledInput | None = None
    errors: list[str] = Field(default_factory=list)


def _format_errors(exc: PydanticValidationError) -> list[str]:
    errors = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"]) or "(root)"
        errors.append(f"{path}: {error['msg']}")
    return errors


def validate_compiled_input(value: Any) -> SchemaValidationResult:
    """Validate an arbitrary value against the compiled input schema.

    Never raises for bad data; all problems come back as error strings.

    Args:
        value: Decoded JSON data, a dict, or an existing CompiledInput.

    Returns:
        SchemaValidationResult with the parsed value or the error list.
    """
    if isinstance(value, CompiledInput):
        return SchemaValidationResult(ok=True, value=value)
    try:
        parsed = CompiledInput.model_validate(value)
    except PydanticValidationError as e:
        return SchemaValidationResult(ok=False, errors=_format_errors(e))
    return SchemaValidationResult(ok=True, value=parsed)


def is_valid_compiled_input(value: Any) -> bool:
    """Check whether a value satisfies the schema."""
    return validate_compiled_input(value).ok


def export_json_schema() -> dict:
    """Export the CompiledInput JSON Schema for prompt injection."""
    return CompiledInput.model_json_schema()


def schema_definition() -> str:
    """Render the authoritative schema text embedded in compiler prompts."""
    return json.dumps(export_json_schema(), indent=2)


# Few-shot example paired with the schema in every compilation prompt.
REFERENCE_EXAMPLE: dict[str, Any] = {
    "summary": {
        "title": "Attention Is All You Need",
        "one_liner": (
            "A new neural network architecture called Transformer that uses "
            "attention mechanisms instead of recurrence for sequence processing"
        ),
        "concepts": [
            {
                "name": "Self-Attention",
                "explanation": (
                    "A mechanism that allows each position in a sequence to "
                    "attend to all positions in the previous layer, computing "
                    "relationships between all pairs"
                ),
                "visual_metaphor": (
                    "Like a room full of people where everyone can talk to "
                    "everyone else at once, rather than passing messages in a line"
                ),
            },
            {
                "name": "Multi-Head Attention",
                "explanation": (
                    "Running multiple attention operations in parallel, allowing "
                    "the model to focus on different aspects of the input "
                    "simultaneously"
                ),
                "visual_metaphor": (
                    "Having multiple sets of eyes, each focusing on different "
                    "patterns (colors, shapes, textures) at the same time"
                ),
            },
            {
                "name": "Positional Encoding",
                "explanation": (
                    "Adding information about the position of tokens in the "
                    "sequence, since attention has no built-in notion of order"
                ),
                "visual_metaphor": (
                    "Like adding timestamps to messages so you know the order "
                    "they were sent, even if they arrive out of sequence"
                ),
            },
        ],
        "key_finding": (
            "The Transformer architecture achieves state-of-the-art results on "
            "translation tasks while being more parallelizable and requiring "
            "significantly less time to train than recurrent models"
        ),
        "impact": (
            "Powers modern language models like GPT and BERT, enabling "
            "breakthrough applications in translation, text generation, code "
            "completion, and conversational AI"
        ),
    },
    "audience_tier": "beginner",
    "user_preferences": {
        "background": "computer science",
        "preferred_colors": ["blue", "purple"],
        "style_preference": "detailed",
        "style_hints": "Technical but accessible, with clear visual metaphors",
    },
    "tags": ["deep-learning", "nlp", "architecture", "conceptual"],
    "source_id": "1706.03762",
    "options": {
        "include_layout_previews": True,
        "include_variations": False,
        "generation_mode": "high_quality",
    },
}


def reference_example_json() -> str:
    """Render the worked example as pretty-printed JSON."""
    return json.dumps(REFERENCE_EXAMPLE, indent=2)


__all__ = [
    "MIN_CONCEPTS",
    "MAX_CONCEPTS",
    "AudienceTier",
    "StylePreference",
    "Concept",
    "Summary",
    "UserPreferences",
    "GenerationOptions",
    "CompiledInput",
    "SchemaValidationResult",
    "validate_compiled_input",
    "is_valid_compiled_input",
    "export_json_schema",
    "schema_definition",
    "REFERENCE_EXAMPLE",
    "reference_example_json",
]
