"""Structured prompt building for the image-synthesis service.

Provides StructuredPromptBuilder for turning compiled input plus a layout
into a structured generation request, and the per-tier style tables it uses.
"""

from src.prompt.lib import (
    MAX_OVERLAY_LENGTH,
    Aesthetics,
    Lighting,
    PhotographicCharacteristics,
    PromptBuildError,
    PromptValidation,
    StructuredPrompt,
    StructuredPromptBuilder,
    TextOverlay,
    TextSlot,
    VisualObject,
    build_structured_prompt,
    estimate_generation_time,
    validate_structured_prompt,
)
from src.prompt.styles import ColorScheme, Typography, color_scheme, typography

__all__ = [
    "MAX_OVERLAY_LENGTH",
    "PromptBuildError",
    "TextSlot",
    "VisualObject",
    "TextOverlay",
    "Lighting",
    "Aesthetics",
    "PhotographicCharacteristics",
    "StructuredPrompt",
    "PromptValidation",
    "StructuredPromptBuilder",
    "build_structured_prompt",
    "validate_structured_prompt",
    "estimate_generation_time",
    "ColorScheme",
    "Typography",
    "color_scheme",
    "typography",
]
