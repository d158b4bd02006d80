"""Layout engine: layout strategy selection and section geometry.

Example:
    >>> from src.layout import compute_layout
    >>> layout = compute_layout(5, "intermediate", ["nlp"])
    >>> layout.type.value
    'f-pattern'
"""

from .lib import (
    HEIGHT_TOLERANCE,
    MAX_ITEMS,
    MIN_ITEMS,
    LayoutEngine,
    LayoutRecommendation,
    LayoutStrategy,
    LayoutType,
    LayoutValidation,
    Margins,
    Position,
    Section,
    SectionRole,
    alternative_layouts,
    compute_layout,
    format_percent,
    layout_recommendations,
    position_label,
    validate_layout,
)

__all__ = [
    # Limits
    "MIN_ITEMS",
    "MAX_ITEMS",
    "HEIGHT_TOLERANCE",
    # Types
    "LayoutType",
    "SectionRole",
    "Position",
    "Margins",
    "Section",
    "LayoutStrategy",
    "LayoutValidation",
    "LayoutRecommendation",
    # Engine
    "LayoutEngine",
    "compute_layout",
    "validate_layout",
    "layout_recommendations",
    "alternative_layouts",
    # Helpers
    "position_label",
    "format_percent",
]
