"""Layout engine for poster section geometry.

Selects a layout strategy from a fixed lookup on audience tier, concept count
and content tags, then divides the vertical space between header, concept
sections and footer. Heights are percentages of the poster height.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field

from src.core.errors import InputContractViolation
from src.schema import AudienceTier

logger = logging.getLogger(__name__)

MIN_ITEMS = 1
MAX_ITEMS = 10

# Allowed deviation of summed section heights from 100%.
HEIGHT_TOLERANCE = 5.0

# Tags that mark diagram-heavy content for the dense layout.
DIAGRAM_TAGS = frozenset({"mathematical", "visual"})


class LayoutType(str, Enum):
    """Spatial arrangement of the poster sections.

    - FLOW: Single column, top-to-bottom, with a connector between concepts
    - GRID: Up to two columns for side-by-side comparison
    - F_PATTERN: One full-width lead concept, the rest in two columns
    - DENSE: Tightly stacked or concept/diagram pairs for expert readers
    """

    FLOW = "flow"
    GRID = "grid"
    F_PATTERN = "f-pattern"
    DENSE = "dense"


class SectionRole(str, Enum):
    """What a layout section holds."""

    HEADER = "header"
    CONCEPT = "concept"
    CONNECTOR = "connector"
    FOOTER = "footer"
    DIAGRAM = "diagram"


_FROZEN = {"frozen": True}


class Position(BaseModel):
    """Anchor of a section on the poster.

    Attributes:
        x: "center" or a percentage string such as "25%".
        y: Offset from the top edge in percent.
    """

    model_config = _FROZEN

    x: str = "center"
    y: float = 0.0

    @property
    def y_label(self) -> str:
        """Offset formatted as a percentage string."""
        return format_percent(self.y)


class Margins(BaseModel):
    """Poster margins in percent of the respective dimension."""

    model_config = _FROZEN

    top: float
    right: float
    bottom: float
    left: float


class Section(BaseModel):
    """One region of the poster."""

    model_config = _FROZEN

    role: SectionRole
    height_share: float = Field(..., ge=0, le=100)
    position: Position
    concept_index: int | None = Field(
        None, description="Index of the concept carried by this section"
    )
    overlay: bool = Field(
        False, description="Drawn over other sections, takes no space of its own"
    )


class LayoutStrategy(BaseModel):
    """Chosen arrangement and its computed geometry.

    Created fresh for each request and never mutated.
    """

    model_config = _FROZEN

    type: LayoutType
    sections: tuple[Section, ...]
    margins: Margins
    spacing: float
    grid_columns: int | None = None
    grid_rows: int | None = None

    def sections_for(self, role: SectionRole) -> list[Section]:
        """Sections with the given role, in layout order."""
        return [s for s in self.sections if s.role == role]

    def concept_sections(self) -> list[Section]:
        """Sections carrying a concept, ordered by concept index."""
        carrying = [s for s in self.sections if s.concept_index is not None]
        return sorted(carrying, key=lambda s: s.concept_index)

    def total_height_share(self) -> float:
        """Vertical space covered by the sections.

        Sections anchored at the same offset sit side by side and count once
        per row; overlays are ignored.
        """
        rows: dict[float, float] = {}
        for section in self.sections:
            if section.overlay:
                continue
            key = round(section.position.y, 6)
            rows[key] = max(rows.get(key, 0.0), section.height_share)
        return sum(rows.values())


@dataclass
class LayoutValidation:
    """Result of checking a layout strategy.

    Attributes:
        valid: False when any error was found.
        errors: Problems that make the layout unusable.
        warnings: Deviations that are reported but not corrected.
    """

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class LayoutRecommendation:
    """Recommended layout type plus alternatives worth comparing."""

    recommended: LayoutType
    alternatives: list[LayoutType]
    reasoning: str


# =============================================================================
# Helpers
# =============================================================================


def format_percent(value: float) -> str:
    """Format a percentage with at most two decimals ("33.33%")."""
    return f"{round(value, 2):g}%"


def _header(height: float) -> Section:
    return Section(role=SectionRole.HEADER, height_share=height, position=Position())


def _footer(height: float) -> Section:
    return Section(
        role=SectionRole.FOOTER,
        height_share=height,
        position=Position(y=100 - height),
    )


def _has_diagram_tags(tags: Iterable[str]) -> bool:
    return any(tag.strip().lower() in DIAGRAM_TAGS for tag in tags)


def _resolve_tier(audience_tier: AudienceTier | str) -> AudienceTier:
    try:
        return AudienceTier(audience_tier)
    except ValueError:
        allowed = ", ".join(t.value for t in AudienceTier)
        raise InputContractViolation(
            f"Unknown audience tier '{audience_tier}'. Must be one of: {allowed}"
        ) from None


def _check_count(item_count: int) -> None:
    if not isinstance(item_count, int) or not MIN_ITEMS <= item_count <= MAX_ITEMS:
        raise InputContractViolation(
            f"Number of concepts must be between {MIN_ITEMS} and {MAX_ITEMS}, "
            f"got {item_count}"
        )


# =============================================================================
# Layout Engine
# =============================================================================


class LayoutEngine:
    """Deterministic layout selection and geometry.

    Example:
        >>> engine = LayoutEngine()
        >>> layout = engine.layout(3, "beginner", ["nlp"])
        >>> layout.type
        <LayoutType.FLOW: 'flow'>
        >>> len(layout.sections)
        6
    """

    def layout(
        self,
        item_count: int,
        audience_tier: AudienceTier | str,
        tags: Iterable[str] = (),
    ) -> LayoutStrategy:
        """Select a strategy and compute its section geometry.

        Args:
            item_count: Number of concepts to place.
            audience_tier: Audience tier of the poster.
            tags: Content tags; diagram tags switch the dense layout to pairs.

        Returns:
            A new LayoutStrategy.

        Raises:
            InputContractViolation: If the count or tier is unsupported.
        """
        _check_count(item_count)
        tier = _resolve_tier(audience_tier)
        tags = list(tags)

        if tier == AudienceTier.BEGINNER:
            layout_type = LayoutType.FLOW
        elif tier == AudienceTier.INTERMEDIATE:
            layout_type = LayoutType.GRID if item_count <= 4 else LayoutType.F_PATTERN
        else:
            layout_type = LayoutType.DENSE

        layout = self.layout_for_type(layout_type, item_count, tags)
        logger.debug(
            f"Selected {layout.type.value} layout for {item_count} concepts "
            f"({tier.value})"
        )
        return layout

    def layout_for_type(
        self,
        layout_type: LayoutType,
        item_count: int,
        tags: Iterable[str] = (),
    ) -> LayoutStrategy:
        """Compute the geometry of a specific layout type.

        Raises:
            InputContractViolation: If the count is unsupported.
        """
        _check_count(item_count)
        builders = {
            LayoutType.FLOW: self._flow,
            LayoutType.GRID: self._grid,
            LayoutType.F_PATTERN: self._f_pattern,
            LayoutType.DENSE: self._dense,
        }
        return builders[LayoutType(layout_type)](item_count, list(tags))

    # -------------------------------------------------------------------------
    # Geometry per layout type
    # -------------------------------------------------------------------------

    def _flow(self, count: int, tags: list[str]) -> LayoutStrategy:
        header, footer = 15.0, 10.0
        available = 100 - header - footer
        height = available / count

        sections = [_header(header)]
        for i in range(count):
            sections.append(
                Section(
                    role=SectionRole.CONCEPT,
                    height_share=height,
                    position=Position(y=header + i * height),
                    concept_index=i,
                )
            )
        sections.append(
            Section(
                role=SectionRole.CONNECTOR,
                height_share=available,
                position=Position(y=header),
                overlay=True,
            )
        )
        sections.append(_footer(footer))

        return LayoutStrategy(
            type=LayoutType.FLOW,
            sections=tuple(sections),
            margins=Margins(top=5, right=10, bottom=5, left=10),
            spacing=2,
        )

    def _grid(self, count: int, tags: list[str]) -> LayoutStrategy:
        header, footer = 20.0, 12.0
        available = 100 - header - footer
        columns = count if count <= 2 else 2
        rows = math.ceil(count / columns)
        cell_width = 100 / columns
        cell_height = available / rows

        sections = [_header(header)]
        for i in range(count):
            row, col = divmod(i, columns)
            sections.append(
                Section(
                    role=SectionRole.CONCEPT,
                    height_share=cell_height,
                    position=Position(
                        x=format_percent(col * cell_width + cell_width / 2),
                        y=header + row * cell_height,
                    ),
                    concept_index=i,
                )
            )
        sections.append(_footer(footer))

        return LayoutStrategy(
            type=LayoutType.GRID,
            sections=tuple(sections),
            margins=Margins(top=5, right=8, bottom=5, left=8),
            spacing=3,
            grid_columns=columns,
            grid_rows=rows,
        )

    def _f_pattern(self, count: int, tags: list[str]) -> LayoutStrategy:
        header, footer = 18.0, 10.0
        available = 100 - header - footer
        remaining = count - 1
        rows = math.ceil(remaining / 2)
        lead_height = available * 0.25 if remaining else available
        cell_height = (available - lead_height) / rows if rows else 0.0

        # Horizontal bar of the F: the lead concept spans the full width
        sections = [
            _header(header),
            Section(
                role=SectionRole.CONCEPT,
                height_share=lead_height,
                position=Position(y=header),
                concept_index=0,
            ),
        ]
        for i in range(remaining):
            row, col = divmod(i, 2)
            sections.append(
                Section(
                    role=SectionRole.CONCEPT,
                    height_share=cell_height,
                    position=Position(
                        x="25%" if col == 0 else "75%",
                        y=header + lead_height + row * cell_height,
                    ),
                    concept_index=i + 1,
                )
            )
        sections.append(_footer(footer))

        return LayoutStrategy(
            type=LayoutType.F_PATTERN,
            sections=tuple(sections),
            margins=Margins(top=5, right=8, bottom=5, left=8),
            spacing=2.5,
        )

    def _dense(self, count: int, tags: list[str]) -> LayoutStrategy:
        header, footer = 15.0, 8.0
        available = 100 - header - footer

        sections = [_header(header)]
        if _has_diagram_tags(tags) and count >= 4:
            # Each row pairs a concept (left) with a diagram-led concept (right)
            rows = math.ceil(count / 2)
            cell_height = available / rows
            for i in range(count):
                row, col = divmod(i, 2)
                sections.append(
                    Section(
                        role=SectionRole.CONCEPT if col == 0 else SectionRole.DIAGRAM,
                        height_share=cell_height,
                        position=Position(
                            x="30%" if col == 0 else "70%",
                            y=header + row * cell_height,
                        ),
                        concept_index=i,
                    )
                )
        else:
            height = available / count
            for i in range(count):
                sections.append(
                    Section(
                        role=SectionRole.CONCEPT,
                        height_share=height,
                        position=Position(y=header + i * height),
                        concept_index=i,
                    )
                )
        sections.append(_footer(footer))

        return LayoutStrategy(
            type=LayoutType.DENSE,
            sections=tuple(sections),
            margins=Margins(top=4, right=5, bottom=4, left=5),
            spacing=1.5,
        )

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def validate(self, layout: LayoutStrategy) -> LayoutValidation:
        """Check a layout for unusable geometry.

        Height deviation beyond the tolerance is a warning only; rounding is
        reported, never corrected.
        """
        errors: list[str] = []
        warnings: list[str] = []

        if not layout.sections:
            errors.append("Layout must have at least one section")

        total = layout.total_height_share()
        if abs(total - 100) > HEIGHT_TOLERANCE:
            message = f"Layout sections sum to {total:.2f}% (expected ~100%)"
            logger.warning(message)
            warnings.append(message)

        margins = layout.margins
        if margins.top + margins.bottom >= 50 or margins.left + margins.right >= 50:
            errors.append("Margins are too large (>50% of space)")

        return LayoutValidation(valid=not errors, errors=errors, warnings=warnings)

    def recommendations(
        self,
        item_count: int,
        audience_tier: AudienceTier | str,
        tags: Iterable[str] = (),
    ) -> LayoutRecommendation:
        """Describe the recommended layout and the alternatives to compare."""
        _check_count(item_count)
        tier = _resolve_tier(audience_tier)

        if tier == AudienceTier.BEGINNER:
            return LayoutRecommendation(
                recommended=LayoutType.FLOW,
                alternatives=[LayoutType.GRID],
                reasoning=(
                    "Vertical flow is easiest to follow for beginners, with "
                    "clear top-to-bottom progression"
                ),
            )
        if tier == AudienceTier.INTERMEDIATE:
            if item_count <= 4:
                return LayoutRecommendation(
                    recommended=LayoutType.GRID,
                    alternatives=[LayoutType.F_PATTERN, LayoutType.FLOW],
                    reasoning=(
                        "Grid layout allows for easy comparison between "
                        "concepts for intermediate users"
                    ),
                )
            return LayoutRecommendation(
                recommended=LayoutType.F_PATTERN,
                alternatives=[LayoutType.GRID, LayoutType.FLOW],
                reasoning=(
                    "F-pattern follows natural eye movement for multiple concepts"
                ),
            )
        return LayoutRecommendation(
            recommended=LayoutType.DENSE,
            alternatives=[LayoutType.GRID, LayoutType.F_PATTERN],
            reasoning=(
                "Dense layout maximizes information density for advanced users"
            ),
        )

    def alternatives(
        self,
        item_count: int,
        audience_tier: AudienceTier | str,
        tags: Iterable[str] = (),
    ) -> dict[LayoutType, LayoutStrategy]:
        """Compute every alternative layout from its own geometry rule."""
        tags = list(tags)
        recommendation = self.recommendations(item_count, audience_tier, tags)
        return {
            layout_type: self.layout_for_type(layout_type, item_count, tags)
            for layout_type in recommendation.alternatives
        }


# =============================================================================
# Module-level helpers
# =============================================================================

_DEFAULT_ENGINE = LayoutEngine()


def compute_layout(
    item_count: int,
    audience_tier: AudienceTier | str,
    tags: Iterable[str] = (),
) -> LayoutStrategy:
    """Compute the layout for a poster. See `LayoutEngine.layout`."""
    return _DEFAULT_ENGINE.layout(item_count, audience_tier, tags)


def validate_layout(layout: LayoutStrategy) -> LayoutValidation:
    """Check a layout. See `LayoutEngine.validate`."""
    return _DEFAULT_ENGINE.validate(layout)


def layout_recommendations(
    item_count: int,
    audience_tier: AudienceTier | str,
    tags: Iterable[str] = (),
) -> LayoutRecommendation:
    """Recommended layout and alternatives. See `LayoutEngine.recommendations`."""
    return _DEFAULT_ENGINE.recommendations(item_count, audience_tier, tags)


def alternative_layouts(
    item_count: int,
    audience_tier: AudienceTier | str,
    tags: Iterable[str] = (),
) -> dict[LayoutType, LayoutStrategy]:
    """Alternative layouts, each freshly computed."""
    return _DEFAULT_ENGINE.alternatives(item_count, audience_tier, tags)


def position_label(section: Section) -> str:
    """Describe where a section sits, e.g. "top-center" or "middle-left"."""
    y = section.position.y
    if y == 0:
        vertical = "top"
    elif y + section.height_share >= 100 - 1e-6:
        vertical = "bottom"
    else:
        vertical = "middle"

    x = section.position.x
    if x == "center":
        horizontal = "center"
    else:
        offset = float(x.rstrip("%"))
        if offset < 40:
            horizontal = "left"
        elif offset > 60:
            horizontal = "right"
        else:
            horizontal = "center"

    return f"{vertical}-{horizontal}"


__all__ = [
    "MIN_ITEMS",
    "MAX_ITEMS",
    "HEIGHT_TOLERANCE",
    "LayoutType",
    "SectionRole",
    "Position",
    "Margins",
    "Section",
    "LayoutStrategy",
    "LayoutValidation",
    "LayoutRecommendation",
    "LayoutEngine",
    "compute_layout",
    "validate_layout",
    "layout_recommendations",
    "alternative_layouts",
    "position_label",
    "format_percent",
]
