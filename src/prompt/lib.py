"""Structured prompt builder for the image-synthesis service.

Turns a compiled input and its layout into the richly structured generation
request the rendering service consumes: one visual object per layout
section, a fixed sequence of text overlays, and tier-specific lighting,
aesthetics and style descriptors.

The builder is pure and deterministic. Identical inputs produce identical
prompts.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.core.errors import PipelineError
from src.layout import LayoutStrategy, Section, SectionRole, format_percent
from src.schema import AudienceTier, CompiledInput, Concept

from . import styles
from .styles import ColorScheme, Typography

logger = logging.getLogger(__name__)

# Overlays longer than this are flagged as hard to render legibly.
MAX_OVERLAY_LENGTH = 200

MIN_SHORT_DESCRIPTION_LENGTH = 10


class PromptBuildError(PipelineError):
    """The builder could not fill a required slot.

    Indicates a defect in the builder or a layout that does not match the
    input, never bad user data (that is rejected by the schema validator).
    """


class TextSlot(str, Enum):
    """Fixed slots a text overlay can fill."""

    TITLE = "title"
    SUBTITLE = "subtitle"
    CONCEPT_HEADING = "concept_heading"
    CONCEPT_BODY = "concept_body"
    KEY_INSIGHT = "key_insight"
    CITATION = "citation"


# =============================================================================
# Prompt Models
# =============================================================================


class VisualObject(BaseModel):
    """One visual element of the poster, tied to a layout section."""

    description: str
    location: str
    relationship: str
    relative_size: str
    shape_and_color: str
    texture: str
    appearance_details: str
    orientation: str
    role: SectionRole
    concept_index: int | None = None


class TextOverlay(BaseModel):
    """Literal text rendered onto the poster."""

    text: str
    location: str
    size: str
    color: str
    font: str
    appearance_details: str
    slot: TextSlot


class Lighting(BaseModel):
    conditions: str
    direction: str
    shadows: str


class Aesthetics(BaseModel):
    composition: str
    color_scheme: str
    mood_atmosphere: str
    preference_score: str
    aesthetic_score: str


class PhotographicCharacteristics(BaseModel):
    depth_of_field: str
    focus: str
    camera_angle: str
    lens_focal_length: str


class StructuredPrompt(BaseModel):
    """Complete structured generation request.

    Attributes:
        short_description: One-paragraph summary of the whole poster.
        objects: Visual objects in layout order.
        background: Background description.
        lighting: Lighting descriptors.
        aesthetics: Composition, palette and mood.
        photographic_characteristics: Camera descriptors (flat graphic).
        style_medium: Medium descriptor.
        text_elements: Text overlays in slot order.
        context: Audience and usage description.
        artistic_style: Style keywords.
    """

    short_description: str
    objects: list[VisualObject]
    background: str
    lighting: Lighting
    aesthetics: Aesthetics
    photographic_characteristics: PhotographicCharacteristics
    style_medium: str
    text_elements: list[TextOverlay]
    context: str
    artistic_style: str

    def overlays_for(self, slot: TextSlot) -> list[TextOverlay]:
        """Overlays filling the given slot, in order."""
        return [t for t in self.text_elements if t.slot == slot]

    def concept_objects(self) -> list[VisualObject]:
        """Objects carrying a concept."""
        return [o for o in self.objects if o.concept_index is not None]

    def to_service_payload(self) -> dict[str, Any]:
        """Serialize with the rendering service's field names.

        Internal bookkeeping (role, slot, concept index) is dropped.
        """
        return {
            "short_description": self.short_description,
            "objects": [
                o.model_dump(exclude={"role", "concept_index"}) for o in self.objects
            ],
            "background_setting": self.background,
            "lighting": self.lighting.model_dump(),
            "aesthetics": self.aesthetics.model_dump(),
            "photographic_characteristics": (
                self.photographic_characteristics.model_dump()
            ),
            "style_medium": self.style_medium,
            "text_render": [
                t.model_dump(exclude={"slot"}) for t in self.text_elements
            ],
            "context": self.context,
            "artistic_style": self.artistic_style,
        }


@dataclass
class PromptValidation:
    """Result of the structural prompt check."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# Builder
# =============================================================================


def _body_font_size(text: str, tier: AudienceTier) -> str:
    size = styles.BODY_BASE_SIZES[tier]
    if len(text) > 200:
        size *= 0.8
    elif len(text) > 150:
        size *= 0.9
    return f"{round(size, 2):g}px equivalent in context"


def _require_text(text: str, slot: TextSlot) -> str:
    if not text or not text.strip():
        raise PromptBuildError(f"Empty text for slot '{slot.value}'")
    return text


class StructuredPromptBuilder:
    """Assembles structured prompts from compiled input and layout.

    Example:
        >>> from src.layout import compute_layout
        >>> layout = compute_layout(3, "beginner", ["nlp"])
        >>> prompt = StructuredPromptBuilder().build(compiled_input, layout)
        >>> len(prompt.text_elements)
        10
    """

    def build(
        self, compiled_input: CompiledInput, layout: LayoutStrategy
    ) -> StructuredPrompt:
        """Build the structured prompt.

        Args:
            compiled_input: Schema-valid poster content.
            layout: Layout computed for the same concept count.

        Returns:
            A new StructuredPrompt.

        Raises:
            PromptBuildError: If a concept has no section or a literal text
                slot would be empty.
        """
        tier = AudienceTier(compiled_input.audience_tier)
        colors = styles.color_scheme(tier)
        fonts = styles.typography(tier)

        concept_sections = self._concept_sections(compiled_input, layout)

        prompt = StructuredPrompt(
            short_description=self._short_description(compiled_input, layout),
            objects=self._objects(compiled_input, layout, colors),
            background=styles.BACKGROUNDS[tier].format(background=colors.background),
            lighting=self._lighting(tier),
            aesthetics=self._aesthetics(tier, colors),
            photographic_characteristics=PhotographicCharacteristics(
                depth_of_field="Not applicable - flat 2D graphic design",
                focus="Sharp throughout - all elements equally crisp and clear",
                camera_angle="Straight-on, orthographic view, no perspective",
                lens_focal_length="Not applicable - 2D illustration",
            ),
            style_medium=styles.STYLE_MEDIUM,
            text_elements=self._text_elements(
                compiled_input, concept_sections, fonts
            ),
            context=self._context(compiled_input),
            artistic_style=styles.ARTISTIC_STYLES[tier],
        )
        logger.debug(
            f"Built prompt with {len(prompt.objects)} objects and "
            f"{len(prompt.text_elements)} text elements"
        )
        return prompt

    # -------------------------------------------------------------------------
    # Sections
    # -------------------------------------------------------------------------

    def _concept_sections(
        self, compiled_input: CompiledInput, layout: LayoutStrategy
    ) -> list[Section]:
        by_index = {s.concept_index: s for s in layout.concept_sections()}
        sections = []
        for i in range(compiled_input.concept_count):
            if i not in by_index:
                raise PromptBuildError(
                    f"Layout has no section for concept {i + 1} of "
                    f"{compiled_input.concept_count}"
                )
            sections.append(by_index[i])
        return sections

    def _short_description(
        self, compiled_input: CompiledInput, layout: LayoutStrategy
    ) -> str:
        tier = AudienceTier(compiled_input.audience_tier)
        summary = compiled_input.summary
        return "\n".join(
            [
                f'A clean, modern educational infographic explaining "{summary.title}" '
                f"from research paper arxiv/{compiled_input.source_id}.",
                f"The design uses a {layout.type.value} layout with "
                f"{compiled_input.concept_count} main concept sections.",
                f"Style is {styles.LEVEL_DESCRIPTORS[tier]}.",
                "The infographic includes clear section headers, explanatory text, "
                "and visual representations of key concepts.",
                "Overall aesthetic is minimalist, educational, and suitable for "
                "sharing on social media or academic presentations.",
            ]
        )

    # -------------------------------------------------------------------------
    # Objects
    # -------------------------------------------------------------------------

    def _objects(
        self,
        compiled_input: CompiledInput,
        layout: LayoutStrategy,
        colors: ColorScheme,
    ) -> list[VisualObject]:
        tier = AudienceTier(compiled_input.audience_tier)
        summary = compiled_input.summary
        objects = []
        for section in layout.sections:
            if section.concept_index is not None:
                concept = summary.concepts[section.concept_index]
                objects.append(
                    self._concept_object(
                        concept,
                        section,
                        tier,
                        colors,
                        compiled_input.concept_count,
                    )
                )
            elif section.role == SectionRole.HEADER:
                objects.append(
                    self._header_object(summary.title, tier, section, colors)
                )
            elif section.role == SectionRole.CONNECTOR:
                objects.append(
                    self._connector_object(compiled_input.concept_count, colors)
                )
            elif section.role == SectionRole.FOOTER:
                objects.append(
                    self._footer_object(summary.key_finding, tier, section, colors)
                )
            else:
                raise PromptBuildError(
                    f"Section '{section.role.value}' carries no concept"
                )
        return objects

    def _header_object(
        self,
        title: str,
        tier: AudienceTier,
        section: Section,
        colors: ColorScheme,
    ) -> VisualObject:
        return VisualObject(
            description=(
                f'Main header banner section containing the title "{title}" and '
                f"{styles.HEADER_ICONS[tier]}. Modern and professional design that "
                "immediately communicates the topic."
            ),
            location=f"top-center, starting at {section.position.y_label}",
            relationship=(
                "Primary visual anchor, introduces the research topic to the viewer"
            ),
            relative_size=(
                f"{format_percent(section.height_share)} of total vertical space"
            ),
            shape_and_color=(
                f"Rounded rectangle banner with gradient from {colors.primary} "
                f"to {colors.secondary}"
            ),
            texture="flat color with subtle gradient, smooth finish",
            appearance_details=(
                "Clean edges, modern sans-serif typography, small decorative "
                "pattern (neural network or research-themed) in background at "
                "10% opacity"
            ),
            orientation="horizontal banner spanning full width",
            role=SectionRole.HEADER,
        )

    def _concept_description(self, concept: Concept, tier: AudienceTier) -> str:
        if tier == AudienceTier.BEGINNER:
            lines = [
                f'Section visualizing "{concept.name}" as a simple metaphor: '
                f"{concept.visual_metaphor}.",
                "Use friendly, cartoon-style illustration with clear shapes and "
                "bright colors.",
                "The visual should be immediately understandable without technical "
                "knowledge.",
                "Include a simple icon or illustration that represents the metaphor "
                "visually.",
            ]
        elif tier == AudienceTier.INTERMEDIATE:
            lines = [
                f'Section explaining "{concept.name}" with technical diagram: '
                f"{concept.explanation}.",
                "Show a practical, labeled diagram with components and connections.",
                "Use professional iconography and clean lines to illustrate the "
                "concept.",
                "Include arrows, labels, and clear visual flow to show how it works.",
            ]
        else:
            lines = [
                f'Section detailing "{concept.name}" with academic precision: '
                f"{concept.explanation}.",
                "Include mathematical notation, precise diagrams, and technical "
                "specifications.",
                "Use scholarly visual language with charts, graphs, or architectural "
                "diagrams.",
                "Show methodology details and technical nuances with annotations.",
            ]
        return "\n".join(lines)

    def _concept_object(
        self,
        concept: Concept,
        section: Section,
        tier: AudienceTier,
        colors: ColorScheme,
        count: int,
    ) -> VisualObject:
        index = section.concept_index
        containers = styles.CONTAINER_COLORS[tier]
        background = containers[index % len(containers)]

        description = self._concept_description(concept, tier)
        if section.role == SectionRole.DIAGRAM:
            description += (
                "\nPresented as a diagram panel beside the neighbouring concept, "
                "visual first with minimal text."
            )

        return VisualObject(
            description=description,
            location=(
                f"{section.position.y_label} from top, "
                f"{section.position.x} horizontally"
            ),
            relationship=(
                f"Concept {index + 1} of {count}, sequentially connected to other "
                "concepts"
            ),
            relative_size=f"{format_percent(section.height_share)} of vertical space",
            shape_and_color=(
                f"Rounded container with light background {background}, accent "
                f"colors from {colors.accent}"
            ),
            texture="flat illustration style with subtle depth through shadows",
            appearance_details=(
                f"Numbered label '{index + 1}' in a circle at top-left, clear "
                f"visual hierarchy, {styles.CONCEPT_TONES[tier]}"
            ),
            orientation="horizontal section with internal layout",
            role=section.role,
            concept_index=index,
        )

    def _connector_object(self, count: int, colors: ColorScheme) -> VisualObject:
        return VisualObject(
            description=(
                "Vertical connecting line with downward-pointing arrows flowing "
                f"between the {count} concept sections, representing logical "
                "progression of ideas"
            ),
            location="center vertically, spanning from first to last concept section",
            relationship="Visual flow indicator showing progression through concepts",
            relative_size="thin vertical element, approximately 2% width",
            shape_and_color=(
                f"Dashed line in {colors.accent} with small arrow heads at each "
                "section boundary"
            ),
            texture="simple line graphic, clean and minimal",
            appearance_details=(
                "Dotted or dashed style at 60% opacity, subtle and not distracting "
                "from main content"
            ),
            orientation="vertical",
            role=SectionRole.CONNECTOR,
        )

    def _footer_object(
        self,
        key_finding: str,
        tier: AudienceTier,
        section: Section,
        colors: ColorScheme,
    ) -> VisualObject:
        return VisualObject(
            description=(
                f'Footer section with key takeaway callout: "{key_finding}" and '
                "source attribution. Professional citation format appropriate for "
                f"{tier.value} level."
            ),
            location=f"bottom of infographic, {section.position.y_label}",
            relationship=(
                "Concluding section summarizing the main insight and providing "
                "citation"
            ),
            relative_size=f"{format_percent(section.height_share)} of vertical space",
            shape_and_color=(
                f"Rounded rectangle with background {colors.primary}, white text "
                "for high contrast"
            ),
            texture="flat, solid color",
            appearance_details=(
                "Contains key finding text prominently displayed, ArXiv citation "
                "link in smaller text, small checkmark or star icon as decorative "
                "element"
            ),
            orientation="horizontal footer spanning full width",
            role=SectionRole.FOOTER,
        )

    # -------------------------------------------------------------------------
    # Text overlays
    # -------------------------------------------------------------------------

    def _text_elements(
        self,
        compiled_input: CompiledInput,
        concept_sections: list[Section],
        fonts: Typography,
    ) -> list[TextOverlay]:
        tier = AudienceTier(compiled_input.audience_tier)
        summary = compiled_input.summary

        elements = [
            TextOverlay(
                text=_require_text(summary.title, TextSlot.TITLE).upper(),
                location="top header banner, centered horizontally, 8% from top edge",
                size=fonts.title_size,
                color="#FFFFFF",
                font=fonts.title_font,
                appearance_details=(
                    "Bold, all caps, letter-spacing: 0.05em for readability, "
                    "high contrast"
                ),
                slot=TextSlot.TITLE,
            ),
            TextOverlay(
                text=_require_text(summary.one_liner, TextSlot.SUBTITLE),
                location="below title in header, centered, 13% from top edge",
                size=fonts.subtitle_size,
                color="rgba(255, 255, 255, 0.95)",
                font=fonts.body_font,
                appearance_details=(
                    "Regular weight, sentence case, slightly transparent for "
                    "hierarchy"
                ),
                slot=TextSlot.SUBTITLE,
            ),
        ]

        for i, (concept, section) in enumerate(
            zip(summary.concepts, concept_sections)
        ):
            y = section.position.y
            name = _require_text(concept.name, TextSlot.CONCEPT_HEADING)
            explanation = _require_text(concept.explanation, TextSlot.CONCEPT_BODY)
            elements.append(
                TextOverlay(
                    text=f"{i + 1}. {name.upper()}",
                    location=(
                        f"section {i + 1}, top-left corner with 5% padding, "
                        f"approximately {format_percent(y + 2)} from top"
                    ),
                    size=fonts.heading_size,
                    color=fonts.heading_color,
                    font=fonts.heading_font,
                    appearance_details=(
                        "Bold, numbered for sequence, all caps for emphasis"
                    ),
                    slot=TextSlot.CONCEPT_HEADING,
                )
            )
            elements.append(
                TextOverlay(
                    text=explanation,
                    location=(
                        f"section {i + 1}, below header with 5% padding, "
                        f"approximately {format_percent(y + 5)} from top"
                    ),
                    size=_body_font_size(explanation, tier),
                    color=fonts.body_color,
                    font=fonts.body_font,
                    appearance_details=(
                        "Line height: 1.6 for readability, max width: 80% of "
                        "section width, left-aligned, "
                        f"{styles.EXPLANATION_STYLES[tier]}"
                    ),
                    slot=TextSlot.CONCEPT_BODY,
                )
            )

        key_finding = _require_text(summary.key_finding, TextSlot.KEY_INSIGHT)
        source_id = _require_text(compiled_input.source_id, TextSlot.CITATION)
        elements.extend(
            [
                TextOverlay(
                    text=f"KEY INSIGHT: {key_finding}",
                    location="footer section, centered, 93% from top",
                    size=fonts.callout_size,
                    color="#FFFFFF",
                    font=fonts.heading_font,
                    appearance_details=(
                        "Bold, high contrast, attention-grabbing, emphasis text"
                    ),
                    slot=TextSlot.KEY_INSIGHT,
                ),
                TextOverlay(
                    text=f"Source: arxiv.org/abs/{source_id}",
                    location="footer section, bottom-right corner, 97% from top",
                    size=fonts.caption_size,
                    color="rgba(255, 255, 255, 0.8)",
                    font=fonts.body_font,
                    appearance_details=(
                        "Small, subtle but readable, professional citation format"
                    ),
                    slot=TextSlot.CITATION,
                ),
            ]
        )
        return elements

    # -------------------------------------------------------------------------
    # Style descriptors
    # -------------------------------------------------------------------------

    def _lighting(self, tier: AudienceTier) -> Lighting:
        if tier == AudienceTier.BEGINNER:
            shadows = (
                "Minimal, only subtle drop shadows on container sections to "
                "create slight depth separation"
            )
        else:
            shadows = (
                "Very minimal shadows, nearly flat design for professional appearance"
            )
        return Lighting(
            conditions=(
                "Flat, even lighting typical of graphic design and infographics - "
                "no dramatic shadows or highlights"
            ),
            direction="Ambient, non-directional, evenly distributed",
            shadows=shadows,
        )

    def _aesthetics(self, tier: AudienceTier, colors: ColorScheme) -> Aesthetics:
        return Aesthetics(
            composition=styles.COMPOSITIONS[tier],
            color_scheme=(
                f"Primary: {colors.primary}, Secondary: {colors.secondary}, "
                f"Accent: {colors.accent}, Background: {colors.background}, "
                f"Text: {colors.text}. Follows WCAG AA accessibility guidelines "
                "for contrast."
            ),
            mood_atmosphere=styles.MOODS[tier],
            preference_score="very high",
            aesthetic_score="very high",
        )

    def _context(self, compiled_input: CompiledInput) -> str:
        tier = AudienceTier(compiled_input.audience_tier)
        lines = [
            "This is an educational infographic designed for "
            f"{styles.AUDIENCES[tier]}.",
            "The content is based on the research paper "
            f'"{compiled_input.summary.title}" (arXiv:{compiled_input.source_id}).',
            "Target use cases: social media sharing (LinkedIn, Twitter), "
            "presentations, personal learning, and teaching materials.",
            "The design should be immediately comprehensible, visually appealing, "
            "and shareable.",
        ]
        preferences = compiled_input.user_preferences
        if preferences and preferences.background:
            lines.append(f"The viewer has background in: {preferences.background}.")
        return "\n".join(lines)


# =============================================================================
# Module-level helpers
# =============================================================================

_DEFAULT_BUILDER = StructuredPromptBuilder()


def build_structured_prompt(
    compiled_input: CompiledInput, layout: LayoutStrategy
) -> StructuredPrompt:
    """Build a structured prompt. See `StructuredPromptBuilder.build`."""
    return _DEFAULT_BUILDER.build(compiled_input, layout)


def validate_structured_prompt(prompt: StructuredPrompt) -> PromptValidation:
    """Structural check of a prompt before it is submitted.

    Args:
        prompt: Prompt to check.

    Returns:
        PromptValidation; long overlays are warnings, missing parts are errors.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if len(prompt.short_description.strip()) < MIN_SHORT_DESCRIPTION_LENGTH:
        errors.append("Short description is too short or missing")
    if not prompt.objects:
        errors.append("At least one object is required")
    if not prompt.background.strip():
        errors.append("Background setting is required")
    if not prompt.text_elements:
        errors.append("At least one text element is required")
    if not prompt.artistic_style.strip():
        errors.append("Artistic style is required")

    for i, obj in enumerate(prompt.objects):
        if not obj.description.strip():
            errors.append(f"Object {i}: missing description")
        if not obj.location.strip():
            errors.append(f"Object {i}: missing location")
        if not obj.shape_and_color.strip():
            errors.append(f"Object {i}: missing shape_and_color")

    for i, text in enumerate(prompt.text_elements):
        if not text.text.strip():
            errors.append(f"Text element {i}: missing text")
        if not text.location.strip():
            errors.append(f"Text element {i}: missing location")
        if not text.font.strip():
            errors.append(f"Text element {i}: missing font")
        if len(text.text) > MAX_OVERLAY_LENGTH:
            warnings.append(
                f"Text element {i}: text is very long ({len(text.text)} chars), "
                "may not render well"
            )

    return PromptValidation(valid=not errors, errors=errors, warnings=warnings)


def estimate_generation_time(prompt: StructuredPrompt) -> int:
    """Rough rendering time in seconds, grown by prompt complexity."""
    seconds = 15.0
    seconds += len(prompt.objects)
    seconds += len(prompt.text_elements) * 0.5
    if prompt.aesthetics.aesthetic_score == "very high":
        seconds += 5
    return math.ceil(seconds)


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
]
