"""Per-tier visual style tables.

These are data, not logic: every string and colour here is sent verbatim to
the image-synthesis service, so changes alter the rendered posters.
"""

from dataclasses import dataclass

from src.schema import AudienceTier


@dataclass(frozen=True)
class ColorScheme:
    """Palette for one audience tier.

    Attributes:
        primary: Header gradient start and footer background.
        secondary: Header gradient end.
        accent: Concept accents and connector line.
        background: Poster background.
        text: Default text colour.
        light: Light tint for highlights.
        dark: Dark shade for emphasis.
    """

    primary: str
    secondary: str
    accent: str
    background: str
    text: str
    light: str
    dark: str


@dataclass(frozen=True)
class Typography:
    """Font descriptors and sizes for one audience tier."""

    title_font: str
    heading_font: str
    body_font: str
    title_size: str
    subtitle_size: str
    heading_size: str
    body_size: str
    callout_size: str
    caption_size: str
    heading_color: str
    body_color: str


COLOR_SCHEMES: dict[AudienceTier, ColorScheme] = {
    AudienceTier.BEGINNER: ColorScheme(
        primary="#4299E1",
        secondary="#9F7AEA",
        accent="#48BB78",
        background="#FFFFFF",
        text="#2D3748",
        light="#EBF8FF",
        dark="#2C5282",
    ),
    AudienceTier.INTERMEDIATE: ColorScheme(
        primary="#2C5282",
        secondary="#2C7A7B",
        accent="#D69E2E",
        background="#F7FAFC",
        text="#1A202C",
        light="#E6FFFA",
        dark="#1A365D",
    ),
    AudienceTier.ADVANCED: ColorScheme(
        primary="#1A365D",
        secondary="#2D3748",
        accent="#4A5568",
        background="#EDF2F7",
        text="#000000",
        light="#E2E8F0",
        dark="#1A202C",
    ),
}

TYPOGRAPHY: dict[AudienceTier, Typography] = {
    AudienceTier.BEGINNER: Typography(
        title_font="bold rounded sans-serif, friendly (similar to Poppins or Nunito)",
        heading_font="bold sans-serif, clear and friendly",
        body_font="regular sans-serif, highly readable (similar to Inter or Open Sans)",
        title_size="48px equivalent in large context",
        subtitle_size="24px equivalent",
        heading_size="28px equivalent",
        body_size="18px equivalent",
        callout_size="20px equivalent",
        caption_size="14px equivalent",
        heading_color="#2D3748",
        body_color="#4A5568",
    ),
    AudienceTier.INTERMEDIATE: Typography(
        title_font="bold sans-serif, professional (similar to Inter or Helvetica Neue)",
        heading_font="bold sans-serif, clean",
        body_font="regular sans-serif, technical (similar to Inter or Roboto)",
        title_size="44px equivalent",
        subtitle_size="22px equivalent",
        heading_size="24px equivalent",
        body_size="16px equivalent",
        callout_size="18px equivalent",
        caption_size="12px equivalent",
        heading_color="#1A202C",
        body_color="#2D3748",
    ),
    AudienceTier.ADVANCED: Typography(
        title_font=(
            "bold serif or condensed sans-serif, academic "
            "(similar to Merriweather or IBM Plex Sans Condensed)"
        ),
        heading_font="bold condensed sans-serif",
        body_font=(
            "regular serif or sans-serif, scholarly "
            "(similar to Georgia or IBM Plex Sans)"
        ),
        title_size="40px equivalent",
        subtitle_size="20px equivalent",
        heading_size="20px equivalent",
        body_size="14px equivalent",
        callout_size="16px equivalent",
        caption_size="11px equivalent",
        heading_color="#000000",
        body_color="#2D3748",
    ),
}

# Concept container backgrounds, cycled by concept index.
CONTAINER_COLORS: dict[AudienceTier, tuple[str, ...]] = {
    AudienceTier.BEGINNER: ("#F7FAFC", "#EBF8FF", "#F0FFF4", "#FFFAF0"),
    AudienceTier.INTERMEDIATE: ("#EDF2F7", "#E6FFFA", "#FED7E2", "#FAF5FF"),
    AudienceTier.ADVANCED: ("#E2E8F0", "#CBD5E0", "#A0AEC0", "#718096"),
}

# Base body size in px before long-text shrinking.
BODY_BASE_SIZES: dict[AudienceTier, int] = {
    AudienceTier.BEGINNER: 18,
    AudienceTier.INTERMEDIATE: 16,
    AudienceTier.ADVANCED: 14,
}

LEVEL_DESCRIPTORS: dict[AudienceTier, str] = {
    AudienceTier.BEGINNER: (
        "friendly and approachable with simple visual metaphors, "
        "suitable for general audience"
    ),
    AudienceTier.INTERMEDIATE: (
        "professional and technical with diagrams and practical examples, "
        "for engineers and practitioners"
    ),
    AudienceTier.ADVANCED: (
        "academic and dense with mathematical notation and detailed "
        "methodology, for researchers"
    ),
}

HEADER_ICONS: dict[AudienceTier, str] = {
    AudienceTier.BEGINNER: (
        "a friendly brain-with-lightbulb icon representing learning and "
        "understanding"
    ),
    AudienceTier.INTERMEDIATE: (
        "a technical gear-and-circuit icon representing engineering and "
        "implementation"
    ),
    AudienceTier.ADVANCED: (
        "a scholarly book-and-equation icon representing research and academia"
    ),
}

CONCEPT_TONES: dict[AudienceTier, str] = {
    AudienceTier.BEGINNER: "simple and friendly",
    AudienceTier.INTERMEDIATE: "technical and practical",
    AudienceTier.ADVANCED: "dense and scholarly",
}

EXPLANATION_STYLES: dict[AudienceTier, str] = {
    AudienceTier.BEGINNER: "friendly and conversational tone, simple language",
    AudienceTier.INTERMEDIATE: "professional and clear, technical but accessible",
    AudienceTier.ADVANCED: "academic and precise, dense information, scholarly tone",
}

BACKGROUNDS: dict[AudienceTier, str] = {
    AudienceTier.BEGINNER: (
        "Clean white background ({background}) with subtle decorative elements "
        "like light dots or abstract shapes at 5% opacity. Bright and welcoming."
    ),
    AudienceTier.INTERMEDIATE: (
        "Professional light gray background ({background}) with subtle grid "
        "pattern at 3% opacity. Clean and technical feel."
    ),
    AudienceTier.ADVANCED: (
        "Academic off-white background ({background}) with minimal texture. "
        "Serious and scholarly appearance, no distractions."
    ),
}

COMPOSITIONS: dict[AudienceTier, str] = {
    AudienceTier.BEGINNER: (
        "Vertical flow layout, top-to-bottom reading order, centered alignment, "
        "generous whitespace, 10% margins"
    ),
    AudienceTier.INTERMEDIATE: (
        "Grid or F-pattern layout, clear visual hierarchy, balanced spacing, "
        "8% margins, efficient use of space"
    ),
    AudienceTier.ADVANCED: (
        "Dense multi-column layout, maximized information density, minimal "
        "margins (5%), academic journal style"
    ),
}

MOODS: dict[AudienceTier, str] = {
    AudienceTier.BEGINNER: "Educational, approachable, friendly, encouraging, inspiring",
    AudienceTier.INTERMEDIATE: "Professional, trustworthy, modern, practical, confident",
    AudienceTier.ADVANCED: "Scholarly, authoritative, rigorous, intellectual, serious",
}

AUDIENCES: dict[AudienceTier, str] = {
    AudienceTier.BEGINNER: (
        "intelligent adults with no technical background who want to "
        "understand influential research"
    ),
    AudienceTier.INTERMEDIATE: (
        "engineers, practitioners, and ML professionals staying current with "
        "research"
    ),
    AudienceTier.ADVANCED: (
        "PhD researchers, academics, and experts doing literature review or "
        "deep technical study"
    ),
}

ARTISTIC_STYLES: dict[AudienceTier, str] = {
    AudienceTier.BEGINNER: (
        "minimalist, modern infographic, flat design, friendly illustration, "
        "clean vector art, educational, colorful"
    ),
    AudienceTier.INTERMEDIATE: (
        "professional infographic, technical illustration, clean design, "
        "modern, engineering-style diagrams"
    ),
    AudienceTier.ADVANCED: (
        "academic infographic, scholarly design, precise technical diagrams, "
        "mathematical notation, journal-quality, muted colors"
    ),
}

STYLE_MEDIUM = "digital illustration, infographic, educational poster"


def color_scheme(tier: AudienceTier | str) -> ColorScheme:
    """Palette for a tier."""
    return COLOR_SCHEMES[AudienceTier(tier)]


def typography(tier: AudienceTier | str) -> Typography:
    """Typography for a tier."""
    return TYPOGRAPHY[AudienceTier(tier)]


__all__ = [
    "ColorScheme",
    "Typography",
    "COLOR_SCHEMES",
    "TYPOGRAPHY",
    "CONTAINER_COLORS",
    "BODY_BASE_SIZES",
    "LEVEL_DESCRIPTORS",
    "HEADER_ICONS",
    "CONCEPT_TONES",
    "EXPLANATION_STYLES",
    "BACKGROUNDS",
    "COMPOSITIONS",
    "MOODS",
    "AUDIENCES",
    "ARTISTIC_STYLES",
    "STYLE_MEDIUM",
    "color_scheme",
    "typography",
]
