"""Explicit fallback mode: a basic summary without a language model.

Used only when the caller chooses it (for example when no model credentials
are configured). The compiler never falls back to this on its own.
"""

import logging

from src.core.errors import InputContractViolation
from src.schema import AudienceTier, CompiledInput, validate_compiled_input

logger = logging.getLogger(__name__)

# Sentences shorter than this are treated as fragments and skipped.
MIN_SENTENCE_LENGTH = 20

_MAX_TITLE = 200
_MAX_ONE_LINER = 300

_CONCEPTS = (
    (
        "Main Approach",
        "The paper introduces a novel methodology",
        "a blueprint for building a new structure",
    ),
    (
        "Key Innovation",
        "A new technique that improves upon existing methods",
        "a new tool in a toolbox",
    ),
    (
        "Results",
        "The approach shows promising results",
        "a graph trending upward",
    ),
)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def split_sentences(abstract: str) -> list[str]:
    """Split an abstract on '. ' and drop short fragments."""
    return [
        s.strip()
        for s in abstract.split(". ")
        if len(s.strip()) > MIN_SENTENCE_LENGTH
    ]


def build_fallback_input(
    title: str,
    abstract: str,
    audience_tier: AudienceTier | str,
    source_id: str,
    tags: list[str] | None = None,
) -> CompiledInput:
    """Derive a 3-concept compiled input from an abstract.

    Args:
        title: Paper title.
        abstract: Paper abstract; its sentences become the summary text.
        audience_tier: Audience tier for the poster.
        source_id: Source identifier (e.g. arXiv id).
        tags: Content tags; defaults to ["research"].

    Returns:
        A schema-valid CompiledInput.

    Raises:
        InputContractViolation: If title or source id is empty, or the
            tier is unknown.
    """
    if not title or not title.strip():
        raise InputContractViolation("Fallback summary requires a title")
    if not source_id or not source_id.strip():
        raise InputContractViolation("Fallback summary requires a source id")
    try:
        tier = AudienceTier(audience_tier)
    except ValueError:
        raise InputContractViolation(
            f"Unknown audience tier '{audience_tier}'"
        ) from None

    sentences = split_sentences(abstract or "")

    def sentence(index: int, default: str) -> str:
        return sentences[index] if index < len(sentences) else default

    concepts = [
        {
            "name": name,
            "explanation": sentence(i + 1, default),
            "visual_metaphor": metaphor,
        }
        for i, (name, default, metaphor) in enumerate(_CONCEPTS)
    ]

    payload = {
        "summary": {
            "title": _truncate(title.strip(), _MAX_TITLE),
            "one_liner": _truncate(
                sentence(0, "A research paper exploring new advances in the field"),
                _MAX_ONE_LINER,
            ),
            "concepts": concepts,
            "key_finding": sentences[-1]
            if sentences
            else "This research advances the field",
            "impact": (
                "This work contributes to the advancement of research and technology"
            ),
        },
        "audience_tier": tier.value,
        "tags": tags or ["research"],
        "source_id": source_id.strip(),
    }

    validation = validate_compiled_input(payload)
    if not validation.ok:
        raise InputContractViolation(
            f"Fallback summary is not schema-valid: {'; '.join(validation.errors)}"
        )
    logger.info(f"Built fallback summary for {source_id} ({len(sentences)} sentences)")
    return validation.value


__all__ = ["MIN_SENTENCE_LENGTH", "split_sentences", "build_fallback_input"]
