"""Prompt templates for the summary compiler.

The model is instructed to behave as a deterministic compiler: the target
schema text is authoritative, a worked example anchors the format, and
retries append the exact validation errors to fix.
"""

import json
from typing import Any

from src.schema import reference_example_json, schema_definition

SYSTEM_PROMPT = """You are a deterministic compiler that converts semantic summaries into
JSON configuration objects for a poster-generation pipeline.

Your output must STRICTLY conform to the provided JSON schema.

Rules:
- Output ONLY a single valid JSON object
- Do NOT include comments, explanations, or markdown
- Do NOT invent fields not present in the schema
- All enum values must be chosen from the allowed set
- If information is missing, infer conservatively and generically
- Optimize for consistency and machine execution, not creativity"""

SEMANTIC_EXTRACTION_SYSTEM_PROMPT = """You are a semantic analyzer that extracts structured information from research paper summaries.

Your task is to analyze the input text and extract key information in JSON format.

Output ONLY valid JSON with the following structure:
{
  "title": "paper title",
  "mainIdea": "one-sentence summary",
  "keyConcepts": [
    {
      "name": "concept name",
      "explanation": "what it means",
      "visualMetaphor": "how to visualize it"
    }
  ],
  "keyFinding": "main result or contribution",
  "realWorldImpact": "practical applications",
  "audienceLevel": "beginner | intermediate | advanced",
  "suggestedTags": ["tag1", "tag2"],
  "styleHints": "visual style suggestions"
}"""


def _schema_sections() -> list[str]:
    return [
        "TARGET SCHEMA (authoritative):",
        schema_definition(),
        "REFERENCE EXAMPLE:",
        reference_example_json(),
    ]


def _format_metadata(
    source_id: str | None,
    audience_tier: str | None,
    tags: list[str] | None,
) -> str | None:
    lines = []
    if source_id:
        lines.append(f"- Source ID: {source_id}")
    if audience_tier:
        lines.append(f"- Audience Tier: {audience_tier}")
    if tags:
        lines.append(f"- Tags: {', '.join(tags)}")
    if not lines:
        return None
    return "METADATA:\n" + "\n".join(lines)


def build_user_prompt(
    raw_text: str,
    *,
    source_id: str | None = None,
    audience_tier: str | None = None,
    tags: list[str] | None = None,
) -> str:
    """Build the single-pass compilation prompt.

    Args:
        raw_text: Unstructured description to compile.
        source_id: Optional source identifier to carry through.
        audience_tier: Optional tier to use instead of inferring one.
        tags: Optional content tags.

    Returns:
        Prompt embedding the schema, the example and the raw text.
    """
    sections = _schema_sections()
    sections.extend(["INPUT SUMMARY:", f'"""\n{raw_text}\n"""'])
    metadata = _format_metadata(source_id, audience_tier, tags)
    if metadata:
        sections.append(metadata)
    sections.append("Generate the JSON object now.")
    return "\n\n".join(sections)


def build_extraction_prompt(raw_text: str) -> str:
    """Build the pass-1 semantic extraction prompt."""
    return "\n\n".join(
        [
            "Extract structured information from this research paper summary:",
            f'"""\n{raw_text}\n"""',
            "Output the JSON structure now. Be thorough but concise.",
        ]
    )


def build_compilation_prompt(semantic_data: dict[str, Any]) -> str:
    """Build the pass-2 prompt from already-extracted semantic data."""
    sections = _schema_sections()
    sections.extend(
        [
            "SEMANTIC DATA (already extracted):",
            json.dumps(semantic_data, indent=2),
            "Using the semantic data above, generate the JSON object that conforms "
            "to the target schema.\n"
            "Ensure all required fields are present and all enum values are from "
            "the allowed set.",
            "Generate the JSON object now.",
        ]
    )
    return "\n\n".join(sections)


def build_retry_prompt(base_prompt: str, errors: list[str]) -> str:
    """Append the numbered validation errors to the base prompt.

    Args:
        base_prompt: The prompt of the first attempt, unchanged.
        errors: Validation errors from the previous attempt.

    Returns:
        Prompt asking the model to fix exactly these problems.
    """
    numbered = "\n".join(f"{i}. {error}" for i, error in enumerate(errors, 1))
    return (
        f"{base_prompt}\n\n"
        "IMPORTANT: The previous output failed schema validation with the "
        f"following errors:\n\n{numbered}\n\n"
        "Fix the output to address these errors. Do not change unrelated fields.\n"
        "Generate the corrected JSON object now."
    )


__all__ = [
    "SYSTEM_PROMPT",
    "SEMANTIC_EXTRACTION_SYSTEM_PROMPT",
    "build_user_prompt",
    "build_extraction_prompt",
    "build_compilation_prompt",
    "build_retry_prompt",
]
