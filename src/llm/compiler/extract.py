"""Lenient JSON payload extraction from model output.

Models wrap JSON in markdown fences, lead with prose, assign it to a
variable or leave trailing commas. The extractor strips those wrappers and
parses the outermost JSON object. Output is only ever parsed, never
executed.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)


class ExtractionError(ValueError):
    """No JSON object could be recovered from the text."""


class PayloadExtractor:
    """Recovers a JSON object from loosely formatted model output.

    Example:
        >>> PayloadExtractor().extract('```json\\n{"key": "value",}\\n```')
        {'key': 'value'}
    """

    FENCE_PATTERN = re.compile(
        r"```(?:json|javascript|js|typescript|ts)?\s*([\s\S]*?)```"
    )

    # (pattern, replacement) applied in order before locating the object
    CLEANUP_PATTERNS: list[tuple[str, str]] = [
        # export const exampleSummary: GenerationInput = {...};
        (
            r"^\s*(?:export\s+)?(?:const|let|var)\s+[A-Za-z_$][\w$]*"
            r"\s*(?::\s*[\w$.<>\[\]]+)?\s*=\s*",
            "",
        ),
        # Bare ": Type =" prefix left over from a partial assignment
        (r"^\s*:\s*[\w$.<>\[\]]+\s*=\s*", ""),
        (r";\s*$", ""),
    ]

    TRAILING_COMMA_PATTERN = re.compile(r",\s*([}\]])")

    def extract(self, text: str) -> dict[str, Any]:
        """Extract the outermost JSON object.

        Args:
            text: Raw model output.

        Returns:
            The parsed object.

        Raises:
            ExtractionError: If no JSON object can be parsed.
        """
        if not text or not text.strip():
            raise ExtractionError("Empty model output")

        cleaned = self._strip_fences(text.strip())
        for pattern, replacement in self.CLEANUP_PATTERNS:
            cleaned = re.sub(pattern, replacement, cleaned, flags=re.MULTILINE)

        candidate = self._outermost_object(cleaned)
        if candidate is None:
            raise ExtractionError(f"No JSON object found in output: {text[:200]}")

        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            repaired = self.TRAILING_COMMA_PATTERN.sub(r"\1", candidate)
            try:
                value = json.loads(repaired)
            except json.JSONDecodeError as e:
                raise ExtractionError(f"Invalid JSON in output: {e}") from e
            logger.debug("Removed trailing commas from model output")

        if not isinstance(value, dict):
            raise ExtractionError(
                f"Expected a JSON object, got {type(value).__name__}"
            )
        return value

    def _strip_fences(self, text: str) -> str:
        for match in self.FENCE_PATTERN.findall(text):
            if "{" in match:
                return match.strip()
        return text

    def _outermost_object(self, text: str) -> str | None:
        """Return the first balanced {...} span, ignoring braces in strings."""
        start = text.find("{")
        if start == -1:
            return None

        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            char = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        return None


def extract_payload(text: str) -> dict[str, Any]:
    """Extract a JSON object with a default extractor."""
    return PayloadExtractor().extract(text)


__all__ = ["ExtractionError", "PayloadExtractor", "extract_payload"]
