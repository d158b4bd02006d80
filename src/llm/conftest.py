"""LLM module test fixtures."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from src.llm.backend.base import GenerationResult, LLMBackend

if TYPE_CHECKING:
    from src.llm.backend.base import GenerationConfig


# =============================================================================
# Scripted LLM Backend
# =============================================================================


class ScriptedLLMBackend(LLMBackend):
    """Backend that replays a fixed list of responses.

    Each entry is either a string (returned as content) or an exception
    (raised from the call). Every call is recorded for assertions.
    """

    def __init__(self, responses: list[str | Exception]):
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    @property
    def model_name(self) -> str:
        return "scripted-model"

    @property
    def provider(self) -> str:
        return "mock"

    @property
    def supports_json_mode(self) -> bool:
        return True

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResult:
        self.calls.append(
            {"prompt": prompt, "system_prompt": system_prompt, "config": config}
        )
        if not self._responses:
            raise AssertionError("ScriptedLLMBackend ran out of responses")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return GenerationResult(
            content=response,
            finish_reason="stop",
            usage={"total_tokens": 100},
            model=self.model_name,
        )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def scripted_backend():
    """Factory for a ScriptedLLMBackend with the given responses."""
    return ScriptedLLMBackend


@pytest.fixture
def valid_output(sample_input_data) -> str:
    """Model output that compiles to a valid input."""
    return json.dumps(sample_input_data)


@pytest.fixture
def semantic_output() -> str:
    """Pass-1 extraction output in the semantic analyzer's format."""
    return json.dumps(
        {
            "title": "Attention Is All You Need",
            "mainIdea": "Attention alone is enough for sequence transduction",
            "keyConcepts": [
                {
                    "name": "Self-Attention",
                    "explanation": "Tokens attend to each other",
                    "visualMetaphor": "a round table conversation",
                }
            ],
            "keyFinding": "Faster training with better translation quality",
            "realWorldImpact": "Foundation of modern language models",
            "audienceLevel": "intermediate",
            "suggestedTags": ["nlp", "transformers"],
            "styleHints": "clean diagrams",
        }
    )
