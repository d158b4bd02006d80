"""Root pytest configuration and fixtures.

This module provides:
- Environment setup (loads .env)
- Auto-skipping of integration tests that need real credentials
- Common compiled-input fixtures shared by every module's tests
"""

from __future__ import annotations

import copy
import os
from typing import TYPE_CHECKING, Any, Callable

import pytest
from dotenv import load_dotenv

if TYPE_CHECKING:
    from src.schema import CompiledInput

# Load environment variables from .env file
load_dotenv()


# =============================================================================
# Configuration Constants
# =============================================================================

# Concepts reused by the factory fixture, cycled when more are requested.
_CONCEPT_POOL: list[dict[str, str]] = [
    {
        "name": "Self-Attention",
        "explanation": (
            "Each token looks at every other token and weighs how relevant "
            "it is when building its own representation"
        ),
        "visual_metaphor": "a round table where everyone can hear everyone",
    },
    {
        "name": "Multi-Head Attention",
        "explanation": (
            "Several attention operations run side by side so the model can "
            "track different relationships at once"
        ),
        "visual_metaphor": "a row of spotlights each tracking a different actor",
    },
    {
        "name": "Positional Encoding",
        "explanation": (
            "Order information is added to each token because attention alone "
            "has no notion of sequence"
        ),
        "visual_metaphor": "numbered tickets handed out at a queue",
    },
    {
        "name": "Layer Normalization",
        "explanation": (
            "Activations are rescaled inside each layer to keep training "
            "stable across many stacked blocks"
        ),
        "visual_metaphor": "a sound engineer evening out volume levels",
    },
    {
        "name": "Residual Connections",
        "explanation": (
            "Each block adds its output to its input so gradients flow "
            "through deep stacks without vanishing"
        ),
        "visual_metaphor": "an express lane running beside a busy road",
    },
    {
        "name": "Encoder-Decoder Stack",
        "explanation": (
            "One stack reads the source sentence and another writes the "
            "translation while attending to it"
        ),
        "visual_metaphor": "a reader passing notes to a writer",
    },
    {
        "name": "Parallel Training",
        "explanation": (
            "Without recurrence all positions are processed at once, which "
            "makes training far faster on modern hardware"
        ),
        "visual_metaphor": "a team painting every fence post at the same time",
    },
]


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]):
    """Auto-skip integration tests when service credentials are missing."""
    has_llm = bool(os.environ.get("OPENAI_API_KEY"))
    has_fibo = bool(os.environ.get("FIBO_API_KEY") or os.environ.get("BRIA_API_KEY"))

    skip_llm = pytest.mark.skip(reason="OPENAI_API_KEY not set")
    skip_fibo = pytest.mark.skip(reason="FIBO_API_KEY/BRIA_API_KEY not set")

    for item in items:
        # Package names are keywords too, so match the marker itself
        if item.get_closest_marker("llm") is not None and not has_llm:
            item.add_marker(skip_llm)
        if item.get_closest_marker("fibo") is not None and not has_fibo:
            item.add_marker(skip_fibo)


# =============================================================================
# Compiled Input Fixtures
# =============================================================================


def build_input_data(
    count: int = 3,
    tier: str = "beginner",
    tags: list[str] | None = None,
    source_id: str = "1706.03762",
) -> dict[str, Any]:
    """Build a raw compiled-input payload with `count` concepts."""
    concepts = [
        copy.deepcopy(_CONCEPT_POOL[i % len(_CONCEPT_POOL)]) for i in range(count)
    ]
    return {
        "summary": {
            "title": "Attention Is All You Need",
            "one_liner": (
                "A network built only from attention that translates faster "
                "and better than recurrent models"
            ),
            "concepts": concepts,
            "key_finding": (
                "The Transformer beats recurrent models on translation while "
                "training in a fraction of the time"
            ),
            "impact": "Foundation of modern large language models",
        },
        "audience_tier": tier,
        "tags": tags if tags is not None else ["deep-learning", "nlp"],
        "source_id": source_id,
        "user_preferences": {"background": "software engineering"},
    }


@pytest.fixture
def sample_input_data() -> dict[str, Any]:
    """Raw payload for a 3-concept beginner poster."""
    return build_input_data()


@pytest.fixture
def sample_input(sample_input_data: dict[str, Any]) -> CompiledInput:
    """Validated 3-concept beginner compiled input."""
    from src.schema import CompiledInput

    return CompiledInput.model_validate(sample_input_data)


@pytest.fixture
def make_input() -> Callable[..., CompiledInput]:
    """Factory for compiled inputs of any size, tier and tags.

    Layout-only tests can ask for counts outside the schema range by
    building the payload with `build_input_data` directly.
    """
    from src.schema import CompiledInput

    def _make(
        count: int = 3,
        tier: str = "beginner",
        tags: list[str] | None = None,
    ) -> CompiledInput:
        return CompiledInput.model_validate(build_input_data(count, tier, tags))

    return _make


@pytest.fixture
def preserve_env_keys():
    """Save and restore service keys around a test that modifies them."""
    keys = ["OPENAI_API_KEY", "ANTHROPIC_API_KEY", "FIBO_API_KEY", "BRIA_API_KEY"]
    saved = {key: os.environ.get(key) for key in keys}
    yield
    for key, value in saved.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
