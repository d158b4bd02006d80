"""Image generation job client.

Submits structured prompts to the Bria FIBO service and polls jobs to a
terminal state with a fixed interval and a hard poll ceiling.

Example:
    >>> from src.generation import GenerationClient, GenerationClientConfig
    >>> async with GenerationClient(GenerationClientConfig.from_environment()) as c:
    ...     job = await c.generate(prompt)
"""

from .lib import (
    DEFAULT_BASE_URL,
    DEFAULT_NEGATIVE_PROMPT,
    MAX_SEED,
    GenerationClient,
    GenerationClientConfig,
    GenerationJob,
    GenerationServiceError,
    GenerationSettings,
    InvalidJobTransition,
    JobStatus,
    download_image,
    poster_filename,
    random_seed,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_NEGATIVE_PROMPT",
    "MAX_SEED",
    "GenerationServiceError",
    "InvalidJobTransition",
    "JobStatus",
    "GenerationJob",
    "GenerationSettings",
    "GenerationClientConfig",
    "GenerationClient",
    "random_seed",
    "poster_filename",
    "download_image",
]
