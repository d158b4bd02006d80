"""Poster generation orchestrator.

Sequences layout -> structured prompt -> image generation for one compiled
input and reports a terminal status naming the failing stage on error.

Example:
    >>> from src.orchestrator import PosterOrchestrator
    >>> output = await PosterOrchestrator(client).generate(compiled_input)
    >>> output.status
    <GenerationStatus.COMPLETE: 'complete'>
"""

from .lib import (
    GenerationMetadata,
    GenerationOutput,
    GenerationStatus,
    PipelineStage,
    PosterOrchestrator,
    StageFailure,
    StatusCallback,
    generate_request_id,
)

__all__ = [
    "GenerationStatus",
    "PipelineStage",
    "GenerationMetadata",
    "GenerationOutput",
    "StatusCallback",
    "StageFailure",
    "PosterOrchestrator",
    "generate_request_id",
]
