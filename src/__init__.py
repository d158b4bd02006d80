"""visual-explainer-mcp: explainer posters for research papers."""

from src.layout import LayoutEngine, LayoutStrategy, LayoutType, compute_layout
from src.orchestrator import GenerationOutput, GenerationStatus, PosterOrchestrator
from src.schema import AudienceTier, CompiledInput, validate_compiled_input
from src.service import RequestService, RequestStatus

__all__ = [
    # Schema
    "AudienceTier",
    "CompiledInput",
    "validate_compiled_input",
    # Layout
    "LayoutEngine",
    "LayoutStrategy",
    "LayoutType",
    "compute_layout",
    # Orchestration
    "PosterOrchestrator",
    "GenerationOutput",
    "GenerationStatus",
    # Service
    "RequestService",
    "RequestStatus",
]
