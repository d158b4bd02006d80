"""Core utilities shared across visual-explainer-mcp modules."""

from .errors import (
    GenerationTimeout,
    InputContractViolation,
    PipelineError,
    ServiceCallFailure,
    ServiceReportedFailure,
    ValidationFailure,
)
from .log import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Error taxonomy
    "PipelineError",
    "ValidationFailure",
    "ServiceCallFailure",
    "ServiceReportedFailure",
    "GenerationTimeout",
    "InputContractViolation",
]
