"""Pipeline error taxonomy."""

from .lib import (
    GenerationTimeout,
    InputContractViolation,
    PipelineError,
    ServiceCallFailure,
    ServiceReportedFailure,
    ValidationFailure,
)

__all__ = [
    "PipelineError",
    "ValidationFailure",
    "ServiceCallFailure",
    "ServiceReportedFailure",
    "GenerationTimeout",
    "InputContractViolation",
]
