"""Error taxonomy shared by every pipeline stage.

Each stage raises (or records, for result-returning stages) one of these
conditions so callers can tell a retryable transport problem from a service
that explicitly refused the job or a poll loop that ran out of time.
"""

__all__ = [
    "PipelineError",
    "ValidationFailure",
    "ServiceCallFailure",
    "ServiceReportedFailure",
    "GenerationTimeout",
    "InputContractViolation",
]


class PipelineError(Exception):
    """Base exception for all pipeline failures."""


class ValidationFailure(PipelineError):
    """Structured data failed schema or structural checks.

    Attributes:
        errors: Individual human-readable error messages.
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)


class ServiceCallFailure(PipelineError):
    """Transient network or HTTP error from an external call.

    Attributes:
        status_code: HTTP status code when the service answered.
        response_body: Raw response text when available.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class ServiceReportedFailure(PipelineError):
    """External service explicitly reported the job as failed."""


class GenerationTimeout(PipelineError, TimeoutError):
    """Polling exceeded its wall-clock ceiling without a terminal status."""


class InputContractViolation(PipelineError, ValueError):
    """Caller-supplied counts or tiers fall outside supported ranges."""
