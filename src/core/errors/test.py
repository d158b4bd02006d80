"""Tests for the pipeline error taxonomy."""

import pytest

from .lib import (
    GenerationTimeout,
    InputContractViolation,
    PipelineError,
    ServiceCallFailure,
    ServiceReportedFailure,
    ValidationFailure,
)


class TestErrorTaxonomy:
    """Tests for exception relationships and payloads."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "exc_type",
        [
            ValidationFailure,
            ServiceCallFailure,
            ServiceReportedFailure,
            GenerationTimeout,
            InputContractViolation,
        ],
    )
    def test_all_derive_from_pipeline_error(self, exc_type):
        """Every condition can be caught as PipelineError."""
        assert issubclass(exc_type, PipelineError)

    @pytest.mark.unit
    def test_timeout_is_builtin_timeout(self):
        """GenerationTimeout is also a TimeoutError."""
        with pytest.raises(TimeoutError):
            raise GenerationTimeout("poll ceiling reached")

    @pytest.mark.unit
    def test_contract_violation_is_value_error(self):
        """InputContractViolation is also a ValueError."""
        with pytest.raises(ValueError, match="tier"):
            raise InputContractViolation("unknown tier")

    @pytest.mark.unit
    def test_validation_failure_lists_errors(self):
        """Errors are kept and folded into the message."""
        exc = ValidationFailure("invalid prompt", ["a missing", "b empty"])
        assert exc.errors == ["a missing", "b empty"]
        assert str(exc) == "invalid prompt: a missing; b empty"

    @pytest.mark.unit
    def test_validation_failure_without_errors(self):
        """Message is unchanged when no errors are given."""
        assert str(ValidationFailure("bad")) == "bad"

    @pytest.mark.unit
    def test_service_call_failure_payload(self):
        """Status code and body are carried on the exception."""
        exc = ServiceCallFailure("HTTP 502", status_code=502, response_body="oops")
        assert exc.status_code == 502
        assert exc.response_body == "oops"
