"""Tests for core logging module."""

import logging
from io import StringIO

import pytest

from .lib import get_logger, parse_level, setup_logging


class TestLogging:
    """Test core logging API."""

    @pytest.mark.unit
    def test_get_logger(self) -> None:
        """Verify logger instance creation."""
        logger = get_logger("test")
        assert logger.name == "test"
        assert isinstance(logger, logging.Logger)

    @pytest.mark.unit
    def test_get_logger_default_name(self) -> None:
        """Verify default logger name."""
        logger = get_logger()
        assert logger.name == "visual-explainer"

    @pytest.mark.unit
    def test_setup_logging_quiets_httpx(self) -> None:
        """Request logging from httpx is raised to WARNING."""
        setup_logging(level=logging.DEBUG, stream=StringIO())
        assert logging.getLogger("httpx").level == logging.WARNING


class TestParseLevel:
    """Tests for level name resolution."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("debug", logging.DEBUG),
            ("WARNING", logging.WARNING),
            (" error ", logging.ERROR),
            ("nonsense", logging.INFO),
            (logging.CRITICAL, logging.CRITICAL),
        ],
    )
    def test_parse_level(self, name, expected) -> None:
        """Names and integers resolve to logging levels."""
        assert parse_level(name) == expected
