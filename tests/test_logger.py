"""Tests for logging setup."""

import logging

from rich.logging import RichHandler

from stack_audit.logger import configure, get_log_level


class TestLogger:
    """Tests for configure and get_log_level."""

    def test_get_log_level(self):
        assert get_log_level("DEBUG") == "debug"
        assert get_log_level("verbose") == "info"
        assert get_log_level(None) == "info"

    def test_configure_level(self):
        logger = configure("warning")

        assert logger.name == "stack_audit"
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)

    def test_reconfigure_replaces_handler(self):
        configure("debug")
        logger = configure("info")

        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO

    def test_off(self):
        logger = configure("off")

        assert not logger.isEnabledFor(logging.CRITICAL)
        assert isinstance(logger.handlers[0], logging.NullHandler)
