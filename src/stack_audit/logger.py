"""Logging setup for the stack_audit package."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVELS = ("debug", "info", "warning", "error", "off")
DEFAULT_LOG_LEVEL = "info"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def get_log_level(name: str | None) -> str:
    """Normalize a level name, falling back to the default for unknown names."""
    if name and name.lower() in LOG_LEVELS:
        return name.lower()
    return DEFAULT_LOG_LEVEL


def configure(level: str) -> logging.Logger:
    """Configure the package logger.

    Messages go to stderr through rich. ``off`` disables package logging.
    """
    level = get_log_level(level)
    logger = logging.getLogger("stack_audit")

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = False

    if level == "off":
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.CRITICAL + 1)
        return logger

    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(_LEVELS[level])
    return logger
