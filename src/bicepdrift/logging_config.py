"""Logging setup for the command-line entry point."""

import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "bicepdrift"


def configure_logging(level: str = "WARNING", simple: bool = False) -> logging.Logger:
    """Send package log records to stderr through Rich.

    Replaces handlers from earlier calls so repeated invocations in one
    process do not duplicate output.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True, no_color=simple),
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    return logger
