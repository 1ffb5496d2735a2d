"""Logging initialization using loguru."""

from __future__ import annotations

import sys

from loguru import logger


def init_logging(verbose: bool = False) -> None:
    """Send log records to stderr; DEBUG when *verbose*, else WARNING."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="<dim>{time:HH:mm:ss}</dim> <level>{level: <7}</level> {message}",
        backtrace=False,
        diagnose=False,
    )
