"""Structured logging setup for stackforge."""

import logging
import sys
from typing import Optional


def setup_logging(level: int = logging.INFO, format_string: Optional[str] = None) -> logging.Logger:
    """
    Set up structured logging for stackforge.

    Args:
        level: Logging level (default: INFO)
        format_string: Custom format string (optional)

    Returns:
        Configured logger instance
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stderr,
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    logger = logging.getLogger("stackforge")
    return logger


def set_verbosity(verbose: bool = False, quiet: bool = False) -> None:
    """Adjust the stackforge logger level for CLI runs."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.getLogger("stackforge").setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(f"stackforge.{name}")
