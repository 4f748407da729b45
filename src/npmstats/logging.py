"""Logging configuration for npmstats."""

import logging
import sys

# Create package logger
logger = logging.getLogger("npmstats")

# Default format for console output
DEFAULT_FORMAT = "%(message)s"
VERBOSE_FORMAT = "%(levelname)s: %(message)s"


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging for the CLI.

    Args:
        verbose: If True, show DEBUG level messages with level prefix.
        quiet: If True, suppress INFO messages (only show WARNING+).
    """
    logger.handlers.clear()

    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    # Log to stderr so stdout stays clean for reports and exports
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt = VERBOSE_FORMAT if verbose else DEFAULT_FORMAT
    handler.setFormatter(logging.Formatter(fmt))

    logger.addHandler(handler)
    logger.setLevel(level)
