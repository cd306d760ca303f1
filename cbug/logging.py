# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Centralized logging configuration.

Diagnostics go through the standard ``logging`` module to stderr so they
never mix with the output of the command running inside the container.
User-facing progress messages are printed by the CLI directly.

Usage:
    # In entry points (CLI)
    from cbug.logging import configure_logging
    configure_logging(level=logging.DEBUG)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Starting container: %s", container_id)
"""

import logging
import sys


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: int = logging.WARNING,
    format_string: str | None = None,
) -> None:
    """Configure logging for the application.

    Sets up the root logger with a single stderr handler, replacing any
    handlers installed earlier (e.g. by a previous call).

    Args:
        level: The logging level (e.g., logging.INFO, logging.DEBUG).
        format_string: Custom format string. If None, uses default format.
    """
    if format_string is None:
        format_string = DEFAULT_FORMAT

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(format_string))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)

