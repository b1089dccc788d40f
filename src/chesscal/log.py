"""
Logging setup for the command-line drivers.
"""

import logging
import sys

LOGGER_NAME = "chesscal"


def setup_logging(level: int = logging.INFO, stream=None) -> logging.Logger:
    """
    Configure the package logger with a single stream handler.

    Messages are formatted as "# LEVEL: message" on stderr. Verbose session
    output is logged at INFO and gated by CaptureRequest.verbose, so the
    drivers keep the default level.

    Args:
        level: Logging level
        stream: Output stream (stderr if None)

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("# %(levelname)s: %(message)s"))
    logger.addHandler(handler)

    return logger
