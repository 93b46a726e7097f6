"""
DocScanner - Logger Module

Package-level logger shared by utility modules and the CLI.
Library modules obtain child loggers with logging.getLogger(__name__).
"""

import logging
import sys

from docscanner.config import LOGGER_NAME

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%H:%M:%S"

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a stream handler to the package logger.

    Calling this more than once only updates the level.

    Args:
        verbose: Log DEBUG messages when True, INFO otherwise

    Returns:
        The configured package logger
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    if not any(getattr(h, "_docscanner_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
        handler._docscanner_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    return logger
