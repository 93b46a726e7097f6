"""
DocScanner - Utils Package

Utility modules for the scanner.
"""

from docscanner.utils.exceptions import (
    BoundaryNotFound,
    ConfigurationError,
    DecodeFailure,
    DocScannerError,
    EncodeFailure,
    ResourceExhausted,
    SingularTransform,
)
from docscanner.utils.format_utils import format_duration_ms, format_file_size
from docscanner.utils.logger import logger, setup_logging

__all__ = [
    "logger",
    "setup_logging",
    "format_file_size",
    "format_duration_ms",
    "DocScannerError",
    "DecodeFailure",
    "BoundaryNotFound",
    "SingularTransform",
    "EncodeFailure",
    "ResourceExhausted",
    "ConfigurationError",
]
