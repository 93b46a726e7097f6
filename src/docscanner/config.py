"""
DocScanner - Configuration Module

Application-level strings and identifiers. Numeric defaults live in constants.py.
"""

from typing import Final

# ============================================================================
# Application Constants
# ============================================================================

APP_NAME: Final[str] = "DocScanner"
APP_VERSION: Final[str] = "1.0.0"
APP_DESCRIPTION: Final[str] = "Rectify photographed documents into clean PDF pages"

# ============================================================================
# PDF Metadata
# ============================================================================

PDF_PRODUCER: Final[str] = "Document Scanner"
PDF_CREATOR: Final[str] = APP_NAME
PDF_SUBJECT: Final[str] = "Scanned document"

# ============================================================================
# Input Formats
# ============================================================================

SUPPORTED_MIME_TYPES: Final[frozenset[str]] = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/bmp",
    "image/tiff",
})

LOGGER_NAME: Final[str] = "docscanner"
