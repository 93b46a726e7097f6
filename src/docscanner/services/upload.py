"""Hand-off of the assembled PDF to an upload collaborator.

The collaborator owns transport, authentication, status codes and retries.
Core only normalises the document name and turns the collaborator's outcome
into success or failure with a reason.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Receives (pdf_bytes, file_name); raises on failure
Uploader = Callable[[bytes, str], None]

_SEPARATORS = re.compile(r"[\\/]+")
_WHITESPACE = re.compile(r"\s+")
_MAX_NAME_LENGTH = 200


@dataclass(frozen=True)
class UploadResult:
    """Outcome of an upload attempt."""

    success: bool
    file_name: str | None = None
    reason: str | None = None


def normalize_document_name(name: str) -> str:
    """Build a safe PDF file name from a user-chosen document name.

    Path separators become spaces, control characters are dropped, runs of
    whitespace collapse and a ``.pdf`` extension is added when missing.

    Raises:
        ValueError: If nothing usable remains
    """
    cleaned = _WHITESPACE.sub(" ", _SEPARATORS.sub(" ", name or ""))
    cleaned = "".join(ch for ch in cleaned if not unicodedata.category(ch).startswith("C")).strip()
    if cleaned.lower().endswith(".pdf"):
        cleaned = cleaned[:-4]
    cleaned = cleaned.strip(" .")
    if not cleaned:
        raise ValueError("Document name is empty")
    return f"{cleaned[:_MAX_NAME_LENGTH]}.pdf"


def upload_document(uploader: Uploader, pdf_bytes: bytes, name: str) -> UploadResult:
    """Pass the PDF to ``uploader`` once.

    Args:
        uploader: Collaborator that performs the actual upload
        pdf_bytes: Assembled document
        name: Human-chosen document name

    Returns:
        UploadResult; failures carry the reason instead of raising
    """
    try:
        file_name = normalize_document_name(name)
    except ValueError as e:
        return UploadResult(success=False, reason=str(e))

    if not pdf_bytes:
        return UploadResult(success=False, file_name=file_name, reason="Document is empty")

    try:
        uploader(pdf_bytes, file_name)
    except Exception as e:
        reason = str(e) or type(e).__name__
        logger.error(f"Upload of {file_name} failed: {reason}")
        return UploadResult(success=False, file_name=file_name, reason=reason)

    logger.info(f"Uploaded {file_name} ({len(pdf_bytes)} bytes)")
    return UploadResult(success=True, file_name=file_name)
