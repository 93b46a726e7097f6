"""
PDF assembly for processed pages.

Draws each processed page image onto its own PDF page with reportlab, in the
order given, then stamps the document information dictionary and XMP
metadata (title, creator, producer, creation date) with pikepdf.

Assembly is all-or-nothing: if any page image cannot be embedded the whole
document is abandoned and the failing page index is reported.
"""

from __future__ import annotations

import io
import logging
import math
from collections.abc import Sequence
from datetime import datetime, timezone
from enum import Enum

import pikepdf
from PIL import Image, UnidentifiedImageError
from reportlab.lib.pagesizes import A4, LETTER, landscape, portrait
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from docscanner.config import PDF_CREATOR, PDF_PRODUCER, PDF_SUBJECT
from docscanner.constants import PDF_SIZE_OVERHEAD
from docscanner.services.models import ProcessedPage
from docscanner.utils.exceptions import EncodeFailure

logger = logging.getLogger(__name__)


class PageSizeMode(Enum):
    """How PDF pages are sized."""

    IMAGE = "image"  # one point per image pixel
    A4 = "a4"
    LETTER = "letter"

    @classmethod
    def from_name(cls, name: str) -> PageSizeMode:
        return cls(name.strip().lower())


_FIXED_SIZES = {PageSizeMode.A4: A4, PageSizeMode.LETTER: LETTER}


def page_dimensions(width_px: int, height_px: int, mode: PageSizeMode) -> tuple[float, float]:
    """PDF page size in points for an image of the given pixel size.

    Fixed paper sizes follow the image orientation.
    """
    if mode is PageSizeMode.IMAGE:
        return float(width_px), float(height_px)
    size = _FIXED_SIZES[mode]
    return landscape(size) if width_px > height_px else portrait(size)


def _read_page_image(data: bytes, index: int) -> tuple[ImageReader, int, int]:
    """Validate page bytes and wrap them for reportlab.

    Raises:
        EncodeFailure: If the bytes are not a readable image
    """
    if not data:
        raise EncodeFailure("page has no image data", page_index=index)
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            width, height = img.size
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise EncodeFailure(str(e), page_index=index) from e
    return ImageReader(io.BytesIO(data)), width, height


def _pdf_date(moment: datetime) -> str:
    """PDF date string, e.g. D:20240131120000+00'00'."""
    stamp = moment.strftime("D:%Y%m%d%H%M%S")
    offset = moment.utcoffset()
    if offset is None:
        return stamp
    minutes = int(offset.total_seconds() // 60)
    sign = "+" if minutes >= 0 else "-"
    minutes = abs(minutes)
    return f"{stamp}{sign}{minutes // 60:02d}'{minutes % 60:02d}'"


def _apply_metadata(pdf_bytes: bytes, title: str, created: datetime) -> bytes:
    """Write document info and XMP metadata."""
    out = io.BytesIO()
    with pikepdf.open(io.BytesIO(pdf_bytes)) as pdf:
        with pdf.open_metadata(set_pikepdf_as_editor=False) as meta:
            meta["dc:title"] = title
            meta["xmp:CreatorTool"] = PDF_CREATOR
            meta["pdf:Producer"] = PDF_PRODUCER
            meta["xmp:CreateDate"] = created.isoformat()
        pdf.docinfo["/Title"] = title
        pdf.docinfo["/Creator"] = PDF_CREATOR
        pdf.docinfo["/Producer"] = PDF_PRODUCER
        pdf.docinfo["/Subject"] = PDF_SUBJECT
        pdf.docinfo["/CreationDate"] = _pdf_date(created)
        pdf.save(out)
    return out.getvalue()


def assemble_pdf(
    pages: Sequence[ProcessedPage],
    title: str,
    page_size: PageSizeMode = PageSizeMode.IMAGE,
    created: datetime | None = None,
) -> bytes:
    """Combine processed pages into one PDF.

    Pages appear in exactly the order given. Each image fills its page.

    Args:
        pages: Processed pages in reading order
        title: Document title
        page_size: Page sizing mode
        created: Creation timestamp; defaults to now (UTC)

    Returns:
        PDF bytes

    Raises:
        EncodeFailure: If there are no pages, or a page cannot be embedded
            (``page_index`` is its position in ``pages``)
    """
    if not pages:
        raise EncodeFailure("no pages to assemble")

    created = created or datetime.now(timezone.utc)
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer)
    c.setTitle(title)
    c.setCreator(PDF_CREATOR)
    c.setProducer(PDF_PRODUCER)
    c.setSubject(PDF_SUBJECT)

    for i, page in enumerate(pages):
        reader, width_px, height_px = _read_page_image(page.image_bytes, i)
        page_w, page_h = page_dimensions(width_px, height_px, page_size)
        try:
            c.setPageSize((page_w, page_h))
            c.drawImage(reader, 0, 0, width=page_w, height=page_h)
            c.showPage()
        except (OSError, ValueError) as e:
            logger.error(f"Failed to embed page {i + 1}: {e}")
            raise EncodeFailure(str(e), page_index=i) from e
        logger.debug(f"Page {i + 1}: {width_px}x{height_px}px on {page_w:.0f}x{page_h:.0f}pt")

    c.save()
    try:
        pdf_bytes = _apply_metadata(buffer.getvalue(), title, created)
    except pikepdf.PdfError as e:
        raise EncodeFailure(f"could not write metadata: {e}") from e

    logger.info(f"Assembled {len(pages)} pages into {len(pdf_bytes)} bytes")
    return pdf_bytes


def estimate_pdf_size(pages: Sequence[ProcessedPage]) -> int:
    """Expected PDF size: page image bytes plus container overhead."""
    total = sum(page.byte_size for page in pages)
    return math.ceil(total * PDF_SIZE_OVERHEAD)
