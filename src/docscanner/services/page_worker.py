"""
Page-level worker functions for batch processing.

These functions run in threads of the orchestrator's worker pool. Each call
owns the buffers it creates; nothing is shared between pages.

Per page: decode → detect boundary → rectify → fit to target resolution →
enhance → compress → thumbnail.
"""

import logging
import time

from docscanner.services.boundary_detection import BoundaryDetector, DetectionResult
from docscanner.services.compression import compress, thumbnail
from docscanner.services.enhancement import apply_enhancements
from docscanner.services.geometry import Quad
from docscanner.services.models import CapturedPage, PageResult, PageStatus, ProcessedPage
from docscanner.services.perspective_correction import rectify
from docscanner.services.pixel_buffer import PixelBuffer, decode_image
from docscanner.services.quality_presets import ScannerConfig
from docscanner.utils.exceptions import BoundaryNotFound, SingularTransform

logger = logging.getLogger(__name__)


def fit_to_target(buf: PixelBuffer, target_width: int, target_height: int) -> PixelBuffer:
    """Downscale to fit the target box, matching the box to the page orientation.

    Never upscales.
    """
    box_w, box_h = target_width, target_height
    if buf.width > buf.height:
        box_w, box_h = max(target_width, target_height), min(target_width, target_height)
    scale = min(box_w / buf.width, box_h / buf.height, 1.0)
    if scale >= 1.0:
        return buf
    return buf.resized(round(buf.width * scale), round(buf.height * scale))


def locate_boundary(buf: PixelBuffer, detector: BoundaryDetector) -> DetectionResult | None:
    """Detect the document, or None when every strategy failed."""
    try:
        return detector.detect(buf)
    except BoundaryNotFound as e:
        logger.warning(f"{e}; using full image bounds")
        return None


def correct_perspective(buf: PixelBuffer, quad: Quad) -> tuple[PixelBuffer, bool]:
    """Warp the page upright.

    Returns:
        (buffer, corrected) where ``buffer`` is the input unchanged when the
        transform was singular or the quad is the whole image
    """
    if quad.is_full_frame(buf.width, buf.height):
        return buf, False
    try:
        return rectify(buf, quad), True
    except SingularTransform as e:
        logger.warning(f"{e}; skipping perspective correction")
        return buf, False


def process_page(page: CapturedPage, config: ScannerConfig) -> ProcessedPage:
    """Run the full processing chain for one captured page.

    BoundaryNotFound and SingularTransform are recovered here; every other
    error propagates to the caller.

    Raises:
        DecodeFailure: If the captured bytes cannot be decoded
        EncodeFailure: If compression or thumbnail generation fails
    """
    start = time.perf_counter()
    quality = config.quality

    buf = decode_image(page.image_bytes, page.mime_type)
    width, height = buf.width, buf.height

    detector = BoundaryDetector(strategy=config.strategy, params=config.detection_params)
    detection = locate_boundary(buf, detector)
    quad = detection.quad if detection else Quad.from_bounds(width, height)
    crop_area = quad.bounding_crop(width, height)

    buf, corrected = correct_perspective(buf, quad)
    buf = fit_to_target(buf, quality.target_width, quality.target_height)

    buf = apply_enhancements(
        buf,
        grayscale=quality.grayscale,
        denoise=quality.denoise,
        contrast_factor=quality.contrast_factor,
        brightness_target=quality.brightness_target,
        sharpen_passes=quality.sharpen_passes,
        threshold=quality.black_and_white,
    )

    image_bytes = compress(buf, quality.max_file_size_bytes, quality.max_dimension, quality.jpeg_quality)
    thumb_w, thumb_h = config.thumbnail_size
    thumb_bytes = thumbnail(buf, thumb_w, thumb_h)
    out_w, out_h = buf.width, buf.height
    del buf

    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"Page {page.page_number}: {width}x{height} → {out_w}x{out_h}, "
        f"{len(image_bytes)} bytes in {duration_ms:.0f}ms"
    )

    return ProcessedPage(
        source=page,
        image_bytes=image_bytes,
        thumbnail_bytes=thumb_bytes,
        width=out_w,
        height=out_h,
        crop_area=crop_area,
        detected_quad=detection.quad if detection else None,
        perspective_corrected=corrected,
        detection_strategy=detection.strategy.value if detection else None,
        duration_ms=duration_ms,
    )


def run_page(page: CapturedPage, config: ScannerConfig) -> PageResult:
    """Process one page and convert any failure into an error result.

    Never raises: the page ends in PROCESSED or ERROR with a reason.
    """
    page.status = PageStatus.PROCESSING
    try:
        processed = process_page(page, config)
    except Exception as e:
        reason = str(e) or type(e).__name__
        logger.error(f"Page {page.page_number} failed: {reason}")
        page.status = PageStatus.ERROR
        page.error = reason
        return PageResult(
            index=page.index,
            status=PageStatus.ERROR,
            error=reason,
            error_kind=type(e).__name__,
        )

    page.status = PageStatus.PROCESSED
    page.error = None
    return PageResult(index=page.index, status=PageStatus.PROCESSED, page=processed)


def cancelled_result(page: CapturedPage) -> PageResult:
    """Error result for a page skipped after cancellation."""
    page.status = PageStatus.ERROR
    page.error = "cancelled"
    return PageResult(index=page.index, status=PageStatus.ERROR, error="cancelled", error_kind="Cancelled")
