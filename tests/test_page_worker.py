"""Tests for page-level worker functions."""

import io
from unittest.mock import patch

from PIL import Image

from docscanner.services.geometry import Point, Quad
from docscanner.services.models import CapturedPage, PageStatus
from docscanner.services.page_worker import (
    cancelled_result,
    correct_perspective,
    fit_to_target,
    process_page,
    run_page,
)
from docscanner.services.pixel_buffer import PixelBuffer, encode_image
from docscanner.services.quality_presets import ScannerConfig
from docscanner.utils.exceptions import SingularTransform


def _size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as img:
        return img.size


class TestFitToTarget:
    def test_portrait(self):
        out = fit_to_target(PixelBuffer.blank(400, 800), 100, 150)
        assert (out.width, out.height) == (75, 150)

    def test_landscape_uses_rotated_box(self):
        out = fit_to_target(PixelBuffer.blank(800, 400), 100, 150)
        assert (out.width, out.height) == (150, 75)

    def test_never_upscales(self):
        buf = PixelBuffer.blank(50, 60)
        assert fit_to_target(buf, 1000, 2000) is buf


class TestCorrectPerspective:
    def test_full_frame_skipped(self):
        buf = PixelBuffer.blank(30, 20)
        out, corrected = correct_perspective(buf, Quad.from_bounds(30, 20))
        assert out is buf
        assert corrected is False

    def test_singular_passes_through(self):
        buf = PixelBuffer.blank(30, 20)
        quad = Quad(Point(2, 2), Point(20, 2), Point(20, 15), Point(2, 15))
        with patch(
            "docscanner.services.page_worker.rectify",
            side_effect=SingularTransform("singular matrix", 0.0),
        ):
            out, corrected = correct_perspective(buf, quad)
        assert out is buf
        assert corrected is False

    def test_warps_inner_quad(self):
        buf = PixelBuffer.blank(30, 20)
        quad = Quad(Point(2, 2), Point(22, 2), Point(22, 12), Point(2, 12))
        out, corrected = correct_perspective(buf, quad)
        assert corrected is True
        assert (out.width, out.height) == (20, 10)


class TestProcessPage:
    def test_detects_and_rectifies(self, small_document_png):
        page = CapturedPage(image_bytes=small_document_png, mime_type="image/png", index=0)
        config = ScannerConfig.from_preset("fast")
        processed = process_page(page, config)

        assert processed.perspective_corrected is True
        assert processed.detected_quad is not None
        assert processed.detection_strategy == "contour"
        assert abs(processed.width - 120) <= 6
        assert abs(processed.height - 100) <= 6
        assert _size(processed.image_bytes) == (processed.width, processed.height)
        assert processed.byte_size <= config.quality.max_file_size_bytes
        assert processed.crop_area.width <= 160
        assert processed.source is page

    def test_full_bounds_when_no_document(self):
        blank = encode_image(PixelBuffer.blank(64, 48, value=0), "PNG")
        page = CapturedPage(image_bytes=blank, mime_type="image/png")
        processed = process_page(page, ScannerConfig.from_preset("fast"))
        assert processed.detected_quad is None
        assert processed.perspective_corrected is False
        assert (processed.width, processed.height) == (64, 48)
        assert (processed.crop_area.width, processed.crop_area.height) == (64, 48)

    def test_thumbnail_size(self, small_document_png):
        page = CapturedPage(image_bytes=small_document_png, mime_type="image/png")
        config = ScannerConfig.from_preset("fast", thumbnail_size=(40, 40))
        processed = process_page(page, config)
        width, height = _size(processed.thumbnail_bytes)
        assert max(width, height) == 40


class TestRunPage:
    def test_success_status(self, small_document_png):
        page = CapturedPage(image_bytes=small_document_png, mime_type="image/png")
        result = run_page(page, ScannerConfig.from_preset("fast"))
        assert result.ok
        assert page.status is PageStatus.PROCESSED

    def test_decode_failure_is_captured(self):
        page = CapturedPage(image_bytes=b"not an image", mime_type="image/jpeg", index=3)
        result = run_page(page, ScannerConfig.from_preset("fast"))
        assert result.status is PageStatus.ERROR
        assert result.index == 3
        assert result.error_kind == "DecodeFailure"
        assert page.status is PageStatus.ERROR
        assert page.error == result.error

    def test_cancelled_result(self):
        page = CapturedPage(image_bytes=b"x", index=1)
        result = cancelled_result(page)
        assert result.status is PageStatus.ERROR
        assert result.error == "cancelled"
        assert page.status is PageStatus.ERROR
