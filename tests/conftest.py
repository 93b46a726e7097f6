"""Pytest configuration for docscanner tests.

Synthetic document photos: a white sheet on a black surface. Real photos
would make the tests slow and non-deterministic; a clean step edge is
enough to exercise detection, rectification and the batch pipeline.
"""

import numpy as np
import pytest

from docscanner.services.pixel_buffer import PixelBuffer, encode_image

# 800x1000 photo with a 600x500 sheet whose top-left corner is at (100, 250)
DOC_WIDTH = 800
DOC_HEIGHT = 1000
SHEET = (100, 250, 600, 500)  # x, y, width, height


def make_document(
    width: int,
    height: int,
    sheet: tuple[int, int, int, int],
    paper: int = 255,
    surface: int = 0,
) -> PixelBuffer:
    """Opaque RGBA photo of a uniform sheet on a uniform surface."""
    x, y, w, h = sheet
    buf = PixelBuffer.blank(width, height, channels=4, value=surface)
    buf.data[y : y + h, x : x + w, :3] = paper
    return buf


def sheet_corners(sheet: tuple[int, int, int, int]) -> list[tuple[int, int]]:
    """Expected [TL, TR, BR, BL] pixel corners of a sheet."""
    x, y, w, h = sheet
    return [(x, y), (x + w - 1, y), (x + w - 1, y + h - 1), (x, y + h - 1)]


@pytest.fixture
def synthetic_document() -> PixelBuffer:
    return make_document(DOC_WIDTH, DOC_HEIGHT, SHEET)


@pytest.fixture
def small_document() -> PixelBuffer:
    """160x200 photo with a 120x100 sheet, fast enough for batch tests."""
    return make_document(160, 200, (20, 50, 120, 100))


@pytest.fixture
def small_document_png(small_document) -> bytes:
    return encode_image(small_document, "PNG")


@pytest.fixture
def noise_buffer() -> PixelBuffer:
    """Random RGB noise, the worst case for JPEG size."""
    rng = np.random.default_rng(1234)
    return PixelBuffer.from_rgb(rng.integers(0, 256, size=(400, 400, 3), dtype=np.uint8))
