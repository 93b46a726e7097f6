"""Brightness-based document detectors.

Two cheap detectors for light paper on a darker surface:

- ``detect_heuristic_fast``: segments a downscaled copy by centre-vs-border
  brightness, cleans the mask with erosion and dilation and takes the extreme
  points of the largest component's convex hull. Meant for live preview
  only; the result is too coarse for the final page.
- ``detect_brightness_scan``: walks diagonally in from each image corner until
  it meets a run of bright pixels, with a mid-row/mid-column scan as
  fallback. Used as the last resort of the detection cascade.
"""

from __future__ import annotations

import logging

import cv2
import numpy as np

from docscanner.constants import (
    FAST_MAX_SIDE_PX,
    FAST_MIN_CONTRAST,
    FAST_MORPH_KERNEL,
    MIN_QUAD_AREA_RATIO,
    SCAN_BRIGHT_THRESHOLD,
    SCAN_CONSECUTIVE_PIXELS,
    SCAN_FALLBACK_MARGIN_PX,
    SCAN_FALLBACK_THRESHOLD,
    SCAN_MARGIN_PX,
    SCAN_MAX_ASPECT,
    SCAN_MAX_AREA_RATIO,
    SCAN_MIN_ASPECT,
    SCAN_MIN_AREA_RATIO,
)
from docscanner.services.geometry import Point, Quad, order_points
from docscanner.services.pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)


def _rgb_brightness(buf: PixelBuffer) -> np.ndarray:
    """Mean of the colour channels per pixel, float32."""
    return buf.color.astype(np.float32).mean(axis=2)


# ============================================================================
# Heuristic (preview) detector
# ============================================================================


def detect_heuristic_fast(
    buf: PixelBuffer,
    max_side: int = FAST_MAX_SIDE_PX,
    min_contrast: float = FAST_MIN_CONTRAST,
    min_area_ratio: float = MIN_QUAD_AREA_RATIO,
) -> Quad | None:
    """Approximate the document outline from a brightness mask.

    Steps:
    1. Downscale so the long edge is at most ``max_side``
    2. Compare the central region with the border band; bail out when
       the centre is not clearly brighter
    3. Threshold halfway between the two, then erode and dilate the mask
    4. Keep the largest 4-connected component
    5. Take the convex hull's extreme points as the four corners

    Args:
        buf: Source buffer
        max_side: Long edge of the working copy
        min_contrast: Minimum centre-minus-border brightness difference
        min_area_ratio: Minimum component area as a fraction of the image

    Returns:
        Quad in ``buf`` coordinates, or None
    """
    if buf.is_empty:
        return None

    small, scale = buf.fit_within(max_side)
    gray = _rgb_brightness(small)
    h, w = gray.shape

    band_h = max(1, h // 10)
    band_w = max(1, w // 10)
    border = np.concatenate(
        [
            gray[:band_h, :].ravel(),
            gray[-band_h:, :].ravel(),
            gray[:, :band_w].ravel(),
            gray[:, -band_w:].ravel(),
        ]
    )
    border_mean = float(border.mean())
    center_mean = float(gray[h // 4 : max(h // 4 + 1, 3 * h // 4), w // 4 : max(w // 4 + 1, 3 * w // 4)].mean())

    if center_mean - border_mean < min_contrast:
        logger.debug(f"Fast detect: centre {center_mean:.0f} vs border {border_mean:.0f}, not enough contrast")
        return None

    threshold = (border_mean + center_mean) / 2
    mask = np.where(gray >= threshold, 255, 0).astype(np.uint8)

    kernel = np.ones((FAST_MORPH_KERNEL, FAST_MORPH_KERNEL), np.uint8)
    mask = cv2.erode(mask, kernel)
    mask = cv2.dilate(mask, kernel)

    count, labels, stats, _ = cv2.connectedComponentsWithStats(mask, connectivity=4)
    if count <= 1:
        logger.debug("Fast detect: mask is empty after cleanup")
        return None

    # Label 0 is the background
    largest = 1 + int(np.argmax(stats[1:, cv2.CC_STAT_AREA]))
    area = int(stats[largest, cv2.CC_STAT_AREA])
    if area < min_area_ratio * h * w:
        logger.debug(f"Fast detect: largest region covers {area / (h * w):.1%} of preview")
        return None

    ys, xs = np.nonzero(labels == largest)
    pts = np.column_stack([xs, ys]).astype(np.int32)
    hull = cv2.convexHull(pts).reshape(-1, 2).astype(np.float64)

    sums = hull[:, 0] + hull[:, 1]
    diffs = hull[:, 0] - hull[:, 1]
    extremes = [
        hull[int(np.argmin(sums))],
        hull[int(np.argmax(diffs))],
        hull[int(np.argmax(sums))],
        hull[int(np.argmin(diffs))],
    ]
    quad = order_points(extremes)
    return quad.scaled(scale) if scale != 1.0 else quad


# ============================================================================
# Brightness scan detector
# ============================================================================


def _scan_for_run(
    bright: np.ndarray,
    start_x: int,
    start_y: int,
    dir_x: int,
    dir_y: int,
    max_steps: int,
    run_length: int,
) -> tuple[int, int] | None:
    """Walk from a start pixel until ``run_length`` consecutive bright pixels.

    Returns:
        (x, y) of the first pixel of the run, or None
    """
    h, w = bright.shape
    steps = np.arange(max_steps)
    xs = start_x + dir_x * steps
    ys = start_y + dir_y * steps
    inside = (xs >= 0) & (xs < w) & (ys >= 0) & (ys < h)
    xs, ys = xs[inside], ys[inside]
    if len(xs) < run_length:
        return None

    hits = bright[ys, xs].astype(np.int32)
    # Windowed sums: a window full of bright pixels marks the run
    windows = np.convolve(hits, np.ones(run_length, dtype=np.int32), mode="valid")
    found = np.flatnonzero(windows == run_length)
    if len(found) == 0:
        return None
    i = int(found[0])
    return int(xs[i]), int(ys[i])


def _scan_mid_lines(brightness: np.ndarray, threshold: float, margin: int) -> Quad | None:
    """Fallback: first bright pixel along the middle row and column from each side."""
    h, w = brightness.shape
    column = brightness[:, w // 2] >= threshold
    row = brightness[h // 2, :] >= threshold
    if not column.any() or not row.any():
        return None

    top = int(np.argmax(column))
    bottom = h - 1 - int(np.argmax(column[::-1]))
    left = int(np.argmax(row))
    right = w - 1 - int(np.argmax(row[::-1]))

    ratio = ((right - left) * (bottom - top)) / float(w * h)
    if not SCAN_MIN_AREA_RATIO <= ratio <= SCAN_MAX_AREA_RATIO:
        logger.debug(f"Mid-line scan: area ratio {ratio:.2f} out of range")
        return None

    x0, y0 = max(0, left - margin), max(0, top - margin)
    x1, y1 = min(w - 1, right + margin), min(h - 1, bottom + margin)
    return order_points([(x0, y0), (x1, y0), (x1, y1), (x0, y1)])


def detect_brightness_scan(
    buf: PixelBuffer,
    threshold: float = SCAN_BRIGHT_THRESHOLD,
    fallback_threshold: float = SCAN_FALLBACK_THRESHOLD,
    run_length: int = SCAN_CONSECUTIVE_PIXELS,
    margin: int = SCAN_MARGIN_PX,
    fallback_margin: int = SCAN_FALLBACK_MARGIN_PX,
) -> Quad | None:
    """Find a white page on a dark surface by scanning in from the corners.

    Each corner walks diagonally toward the centre for the first run of
    ``run_length`` pixels whose mean RGB is at least ``threshold``. The four
    hits are padded outward by ``margin`` and the resulting box must cover
    10-95% of the image with an aspect ratio between 0.3 and 3. When any of
    this fails, a mid-row/mid-column scan with the lower
    ``fallback_threshold`` is tried instead.

    Returns:
        Quad, or None when neither scan produces a plausible page
    """
    if buf.is_empty:
        return None

    brightness = _rgb_brightness(buf)
    h, w = brightness.shape
    bright = brightness >= threshold
    max_steps = int(np.hypot(w, h) / 2)

    hits = [
        _scan_for_run(bright, 0, 0, 1, 1, max_steps, run_length),
        _scan_for_run(bright, w - 1, 0, -1, 1, max_steps, run_length),
        _scan_for_run(bright, w - 1, h - 1, -1, -1, max_steps, run_length),
        _scan_for_run(bright, 0, h - 1, 1, -1, max_steps, run_length),
    ]
    if any(hit is None for hit in hits):
        logger.debug("Corner scan missed at least one corner, using mid-line scan")
        return _scan_mid_lines(brightness, fallback_threshold, fallback_margin)

    (tl_x, tl_y), (tr_x, tr_y), (br_x, br_y), (bl_x, bl_y) = hits
    top_left = Point(max(0, tl_x - margin), max(0, tl_y - margin))
    top_right = Point(min(w - 1, tr_x + margin), max(0, tr_y - margin))
    bottom_right = Point(min(w - 1, br_x + margin), min(h - 1, br_y + margin))
    bottom_left = Point(max(0, bl_x - margin), min(h - 1, bl_y + margin))

    width = top_right.x - top_left.x
    height = bottom_left.y - top_left.y
    ratio = (width * height) / float(w * h)
    if width <= 0 or height <= 0 or not SCAN_MIN_AREA_RATIO <= ratio <= SCAN_MAX_AREA_RATIO:
        logger.debug(f"Corner scan: area ratio {ratio:.2f} out of range, using mid-line scan")
        return _scan_mid_lines(brightness, fallback_threshold, fallback_margin)

    aspect = width / height
    if not SCAN_MIN_ASPECT <= aspect <= SCAN_MAX_ASPECT:
        logger.debug(f"Corner scan: aspect {aspect:.2f} out of range, using mid-line scan")
        return _scan_mid_lines(brightness, fallback_threshold, fallback_margin)

    return order_points([top_left, top_right, bottom_right, bottom_left])
