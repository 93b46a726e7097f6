"""Hough-transform line detection and line-intersection corner solving.

Alternate boundary locator for low-contrast or textured backgrounds where
contour tracing breaks up: edge pixels vote for (rho, theta) lines, the
outermost near-horizontal and near-vertical lines are kept, and the four
document corners are their pairwise intersections.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from docscanner.constants import (
    HOUGH_ANGLE_TOLERANCE_DEG,
    HOUGH_MIN_AREA_RATIO,
    HOUGH_THETA_BUCKETS,
    HOUGH_VOTE_RATIO,
)
from docscanner.services.geometry import Point, Quad, order_points

logger = logging.getLogger(__name__)

# Edge pixels voted per chunk; bounds the (pixels x thetas) temporary array
_VOTE_CHUNK = 20000
# Intersections may fall slightly outside the frame when the page is cut off
_BOUNDS_TOLERANCE = 0.05


@dataclass(frozen=True)
class HoughLine:
    """Line in normal form: x*cos(theta) + y*sin(theta) = rho."""

    rho: float
    theta: float  # radians, [0, pi)
    votes: int

    @property
    def angle_deg(self) -> float:
        return math.degrees(self.theta)

    def is_horizontal(self, tolerance_deg: float = HOUGH_ANGLE_TOLERANCE_DEG) -> bool:
        """Normal within tolerance of 90 degrees: the line itself runs horizontally."""
        return abs(self.angle_deg - 90.0) <= tolerance_deg

    def is_vertical(self, tolerance_deg: float = HOUGH_ANGLE_TOLERANCE_DEG) -> bool:
        """Normal within tolerance of 0/180 degrees: the line itself runs vertically."""
        return self.angle_deg <= tolerance_deg or self.angle_deg >= 180.0 - tolerance_deg


def hough_accumulator(edges: np.ndarray, theta_buckets: int = HOUGH_THETA_BUCKETS) -> tuple[np.ndarray, int]:
    """Vote every edge pixel into a (theta, rho) accumulator.

    Rho is quantised to whole pixels over [-diagonal, diagonal].

    Returns:
        (accumulator of shape (theta_buckets, 2 * diagonal + 1), diagonal)
    """
    h, w = edges.shape
    diagonal = int(math.ceil(math.hypot(h, w)))
    n_rho = 2 * diagonal + 1
    accumulator = np.zeros(theta_buckets * n_rho, dtype=np.int64)

    ys, xs = np.nonzero(edges)
    if len(xs) == 0:
        return accumulator.reshape(theta_buckets, n_rho), diagonal

    thetas = np.arange(theta_buckets) * (np.pi / theta_buckets)
    cos_t = np.cos(thetas)
    sin_t = np.sin(thetas)
    theta_offsets = np.arange(theta_buckets, dtype=np.int64) * n_rho

    for start in range(0, len(xs), _VOTE_CHUNK):
        x = xs[start : start + _VOTE_CHUNK, np.newaxis].astype(np.float64)
        y = ys[start : start + _VOTE_CHUNK, np.newaxis].astype(np.float64)
        rho_idx = np.rint(x * cos_t + y * sin_t).astype(np.int64) + diagonal
        accumulator += np.bincount((rho_idx + theta_offsets).ravel(), minlength=accumulator.size)

    return accumulator.reshape(theta_buckets, n_rho), diagonal


def hough_lines(
    edges: np.ndarray,
    vote_threshold: int,
    theta_buckets: int = HOUGH_THETA_BUCKETS,
) -> list[HoughLine]:
    """Return all accumulator cells at or above ``vote_threshold``, strongest first."""
    accumulator, diagonal = hough_accumulator(edges, theta_buckets)
    theta_idx, rho_idx = np.nonzero(accumulator >= max(1, vote_threshold))

    lines = [
        HoughLine(
            rho=float(r - diagonal),
            theta=float(t * np.pi / theta_buckets),
            votes=int(accumulator[t, r]),
        )
        for t, r in zip(theta_idx, rho_idx, strict=True)
    ]
    lines.sort(key=lambda ln: ln.votes, reverse=True)
    logger.debug(f"Hough: {len(lines)} lines with >= {vote_threshold} votes")
    return lines


def intersect(a: HoughLine, b: HoughLine) -> Point | None:
    """Intersection of two normal-form lines, None if (nearly) parallel."""
    ca, sa = math.cos(a.theta), math.sin(a.theta)
    cb, sb = math.cos(b.theta), math.sin(b.theta)
    det = ca * sb - sa * cb
    if abs(det) < 1e-9:
        return None
    x = (a.rho * sb - b.rho * sa) / det
    y = (ca * b.rho - cb * a.rho) / det
    return Point(x, y)


def detect_quad_by_lines(
    edges: np.ndarray,
    vote_ratio: float = HOUGH_VOTE_RATIO,
    angle_tolerance_deg: float = HOUGH_ANGLE_TOLERANCE_DEG,
    min_area_ratio: float = HOUGH_MIN_AREA_RATIO,
) -> Quad | None:
    """Locate the document from its outermost straight edges.

    Args:
        edges: Binary edge map
        vote_ratio: Vote threshold as a fraction of the shorter image side
        angle_tolerance_deg: Max deviation from horizontal/vertical
        min_area_ratio: Minimum estimated width*height as a fraction of the image

    Returns:
        Ordered quad, or None when the lines do not form a plausible page
    """
    h, w = edges.shape
    if h == 0 or w == 0:
        return None

    threshold = int(vote_ratio * min(h, w))
    lines = hough_lines(edges, threshold)

    horizontal = [ln for ln in lines if ln.is_horizontal(angle_tolerance_deg)]
    vertical = [ln for ln in lines if ln.is_vertical(angle_tolerance_deg)]
    if len(horizontal) < 2 or len(vertical) < 2:
        logger.debug(f"Hough: {len(horizontal)} horizontal / {len(vertical)} vertical lines, need 2 each")
        return None

    top = min(horizontal, key=lambda ln: abs(ln.rho))
    bottom = max(horizontal, key=lambda ln: abs(ln.rho))
    left = min(vertical, key=lambda ln: abs(ln.rho))
    right = max(vertical, key=lambda ln: abs(ln.rho))
    if top is bottom or left is right:
        return None

    corners = [intersect(top, left), intersect(top, right), intersect(bottom, right), intersect(bottom, left)]
    if any(c is None for c in corners):
        return None

    margin_x = w * _BOUNDS_TOLERANCE
    margin_y = h * _BOUNDS_TOLERANCE
    for c in corners:
        if not (-margin_x <= c.x <= w - 1 + margin_x and -margin_y <= c.y <= h - 1 + margin_y):
            logger.debug(f"Hough: intersection ({c.x:.0f}, {c.y:.0f}) outside image")
            return None

    clipped = [Point(min(max(c.x, 0.0), w - 1.0), min(max(c.y, 0.0), h - 1.0)) for c in corners]
    quad = order_points(clipped)

    est_width = (quad.top_width + quad.bottom_width) / 2
    est_height = (quad.left_height + quad.right_height) / 2
    ratio = (est_width * est_height) / float(w * h)
    if ratio < min_area_ratio:
        logger.debug(f"Hough: quad covers {ratio:.1%} of image, below {min_area_ratio:.0%}")
        return None

    return quad
