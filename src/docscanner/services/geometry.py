"""Geometric primitives for document boundaries.

Points, quadrilaterals and crop rectangles, plus the canonical four-point
ordering every detector funnels into.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Point:
    """Floating-point pixel coordinate."""

    x: float
    y: float

    def distance_to(self, other: Point) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def scaled(self, factor: float) -> Point:
        return Point(self.x * factor, self.y * factor)


@dataclass(frozen=True)
class CropArea:
    """Axis-aligned crop rectangle in source-image pixels."""

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class Quad:
    """Four document corners in canonical clockwise order.

    Instances should be built through ``order_points`` (or ``Quad.from_points``)
    so that the corner roles are always derived from the coordinates
    rather than from the order in which a detector reported them.
    """

    top_left: Point
    top_right: Point
    bottom_right: Point
    bottom_left: Point

    @classmethod
    def from_points(cls, points: Iterable[Point | Sequence[float]]) -> Quad:
        """Build a quad from four unordered points."""
        return order_points(points)

    @classmethod
    def from_bounds(cls, width: float, height: float) -> Quad:
        """Quad covering a full ``width`` x ``height`` image."""
        right = max(0.0, float(width) - 1)
        bottom = max(0.0, float(height) - 1)
        return cls(
            top_left=Point(0.0, 0.0),
            top_right=Point(right, 0.0),
            bottom_right=Point(right, bottom),
            bottom_left=Point(0.0, bottom),
        )

    @property
    def points(self) -> tuple[Point, Point, Point, Point]:
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    def as_array(self) -> np.ndarray:
        """Corners as a 4x2 float64 array [TL, TR, BR, BL]."""
        return np.array([[p.x, p.y] for p in self.points], dtype=np.float64)

    def scaled(self, factor: float) -> Quad:
        return Quad(*(p.scaled(factor) for p in self.points))

    @property
    def top_width(self) -> float:
        return self.top_left.distance_to(self.top_right)

    @property
    def bottom_width(self) -> float:
        return self.bottom_left.distance_to(self.bottom_right)

    @property
    def left_height(self) -> float:
        return self.top_left.distance_to(self.bottom_left)

    @property
    def right_height(self) -> float:
        return self.top_right.distance_to(self.bottom_right)

    @property
    def area(self) -> float:
        return polygon_area(self.as_array())

    def bounding_crop(self, max_width: int | None = None, max_height: int | None = None) -> CropArea:
        """Integer bounding rectangle of the quad, clipped to the image when sizes are given."""
        arr = self.as_array()
        x0 = math.floor(arr[:, 0].min())
        y0 = math.floor(arr[:, 1].min())
        x1 = math.ceil(arr[:, 0].max()) + 1
        y1 = math.ceil(arr[:, 1].max()) + 1
        if max_width is not None:
            x0, x1 = max(0, x0), min(max_width, x1)
        if max_height is not None:
            y0, y1 = max(0, y0), min(max_height, y1)
        return CropArea(x=x0, y=y0, width=max(0, x1 - x0), height=max(0, y1 - y0))

    def is_full_frame(self, width: int, height: int, tolerance: float = 0.5) -> bool:
        """True when the quad is the whole-image rectangle."""
        full = Quad.from_bounds(width, height).as_array()
        return bool(np.all(np.abs(self.as_array() - full) <= tolerance))


def _as_point(p: Point | Sequence[float]) -> Point:
    if isinstance(p, Point):
        return p
    return Point(float(p[0]), float(p[1]))


def order_points(points: Iterable[Point | Sequence[float]]) -> Quad:
    """Order four unordered points into [TL, TR, BR, BL].

    Top-left has the smallest x+y and bottom-right the largest; of the
    remaining two, the one with the larger x is top-right.

    Raises:
        ValueError: If not exactly four points are given
    """
    pts = [_as_point(p) for p in points]
    if len(pts) != 4:
        raise ValueError(f"order_points requires exactly 4 points, got {len(pts)}")

    by_sum = sorted(pts, key=lambda p: p.x + p.y)
    top_left, bottom_right = by_sum[0], by_sum[3]
    a, b = by_sum[1], by_sum[2]
    if a.x > b.x:
        top_right, bottom_left = a, b
    else:
        top_right, bottom_left = b, a

    return Quad(top_left, top_right, bottom_right, bottom_left)


def polygon_area(points: np.ndarray) -> float:
    """Absolute polygon area via the shoelace formula.

    Args:
        points: Nx2 array of vertices in traversal order

    Returns:
        Enclosed area in square pixels (0 for fewer than 3 points)
    """
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) < 3:
        return 0.0
    x = pts[:, 0]
    y = pts[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def polygon_perimeter(points: np.ndarray, closed: bool = True) -> float:
    """Length of the polyline through ``points``."""
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) < 2:
        return 0.0
    seg = np.diff(pts, axis=0)
    length = float(np.sum(np.hypot(seg[:, 0], seg[:, 1])))
    if closed:
        length += float(np.hypot(*(pts[0] - pts[-1])))
    return length
