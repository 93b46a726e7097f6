"""Contour extraction and polygon simplification on binary edge maps.

Connected groups of edge pixels are labelled (8-connectivity), their outer
boundary is traced in order with Moore-neighbour tracing, and the traced
polygon is reduced with Douglas-Peucker. The largest contour that reduces
to exactly four vertices is taken as the document boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy import ndimage

from docscanner.constants import DOUGLAS_PEUCKER_EPSILON_RATIO
from docscanner.services.geometry import Quad, order_points, polygon_area, polygon_perimeter

logger = logging.getLogger(__name__)

# Clockwise ring (screen coordinates, y down) starting west: (dy, dx)
_MOORE_RING = ((0, -1), (-1, -1), (-1, 0), (-1, 1), (0, 1), (1, 1), (1, 0), (1, -1))
_RING_INDEX = {offset: i for i, offset in enumerate(_MOORE_RING)}


@dataclass(frozen=True)
class Contour:
    """Ordered boundary of one connected edge group.

    Attributes:
        points: Nx2 float64 array of (x, y) boundary points in traversal order
        area: Shoelace area of the closed boundary
    """

    points: np.ndarray
    area: float

    @property
    def perimeter(self) -> float:
        return polygon_perimeter(self.points)

    def __len__(self) -> int:
        return len(self.points)


def trace_boundary(mask: np.ndarray) -> np.ndarray:
    """Trace the outer boundary of the single component in ``mask``.

    Moore-neighbour tracing starting at the first foreground pixel in raster
    order; stops when the start pixel is re-entered in the same direction.

    Args:
        mask: 2D bool array containing one 8-connected component

    Returns:
        Nx2 int array of (row, col) boundary pixels
    """
    padded = np.pad(mask.astype(bool), 1, mode="constant")
    flat_index = int(np.argmax(padded))
    if not padded.flat[flat_index]:
        return np.empty((0, 2), dtype=np.int64)

    start = divmod(flat_index, padded.shape[1])
    boundary = [start]
    current = start
    backtrack = 0  # west of the raster-first pixel is always background
    second: tuple[int, int] | None = None
    max_steps = 4 * int(padded.sum()) + 16

    for _ in range(max_steps):
        found = None
        for i in range(1, 9):
            d = (backtrack + i) % 8
            dy, dx = _MOORE_RING[d]
            candidate = (current[0] + dy, current[1] + dx)
            if padded[candidate]:
                py, px = _MOORE_RING[(d - 1) % 8]
                prev_cell = (current[0] + py, current[1] + px)
                backtrack = _RING_INDEX[(prev_cell[0] - candidate[0], prev_cell[1] - candidate[1])]
                found = candidate
                break

        if found is None:
            break  # isolated pixel
        if current == start and second is not None and found == second:
            break
        if second is None:
            second = found
        boundary.append(found)
        current = found

    if len(boundary) > 1 and boundary[-1] == start:
        boundary.pop()

    return np.array(boundary, dtype=np.int64) - 1


def find_contours(edges: np.ndarray, min_bbox_area: float = 0.0) -> list[Contour]:
    """Extract contours from a binary edge map, largest area first.

    Args:
        edges: 2D edge map, non-zero on edges
        min_bbox_area: Skip components whose bounding box is smaller than this;
            no polygon inside such a box can reach the area

    Returns:
        Contours sorted by area descending
    """
    binary = np.asarray(edges) > 0
    if not binary.any():
        return []

    labels, count = ndimage.label(binary, structure=np.ones((3, 3), dtype=bool))
    contours: list[Contour] = []

    for label_id, bbox in enumerate(ndimage.find_objects(labels), start=1):
        if bbox is None:
            continue
        rows, cols = bbox
        box_area = (rows.stop - rows.start) * (cols.stop - cols.start)
        if box_area < min_bbox_area:
            continue

        component = labels[bbox] == label_id
        traced = trace_boundary(component)
        if len(traced) == 0:
            continue

        points = np.empty((len(traced), 2), dtype=np.float64)
        points[:, 0] = traced[:, 1] + cols.start
        points[:, 1] = traced[:, 0] + rows.start
        contours.append(Contour(points=points, area=polygon_area(points)))

    contours.sort(key=lambda c: c.area, reverse=True)
    logger.debug(f"Traced {len(contours)} of {count} edge components")
    return contours


def _point_line_distances(points: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Perpendicular distance of each point to the line through a and b."""
    ab = b - a
    length = float(np.hypot(ab[0], ab[1]))
    if length == 0.0:
        diff = points - a
        return np.hypot(diff[:, 0], diff[:, 1])
    cross = ab[0] * (points[:, 1] - a[1]) - ab[1] * (points[:, 0] - a[0])
    return np.abs(cross) / length


def douglas_peucker(points: np.ndarray, epsilon: float) -> np.ndarray:
    """Simplify an open polyline, keeping both endpoints.

    Uses an explicit stack of index ranges instead of recursion.
    """
    pts = np.asarray(points, dtype=np.float64)
    n = len(pts)
    if n < 3:
        return pts.copy()

    keep = np.zeros(n, dtype=bool)
    keep[0] = keep[-1] = True
    stack = [(0, n - 1)]

    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        distances = _point_line_distances(pts[first + 1 : last], pts[first], pts[last])
        i = int(np.argmax(distances))
        if distances[i] > epsilon:
            split = first + 1 + i
            keep[split] = True
            stack.append((first, split))
            stack.append((split, last))

    return pts[keep]


def _corner_anchor(pts: np.ndarray) -> int:
    """Index of the ring point nearest the top-left extreme.

    Minimises x + y; on a chamfered corner the tied points form a run and
    the middle one is taken.
    """
    sums = pts[:, 0] + pts[:, 1]
    tied = np.flatnonzero(sums <= sums.min() + 1e-9)
    if len(tied) == 1:
        return int(tied[0])
    order = np.argsort(pts[tied, 0], kind="stable")
    return int(tied[order[len(order) // 2]])


def simplify_closed_polygon(points: np.ndarray, epsilon: float) -> np.ndarray:
    """Douglas-Peucker for a closed boundary.

    The ring is rotated to start at its top-left extreme, then split at the
    point farthest from it; both halves are simplified independently and
    joined. The start point is dropped afterwards if it ends up collinear
    with its neighbours.
    """
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) < 3:
        return pts.copy()

    pts = np.roll(pts, -_corner_anchor(pts), axis=0)
    distances = np.hypot(pts[:, 0] - pts[0, 0], pts[:, 1] - pts[0, 1])
    far = int(np.argmax(distances))
    if far == 0:
        return pts[:1].copy()

    first_half = douglas_peucker(pts[: far + 1], epsilon)
    second_half = douglas_peucker(np.vstack([pts[far:], pts[:1]]), epsilon)
    ring = np.vstack([first_half[:-1], second_half[:-1]])

    if len(ring) > 3:
        d = _point_line_distances(ring[:1], ring[-1], ring[1])[0]
        if d <= epsilon:
            ring = ring[1:]
    return ring


def approximate_polygon(contour: Contour, epsilon_ratio: float = DOUGLAS_PEUCKER_EPSILON_RATIO) -> np.ndarray:
    """Simplify a contour with a tolerance proportional to its perimeter."""
    epsilon = epsilon_ratio * contour.perimeter
    return simplify_closed_polygon(contour.points, epsilon)


def find_document_quad(
    edges: np.ndarray,
    min_area: float,
    epsilon_ratio: float = DOUGLAS_PEUCKER_EPSILON_RATIO,
) -> Quad | None:
    """Accept the largest contour that simplifies to exactly four vertices.

    Args:
        edges: Binary edge map
        min_area: Minimum contour area in square pixels
        epsilon_ratio: Douglas-Peucker tolerance as a fraction of the perimeter

    Returns:
        Ordered quad, or None when no contour qualifies
    """
    for contour in find_contours(edges, min_bbox_area=min_area):
        if contour.area < min_area:
            break  # sorted by area, nothing further can qualify
        polygon = approximate_polygon(contour, epsilon_ratio)
        if len(polygon) == 4:
            logger.debug(
                f"Accepted contour: area={contour.area:.0f}, {len(contour)} boundary points"
            )
            return order_points(polygon)
        logger.debug(f"Contour area={contour.area:.0f} simplified to {len(polygon)} vertices")

    return None
