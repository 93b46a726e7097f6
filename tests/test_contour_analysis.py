"""Tests for contour tracing and polygon simplification."""

import numpy as np
import pytest

from docscanner.services.contour_analysis import (
    Contour,
    approximate_polygon,
    douglas_peucker,
    find_contours,
    find_document_quad,
    simplify_closed_polygon,
    trace_boundary,
)


def _outline(height, width, x0, y0, x1, y1):
    """1-px rectangle outline edge map."""
    edges = np.zeros((height, width), dtype=np.uint8)
    edges[y0, x0 : x1 + 1] = 255
    edges[y1, x0 : x1 + 1] = 255
    edges[y0 : y1 + 1, x0] = 255
    edges[y0 : y1 + 1, x1] = 255
    return edges


class TestTraceBoundary:
    def test_filled_square(self):
        mask = np.zeros((5, 5), dtype=bool)
        mask[1:4, 1:4] = True
        boundary = trace_boundary(mask)
        assert len(boundary) == 8
        expected = {(r, c) for r in range(1, 4) for c in range(1, 4)} - {(2, 2)}
        assert {tuple(p) for p in boundary.tolist()} == expected
        assert tuple(boundary[0]) == (1, 1)

    def test_single_pixel(self):
        mask = np.zeros((3, 3), dtype=bool)
        mask[1, 1] = True
        assert trace_boundary(mask).tolist() == [[1, 1]]

    def test_empty_mask(self):
        assert len(trace_boundary(np.zeros((4, 4), dtype=bool))) == 0

    def test_touching_border(self):
        mask = np.ones((2, 3), dtype=bool)
        assert len(trace_boundary(mask)) == 6


class TestFindContours:
    def test_sorted_by_area(self):
        edges = _outline(100, 100, 5, 5, 20, 20) | _outline(100, 100, 40, 40, 90, 90)
        contours = find_contours(edges)
        assert len(contours) == 2
        assert contours[0].area > contours[1].area
        assert contours[0].area == pytest.approx(50 * 50)

    def test_coordinates_are_xy(self):
        contours = find_contours(_outline(60, 100, 10, 5, 80, 40))
        pts = contours[0].points
        assert pts[:, 0].min() == 10 and pts[:, 0].max() == 80
        assert pts[:, 1].min() == 5 and pts[:, 1].max() == 40

    def test_min_bbox_area_skips_small(self):
        edges = _outline(100, 100, 5, 5, 10, 10) | _outline(100, 100, 40, 40, 90, 90)
        assert len(find_contours(edges, min_bbox_area=100)) == 1

    def test_no_edges(self):
        assert find_contours(np.zeros((10, 10), dtype=np.uint8)) == []


class TestDouglasPeucker:
    def test_collinear_collapses(self):
        pts = np.array([[i, 2 * i] for i in range(10)], dtype=float)
        out = douglas_peucker(pts, 0.5)
        assert out.tolist() == [[0, 0], [9, 18]]

    def test_keeps_corner(self):
        pts = np.array([[0, 0], [5, 0], [10, 0], [10, 5], [10, 10]], dtype=float)
        out = douglas_peucker(pts, 0.5)
        assert out.tolist() == [[0, 0], [10, 0], [10, 10]]

    def test_short_input(self):
        pts = np.array([[0, 0], [1, 1]], dtype=float)
        assert douglas_peucker(pts, 1.0).tolist() == pts.tolist()

    def test_closed_square(self):
        side = [[x, 0] for x in range(10)] + [[10, y] for y in range(10)]
        side += [[x, 10] for x in range(10, 0, -1)] + [[0, y] for y in range(10, 0, -1)]
        ring = simplify_closed_polygon(np.array(side, dtype=float), 0.5)
        assert len(ring) == 4
        assert {tuple(p) for p in ring.tolist()} == {(0, 0), (10, 0), (10, 10), (0, 10)}

    def test_chamfered_corner_not_anchored_at_ring_start(self):
        # Ring starts where the top edge leaves the cut-off top-left corner
        ring = [[x, 0] for x in range(6, 100)] + [[100, y] for y in range(100)]
        ring += [[x, 100] for x in range(100, 0, -1)] + [[0, y] for y in range(100, 6, -1)]
        ring += [[x, 6 - x] for x in range(0, 6)]
        points = np.array(ring, dtype=float)
        epsilon = 0.02 * 392

        out = simplify_closed_polygon(points, epsilon)

        assert len(out) == 4
        top_left = min(out.tolist(), key=lambda p: p[0] + p[1])
        assert top_left == [3, 3]

    def test_approximate_polygon_uses_perimeter(self):
        contour = find_contours(_outline(60, 60, 10, 10, 50, 50))[0]
        assert isinstance(contour, Contour)
        assert len(approximate_polygon(contour, 0.02)) == 4


class TestFindDocumentQuad:
    def test_rectangle(self):
        quad = find_document_quad(_outline(120, 100, 10, 10, 89, 69), min_area=100)
        assert quad is not None
        expected = [(10, 10), (89, 10), (89, 69), (10, 69)]
        for point, (ex, ey) in zip(quad.points, expected, strict=True):
            assert abs(point.x - ex) <= 1
            assert abs(point.y - ey) <= 1

    def test_area_too_small(self):
        assert find_document_quad(_outline(120, 100, 10, 10, 30, 30), min_area=5000) is None

    def test_triangle_rejected(self):
        edges = np.zeros((100, 100), dtype=np.uint8)
        for i in range(60):
            edges[20 + i, 20] = 255
            edges[79, 20 + i] = 255
            edges[20 + i, 20 + i] = 255
        assert find_document_quad(edges, min_area=100) is None
