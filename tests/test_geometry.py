"""Tests for geometry primitives and corner ordering."""

import itertools

import numpy as np
import pytest

from docscanner.services.geometry import (
    CropArea,
    Point,
    Quad,
    order_points,
    polygon_area,
    polygon_perimeter,
)


class TestOrderPoints:
    CORNERS = [(10, 20), (110, 25), (105, 220), (5, 210)]

    def test_every_permutation_gives_same_quad(self):
        expected = order_points(self.CORNERS)
        for perm in itertools.permutations(self.CORNERS):
            assert order_points(perm) == expected

    def test_roles(self):
        q = order_points(self.CORNERS)
        assert q.top_left == Point(10, 20)
        assert q.top_right == Point(110, 25)
        assert q.bottom_right == Point(105, 220)
        assert q.bottom_left == Point(5, 210)

    def test_accepts_points(self):
        q = order_points([Point(0, 0), Point(0, 5), Point(5, 5), Point(5, 0)])
        assert q.top_right == Point(5, 0)
        assert q.bottom_left == Point(0, 5)

    def test_wrong_count_raises(self):
        with pytest.raises(ValueError):
            order_points([(0, 0), (1, 1), (2, 2)])

    def test_from_points_is_ordered(self):
        assert Quad.from_points(reversed(self.CORNERS)) == order_points(self.CORNERS)


class TestQuad:
    def test_from_bounds(self):
        q = Quad.from_bounds(100, 50)
        assert q.top_left == Point(0, 0)
        assert q.bottom_right == Point(99, 49)

    def test_edge_lengths(self):
        q = Quad(Point(0, 0), Point(30, 0), Point(30, 40), Point(0, 40))
        assert q.top_width == 30
        assert q.bottom_width == 30
        assert q.left_height == 40
        assert q.right_height == 40
        assert q.area == pytest.approx(1200)

    def test_scaled(self):
        q = Quad(Point(1, 2), Point(3, 2), Point(3, 4), Point(1, 4)).scaled(2)
        assert q.top_left == Point(2, 4)
        assert q.bottom_right == Point(6, 8)

    def test_as_array_order(self):
        q = Quad.from_bounds(10, 10)
        np.testing.assert_array_equal(q.as_array(), [[0, 0], [9, 0], [9, 9], [0, 9]])

    def test_bounding_crop_clipped(self):
        q = Quad(Point(-5, 2.5), Point(50, 0), Point(60, 40), Point(0, 45))
        crop = q.bounding_crop(55, 42)
        assert crop == CropArea(x=0, y=0, width=55, height=42)

    def test_bounding_crop_unclipped(self):
        q = Quad(Point(10, 20), Point(19, 20), Point(19, 29), Point(10, 29))
        crop = q.bounding_crop()
        assert (crop.x, crop.y, crop.width, crop.height) == (10, 20, 10, 10)
        assert crop.area == 100

    def test_is_full_frame(self):
        assert Quad.from_bounds(64, 48).is_full_frame(64, 48)
        assert not Quad.from_bounds(64, 48).is_full_frame(65, 48)


class TestPolygonMeasures:
    def test_area_square(self):
        assert polygon_area(np.array([[0, 0], [4, 0], [4, 4], [0, 4]])) == pytest.approx(16)

    def test_area_orientation_independent(self):
        pts = np.array([[0, 0], [0, 4], [4, 4], [4, 0]])
        assert polygon_area(pts) == pytest.approx(16)

    def test_area_degenerate(self):
        assert polygon_area(np.array([[0, 0], [1, 1]])) == 0.0

    def test_perimeter(self):
        pts = np.array([[0, 0], [3, 0], [3, 4], [0, 4]])
        assert polygon_perimeter(pts) == pytest.approx(14)
        assert polygon_perimeter(pts, closed=False) == pytest.approx(10)

    def test_point_distance(self):
        assert Point(0, 0).distance_to(Point(3, 4)) == 5
