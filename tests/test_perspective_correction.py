"""Tests for homography estimation and warping."""

import numpy as np
import pytest

from docscanner.services.geometry import Point, Quad
from docscanner.services.perspective_correction import (
    HomographyMatrix,
    estimate_homography,
    rectify,
    target_size,
    warp,
)
from docscanner.services.pixel_buffer import PixelBuffer
from docscanner.utils.exceptions import SingularTransform


def _gradient_buffer(width=40, height=30):
    data = np.zeros((height, width, 4), dtype=np.uint8)
    data[:, :, 0] = np.arange(width, dtype=np.uint8)[np.newaxis, :] * 5
    data[:, :, 1] = np.arange(height, dtype=np.uint8)[:, np.newaxis] * 7
    data[:, :, 2] = 100
    data[:, :, 3] = 255
    return PixelBuffer(data)


class TestHomographyMatrix:
    def test_identity(self):
        h = HomographyMatrix.identity()
        assert h.determinant == 1.0
        assert h.apply(3.5, -2.0) == (3.5, -2.0)

    def test_inverse_roundtrip(self):
        h = HomographyMatrix((2.0, 0.1, 5.0, 0.0, 1.5, -3.0, 0.001, 0.0, 1.0))
        product = h.as_array() @ h.inverse().as_array()
        np.testing.assert_allclose(product, np.eye(3), atol=1e-9)

    def test_singular_inverse(self):
        with pytest.raises(SingularTransform) as exc_info:
            HomographyMatrix((1, 0, 0, 0, 0, 0, 0, 0, 1)).inverse()
        assert exc_info.value.determinant == 0

    def test_needs_nine_values(self):
        with pytest.raises(ValueError):
            HomographyMatrix((1.0, 0.0, 0.0))

    def test_from_array(self):
        h = HomographyMatrix.from_array(np.eye(3) * 2)
        assert h.values == (2.0, 0.0, 0.0, 0.0, 2.0, 0.0, 0.0, 0.0, 2.0)


class TestEstimateHomography:
    def test_same_quad_is_identity(self):
        quad = Quad(Point(10, 10), Point(90, 12), Point(95, 80), Point(5, 75))
        h = estimate_homography(quad, quad)
        np.testing.assert_allclose(h.as_array(), np.eye(3), atol=1e-9)

    def test_maps_corners(self):
        src = Quad(Point(12, 8), Point(180, 20), Point(170, 230), Point(20, 210))
        dst = Quad.from_bounds(150, 200)
        h = estimate_homography(src, dst)
        for p, q in zip(src.points, dst.points, strict=True):
            x, y = h.apply(p.x, p.y)
            assert x == pytest.approx(q.x, abs=1e-6)
            assert y == pytest.approx(q.y, abs=1e-6)
        assert h.values[8] == 1.0

    def test_degenerate_quad(self):
        p = Point(5, 5)
        with pytest.raises(SingularTransform):
            estimate_homography(Quad(p, p, p, p), Quad.from_bounds(10, 10))


class TestWarp:
    def test_identity_reproduces_image(self):
        buf = _gradient_buffer()
        out = warp(buf, HomographyMatrix.identity(), buf.width, buf.height)
        np.testing.assert_array_equal(out.data, buf.data)

    def test_singular_matrix_raises(self):
        with pytest.raises(SingularTransform):
            warp(_gradient_buffer(), HomographyMatrix((1, 0, 0, 0, 0, 0, 0, 0, 1)), 10, 10)

    def test_out_of_bounds_filled_white(self):
        shift = HomographyMatrix((1, 0, 10000, 0, 1, 0, 0, 0, 1))
        out = warp(_gradient_buffer(), shift, 50, 40)
        assert np.mean(out.data == 255) >= 0.99

    def test_integer_translation(self):
        buf = _gradient_buffer()
        shift = HomographyMatrix((1, 0, -5, 0, 1, -3, 0, 0, 1))
        out = warp(buf, shift, 20, 20)
        np.testing.assert_array_equal(out.data, buf.data[3:23, 5:25])

    def test_output_size(self):
        out = warp(_gradient_buffer(), HomographyMatrix.identity(), 300, 3)
        assert (out.width, out.height) == (300, 3)
        # Right part lies outside the 40 px source
        assert np.all(out.data[:, 100:] == 255)

    def test_large_output_is_chunked(self):
        buf = PixelBuffer.blank(10, 600, value=40)
        out = warp(buf, HomographyMatrix.identity(), 10, 600)
        np.testing.assert_array_equal(out.data, buf.data)


class TestRectify:
    def test_target_size(self):
        quad = Quad(Point(0, 0), Point(100, 0), Point(100, 50), Point(0, 50))
        assert target_size(quad) == (100, 50)

    def test_target_size_trapezoid(self):
        quad = Quad(Point(10, 0), Point(90, 0), Point(100, 60), Point(0, 60))
        width, height = target_size(quad)
        assert width == 90
        assert height == round(np.hypot(10, 60))

    def test_target_size_minimum(self):
        p = Point(3, 3)
        assert target_size(Quad(p, p, p, p)) == (1, 1)

    def test_rectify_axis_aligned_crop(self):
        buf = _gradient_buffer()
        quad = Quad(Point(5, 4), Point(25, 4), Point(25, 19), Point(5, 19))
        out = rectify(buf, quad)
        assert (out.width, out.height) == (20, 15)
        # Corners land on the source corners
        np.testing.assert_array_equal(out.data[0, 0], buf.data[4, 5])
        np.testing.assert_array_equal(out.data[-1, -1], buf.data[19, 25])

    def test_rectify_skewed_sheet(self):
        buf = PixelBuffer.blank(200, 200, value=0)
        corners = np.array([[40, 30], [170, 45], [160, 170], [30, 160]])
        # Fill the quadrilateral with white
        yy, xx = np.mgrid[0:200, 0:200]
        inside = np.ones((200, 200), dtype=bool)
        for i in range(4):
            (x0, y0), (x1, y1) = corners[i], corners[(i + 1) % 4]
            inside &= (x1 - x0) * (yy - y0) - (y1 - y0) * (xx - x0) >= 0
        buf.data[inside, :3] = 255
        quad = Quad.from_points(corners.tolist())
        out = rectify(buf, quad)
        interior = out.data[5:-5, 5:-5, :3]
        assert interior.mean() > 250
