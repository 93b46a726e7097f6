"""
Perspective correction for photographed documents.

Estimates the homography that maps the detected document quadrilateral onto
an upright rectangle and resamples the photo through it:

1. estimate_homography: direct linear transform, solved with Gaussian
   elimination and partial pivoting
2. warp: inverse-maps every destination pixel through the inverted matrix
   and samples the source bilinearly; pixels that land outside the source
   are filled white
3. rectify: sizes the output from the quad's edge lengths so the page keeps
   its true aspect ratio
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from docscanner.constants import MAX_CHANNEL_VALUE, SINGULAR_EPSILON, WARP_ROWS_PER_CHUNK
from docscanner.services.geometry import Quad
from docscanner.services.pixel_buffer import PixelBuffer
from docscanner.utils.exceptions import SingularTransform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HomographyMatrix:
    """3x3 projective transform stored row-major as h11..h33."""

    values: tuple[float, float, float, float, float, float, float, float, float]

    def __post_init__(self) -> None:
        if len(self.values) != 9:
            raise ValueError(f"Homography needs 9 values, got {len(self.values)}")

    @classmethod
    def identity(cls) -> HomographyMatrix:
        return cls((1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0))

    @classmethod
    def from_array(cls, matrix: np.ndarray) -> HomographyMatrix:
        flat = np.asarray(matrix, dtype=np.float64).reshape(-1)
        return cls(tuple(float(v) for v in flat))

    def as_array(self) -> np.ndarray:
        return np.array(self.values, dtype=np.float64).reshape(3, 3)

    @property
    def determinant(self) -> float:
        a, b, c, d, e, f, g, h, i = self.values
        return a * (e * i - f * h) - b * (d * i - f * g) + c * (d * h - e * g)

    def inverse(self) -> HomographyMatrix:
        """Analytic inverse via the adjugate.

        Raises:
            SingularTransform: If |det| is below the singularity tolerance
        """
        det = self.determinant
        if abs(det) < SINGULAR_EPSILON:
            raise SingularTransform("singular matrix", determinant=det)

        a, b, c, d, e, f, g, h, i = self.values
        adjugate = (
            e * i - f * h,
            c * h - b * i,
            b * f - c * e,
            f * g - d * i,
            a * i - c * g,
            c * d - a * f,
            d * h - e * g,
            b * g - a * h,
            a * e - b * d,
        )
        return HomographyMatrix(tuple(v / det for v in adjugate))

    def apply(self, x: float, y: float) -> tuple[float, float]:
        """Map a single point; returns (inf, inf) when it projects to infinity."""
        a, b, c, d, e, f, g, h, i = self.values
        w = g * x + h * y + i
        if w == 0:
            return float("inf"), float("inf")
        return (a * x + b * y + c) / w, (d * x + e * y + f) / w


def _solve_linear_system(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Gaussian elimination with partial pivoting.

    Raises:
        SingularTransform: If no pivot of usable magnitude exists for a column
    """
    n = len(b)
    aug = np.hstack([a.astype(np.float64), b.astype(np.float64).reshape(-1, 1)])

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(aug[col:, col])))
        pivot = aug[pivot_row, col]
        if abs(pivot) < SINGULAR_EPSILON:
            raise SingularTransform(f"no usable pivot in column {col}")
        if pivot_row != col:
            aug[[col, pivot_row]] = aug[[pivot_row, col]]

        factors = aug[col + 1 :, col] / aug[col, col]
        aug[col + 1 :, col:] -= factors[:, np.newaxis] * aug[col, col:]

    solution = np.zeros(n, dtype=np.float64)
    for row in range(n - 1, -1, -1):
        solution[row] = (aug[row, n] - np.dot(aug[row, row + 1 : n], solution[row + 1 :])) / aug[row, row]
    return solution


def estimate_homography(src: Quad, dst: Quad) -> HomographyMatrix:
    """Homography mapping the corners of ``src`` onto those of ``dst``.

    Builds the 8x8 system (two equations per corner correspondence) and
    fixes h33 = 1.

    Raises:
        SingularTransform: If the corners are degenerate (e.g. three collinear)
    """
    a = np.zeros((8, 8), dtype=np.float64)
    b = np.zeros(8, dtype=np.float64)

    for k, (p, q) in enumerate(zip(src.points, dst.points, strict=True)):
        x, y, u, v = p.x, p.y, q.x, q.y
        a[2 * k] = [x, y, 1.0, 0.0, 0.0, 0.0, -u * x, -u * y]
        b[2 * k] = u
        a[2 * k + 1] = [0.0, 0.0, 0.0, x, y, 1.0, -v * x, -v * y]
        b[2 * k + 1] = v

    h = _solve_linear_system(a, b)
    return HomographyMatrix((*(float(v) for v in h), 1.0))


def _bilinear_sample(data: np.ndarray, sx: np.ndarray, sy: np.ndarray) -> np.ndarray:
    """Sample ``data`` at in-bounds float coordinates from its 4 nearest pixels."""
    h, w = data.shape[:2]
    x0 = np.floor(sx).astype(np.intp)
    y0 = np.floor(sy).astype(np.intp)
    x1 = np.minimum(x0 + 1, w - 1)
    y1 = np.minimum(y0 + 1, h - 1)
    fx = (sx - x0)[:, np.newaxis]
    fy = (sy - y0)[:, np.newaxis]

    top = data[y0, x0].astype(np.float64) * (1 - fx) + data[y0, x1].astype(np.float64) * fx
    bottom = data[y1, x0].astype(np.float64) * (1 - fx) + data[y1, x1].astype(np.float64) * fx
    values = top * (1 - fy) + bottom * fy
    return np.clip(np.floor(values + 0.5), 0, MAX_CHANNEL_VALUE).astype(np.uint8)


def warp(buf: PixelBuffer, matrix: HomographyMatrix, out_w: int, out_h: int) -> PixelBuffer:
    """Resample ``buf`` into an ``out_w`` x ``out_h`` buffer through ``matrix``.

    ``matrix`` maps source to destination; each destination pixel is mapped
    back through its inverse. Destination pixels whose source position falls
    outside [0, w-1] x [0, h-1] are white.

    Raises:
        SingularTransform: If |det(matrix)| < 1e-10
    """
    det = matrix.determinant
    if abs(det) < SINGULAR_EPSILON:
        raise SingularTransform("singular matrix", determinant=det)
    inv = matrix.inverse().as_array()

    out_w = max(0, int(out_w))
    out_h = max(0, int(out_h))
    channels = buf.channels
    out = np.full((out_h, out_w, channels), MAX_CHANNEL_VALUE, dtype=np.uint8)
    if out_w == 0 or out_h == 0 or buf.is_empty:
        return PixelBuffer(out)

    src = buf.data
    max_x = float(buf.width - 1)
    max_y = float(buf.height - 1)
    xs = np.arange(out_w, dtype=np.float64)

    for row_start in range(0, out_h, WARP_ROWS_PER_CHUNK):
        row_end = min(out_h, row_start + WARP_ROWS_PER_CHUNK)
        ys = np.arange(row_start, row_end, dtype=np.float64)
        dx, dy = np.meshgrid(xs, ys)
        dx = dx.ravel()
        dy = dy.ravel()

        with np.errstate(divide="ignore", invalid="ignore"):
            denom = inv[2, 0] * dx + inv[2, 1] * dy + inv[2, 2]
            sx = (inv[0, 0] * dx + inv[0, 1] * dy + inv[0, 2]) / denom
            sy = (inv[1, 0] * dx + inv[1, 1] * dy + inv[1, 2]) / denom

        inside = np.isfinite(sx) & np.isfinite(sy) & (sx >= 0) & (sx <= max_x) & (sy >= 0) & (sy <= max_y)
        chunk = out[row_start:row_end].reshape(-1, channels)
        if inside.any():
            chunk[inside] = _bilinear_sample(src, sx[inside], sy[inside])
        out[row_start:row_end] = chunk.reshape(row_end - row_start, out_w, channels)

    return PixelBuffer(out)


def target_size(quad: Quad) -> tuple[int, int]:
    """Output (width, height) from the mean opposite edge lengths, at least 1x1."""
    width = max(1, round((quad.top_width + quad.bottom_width) / 2))
    height = max(1, round((quad.left_height + quad.right_height) / 2))
    return width, height


def rectify(buf: PixelBuffer, quad: Quad) -> PixelBuffer:
    """Warp the region inside ``quad`` onto an upright rectangle.

    The rectangle keeps the photographed page's aspect ratio instead of
    forcing a paper size.

    Raises:
        SingularTransform: If the quad is degenerate
    """
    width, height = target_size(quad)
    matrix = estimate_homography(quad, Quad.from_bounds(width, height))
    result = warp(buf, matrix, width, height)
    logger.debug(f"Rectified {buf.width}x{buf.height} -> {width}x{height}")
    return result
