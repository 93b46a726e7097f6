"""Canny edge detection over luma planes.

Each stage is a pure function over float32 2D arrays so it can be tested in
isolation: gaussian_blur -> sobel_gradients -> non_max_suppression ->
double_threshold -> hysteresis. ``canny`` runs the whole chain and returns a
binary edge map (255 = edge).
"""

import logging
from collections import deque

import numpy as np
from scipy import ndimage

from docscanner.constants import CANNY_HIGH_RATIO, CANNY_LOW_RATIO, EDGE_STRONG, EDGE_WEAK

logger = logging.getLogger(__name__)

_GAUSS_1D = np.array([1.0, 4.0, 6.0, 4.0, 1.0]) / 16.0
GAUSSIAN_KERNEL_5X5 = np.outer(_GAUSS_1D, _GAUSS_1D)

# 8-neighbourhood offsets (dy, dx)
_NEIGHBOURS_8 = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))


def gaussian_blur(plane: np.ndarray) -> np.ndarray:
    """5x5 Gaussian blur (weights sum to 1) with clamped borders."""
    plane = np.asarray(plane, dtype=np.float32)
    if plane.size == 0:
        return plane.copy()
    return ndimage.correlate(plane, GAUSSIAN_KERNEL_5X5.astype(np.float32), mode="nearest")


def sobel_gradients(plane: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Sobel gradient magnitude and direction for every interior pixel.

    Border pixels have zero magnitude.

    Returns:
        (magnitude, direction) where direction = atan2(gy, gx) in radians
    """
    p = np.asarray(plane, dtype=np.float32)
    h, w = p.shape
    gx = np.zeros((h, w), dtype=np.float32)
    gy = np.zeros((h, w), dtype=np.float32)

    if h >= 3 and w >= 3:
        gx[1:-1, 1:-1] = (p[:-2, 2:] + 2 * p[1:-1, 2:] + p[2:, 2:]) - (
            p[:-2, :-2] + 2 * p[1:-1, :-2] + p[2:, :-2]
        )
        gy[1:-1, 1:-1] = (p[2:, :-2] + 2 * p[2:, 1:-1] + p[2:, 2:]) - (
            p[:-2, :-2] + 2 * p[:-2, 1:-1] + p[:-2, 2:]
        )

    magnitude = np.hypot(gx, gy)
    direction = np.arctan2(gy, gx)
    return magnitude, direction


def _shifted(padded: np.ndarray, dy: int, dx: int, h: int, w: int) -> np.ndarray:
    return padded[1 + dy : 1 + dy + h, 1 + dx : 1 + dx + w]


def non_max_suppression(magnitude: np.ndarray, direction: np.ndarray) -> np.ndarray:
    """Thin edges to local maxima across the edge.

    The gradient direction is quantised to 0, 45, 90 or 135 degrees and a
    pixel survives only if its magnitude is >= both neighbours along that
    direction.
    """
    h, w = magnitude.shape
    if magnitude.size == 0:
        return magnitude.copy()

    angle = np.degrees(direction) % 180.0
    padded = np.pad(magnitude, 1, mode="constant")

    bins = (
        ((angle < 22.5) | (angle >= 157.5), (0, -1), (0, 1)),
        ((angle >= 22.5) & (angle < 67.5), (-1, -1), (1, 1)),
        ((angle >= 67.5) & (angle < 112.5), (-1, 0), (1, 0)),
        ((angle >= 112.5) & (angle < 157.5), (-1, 1), (1, -1)),
    )

    keep = np.zeros((h, w), dtype=bool)
    for selector, (ay, ax), (by, bx) in bins:
        n1 = _shifted(padded, ay, ax, h, w)
        n2 = _shifted(padded, by, bx, h, w)
        keep |= selector & (magnitude >= n1) & (magnitude >= n2)

    return np.where(keep & (magnitude > 0), magnitude, 0).astype(np.float32)


def double_threshold(
    magnitude: np.ndarray,
    high_ratio: float = CANNY_HIGH_RATIO,
    low_ratio: float = CANNY_LOW_RATIO,
) -> np.ndarray:
    """Classify pixels as strong (255), weak (128) or none (0).

    Args:
        magnitude: Suppressed gradient magnitudes
        high_ratio: High threshold as a fraction of the max magnitude
        low_ratio: Low threshold as a fraction of the high threshold
    """
    out = np.zeros(magnitude.shape, dtype=np.uint8)
    if magnitude.size == 0:
        return out
    peak = float(magnitude.max())
    if peak <= 0:
        return out

    high = peak * high_ratio
    low = high * low_ratio
    out[magnitude >= low] = EDGE_WEAK
    out[magnitude >= high] = EDGE_STRONG
    logger.debug(f"Double threshold: max={peak:.1f}, high={high:.1f}, low={low:.1f}")
    return out


def hysteresis(classified: np.ndarray) -> np.ndarray:
    """Promote weak pixels 8-connected to strong ones; drop the rest.

    Breadth-first promotion from an explicit work-list, so memory use is
    bounded by the number of edge pixels rather than the call stack.
    """
    edges = classified.copy()
    h, w = edges.shape
    if edges.size == 0:
        return edges

    weak = edges == EDGE_WEAK
    strong = edges == EDGE_STRONG
    if weak.any() and strong.any():
        near_weak = ndimage.binary_dilation(weak, structure=np.ones((3, 3), dtype=bool))
        seeds = np.argwhere(strong & near_weak)
        queue = deque((int(y), int(x)) for y, x in seeds)

        while queue:
            y, x = queue.popleft()
            for dy, dx in _NEIGHBOURS_8:
                ny, nx = y + dy, x + dx
                if 0 <= ny < h and 0 <= nx < w and edges[ny, nx] == EDGE_WEAK:
                    edges[ny, nx] = EDGE_STRONG
                    queue.append((ny, nx))

    edges[edges != EDGE_STRONG] = 0
    return edges


def canny(
    plane: np.ndarray,
    high_ratio: float = CANNY_HIGH_RATIO,
    low_ratio: float = CANNY_LOW_RATIO,
) -> np.ndarray:
    """Full Canny chain on a luma plane.

    Returns:
        uint8 edge map, 255 on edges and 0 elsewhere
    """
    blurred = gaussian_blur(plane)
    magnitude, direction = sobel_gradients(blurred)
    thin = non_max_suppression(magnitude, direction)
    classified = double_threshold(thin, high_ratio, low_ratio)
    edges = hysteresis(classified)
    logger.debug(f"Canny: {int(np.count_nonzero(edges))} edge pixels")
    return edges
