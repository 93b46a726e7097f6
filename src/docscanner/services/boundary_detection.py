"""Document boundary detection.

One detector capability with several strategies, selected by a
``DetectionStrategy`` tag and dispatched through a lookup table:

- CONTOUR: Canny edges, contour tracing, Douglas-Peucker to four vertices
- HOUGH: Canny edges, Hough line voting, outermost line intersections
- BRIGHTNESS_SCAN: corner-inward brightness scan for light paper
- HEURISTIC_FAST: coarse brightness segmentation for live preview only
- AUTO: CONTOUR, then HOUGH, then BRIGHTNESS_SCAN

Detection may run on a downscaled copy; the resulting quad is always
expressed in the coordinates of the buffer that was passed in.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property

import numpy as np

from docscanner.constants import (
    CANNY_HIGH_RATIO,
    CANNY_LOW_RATIO,
    DETECTION_MAX_SIDE_PX,
    DOUGLAS_PEUCKER_EPSILON_RATIO,
    MIN_QUAD_AREA_RATIO,
)
from docscanner.services.contour_analysis import find_document_quad
from docscanner.services.edge_detection import canny
from docscanner.services.fast_detection import detect_brightness_scan, detect_heuristic_fast
from docscanner.services.geometry import Quad
from docscanner.services.line_detection import detect_quad_by_lines
from docscanner.services.pixel_buffer import PixelBuffer
from docscanner.utils.exceptions import BoundaryNotFound

logger = logging.getLogger(__name__)


class DetectionStrategy(Enum):
    """Boundary detection variants."""

    AUTO = "auto"
    CONTOUR = "contour"
    HOUGH = "hough"
    BRIGHTNESS_SCAN = "brightness_scan"
    HEURISTIC_FAST = "heuristic_fast"

    @property
    def final_output_allowed(self) -> bool:
        """Whether quads from this strategy may drive the final page warp."""
        return self is not DetectionStrategy.HEURISTIC_FAST

    @classmethod
    def from_name(cls, name: str) -> DetectionStrategy:
        """Parse a strategy from its value, case-insensitive ('heuristic-fast' also accepted)."""
        normalized = name.strip().lower().replace("-", "_")
        for strategy in cls:
            if strategy.value == normalized:
                return strategy
        valid = ", ".join(s.value for s in cls)
        raise ValueError(f"Unknown detection strategy '{name}' (expected one of: {valid})")


AUTO_CASCADE: tuple[DetectionStrategy, ...] = (
    DetectionStrategy.CONTOUR,
    DetectionStrategy.HOUGH,
    DetectionStrategy.BRIGHTNESS_SCAN,
)


@dataclass(frozen=True)
class DetectionParams:
    """Tunable detection parameters.

    Attributes:
        min_area_ratio: Minimum contour area as a fraction of the image
        canny_high_ratio: High threshold as a fraction of the max gradient
        canny_low_ratio: Low threshold as a fraction of the high threshold
        epsilon_ratio: Douglas-Peucker tolerance as a fraction of the perimeter
        max_side: Long edge of the detection copy; None detects at full size
    """

    min_area_ratio: float = MIN_QUAD_AREA_RATIO
    canny_high_ratio: float = CANNY_HIGH_RATIO
    canny_low_ratio: float = CANNY_LOW_RATIO
    epsilon_ratio: float = DOUGLAS_PEUCKER_EPSILON_RATIO
    max_side: int | None = DETECTION_MAX_SIDE_PX


@dataclass(frozen=True)
class DetectionResult:
    """A located boundary and how it was found."""

    quad: Quad
    strategy: DetectionStrategy
    duration_ms: float = 0.0


class _DetectionInput:
    """Working copy shared by the strategies of one detection run.

    The edge map is computed on first use so that the contour and Hough
    strategies share a single Canny pass.
    """

    def __init__(self, buf: PixelBuffer, params: DetectionParams) -> None:
        self.params = params
        if params.max_side:
            self.buf, self.scale = buf.fit_within(params.max_side)
        else:
            self.buf, self.scale = buf, 1.0

    @cached_property
    def edges(self) -> np.ndarray:
        return canny(self.buf.luminance(), self.params.canny_high_ratio, self.params.canny_low_ratio)

    @property
    def image_area(self) -> float:
        return float(self.buf.width * self.buf.height)


def _detect_contour(work: _DetectionInput) -> Quad | None:
    min_area = work.params.min_area_ratio * work.image_area
    return find_document_quad(work.edges, min_area, work.params.epsilon_ratio)


def _detect_hough(work: _DetectionInput) -> Quad | None:
    return detect_quad_by_lines(work.edges)


def _detect_brightness_scan(work: _DetectionInput) -> Quad | None:
    return detect_brightness_scan(work.buf)


def _detect_heuristic_fast(work: _DetectionInput) -> Quad | None:
    return detect_heuristic_fast(work.buf, min_area_ratio=work.params.min_area_ratio)


_STRATEGY_HANDLERS: dict[DetectionStrategy, Callable[[_DetectionInput], Quad | None]] = {
    DetectionStrategy.CONTOUR: _detect_contour,
    DetectionStrategy.HOUGH: _detect_hough,
    DetectionStrategy.BRIGHTNESS_SCAN: _detect_brightness_scan,
    DetectionStrategy.HEURISTIC_FAST: _detect_heuristic_fast,
}


@dataclass
class BoundaryDetector:
    """Locates the document quadrilateral in a photo.

    Attributes:
        strategy: Which variant to run; AUTO tries the cascade in order
        params: Detection thresholds and downsampling
    """

    strategy: DetectionStrategy = DetectionStrategy.AUTO
    params: DetectionParams = field(default_factory=DetectionParams)

    def strategies(self) -> tuple[DetectionStrategy, ...]:
        if self.strategy is DetectionStrategy.AUTO:
            return AUTO_CASCADE
        return (self.strategy,)

    def detect(self, buf: PixelBuffer) -> DetectionResult:
        """Run the configured strategies until one finds a quad.

        Args:
            buf: Source buffer (not modified)

        Returns:
            DetectionResult with the quad in ``buf`` coordinates

        Raises:
            BoundaryNotFound: If every strategy tried came up empty
        """
        tried = [s.value for s in self.strategies()]
        if buf.is_empty:
            raise BoundaryNotFound(tried)

        start = time.perf_counter()
        work = _DetectionInput(buf, self.params)
        if work.scale != 1.0:
            logger.debug(
                f"Detecting on {work.buf.width}x{work.buf.height} copy of {buf.width}x{buf.height}"
            )

        for strategy in self.strategies():
            quad = _STRATEGY_HANDLERS[strategy](work)
            if quad is None:
                logger.debug(f"Strategy {strategy.value}: no boundary")
                continue

            if work.scale != 1.0:
                quad = quad.scaled(work.scale)
            elapsed = (time.perf_counter() - start) * 1000
            logger.debug(
                f"Strategy {strategy.value}: "
                f"TL=({quad.top_left.x:.0f}, {quad.top_left.y:.0f}), "
                f"TR=({quad.top_right.x:.0f}, {quad.top_right.y:.0f}), "
                f"BR=({quad.bottom_right.x:.0f}, {quad.bottom_right.y:.0f}), "
                f"BL=({quad.bottom_left.x:.0f}, {quad.bottom_left.y:.0f}) "
                f"in {elapsed:.0f}ms"
            )
            return DetectionResult(quad=quad, strategy=strategy, duration_ms=elapsed)

        raise BoundaryNotFound(tried)


def detect_boundary(
    buf: PixelBuffer,
    strategy: DetectionStrategy = DetectionStrategy.AUTO,
    params: DetectionParams | None = None,
) -> Quad:
    """Locate the document quadrilateral in ``buf``.

    Raises:
        BoundaryNotFound: If no strategy located a quad
    """
    detector = BoundaryDetector(strategy=strategy, params=params or DetectionParams())
    return detector.detect(buf).quad
