"""
DocScanner - Numeric Constants

Simple numeric constants with ZERO internal imports to avoid circular dependencies.
For application-level constants (strings, versions), use config.py.
"""

from typing import Final

# ============================================================================
# Size Constants
# ============================================================================

BYTES_PER_MB: Final[int] = 1024 * 1024

# ============================================================================
# Pixel Constants
# ============================================================================

MAX_CHANNEL_VALUE: Final[int] = 255
MID_CHANNEL_VALUE: Final[int] = 128

# ITU-R BT.601 luma weights
LUMA_R: Final[float] = 0.299
LUMA_G: Final[float] = 0.587
LUMA_B: Final[float] = 0.114

# ============================================================================
# Edge Detection (Canny)
# ============================================================================

CANNY_HIGH_RATIO: Final[float] = 0.15  # of the observed max gradient
CANNY_LOW_RATIO: Final[float] = 0.40  # of the high threshold
EDGE_STRONG: Final[int] = 255
EDGE_WEAK: Final[int] = 128

# ============================================================================
# Contour / Quadrilateral Detection
# ============================================================================

MIN_QUAD_AREA_RATIO: Final[float] = 0.01
DOUGLAS_PEUCKER_EPSILON_RATIO: Final[float] = 0.02

HOUGH_THETA_BUCKETS: Final[int] = 180
HOUGH_VOTE_RATIO: Final[float] = 0.2  # of the shorter image side
HOUGH_ANGLE_TOLERANCE_DEG: Final[float] = 20.0
HOUGH_MIN_AREA_RATIO: Final[float] = 0.2

FAST_MAX_SIDE_PX: Final[int] = 512
FAST_MIN_CONTRAST: Final[float] = 25.0
FAST_MORPH_KERNEL: Final[int] = 5

SCAN_BRIGHT_THRESHOLD: Final[int] = 180
SCAN_FALLBACK_THRESHOLD: Final[int] = 150
SCAN_CONSECUTIVE_PIXELS: Final[int] = 5
SCAN_MARGIN_PX: Final[int] = 10
SCAN_FALLBACK_MARGIN_PX: Final[int] = 15
SCAN_MIN_AREA_RATIO: Final[float] = 0.1
SCAN_MAX_AREA_RATIO: Final[float] = 0.95
SCAN_MIN_ASPECT: Final[float] = 0.3
SCAN_MAX_ASPECT: Final[float] = 3.0

DETECTION_MAX_SIDE_PX: Final[int] = 1024

# ============================================================================
# Perspective
# ============================================================================

SINGULAR_EPSILON: Final[float] = 1e-10
WARP_ROWS_PER_CHUNK: Final[int] = 256

# ============================================================================
# Compression & Thumbnails
# ============================================================================

DEFAULT_MAX_FILE_SIZE_MB: Final[float] = 2.0
DEFAULT_MAX_DIMENSION_PX: Final[int] = 2100
DEFAULT_JPEG_QUALITY: Final[float] = 0.92
MIN_JPEG_QUALITY: Final[float] = 0.1
QUALITY_STEP: Final[float] = 0.85
DIMENSION_STEP: Final[float] = 0.8
THUMBNAIL_MAX_WIDTH: Final[int] = 200
THUMBNAIL_MAX_HEIGHT: Final[int] = 300
THUMBNAIL_QUALITY: Final[float] = 0.7

# ============================================================================
# Orchestration & Resources
# ============================================================================

DEFAULT_BATCH_SIZE: Final[int] = 5
BATCH_PAUSE_SECS: Final[float] = 0.05
MEMORY_PRESSURE_THRESHOLD: Final[float] = 0.9
RESOURCE_TIER_CONSTRAINED_GB: Final[float] = 2.0
RESOURCE_TIER_MODERATE_GB: Final[float] = 4.0
RESOURCE_TIER_MODERATE_CPUS: Final[int] = 4
RESOURCE_TIER_ABUNDANT_CPUS: Final[int] = 8
MAX_POOL_WORKERS: Final[int] = 8

# ============================================================================
# PDF Assembly
# ============================================================================

PDF_SIZE_OVERHEAD: Final[float] = 1.1
