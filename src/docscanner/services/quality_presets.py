"""
Quality presets and scanner configuration.

A ``QualitySettings`` value selects target resolution, encode quality,
enhancement strength and batch behaviour. ``ScannerConfig`` bundles it with
the detection and orchestration knobs and is handed to the orchestrator at
construction; there is no process-wide "current settings".
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum

from docscanner.constants import (
    BATCH_PAUSE_SECS,
    BYTES_PER_MB,
    CANNY_HIGH_RATIO,
    CANNY_LOW_RATIO,
    DEFAULT_BATCH_SIZE,
    DETECTION_MAX_SIDE_PX,
    MAX_CHANNEL_VALUE,
    MEMORY_PRESSURE_THRESHOLD,
    MIN_QUAD_AREA_RATIO,
    THUMBNAIL_MAX_HEIGHT,
    THUMBNAIL_MAX_WIDTH,
)
from docscanner.services.boundary_detection import DetectionParams, DetectionStrategy
from docscanner.services.pdf_assembly import PageSizeMode
from docscanner.services.resource_manager import ResourceProfile, ResourceTier, detect_resources
from docscanner.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class QualityPreset(Enum):
    """Named quality levels."""

    FAST = "fast"
    BALANCED = "balanced"
    BEST = "best"
    AUTO = "auto"

    @classmethod
    def from_name(cls, name: str) -> QualityPreset:
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ConfigurationError("preset", f"unknown preset '{name}' (expected one of: {valid})") from None


@dataclass(frozen=True)
class QualitySettings:
    """Processing quality knobs.

    Attributes:
        target_width: Maximum page width in pixels (portrait orientation)
        target_height: Maximum page height in pixels (portrait orientation)
        jpeg_quality: Encode quality in (0, 1]
        max_file_size_mb: Byte budget per page image
        contrast_factor: Contrast stretch factor (> 0)
        brightness_target: Target mean brightness in [0, 255]
        sharpen_passes: Number of sharpening passes
        denoise: Apply a 3x3 median filter
        grayscale: Convert pages to grayscale
        black_and_white: Binarise with an adaptive threshold
        detection_downsample: Run boundary detection on a downscaled copy
        batch_size: Pages per concurrent batch (>= 1)
        parallel: Process the pages of a batch concurrently
    """

    target_width: int
    target_height: int
    jpeg_quality: float
    max_file_size_mb: float
    contrast_factor: float
    brightness_target: float
    sharpen_passes: int = 1
    denoise: bool = False
    grayscale: bool = True
    black_and_white: bool = False
    detection_downsample: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    parallel: bool = True

    def __post_init__(self) -> None:
        if self.target_width <= 0 or self.target_height <= 0:
            raise ConfigurationError(
                "target_resolution",
                f"must be positive, got {self.target_width}x{self.target_height}",
            )
        if not 0 < self.jpeg_quality <= 1:
            raise ConfigurationError("jpeg_quality", f"must be in (0, 1], got {self.jpeg_quality}")
        if self.max_file_size_mb <= 0:
            raise ConfigurationError("max_file_size_mb", f"must be positive, got {self.max_file_size_mb}")
        if self.contrast_factor <= 0:
            raise ConfigurationError("contrast_factor", f"must be positive, got {self.contrast_factor}")
        if not 0 <= self.brightness_target <= MAX_CHANNEL_VALUE:
            raise ConfigurationError(
                "brightness_target", f"must be in [0, 255], got {self.brightness_target}"
            )
        if self.sharpen_passes < 0:
            raise ConfigurationError("sharpen_passes", f"must be >= 0, got {self.sharpen_passes}")
        if self.batch_size < 1:
            raise ConfigurationError("batch_size", f"must be >= 1, got {self.batch_size}")

    @property
    def max_dimension(self) -> int:
        return max(self.target_width, self.target_height)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * BYTES_PER_MB)


PRESETS: dict[QualityPreset, QualitySettings] = {
    QualityPreset.FAST: QualitySettings(
        target_width=1800,
        target_height=2550,
        jpeg_quality=0.85,
        max_file_size_mb=1.5,
        contrast_factor=1.4,
        brightness_target=200,
        sharpen_passes=1,
        detection_downsample=True,
        batch_size=3,
        parallel=False,
    ),
    QualityPreset.BALANCED: QualitySettings(
        target_width=2100,
        target_height=2970,
        jpeg_quality=0.92,
        max_file_size_mb=2.0,
        contrast_factor=1.6,
        brightness_target=210,
        sharpen_passes=1,
        detection_downsample=True,
        batch_size=5,
        parallel=True,
    ),
    QualityPreset.BEST: QualitySettings(
        target_width=2480,  # A4 at 300 DPI
        target_height=3508,
        jpeg_quality=0.98,
        max_file_size_mb=3.0,
        contrast_factor=1.8,
        brightness_target=220,
        sharpen_passes=2,
        detection_downsample=False,
        batch_size=5,
        parallel=True,
    ),
}

_TIER_PRESETS = {
    ResourceTier.ABUNDANT: QualityPreset.BEST,
    ResourceTier.MODERATE: QualityPreset.BALANCED,
    ResourceTier.CONSTRAINED: QualityPreset.FAST,
}

PRESET_DESCRIPTIONS: dict[QualityPreset, tuple[str, str]] = {
    QualityPreset.FAST: ("Fast", "Lower quality, faster processing. Good for quick scans and receipts."),
    QualityPreset.BALANCED: ("Balanced", "Good quality with reasonable speed. Recommended for most documents."),
    QualityPreset.BEST: ("Best", "Maximum quality, slower processing. For contracts and legal documents."),
    QualityPreset.AUTO: ("Auto", "Picks a preset from the CPU and memory available on this machine."),
}


def resolve_preset(preset: QualityPreset, profile: ResourceProfile | None = None) -> QualityPreset:
    """Turn AUTO into a concrete preset for the given (or detected) resources."""
    if preset is not QualityPreset.AUTO:
        return preset
    profile = profile or detect_resources()
    resolved = _TIER_PRESETS[profile.tier]
    logger.info(f"Auto quality preset: {profile.tier.name} → {resolved.value}")
    return resolved


def get_quality_settings(
    preset: QualityPreset | str = QualityPreset.AUTO,
    profile: ResourceProfile | None = None,
) -> QualitySettings:
    """Settings for a named preset.

    Args:
        preset: Preset or its name
        profile: Resource snapshot used to resolve AUTO; detected when omitted
    """
    if isinstance(preset, str):
        preset = QualityPreset.from_name(preset)
    return PRESETS[resolve_preset(preset, profile)]


def recommended_preset(document_type: str | None = None) -> QualityPreset:
    """Suggested preset for a kind of document."""
    kind = (document_type or "").strip().lower()
    if kind in ("receipt", "note"):
        return QualityPreset.FAST
    if kind in ("contract", "legal", "invoice"):
        return QualityPreset.BEST
    if kind in ("whiteboard", "presentation"):
        return QualityPreset.BALANCED
    return QualityPreset.AUTO


def estimate_processing_time(image_count: int, settings: QualitySettings) -> int:
    """Rough processing time in whole seconds.

    Per-batch cost grows with target resolution and halves when pages run
    in parallel.
    """
    if image_count <= 0:
        return 0
    if settings.target_width >= 2400:
        per_batch = 3.0
    elif settings.target_width >= 2000:
        per_batch = 2.0
    else:
        per_batch = 1.0
    if settings.parallel:
        per_batch *= 0.5
    batches = math.ceil(image_count / settings.batch_size)
    return math.ceil(batches * per_batch)


@dataclass(frozen=True)
class ScannerConfig:
    """Everything the orchestrator needs, fixed at construction.

    Attributes:
        quality: Processing quality settings
        strategy: Boundary detection strategy for final output
        min_area_ratio: Minimum document area as a fraction of the photo
        canny_high_ratio: Canny high threshold (fraction of max gradient)
        canny_low_ratio: Canny low threshold (fraction of high)
        memory_budget_mb: Memory budget for capture backpressure; None = total RAM
        memory_threshold: Usage fraction above which new captures are refused
        batch_pause_secs: Pause between batches
        thumbnail_size: (max width, max height) of page thumbnails
        page_size: Page size mode for the assembled PDF
        max_workers: Worker count override; None derives it from resources
    """

    quality: QualitySettings = field(default_factory=lambda: PRESETS[QualityPreset.BALANCED])
    strategy: DetectionStrategy = DetectionStrategy.AUTO
    min_area_ratio: float = MIN_QUAD_AREA_RATIO
    canny_high_ratio: float = CANNY_HIGH_RATIO
    canny_low_ratio: float = CANNY_LOW_RATIO
    memory_budget_mb: float | None = None
    memory_threshold: float = MEMORY_PRESSURE_THRESHOLD
    batch_pause_secs: float = BATCH_PAUSE_SECS
    thumbnail_size: tuple[int, int] = (THUMBNAIL_MAX_WIDTH, THUMBNAIL_MAX_HEIGHT)
    page_size: PageSizeMode = PageSizeMode.IMAGE
    max_workers: int | None = None

    def __post_init__(self) -> None:
        if not self.strategy.final_output_allowed:
            raise ConfigurationError(
                "strategy", f"'{self.strategy.value}' is for live preview only, not final pages"
            )
        if not 0 < self.min_area_ratio < 1:
            raise ConfigurationError("min_area_ratio", f"must be in (0, 1), got {self.min_area_ratio}")
        if not 0 < self.canny_low_ratio <= 1 or not 0 < self.canny_high_ratio <= 1:
            raise ConfigurationError("canny_ratios", "must be in (0, 1]")
        if not 0 < self.memory_threshold <= 1:
            raise ConfigurationError("memory_threshold", f"must be in (0, 1], got {self.memory_threshold}")
        if self.memory_budget_mb is not None and self.memory_budget_mb <= 0:
            raise ConfigurationError("memory_budget_mb", f"must be positive, got {self.memory_budget_mb}")
        if self.batch_pause_secs < 0:
            raise ConfigurationError("batch_pause_secs", f"must be >= 0, got {self.batch_pause_secs}")
        if min(self.thumbnail_size) < 1:
            raise ConfigurationError("thumbnail_size", f"must be positive, got {self.thumbnail_size}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError("max_workers", f"must be >= 1, got {self.max_workers}")

    @classmethod
    def from_preset(cls, preset: QualityPreset | str, **overrides) -> ScannerConfig:
        return cls(quality=get_quality_settings(preset), **overrides)

    def with_quality(self, **changes) -> ScannerConfig:
        """Copy with some quality settings replaced."""
        return replace(self, quality=replace(self.quality, **changes))

    @property
    def detection_params(self) -> DetectionParams:
        return DetectionParams(
            min_area_ratio=self.min_area_ratio,
            canny_high_ratio=self.canny_high_ratio,
            canny_low_ratio=self.canny_low_ratio,
            max_side=DETECTION_MAX_SIDE_PX if self.quality.detection_downsample else None,
        )
