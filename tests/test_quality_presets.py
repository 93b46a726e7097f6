"""Tests for quality presets and scanner configuration."""

from dataclasses import replace

import pytest

from docscanner.services.boundary_detection import DetectionStrategy
from docscanner.services.pdf_assembly import PageSizeMode
from docscanner.services.quality_presets import (
    PRESET_DESCRIPTIONS,
    PRESETS,
    QualityPreset,
    QualitySettings,
    ScannerConfig,
    estimate_processing_time,
    get_quality_settings,
    recommended_preset,
    resolve_preset,
)
from docscanner.services.resource_manager import ResourceProfile, ResourceTier
from docscanner.utils.exceptions import ConfigurationError


def _profile(tier):
    return ResourceProfile(available_ram_mb=4096, total_ram_mb=8192, cpu_count=8, tier=tier)


class TestPresets:
    def test_fast(self):
        s = PRESETS[QualityPreset.FAST]
        assert (s.target_width, s.target_height) == (1800, 2550)
        assert s.jpeg_quality == 0.85
        assert s.max_file_size_mb == 1.5
        assert s.contrast_factor == 1.4
        assert s.brightness_target == 200
        assert s.batch_size == 3
        assert s.parallel is False

    def test_balanced(self):
        s = PRESETS[QualityPreset.BALANCED]
        assert (s.target_width, s.target_height) == (2100, 2970)
        assert s.jpeg_quality == 0.92
        assert s.max_file_size_bytes == 2 * 1024 * 1024
        assert s.brightness_target == 210

    def test_best(self):
        s = PRESETS[QualityPreset.BEST]
        assert (s.target_width, s.target_height) == (2480, 3508)
        assert s.sharpen_passes == 2
        assert s.detection_downsample is False
        assert s.max_dimension == 3508

    def test_every_preset_described(self):
        assert set(PRESET_DESCRIPTIONS) == set(QualityPreset)


class TestPresetLookup:
    def test_from_name(self):
        assert QualityPreset.from_name(" BEST ") is QualityPreset.BEST

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError) as exc_info:
            QualityPreset.from_name("ultra")
        assert exc_info.value.setting_name == "preset"

    @pytest.mark.parametrize(
        "tier,expected",
        [
            (ResourceTier.ABUNDANT, QualityPreset.BEST),
            (ResourceTier.MODERATE, QualityPreset.BALANCED),
            (ResourceTier.CONSTRAINED, QualityPreset.FAST),
        ],
    )
    def test_auto_resolution(self, tier, expected):
        assert resolve_preset(QualityPreset.AUTO, _profile(tier)) is expected

    def test_concrete_preset_unchanged(self):
        assert resolve_preset(QualityPreset.FAST, _profile(ResourceTier.ABUNDANT)) is QualityPreset.FAST

    def test_get_settings_by_name(self):
        assert get_quality_settings("balanced") is PRESETS[QualityPreset.BALANCED]
        assert get_quality_settings("auto", _profile(ResourceTier.CONSTRAINED)) is PRESETS[QualityPreset.FAST]

    def test_recommended(self):
        assert recommended_preset("receipt") is QualityPreset.FAST
        assert recommended_preset("Contract") is QualityPreset.BEST
        assert recommended_preset("whiteboard") is QualityPreset.BALANCED
        assert recommended_preset(None) is QualityPreset.AUTO


class TestEstimateProcessingTime:
    def test_zero_images(self):
        assert estimate_processing_time(0, PRESETS[QualityPreset.FAST]) == 0

    def test_fast_sequential(self):
        # 13 images in batches of 3 -> 5 batches at 1 s
        assert estimate_processing_time(13, PRESETS[QualityPreset.FAST]) == 5

    def test_balanced_parallel(self):
        # 13 images in batches of 5 -> 3 batches at 2 s * 0.5
        assert estimate_processing_time(13, PRESETS[QualityPreset.BALANCED]) == 3

    def test_best_parallel(self):
        # 10 images -> 2 batches at 3 s * 0.5
        assert estimate_processing_time(10, PRESETS[QualityPreset.BEST]) == 3


class TestQualitySettingsValidation:
    @pytest.mark.parametrize(
        "field,value",
        [
            ("target_width", 0),
            ("jpeg_quality", 0),
            ("jpeg_quality", 1.5),
            ("max_file_size_mb", -1),
            ("contrast_factor", 0),
            ("brightness_target", 300),
            ("sharpen_passes", -1),
            ("batch_size", 0),
        ],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ConfigurationError):
            replace(PRESETS[QualityPreset.BALANCED], **{field: value})

    def test_valid_custom(self):
        s = QualitySettings(
            target_width=100,
            target_height=200,
            jpeg_quality=1.0,
            max_file_size_mb=0.5,
            contrast_factor=1.0,
            brightness_target=0,
        )
        assert s.max_dimension == 200


class TestScannerConfig:
    def test_defaults(self):
        config = ScannerConfig()
        assert config.quality is PRESETS[QualityPreset.BALANCED]
        assert config.strategy is DetectionStrategy.AUTO
        assert config.page_size is PageSizeMode.IMAGE
        assert config.thumbnail_size == (200, 300)

    def test_preview_strategy_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ScannerConfig(strategy=DetectionStrategy.HEURISTIC_FAST)
        assert exc_info.value.setting_name == "strategy"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"min_area_ratio": 0},
            {"canny_low_ratio": 0},
            {"memory_threshold": 1.5},
            {"memory_budget_mb": 0},
            {"batch_pause_secs": -1},
            {"thumbnail_size": (0, 10)},
            {"max_workers": 0},
        ],
    )
    def test_rejects_invalid(self, overrides):
        with pytest.raises(ConfigurationError):
            ScannerConfig(**overrides)

    def test_from_preset_with_overrides(self):
        config = ScannerConfig.from_preset("fast", strategy=DetectionStrategy.HOUGH, max_workers=2)
        assert config.quality is PRESETS[QualityPreset.FAST]
        assert config.strategy is DetectionStrategy.HOUGH
        assert config.max_workers == 2

    def test_with_quality(self):
        config = ScannerConfig().with_quality(batch_size=2, grayscale=False)
        assert config.quality.batch_size == 2
        assert config.quality.grayscale is False
        assert PRESETS[QualityPreset.BALANCED].batch_size == 5

    def test_detection_params(self):
        assert ScannerConfig.from_preset("balanced").detection_params.max_side == 1024
        assert ScannerConfig.from_preset("best").detection_params.max_side is None
        params = ScannerConfig(min_area_ratio=0.05).detection_params
        assert params.min_area_ratio == 0.05
