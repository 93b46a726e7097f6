"""Tests for the exception hierarchy."""

import pytest

from docscanner.utils.exceptions import (
    BoundaryNotFound,
    ConfigurationError,
    DecodeFailure,
    DocScannerError,
    EncodeFailure,
    ResourceExhausted,
    SingularTransform,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            DecodeFailure(),
            BoundaryNotFound(),
            SingularTransform(),
            EncodeFailure(),
            ResourceExhausted(),
            ConfigurationError(),
        ],
    )
    def test_all_derive_from_base(self, error):
        assert isinstance(error, DocScannerError)

    def test_base_details_in_str(self):
        assert str(DocScannerError("boom", details="x=1")) == "boom (x=1)"
        assert str(DocScannerError("boom")) == "boom"


class TestMessages:
    def test_decode_failure(self):
        error = DecodeFailure("truncated", mime_type="image/png")
        assert error.reason == "truncated"
        assert str(error) == "Could not decode image: truncated (mime=image/png)"

    def test_boundary_not_found_lists_strategies(self):
        error = BoundaryNotFound(["contour", "hough"])
        assert error.strategies == ["contour", "hough"]
        assert "tried=contour,hough" in str(error)

    def test_singular_transform_determinant(self):
        error = SingularTransform("homography", determinant=0.0)
        assert str(error).startswith("Singular transform: homography")
        assert "det=0.000e+00" in str(error)

    def test_encode_failure_page_index(self):
        error = EncodeFailure("bad jpeg", page_index=2)
        assert error.page_index == 2
        assert str(error) == "Failed to encode page 2: bad jpeg (page_index=2)"

    def test_encode_failure_without_page(self):
        assert str(EncodeFailure()) == "Failed to encode image"

    def test_resource_exhausted_ratios(self):
        error = ResourceExhausted(0.95, 0.9)
        assert error.usage_ratio == 0.95
        assert "usage=95%, threshold=90%" in str(error)

    def test_configuration_error(self):
        error = ConfigurationError("batch_size", "must be >= 1")
        assert error.setting_name == "batch_size"
        assert str(error) == "Configuration error for 'batch_size': must be >= 1"
