"""Tests for format_utils module."""

from docscanner.utils.format_utils import format_duration_ms, format_file_size


class TestFormatFileSize:
    def test_zero_bytes(self):
        assert format_file_size(0) == "0 B"

    def test_bytes(self):
        assert format_file_size(500) == "500 B"

    def test_kilobytes(self):
        assert format_file_size(1024) == "1.0 KB"
        assert format_file_size(1536) == "1.5 KB"

    def test_megabytes(self):
        assert format_file_size(15 * 1024 * 1024) == "15.0 MB"

    def test_gigabytes_is_largest_unit(self):
        assert format_file_size(2048 * 1024**3) == "2048.0 GB"

    def test_negative_returns_zero(self):
        assert format_file_size(-1) == "0 B"


class TestFormatDurationMs:
    def test_milliseconds(self):
        assert format_duration_ms(850) == "850 ms"

    def test_seconds(self):
        assert format_duration_ms(2400) == "2.4 s"

    def test_boundary(self):
        assert format_duration_ms(999.4) == "999 ms"
        assert format_duration_ms(1000) == "1.0 s"

    def test_negative_clamped(self):
        assert format_duration_ms(-5) == "0 ms"
