"""Tests for the page and batch data model."""

import pytest

from docscanner.constants import DEFAULT_BATCH_SIZE
from docscanner.services.geometry import CropArea
from docscanner.services.models import (
    BatchJob,
    BatchState,
    CapturedPage,
    PageResult,
    PageStatus,
    ProcessedPage,
)


def _pages(n):
    return [CapturedPage(image_bytes=b"x", index=i) for i in range(n)]


class TestPageStatus:
    def test_terminal(self):
        assert PageStatus.PROCESSED.is_terminal
        assert PageStatus.ERROR.is_terminal
        assert not PageStatus.CAPTURED.is_terminal
        assert not PageStatus.PROCESSING.is_terminal

    def test_string_values(self):
        assert PageStatus.ERROR == "error"


class TestCapturedPage:
    def test_defaults(self):
        page = CapturedPage(image_bytes=b"data", mime_type="image/jpeg", index=2)
        assert page.status is PageStatus.CAPTURED
        assert page.error is None
        assert page.page_number == 3
        assert page.captured_at > 0

    def test_unique_ids(self):
        a, b = _pages(2)
        assert a.id != b.id


class TestPageResult:
    def test_ok_and_release(self):
        source = CapturedPage(image_bytes=b"x", index=4)
        processed = ProcessedPage(
            source=source,
            image_bytes=b"jpeg",
            thumbnail_bytes=b"t",
            width=10,
            height=20,
            crop_area=CropArea(0, 0, 10, 20),
        )
        result = PageResult(index=4, status=PageStatus.PROCESSED, page=processed)
        assert result.ok
        assert processed.index == 4
        assert processed.byte_size == 4
        result.release()
        assert result.page is None
        assert not result.ok

    def test_error_not_ok(self):
        assert not PageResult(index=0, status=PageStatus.ERROR, error="boom").ok


class TestBatchJob:
    def test_batches(self):
        job = BatchJob(_pages(13), batch_size=5)
        assert job.total == 13
        assert job.batch_count == 3
        sizes = [len(batch) for _, batch in job.batches()]
        assert sizes == [5, 5, 3]
        assert [n for n, _ in job.batches()] == [0, 1, 2]

    def test_progress_is_monotonic(self):
        job = BatchJob(_pages(13), batch_size=5)
        seen = []
        for number, batch in job.batches():
            job.start_batch(number)
            assert job.states[number] is BatchState.RUNNING
            seen.append(job.finish_batch(number, len(batch)))
        assert seen == [5, 10, 13]
        assert job.is_done

    def test_completed_capped_at_total(self):
        job = BatchJob(_pages(2), batch_size=5)
        assert job.finish_batch(0, 10) == 2

    def test_empty_job(self):
        job = BatchJob([], batch_size=5)
        assert job.batch_count == 0
        assert list(job.batches()) == []
        assert job.is_done

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            BatchJob(_pages(1), batch_size=0)

    def test_default_batch_size(self):
        job = BatchJob(_pages(12))
        assert job.batch_size == DEFAULT_BATCH_SIZE
        assert job.batch_count == 3
