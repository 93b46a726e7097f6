"""Page and batch data model for the scanning pipeline."""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from docscanner.constants import DEFAULT_BATCH_SIZE
from docscanner.services.geometry import CropArea, Quad


class PageStatus(str, Enum):
    """Lifecycle of a captured page."""

    CAPTURED = "captured"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (PageStatus.PROCESSED, PageStatus.ERROR)


class BatchState(str, Enum):
    """Lifecycle of one batch of pages."""

    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"


@dataclass
class CapturedPage:
    """Raw photo of one page as handed over by the capture collaborator.

    Attributes:
        image_bytes: Encoded image exactly as captured
        mime_type: Declared MIME type of ``image_bytes``
        index: Position in reading order (0-based)
        captured_at: Capture time (epoch seconds)
        status: Current lifecycle status
        error: Failure reason when status is ERROR
        id: Unique page identifier
    """

    image_bytes: bytes
    mime_type: str | None = None
    index: int = 0
    captured_at: float = field(default_factory=time.time)
    status: PageStatus = PageStatus.CAPTURED
    error: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def page_number(self) -> int:
        """1-based page number for user-facing messages."""
        return self.index + 1


@dataclass(frozen=True)
class ProcessedPage:
    """Final page produced by the processing chain.

    Attributes:
        source: The captured page this was produced from
        image_bytes: Final compressed page image (JPEG)
        thumbnail_bytes: Small JPEG preview
        width: Final image width in pixels
        height: Final image height in pixels
        detected_quad: Boundary found by detection, None when full bounds were used
        crop_area: Region of the source photo the page was taken from
        perspective_corrected: Whether the homography warp was applied
        detection_strategy: Name of the strategy that found the boundary
        duration_ms: Wall time spent processing the page
    """

    source: CapturedPage
    image_bytes: bytes
    thumbnail_bytes: bytes
    width: int
    height: int
    crop_area: CropArea
    detected_quad: Quad | None = None
    perspective_corrected: bool = False
    detection_strategy: str | None = None
    duration_ms: float = 0.0

    @property
    def index(self) -> int:
        return self.source.index

    @property
    def byte_size(self) -> int:
        return len(self.image_bytes)


@dataclass
class PageResult:
    """Outcome of one page in a batch run.

    Attributes:
        index: Page index in reading order
        status: PROCESSED or ERROR
        page: Processed page on success
        error: Failure reason on error
        error_kind: Exception class name on error
    """

    index: int
    status: PageStatus
    page: ProcessedPage | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == PageStatus.PROCESSED and self.page is not None

    def release(self) -> None:
        """Drop the processed page once its bytes have been consumed."""
        self.page = None


@dataclass
class BatchJob:
    """Ordered pages split into fixed-size batches with a progress counter.

    Attributes:
        pages: Pages in reading order
        batch_size: Pages per batch (>= 1)
        completed: Pages that reached a terminal status; never decreases
    """

    pages: list[CapturedPage]
    batch_size: int = DEFAULT_BATCH_SIZE
    completed: int = 0
    states: list[BatchState] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        self.states = [BatchState.PENDING] * self.batch_count

    @property
    def total(self) -> int:
        return len(self.pages)

    @property
    def batch_count(self) -> int:
        return (len(self.pages) + self.batch_size - 1) // self.batch_size

    @property
    def is_done(self) -> bool:
        return all(state == BatchState.DONE for state in self.states)

    def batches(self) -> Iterator[tuple[int, list[CapturedPage]]]:
        """Yield (batch number, pages) in order."""
        for number, start in enumerate(range(0, len(self.pages), self.batch_size)):
            yield number, self.pages[start : start + self.batch_size]

    def start_batch(self, number: int) -> None:
        self.states[number] = BatchState.RUNNING

    def finish_batch(self, number: int, pages_done: int) -> int:
        """Mark a batch done and advance the completed counter.

        Returns:
            The new completed count
        """
        self.states[number] = BatchState.DONE
        self.completed = min(self.total, self.completed + max(0, pages_done))
        return self.completed
