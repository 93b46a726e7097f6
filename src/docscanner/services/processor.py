"""
DocScanner - Batch Processor Module

Accepts captured pages under memory backpressure, processes them in
fixed-size concurrent batches with progress reporting and cooperative
cancellation, and hands the successful pages to the PDF assembler.
"""

from __future__ import annotations

import gc
import logging
import threading
import time
from collections.abc import Callable, Sequence

from docscanner.services.models import BatchJob, CapturedPage, PageResult, PageStatus, ProcessedPage
from docscanner.services.page_worker import cancelled_result, run_page
from docscanner.services.pdf_assembly import assemble_pdf
from docscanner.services.quality_presets import ScannerConfig
from docscanner.services.resource_manager import (
    MemoryMonitor,
    WorkerPool,
    compute_worker_count,
    detect_resources,
)
from docscanner.utils.exceptions import ResourceExhausted

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
MemoryCallback = Callable[[bool], None]


class BatchProcessor:
    """Orchestrates capture, batch processing and assembly.

    The configuration is fixed at construction. The worker pool is created
    once here and reused for every batch; a pool of one worker runs pages
    sequentially.

    Example:
        with BatchProcessor(config, progress_callback=print) as processor:
            for data in photos:
                processor.capture(data, "image/jpeg")
            results = processor.process_batch()
            pdf = processor.assemble(results, "Contract")
    """

    def __init__(
        self,
        config: ScannerConfig,
        progress_callback: ProgressCallback | None = None,
        memory_callback: MemoryCallback | None = None,
        monitor: MemoryMonitor | None = None,
    ) -> None:
        """Initialize the processor.

        Args:
            config: Scanner configuration
            progress_callback: Called with (pages_completed, pages_total) after each batch
            memory_callback: Called with True/False whenever memory pressure is checked
            monitor: Memory monitor; built from the config when omitted
        """
        self.config = config
        self.progress_callback = progress_callback
        self.memory_callback = memory_callback
        self.monitor = monitor or MemoryMonitor(
            budget_mb=config.memory_budget_mb, threshold=config.memory_threshold
        )
        self.cancel_event = threading.Event()
        self.pages: list[CapturedPage] = []
        self._pool = WorkerPool(self._worker_count())

    def _worker_count(self) -> int:
        if self.config.max_workers is not None:
            workers = self.config.max_workers
        elif self.config.quality.parallel:
            workers = compute_worker_count(detect_resources(), parallel=True)
        else:
            workers = 1
        return max(1, min(workers, self.config.quality.batch_size))

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def check_memory(self) -> bool:
        """True when memory allows another capture; notifies the memory callback."""
        available = self.monitor.check_available()
        if self.memory_callback:
            self.memory_callback(not available)
        return available

    def capture(self, image_bytes: bytes, mime_type: str | None = None) -> CapturedPage:
        """Accept a new captured page.

        Raises:
            ResourceExhausted: If memory usage is above the threshold
        """
        if not self.check_memory():
            raise ResourceExhausted(self.monitor.usage_ratio(), self.monitor.threshold)

        page = CapturedPage(image_bytes=image_bytes, mime_type=mime_type, index=len(self.pages))
        self.pages.append(page)
        logger.debug(f"Captured page {page.page_number} ({len(image_bytes)} bytes)")
        return page

    def discard(self, page_id: str) -> bool:
        """Remove a captured page and renumber the rest."""
        before = len(self.pages)
        self.pages = [p for p in self.pages if p.id != page_id]
        for i, page in enumerate(self.pages):
            page.index = i
        return len(self.pages) != before

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Request cancellation of the current (or next) run; takes effect between pages."""
        logger.info("Processing cancelled by user")
        self.cancel_event.set()

    def _report_progress(self, completed: int, total: int) -> None:
        if self.progress_callback:
            self.progress_callback(completed, total)

    def process_batch(self, pages: Sequence[CapturedPage] | None = None) -> list[PageResult]:
        """Process pages in fixed-size concurrent batches.

        Every page ends in PROCESSED or ERROR; failures never stop the run.
        After cancellation, pages that have not started are marked as
        cancelled errors. A cancel request ends with the run it stopped, so
        the next call processes normally.

        Args:
            pages: Pages to process; defaults to every captured page

        Returns:
            One result per page, in input order
        """
        job = BatchJob(list(self.pages if pages is None else pages), self.config.quality.batch_size)
        results: list[PageResult] = []
        total = job.total
        logger.info(
            f"Processing {total} pages in {job.batch_count} batches of {job.batch_size} "
            f"({self._pool.max_workers} worker(s))"
        )

        for number, batch in job.batches():
            job.start_batch(number)
            if self.cancel_event.is_set():
                batch_results = [cancelled_result(page) for page in batch]
            else:
                batch_results = self._pool.map(
                    lambda page: run_page(page, self.config),
                    batch,
                    cancel_event=self.cancel_event,
                    on_cancel=cancelled_result,
                )
            results.extend(batch_results)

            completed = job.finish_batch(number, len(batch_results))
            self._report_progress(completed, total)

            gc.collect()
            if number < job.batch_count - 1 and self.config.batch_pause_secs > 0:
                time.sleep(self.config.batch_pause_secs)

        if total == 0:
            self._report_progress(0, 0)

        if self.cancel_event.is_set():
            logger.info("Cancelled run finished; accepting new runs")
            self.cancel_event.clear()

        failed = sum(1 for r in results if r.status == PageStatus.ERROR)
        logger.info(f"Batch run finished: {total - failed} processed, {failed} failed")
        return results

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    @staticmethod
    def collect_processed(results: Sequence[PageResult]) -> list[ProcessedPage]:
        """Successful pages in the order of ``results``."""
        return [r.page for r in results if r.ok]

    def assemble(self, results: Sequence[PageResult], title: str) -> bytes:
        """Build the PDF from successful results, then release them.

        Raises:
            EncodeFailure: If there are no successful pages or one cannot be embedded
        """
        pages = self.collect_processed(results)
        skipped = len(results) - len(pages)
        if skipped:
            logger.warning(f"Excluding {skipped} failed page(s) from the document")
        pdf_bytes = assemble_pdf(pages, title, page_size=self.config.page_size)
        for result in results:
            result.release()
        gc.collect()
        return pdf_bytes

    def close(self) -> None:
        self._pool.shutdown()

    def __enter__(self) -> BatchProcessor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
