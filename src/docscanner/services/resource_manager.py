"""
Resource management for batch scanning.

Detects available system resources (RAM, CPU) to pick worker counts and the
``auto`` quality preset, watches process memory to refuse new captures under
pressure, and owns the worker pool that runs the pages of one batch.

Resource tiers:
  - CONSTRAINED: fewer than 4 CPUs or < 2 GB available RAM → sequential
  - MODERATE:    4+ CPUs and 2+ GB available RAM → a few workers
  - ABUNDANT:    8+ CPUs and 4+ GB available RAM → up to MAX_POOL_WORKERS
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum, auto
from typing import TypeVar

from docscanner.constants import (
    BYTES_PER_MB,
    MAX_POOL_WORKERS,
    MEMORY_PRESSURE_THRESHOLD,
    RESOURCE_TIER_ABUNDANT_CPUS,
    RESOURCE_TIER_CONSTRAINED_GB,
    RESOURCE_TIER_MODERATE_CPUS,
    RESOURCE_TIER_MODERATE_GB,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ResourceTier(Enum):
    """System resource tier for adaptive configuration."""

    CONSTRAINED = auto()
    MODERATE = auto()
    ABUNDANT = auto()


@dataclass(frozen=True)
class ResourceProfile:
    """Snapshot of available system resources.

    Attributes:
        available_ram_mb: Currently available RAM in MB
        total_ram_mb: Total RAM in MB (cgroup limit when lower)
        cpu_count: Number of logical CPU cores
        tier: Computed resource tier
    """

    available_ram_mb: int
    total_ram_mb: int
    cpu_count: int
    tier: ResourceTier


@dataclass(frozen=True)
class MemoryStats:
    """Process memory usage against its budget."""

    used_mb: float
    limit_mb: float

    @property
    def percentage(self) -> float:
        if self.limit_mb <= 0:
            return 0.0
        return self.used_mb / self.limit_mb * 100


def classify_tier(available_mb: int, cpu_count: int) -> ResourceTier:
    """Map RAM and CPU availability to a tier."""
    available_gb = available_mb / 1024
    if cpu_count >= RESOURCE_TIER_ABUNDANT_CPUS and available_gb >= RESOURCE_TIER_MODERATE_GB:
        return ResourceTier.ABUNDANT
    if cpu_count >= RESOURCE_TIER_MODERATE_CPUS and available_gb >= RESOURCE_TIER_CONSTRAINED_GB:
        return ResourceTier.MODERATE
    return ResourceTier.CONSTRAINED


def _cgroup_limits(total_mb: int, available_mb: int) -> tuple[int, int]:
    """Clamp RAM figures to cgroup v2 limits (containers, systemd slices)."""
    try:
        with open("/sys/fs/cgroup/memory.max") as f:
            raw = f.read().strip()
            if raw != "max":
                cgroup_limit_mb = int(raw) // BYTES_PER_MB
                total_mb = min(total_mb, cgroup_limit_mb)
                available_mb = min(available_mb, cgroup_limit_mb)
    except (OSError, ValueError):
        pass
    try:
        with open("/sys/fs/cgroup/memory.current") as f:
            cgroup_used_mb = int(f.read().strip()) // BYTES_PER_MB
            available_mb = min(available_mb, max(0, total_mb - cgroup_used_mb))
    except (OSError, ValueError):
        pass
    return total_mb, available_mb


def detect_resources() -> ResourceProfile:
    """Detect current system resources.

    Returns:
        ResourceProfile with current system state.
    """
    import psutil

    cpu_count = os.cpu_count() or 1

    mem = psutil.virtual_memory()
    available_mb = int(mem.available / BYTES_PER_MB)
    total_mb = int(mem.total / BYTES_PER_MB)
    total_mb, available_mb = _cgroup_limits(total_mb, available_mb)

    tier = classify_tier(available_mb, cpu_count)
    profile = ResourceProfile(
        available_ram_mb=available_mb,
        total_ram_mb=total_mb,
        cpu_count=cpu_count,
        tier=tier,
    )

    logger.info(
        f"Resource detection: {available_mb} MB available / {total_mb} MB total, "
        f"{cpu_count} CPUs → {tier.name}"
    )
    return profile


def compute_worker_count(profile: ResourceProfile, parallel: bool = True) -> int:
    """Workers for one batch; 1 means the sequential path.

    Args:
        profile: Current system resource profile
        parallel: Whether the quality preset allows parallel processing

    Returns:
        Worker count in [1, MAX_POOL_WORKERS]
    """
    if not parallel or profile.tier == ResourceTier.CONSTRAINED:
        return 1
    if profile.tier == ResourceTier.MODERATE:
        return max(1, min(profile.cpu_count - 1, 4))
    return max(1, min(profile.cpu_count - 2, MAX_POOL_WORKERS))


class MemoryMonitor:
    """Cooperative memory backpressure for capture acceptance.

    Compares the process resident set size with a budget. When usage cannot
    be measured the monitor fails open and allows capture.
    """

    def __init__(
        self,
        budget_mb: float | None = None,
        threshold: float = MEMORY_PRESSURE_THRESHOLD,
    ) -> None:
        """Initialize the monitor.

        Args:
            budget_mb: Memory budget in MB; defaults to total RAM (cgroup aware)
            threshold: Usage fraction at or above which capture is refused
        """
        self.budget_mb = budget_mb
        self.threshold = threshold

    def _limit_mb(self) -> float:
        if self.budget_mb is not None:
            return float(self.budget_mb)
        import psutil

        total_mb = int(psutil.virtual_memory().total / BYTES_PER_MB)
        total_mb, _ = _cgroup_limits(total_mb, total_mb)
        return float(total_mb)

    def stats(self) -> MemoryStats | None:
        """Current usage, or None when it cannot be measured."""
        import psutil

        try:
            used_mb = psutil.Process().memory_info().rss / BYTES_PER_MB
            limit_mb = self._limit_mb()
        except (psutil.Error, OSError) as e:
            logger.debug(f"Memory usage unavailable: {e}")
            return None
        return MemoryStats(used_mb=float(used_mb), limit_mb=limit_mb)

    def usage_ratio(self) -> float | None:
        stats = self.stats()
        if stats is None or stats.limit_mb <= 0:
            return None
        return stats.used_mb / stats.limit_mb

    def check_available(self) -> bool:
        """True when a new capture may be accepted."""
        ratio = self.usage_ratio()
        if ratio is None:
            return True
        available = ratio <= self.threshold
        logger.debug(f"Memory usage {ratio:.1%} of budget (threshold {self.threshold:.0%})")
        if not available:
            logger.warning(f"Memory pressure: {ratio:.1%} of budget in use")
        return available


def memory_stats(budget_mb: float | None = None) -> MemoryStats | None:
    """Process memory usage against ``budget_mb`` (or total RAM)."""
    return MemoryMonitor(budget_mb=budget_mb).stats()


class WorkerPool:
    """Fixed-size page worker pool owned by the orchestrator.

    With ``max_workers == 1`` items run sequentially on the calling thread.
    Results are always returned in input order.
    """

    def __init__(self, max_workers: int = 1) -> None:
        self.max_workers = max(1, int(max_workers))
        self._executor: ThreadPoolExecutor | None = None
        if self.max_workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="docscanner-page"
            )
        logger.debug(f"Worker pool: {self.max_workers} worker(s)")

    @property
    def is_parallel(self) -> bool:
        return self._executor is not None

    def map(
        self,
        fn: Callable[[T], R],
        items: Sequence[T],
        cancel_event: threading.Event | None = None,
        on_cancel: Callable[[T], R] | None = None,
    ) -> list[R]:
        """Apply ``fn`` to every item.

        Args:
            fn: Work function; must not raise (wrap failures into results)
            items: Inputs
            cancel_event: Checked before each item starts
            on_cancel: Produces the result for items skipped after cancellation

        Returns:
            Results in input order
        """

        def run(item: T) -> R:
            if cancel_event is not None and cancel_event.is_set() and on_cancel is not None:
                return on_cancel(item)
            return fn(item)

        if self._executor is None or len(items) <= 1:
            return [run(item) for item in items]
        return list(self._executor.map(run, items))

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
