"""Prometheus metrics for tome containers.

All metric objects are module-level singletons labelled by tome name, so
several containers in one process share the same collectors.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Gauge, Histogram

TOME_MOMENTS_ADDED_TOTAL = Counter(
    "tome_moments_added_total", "Total moments added to a tome", ["tome"]
)
TOME_MOMENTS_COLLAPSED_TOTAL = Counter(
    "tome_moments_collapsed_total", "Total moments folded into a relic", ["tome"]
)
TOME_MOMENTS_REMOVED_TOTAL = Counter(
    "tome_moments_removed_total", "Total moments discarded without folding", ["tome"]
)
TOME_REBUILDS_TOTAL = Counter(
    "tome_rebuilds_total", "Total full tome rebuilds from relic", ["tome"]
)
TOME_LIVE_MOMENTS = Gauge("tome_live_moments", "Moments currently retained", ["tome"])
TOME_SUBSCRIBERS = Gauge("tome_subscribers", "Currently registered subscribers", ["tome"])
TOME_OPERATION_DURATION_SECONDS = Histogram(
    "tome_operation_duration_seconds",
    "Tome operation duration in seconds",
    ["tome", "operation"],
)


@contextmanager
def observe_operation(tome: str, operation: str) -> Iterator[None]:
    """Context manager that observes the duration of one tome operation."""
    start = time.monotonic()
    try:
        yield
    finally:
        TOME_OPERATION_DURATION_SECONDS.labels(tome=tome, operation=operation).observe(
            time.monotonic() - start
        )


__all__ = [
    "TOME_LIVE_MOMENTS",
    "TOME_MOMENTS_ADDED_TOTAL",
    "TOME_MOMENTS_COLLAPSED_TOTAL",
    "TOME_MOMENTS_REMOVED_TOTAL",
    "TOME_OPERATION_DURATION_SECONDS",
    "TOME_REBUILDS_TOTAL",
    "TOME_SUBSCRIBERS",
    "observe_operation",
]
