"""In-process counters for cache and acquisition behaviour."""
from __future__ import annotations

import contextlib
import time
from collections import defaultdict
from typing import Dict, Iterator

import structlog

LOGGER = structlog.get_logger(__name__)

DEFAULT_COUNTERS = (
    "cache_hits_memory",
    "cache_hits_durable",
    "cache_misses",
    "acquisitions",
    "followers_joined",
    "follower_timeouts",
    "fix_timeouts",
    "platform_errors",
    "enrichment_failures",
    "persistence_failures",
    "defaults_served",
    "stale_served",
    "acquisition_ms",
)


class MetricsRegistry:
    """Holds mutable counters for the current process."""

    def __init__(self) -> None:
        self._counters: Dict[str, int] = defaultdict(int)
        for key in DEFAULT_COUNTERS:
            self._counters[key] = 0

    def incr(self, name: str, value: int = 1) -> None:
        """Increment the named counter by the supplied value."""
        self._counters[name] += value

    def get(self, name: str) -> int:
        """Return the current value for the counter, defaulting to zero."""
        return self._counters.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        """Return a shallow copy of all counters for reporting."""
        return dict(self._counters)


@contextlib.contextmanager
def record_duration(registry: MetricsRegistry, metric_name: str) -> Iterator[None]:
    """Measure elapsed time for a block and add it to the counter."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        registry.incr(metric_name, elapsed_ms)
        LOGGER.debug("timer_stop", metric=metric_name, duration_ms=elapsed_ms)
