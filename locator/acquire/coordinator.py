"""Single-flight coordination of acquisition rounds."""
from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from locator.acquire.chain import FallbackChain
from locator.cache.layer import CacheLayer
from locator.observability.metrics import MetricsRegistry, record_duration
from locator.snapshot import LocationSnapshot

LOGGER = structlog.get_logger(__name__)


class AcquisitionCoordinator:
    """Collapses concurrent acquisition requests into one round.

    The first caller of a round starts the fallback chain in its own task;
    every caller, the starter included, awaits that task and gets its exact
    outcome. Callers that joined an existing round give up after
    ``follower_wait`` seconds and take whatever the cache holds in memory.
    """

    def __init__(
        self,
        chain: FallbackChain,
        cache: CacheLayer,
        *,
        follower_wait: float = 20.0,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._chain = chain
        self._cache = cache
        self._follower_wait = follower_wait
        self._metrics = metrics or MetricsRegistry()
        self._inflight: Optional[asyncio.Task[LocationSnapshot]] = None
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    async def acquire(self) -> Optional[LocationSnapshot]:
        async with self._lock:
            task = self._inflight
            leader = task is None
            if leader:
                task = asyncio.create_task(self._run_round())
                task.add_done_callback(self._collect)
                self._inflight = task

        if leader:
            # Shielded so cancelling this caller does not abort the followers' round.
            return await asyncio.shield(task)

        self._metrics.incr("followers_joined")
        LOGGER.info("acquisition_joined")
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self._follower_wait)
        except asyncio.TimeoutError:
            self._metrics.incr("follower_timeouts")
            cached = self._cache.peek()
            LOGGER.warning(
                "acquisition_wait_expired",
                wait_s=self._follower_wait,
                cached=cached is not None,
            )
            return cached

    async def _run_round(self) -> LocationSnapshot:
        self._metrics.incr("acquisitions")
        LOGGER.info("acquisition_started")
        try:
            with record_duration(self._metrics, "acquisition_ms"):
                snapshot = await self._chain.resolve()
            LOGGER.info(
                "acquisition_finished",
                source=snapshot.source,
                is_default=snapshot.is_default,
            )
            return snapshot
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None

    @staticmethod
    def _collect(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("acquisition_failed", error=repr(exc))
