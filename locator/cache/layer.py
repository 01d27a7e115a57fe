"""Two-tier snapshot cache: process memory backed by a durable store."""
from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

import structlog

from locator.cache.store import KeyValueStore
from locator.config import DEFAULT_CACHE_KEY
from locator.errors import PersistenceFailure
from locator.observability.metrics import MetricsRegistry
from locator.snapshot import LocationSnapshot, decode_snapshot, encode_snapshot

LOGGER = structlog.get_logger(__name__)


class CacheLayer:
    """Holds the latest snapshot in memory and mirrors it to ``store``.

    Freshness is judged against wall-clock time from ``clock``; backward jumps
    are not corrected. Default snapshots use the shorter ``default_ttl``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl: float = 300.0,
        default_ttl: float = 0.0,
        key: str = DEFAULT_CACHE_KEY,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._default_ttl = min(default_ttl, ttl)
        self._key = key
        self._clock = clock
        self._metrics = metrics or MetricsRegistry()
        self._memory: Optional[LocationSnapshot] = None
        # Set when a clear could not delete the durable record; cleared by put.
        self._durable_cleared = False
        self._lock = asyncio.Lock()

    def is_valid(self, snapshot: LocationSnapshot) -> bool:
        ttl = self._default_ttl if snapshot.is_default else self._ttl
        return snapshot.is_fresh(self._clock(), ttl)

    def peek(self) -> Optional[LocationSnapshot]:
        """Return the in-memory snapshot regardless of age."""
        return self._memory

    async def load(self) -> Optional[LocationSnapshot]:
        """Populate memory from the durable tier at startup, ignoring TTL."""
        async with self._lock:
            if self._memory is None:
                self._memory = await self._read_durable()
            return self._memory

    async def _read_durable(self) -> Optional[LocationSnapshot]:
        if self._durable_cleared:
            return None
        try:
            raw = await self._store.read(self._key)
        except PersistenceFailure as exc:
            self._metrics.incr("persistence_failures")
            LOGGER.warning("cache_read_failed", key=self._key, reason=str(exc))
            return None
        return decode_snapshot(raw) if raw is not None else None

    async def get(self) -> Optional[LocationSnapshot]:
        """Return a snapshot still within its TTL, promoting from disk if needed."""
        async with self._lock:
            memory = self._memory
            if memory is not None and self.is_valid(memory):
                self._metrics.incr("cache_hits_memory")
                LOGGER.debug("cache_hit", tier="memory")
                return memory

            stored = await self._read_durable()
            if stored is not None and self.is_valid(stored):
                self._memory = stored
                self._metrics.incr("cache_hits_durable")
                LOGGER.debug("cache_hit", tier="durable")
                return stored

            self._metrics.incr("cache_misses")
            LOGGER.debug("cache_miss", key=self._key)
            return None

    async def put(self, snapshot: LocationSnapshot) -> None:
        """Store in memory, then persist; durable failures are logged only."""
        async with self._lock:
            self._memory = snapshot
            self._durable_cleared = False
            try:
                await self._store.write(self._key, encode_snapshot(snapshot))
            except PersistenceFailure as exc:
                self._metrics.incr("persistence_failures")
                LOGGER.warning("cache_write_failed", key=self._key, reason=str(exc))
                return
        LOGGER.debug("cache_stored", key=self._key, is_default=snapshot.is_default)

    async def clear(self) -> None:
        """Drop both tiers.

        If the durable delete fails the old record stays on disk, so this
        process stops reading it until the next ``put``. A restart will still
        see it.
        """
        async with self._lock:
            self._memory = None
            try:
                await self._store.delete(self._key)
                self._durable_cleared = False
            except PersistenceFailure as exc:
                self._metrics.incr("persistence_failures")
                self._durable_cleared = True
                LOGGER.warning("cache_clear_failed", key=self._key, reason=str(exc))
                return
        LOGGER.info("cache_cleared", key=self._key)
