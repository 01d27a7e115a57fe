"""Public entry point for resolving the device location."""
from __future__ import annotations

import time
from typing import Callable, Optional

import structlog

from locator.acquire.chain import FallbackChain
from locator.acquire.coordinator import AcquisitionCoordinator
from locator.acquire.defaults import DefaultLocationProvider
from locator.acquire.enrich import EnrichmentStep
from locator.cache.layer import CacheLayer
from locator.cache.store import KeyValueStore
from locator.config import LocationConfig
from locator.observability.metrics import MetricsRegistry
from locator.platform.base import PositioningPlatform, ReverseGeocoder
from locator.snapshot import LocationSnapshot

LOGGER = structlog.get_logger(__name__)


class LocationService:
    """Cached, deduplicated, always-answering location lookup.

    ``get_current_location`` never raises: when no real fix can be had the
    caller gets the configured default with ``is_default=True``.
    """

    def __init__(
        self,
        *,
        platform: PositioningPlatform,
        store: KeyValueStore,
        geocoder: Optional[ReverseGeocoder] = None,
        config: Optional[LocationConfig] = None,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self.config = config or LocationConfig()
        self.metrics = metrics or MetricsRegistry()
        self.cache = CacheLayer(
            store,
            ttl=self.config.ttl,
            default_ttl=self.config.default_ttl,
            key=self.config.cache_key,
            clock=clock,
            metrics=self.metrics,
        )
        self.defaults = DefaultLocationProvider(self.config.default_location, clock=clock)
        chain = FallbackChain(
            platform=platform,
            cache=self.cache,
            enrichment=EnrichmentStep(geocoder, timeout=self.config.geocode_timeout, metrics=self.metrics),
            defaults=self.defaults,
            ttl=self.config.ttl,
            fix_timeout=self.config.fix_timeout,
            accuracy=self.config.accuracy,
            clock=clock,
            metrics=self.metrics,
        )
        self.coordinator = AcquisitionCoordinator(
            chain,
            self.cache,
            follower_wait=self.config.follower_wait,
            metrics=self.metrics,
        )

    async def get_current_location(self, force_refresh: bool = False) -> LocationSnapshot:
        if not force_refresh:
            try:
                cached = await self.cache.get()
            except Exception:
                LOGGER.exception("cache_lookup_crashed")
                cached = None
            if cached is not None:
                return cached

        try:
            snapshot = await self.coordinator.acquire()
        except Exception:
            LOGGER.exception("acquisition_crashed")
            snapshot = None
        if snapshot is None:
            self.metrics.incr("defaults_served")
            return self.defaults.provide()
        return snapshot

    async def warm_up(self) -> Optional[LocationSnapshot]:
        """Load the durable record into memory, whatever its age."""
        return await self.cache.load()

    def get_cached_location(self) -> Optional[LocationSnapshot]:
        """Return the in-memory snapshot without acquiring; may be expired."""
        return self.cache.peek()

    async def clear_cache(self) -> None:
        await self.cache.clear()
