"""Ordered acquisition strategies, cheapest first."""
from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

import structlog

from locator.acquire.defaults import DefaultLocationProvider
from locator.acquire.enrich import EnrichmentStep
from locator.cache.layer import CacheLayer
from locator.errors import AcquisitionTimeout, PermissionDenied, PlatformError, ServicesDisabled
from locator.observability.metrics import MetricsRegistry
from locator.platform.base import Fix, PermissionStatus, PositioningPlatform
from locator.snapshot import SOURCE_FRESH, SOURCE_LAST_KNOWN, LocationSnapshot, check_coordinates

LOGGER = structlog.get_logger(__name__)


class FallbackChain:
    """Runs one acquisition round and always produces a snapshot.

    Order: services check, permission check, last-known position, fresh fix
    raced against ``fix_timeout``, any real snapshot still in memory, then the
    default location. Real fixes are enriched and cached before returning.
    """

    def __init__(
        self,
        *,
        platform: PositioningPlatform,
        cache: CacheLayer,
        enrichment: EnrichmentStep,
        defaults: DefaultLocationProvider,
        ttl: float = 300.0,
        fix_timeout: float = 15.0,
        accuracy: str = "balanced",
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._platform = platform
        self._cache = cache
        self._enrichment = enrichment
        self._defaults = defaults
        self._ttl = ttl
        self._fix_timeout = fix_timeout
        self._accuracy = accuracy
        self._clock = clock
        self._metrics = metrics or MetricsRegistry()

    async def resolve(self) -> LocationSnapshot:
        try:
            await self._ensure_services()
            await self._ensure_permission()
        except (ServicesDisabled, PermissionDenied) as exc:
            LOGGER.info("location_unavailable", reason=type(exc).__name__, detail=str(exc))
            return await self._default()

        fix = await self._last_known()
        source = SOURCE_LAST_KNOWN
        if fix is None:
            source = SOURCE_FRESH
            try:
                fix = await self._fresh_fix()
            except AcquisitionTimeout as exc:
                self._metrics.incr("fix_timeouts")
                LOGGER.warning("fresh_fix_timeout", detail=str(exc))
            except PlatformError as exc:
                self._metrics.incr("platform_errors")
                LOGGER.error("fresh_fix_failed", detail=str(exc))

        if fix is not None:
            try:
                return await self._snapshot_from_fix(fix, source)
            except ValueError as exc:
                self._metrics.incr("platform_errors")
                LOGGER.error("invalid_fix", source=source, detail=str(exc))

        stale = self._cache.peek()
        if stale is not None and not stale.is_default:
            self._metrics.incr("stale_served")
            LOGGER.info("stale_location_used", age_s=round(stale.age(self._clock()), 1))
            return stale
        return await self._default()

    async def _ensure_services(self) -> None:
        try:
            enabled = await self._platform.services_enabled()
        except Exception as exc:
            raise ServicesDisabled(f"services check failed: {exc}") from exc
        if not enabled:
            raise ServicesDisabled("location services are disabled")

    async def _ensure_permission(self) -> None:
        try:
            status = await self._platform.request_foreground_permission()
        except Exception as exc:
            raise PermissionDenied(f"permission request failed: {exc}") from exc
        if status != PermissionStatus.GRANTED:
            raise PermissionDenied(f"permission status {status}")

    async def _last_known(self) -> Optional[Fix]:
        try:
            fix = await self._platform.last_known_position()
        except Exception as exc:
            LOGGER.info("last_known_unavailable", detail=str(exc))
            return None
        if fix is None:
            return None
        try:
            check_coordinates(fix.latitude, fix.longitude)
        except ValueError as exc:
            self._metrics.incr("platform_errors")
            LOGGER.warning("last_known_invalid", detail=str(exc))
            return None
        age = self._clock() - fix.timestamp
        if age >= self._ttl:
            LOGGER.debug("last_known_stale", age_s=round(age, 1))
            return None
        LOGGER.info("last_known_used", age_s=round(age, 1))
        return fix

    async def _fresh_fix(self) -> Fix:
        LOGGER.info("fresh_fix_requested", accuracy=self._accuracy, timeout_s=self._fix_timeout)
        try:
            return await asyncio.wait_for(
                self._platform.current_position(self._accuracy),
                timeout=self._fix_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise AcquisitionTimeout(f"no fix within {self._fix_timeout}s") from exc
        except Exception as exc:
            raise PlatformError(str(exc)) from exc

    async def _snapshot_from_fix(self, fix: Fix, source: str) -> LocationSnapshot:
        check_coordinates(fix.latitude, fix.longitude)
        address = await self._enrichment.enrich(fix.latitude, fix.longitude)
        snapshot = LocationSnapshot(
            latitude=fix.latitude,
            longitude=fix.longitude,
            acquired_at=self._clock(),
            address=address,
            is_default=False,
            source=source,
        )
        await self._cache.put(snapshot)
        return snapshot

    async def _default(self) -> LocationSnapshot:
        snapshot = self._defaults.provide()
        self._metrics.incr("defaults_served")
        await self._cache.put(snapshot)
        return snapshot
