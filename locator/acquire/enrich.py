"""Best-effort reverse geocoding of raw fixes."""
from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from locator.errors import EnrichmentFailure
from locator.observability.metrics import MetricsRegistry
from locator.platform.base import ReverseGeocoder
from locator.snapshot import Address

LOGGER = structlog.get_logger(__name__)


class EnrichmentStep:
    """Attaches an address to a coordinate when the geocoder cooperates."""

    def __init__(
        self,
        geocoder: Optional[ReverseGeocoder],
        *,
        timeout: float = 10.0,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._geocoder = geocoder
        self._timeout = timeout
        self._metrics = metrics or MetricsRegistry()

    async def _lookup(self, latitude: float, longitude: float) -> Address:
        try:
            address = await asyncio.wait_for(
                self._geocoder.reverse_geocode(latitude, longitude),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise EnrichmentFailure(f"reverse geocode timed out after {self._timeout}s") from exc
        except Exception as exc:
            raise EnrichmentFailure(str(exc)) from exc
        if address is None:
            raise EnrichmentFailure("no result")
        return address

    async def enrich(self, latitude: float, longitude: float) -> Optional[Address]:
        """Return an address or None; never raises."""
        if self._geocoder is None:
            return None
        try:
            return await self._lookup(latitude, longitude)
        except EnrichmentFailure as exc:
            self._metrics.incr("enrichment_failures")
            LOGGER.warning("reverse_geocode_failed", latitude=latitude, longitude=longitude, reason=str(exc))
            return None
