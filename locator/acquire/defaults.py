"""Static last-resort location."""
from __future__ import annotations

import time
from typing import Callable

import structlog

from locator.config import DefaultLocation
from locator.snapshot import SOURCE_DEFAULT, LocationSnapshot

LOGGER = structlog.get_logger(__name__)


class DefaultLocationProvider:
    """Hands out the configured placeholder, flagged ``is_default``."""

    def __init__(self, location: DefaultLocation, *, clock: Callable[[], float] = time.time) -> None:
        self._location = location
        self._clock = clock

    def provide(self) -> LocationSnapshot:
        LOGGER.info(
            "default_location_used",
            latitude=self._location.latitude,
            longitude=self._location.longitude,
        )
        return LocationSnapshot(
            latitude=self._location.latitude,
            longitude=self._location.longitude,
            acquired_at=self._clock(),
            address=self._location.address,
            is_default=True,
            source=SOURCE_DEFAULT,
        )
