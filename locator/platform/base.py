"""Capabilities the resolver consumes from the host platform."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Protocol

from locator.snapshot import Address


class PermissionStatus(str, enum.Enum):
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True, slots=True)
class Fix:
    """A single coordinate reading; ``timestamp`` is epoch seconds."""

    latitude: float
    longitude: float
    timestamp: float


class PositioningPlatform(Protocol):
    """Device positioning API.

    ``current_position`` may block for an arbitrarily long time; callers are
    expected to bound it.
    """

    async def services_enabled(self) -> bool:
        ...

    async def request_foreground_permission(self) -> PermissionStatus:
        ...

    async def last_known_position(self) -> Optional[Fix]:
        ...

    async def current_position(self, accuracy: str) -> Fix:
        ...


class ReverseGeocoder(Protocol):
    """Turns a coordinate into an address."""

    async def reverse_geocode(self, latitude: float, longitude: float) -> Optional[Address]:
        ...
