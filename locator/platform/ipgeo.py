"""Positioning backed by an IP-geolocation HTTP endpoint."""
from __future__ import annotations

import time
from typing import Callable, Dict, Optional

import httpx
import structlog

from locator.platform.base import Fix, PermissionStatus

LOGGER = structlog.get_logger(__name__)

DEFAULT_IPGEO_URL = "http://ip-api.com/json"


class IpGeolocationPlatform:
    """Coarse positioning for hosts without a GPS receiver.

    The most recent successful lookup is served as the last-known position.
    Service availability and permission come from configuration since there
    is no OS prompt to ask.
    """

    def __init__(
        self,
        *,
        url: str = DEFAULT_IPGEO_URL,
        timeout: float = 5.0,
        enabled: bool = True,
        permission: PermissionStatus = PermissionStatus.GRANTED,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._enabled = enabled
        self._permission = permission
        self._client = client
        self._clock = clock
        self._last_fix: Optional[Fix] = None

    @classmethod
    def from_config(cls, payload: Dict[str, object], **kwargs) -> "IpGeolocationPlatform":
        return cls(
            url=str(payload.get("url", DEFAULT_IPGEO_URL)),
            timeout=float(payload.get("timeout_seconds", 5.0)),
            enabled=bool(payload.get("enabled", True)),
            permission=PermissionStatus(str(payload.get("permission", PermissionStatus.GRANTED.value))),
            **kwargs,
        )

    async def services_enabled(self) -> bool:
        return self._enabled

    async def request_foreground_permission(self) -> PermissionStatus:
        return self._permission

    async def last_known_position(self) -> Optional[Fix]:
        return self._last_fix

    async def current_position(self, accuracy: str) -> Fix:
        """Query the endpoint; ``accuracy`` is accepted but has no effect here."""
        payload = await self._get_json()
        if payload.get("status", "success") != "success":
            raise RuntimeError(f"ip geolocation failed: {payload.get('message', 'unknown error')}")
        fix = Fix(
            latitude=float(payload["lat"]),
            longitude=float(payload["lon"]),
            timestamp=self._clock(),
        )
        self._last_fix = fix
        LOGGER.debug("ipgeo_fix", latitude=fix.latitude, longitude=fix.longitude)
        return fix

    async def _get_json(self) -> Dict[str, object]:
        if self._client is not None:
            response = await self._client.get(self._url, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._url)
        response.raise_for_status()
        return response.json()
