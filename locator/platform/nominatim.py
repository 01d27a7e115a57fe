"""Reverse geocoding through a Nominatim-compatible HTTP API."""
from __future__ import annotations

from typing import Dict, Optional

import httpx

from locator.snapshot import Address

DEFAULT_NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"
DEFAULT_USER_AGENT = "locator/0.1"

_CITY_KEYS = ("city", "town", "village", "municipality", "county", "state_district")


class NominatimGeocoder:
    """Resolves coordinates to city, region and postal code."""

    def __init__(
        self,
        *,
        url: str = DEFAULT_NOMINATIM_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._headers = {"User-Agent": user_agent}
        self._timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, payload: Dict[str, object], **kwargs) -> "NominatimGeocoder":
        return cls(
            url=str(payload.get("url", DEFAULT_NOMINATIM_URL)),
            user_agent=str(payload.get("user_agent", DEFAULT_USER_AGENT)),
            timeout=float(payload.get("timeout_seconds", 10.0)),
            **kwargs,
        )

    async def reverse_geocode(self, latitude: float, longitude: float) -> Optional[Address]:
        params = {"lat": latitude, "lon": longitude, "format": "jsonv2", "addressdetails": 1}
        if self._client is not None:
            response = await self._client.get(self._url, params=params, headers=self._headers, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout, headers=self._headers) as client:
                response = await client.get(self._url, params=params)
        response.raise_for_status()
        fields = response.json().get("address")
        if not fields:
            return None
        city = next((fields[key] for key in _CITY_KEYS if fields.get(key)), "")
        return Address(
            city=city,
            region=fields.get("state", ""),
            postal_code=fields.get("postcode", ""),
        )
