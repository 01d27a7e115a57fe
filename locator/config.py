"""Typed configuration for the location service."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

import tomllib

from locator.snapshot import Address

DEFAULT_CACHE_KEY = "cached_gps_location"


@dataclass
class DefaultLocation:
    """Coordinate served when no real fix is obtainable (Pune, India)."""

    latitude: float = 18.5204
    longitude: float = 73.8567
    address: Address = field(
        default_factory=lambda: Address(city="Pune", region="Maharashtra", postal_code="411001")
    )

    @classmethod
    def from_config(cls, payload: Dict[str, object]) -> "DefaultLocation":
        base = cls()
        return cls(
            latitude=float(payload.get("latitude", base.latitude)),
            longitude=float(payload.get("longitude", base.longitude)),
            address=Address(
                city=str(payload.get("city", base.address.city)),
                region=str(payload.get("region", base.address.region)),
                postal_code=str(payload.get("postal_code", base.address.postal_code)),
            ),
        )


@dataclass
class LocationConfig:
    """Timing, caching and fallback parameters.

    ``default_ttl`` is the window in which a default snapshot may be served
    from cache; it is clamped to ``ttl``.
    """

    cache_key: str = DEFAULT_CACHE_KEY
    ttl: float = 300.0
    default_ttl: float = 0.0
    fix_timeout: float = 15.0
    follower_wait: float = 20.0
    geocode_timeout: float = 10.0
    accuracy: str = "balanced"
    store_dir: Path = Path("data/location")
    default_location: DefaultLocation = field(default_factory=DefaultLocation)

    def __post_init__(self) -> None:
        self.default_ttl = min(self.default_ttl, self.ttl)

    @classmethod
    def from_settings(cls, settings: Dict[str, object]) -> "LocationConfig":
        location = settings.get("location", {})
        base = cls()
        return cls(
            cache_key=str(location.get("cache_key", base.cache_key)),
            ttl=float(location.get("ttl_seconds", base.ttl)),
            default_ttl=float(location.get("default_ttl_seconds", base.default_ttl)),
            fix_timeout=float(location.get("fix_timeout_seconds", base.fix_timeout)),
            follower_wait=float(location.get("follower_wait_seconds", base.follower_wait)),
            geocode_timeout=float(location.get("geocode_timeout_seconds", base.geocode_timeout)),
            accuracy=str(location.get("accuracy", base.accuracy)),
            store_dir=Path(location.get("store_dir", base.store_dir)),
            default_location=DefaultLocation.from_config(settings.get("default_location", {})),
        )


def load_settings(path: Path) -> Dict[str, object]:
    """Read the TOML configuration file."""
    with path.open("rb") as handle:
        return tomllib.load(handle)
