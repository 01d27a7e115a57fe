"""Location snapshots and their persisted representation."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Optional

import jsonschema
import orjson
import structlog

LOGGER = structlog.get_logger(__name__)

_SNAPSHOT_SCHEMA_VERSION = 1

SOURCE_LAST_KNOWN = "last_known"
SOURCE_FRESH = "fresh"
SOURCE_DEFAULT = "default"

_SNAPSHOT_SCHEMA: Dict[str, object] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["latitude", "longitude", "acquired_at", "is_default"],
    "properties": {
        "latitude": {"type": "number", "minimum": -90, "maximum": 90},
        "longitude": {"type": "number", "minimum": -180, "maximum": 180},
        "acquired_at": {"type": "number", "minimum": 0},
        "is_default": {"type": "boolean"},
        "source": {"enum": [SOURCE_LAST_KNOWN, SOURCE_FRESH, SOURCE_DEFAULT]},
        "address": {
            "type": ["object", "null"],
            "properties": {
                "city": {"type": "string"},
                "region": {"type": "string"},
                "postal_code": {"type": "string"},
            },
            "additionalProperties": False,
        },
    },
}
_VALIDATOR = jsonschema.Draft202012Validator(_SNAPSHOT_SCHEMA)


def check_coordinates(latitude: float, longitude: float) -> None:
    """Raise ValueError unless the pair is a valid WGS84 coordinate."""
    if not -90.0 <= latitude <= 90.0:
        raise ValueError(f"latitude out of range: {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise ValueError(f"longitude out of range: {longitude}")


@dataclass(frozen=True, slots=True)
class Address:
    """Human readable place for a coordinate."""

    city: str = ""
    region: str = ""
    postal_code: str = ""


@dataclass(frozen=True, slots=True)
class LocationSnapshot:
    """A resolved device position.

    ``acquired_at`` is wall-clock epoch seconds stamped when the snapshot is
    created. Default snapshots carry ``is_default=True`` so callers can tell a
    placeholder from a real fix.
    """

    latitude: float
    longitude: float
    acquired_at: float
    address: Optional[Address] = None
    is_default: bool = False
    source: str = SOURCE_FRESH

    def __post_init__(self) -> None:
        check_coordinates(self.latitude, self.longitude)

    def age(self, now: float) -> float:
        return now - self.acquired_at

    def is_fresh(self, now: float, ttl: float) -> bool:
        """Return True while the snapshot is younger than ``ttl`` seconds."""
        return self.age(now) < ttl

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def snapshot_from_dict(payload: Dict[str, object]) -> LocationSnapshot:
    address_payload = payload.get("address")
    address = Address(**address_payload) if isinstance(address_payload, dict) else None
    return LocationSnapshot(
        latitude=float(payload["latitude"]),
        longitude=float(payload["longitude"]),
        acquired_at=float(payload["acquired_at"]),
        address=address,
        is_default=bool(payload["is_default"]),
        source=str(payload.get("source", SOURCE_DEFAULT if payload["is_default"] else SOURCE_FRESH)),
    )


def encode_snapshot(snapshot: LocationSnapshot) -> bytes:
    """Serialise a snapshot into the versioned storage envelope."""
    return orjson.dumps({"version": _SNAPSHOT_SCHEMA_VERSION, "data": snapshot.to_dict()})


def decode_snapshot(raw: bytes) -> Optional[LocationSnapshot]:
    """Parse a stored envelope, returning None for anything unusable."""
    try:
        payload = orjson.loads(raw)
    except orjson.JSONDecodeError:
        LOGGER.warning("snapshot_decode_failed", reason="invalid_json")
        return None
    if not isinstance(payload, dict) or payload.get("version") != _SNAPSHOT_SCHEMA_VERSION:
        LOGGER.warning("snapshot_decode_failed", reason="version_mismatch")
        return None
    data = payload.get("data")
    errors = [f"{error.json_path}: {error.message}" for error in _VALIDATOR.iter_errors(data)]
    if errors:
        LOGGER.warning("snapshot_decode_failed", reason="schema", errors=errors)
        return None
    return snapshot_from_dict(data)
