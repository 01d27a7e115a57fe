"""Distance helpers for finding sellers around the resolved position."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

EARTH_RADIUS_KM = 6371.0
SEARCH_RADIUS_KM = 10.0


@dataclass
class GeoPoint:
    """Represents a coordinate pair."""

    latitude: float
    longitude: float


def haversine_km(origin: GeoPoint, target: GeoPoint) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(target.longitude - origin.longitude)
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def nearby(
    origin: GeoPoint,
    candidates: Iterable[Dict[str, object]],
    *,
    radius_km: float = SEARCH_RADIUS_KM,
) -> List[Dict[str, object]]:
    """Return candidates within ``radius_km`` of ``origin``, nearest first.

    Each candidate needs numeric ``latitude`` and ``longitude`` keys; rows
    without them are skipped. Results are copies with ``distance_km`` added.
    """
    ranked: List[Tuple[float, Dict[str, object]]] = []
    for candidate in candidates:
        try:
            point = GeoPoint(float(candidate["latitude"]), float(candidate["longitude"]))
        except (KeyError, TypeError, ValueError):
            continue
        distance = haversine_km(origin, point)
        if distance <= radius_km:
            ranked.append((distance, {**candidate, "distance_km": round(distance, 3)}))
    ranked.sort(key=lambda item: item[0])
    return [row for _, row in ranked]
