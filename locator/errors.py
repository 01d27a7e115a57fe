"""Failure taxonomy for location resolution.

None of these reach callers of ``LocationService``; they are raised inside the
cache and fallback chain and recovered there.
"""
from __future__ import annotations


class LocationError(Exception):
    """Base class for location resolution failures."""


class PermissionDenied(LocationError):
    """The platform refused foreground location permission."""


class ServicesDisabled(LocationError):
    """Location services are switched off on the device."""


class AcquisitionTimeout(LocationError):
    """A fresh fix did not arrive within the allowed window."""


class PlatformError(LocationError):
    """The positioning capability raised unexpectedly."""


class EnrichmentFailure(LocationError):
    """Reverse geocoding failed or returned nothing."""


class PersistenceFailure(LocationError):
    """The durable key-value store could not be read or written."""
