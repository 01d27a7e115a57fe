import asyncio
from typing import Optional

import pytest

from locator.cache.store import MemoryKeyValueStore
from locator.config import LocationConfig
from locator.errors import PersistenceFailure
from locator.platform.base import Fix, PermissionStatus
from locator.service import LocationService
from locator.snapshot import Address

NOW = 1_760_000_000.0


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePlatform:
    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.enabled = True
        self.permission = PermissionStatus.GRANTED
        self.last_known: Optional[Fix] = None
        self.fix: Optional[Fix] = Fix(latitude=19.076, longitude=72.8777, timestamp=clock())
        self.delay = 0.0
        self.hang = False
        self.error: Optional[Exception] = None
        self.calls = {"services": 0, "permission": 0, "last_known": 0, "current": 0}

    async def services_enabled(self) -> bool:
        self.calls["services"] += 1
        return self.enabled

    async def request_foreground_permission(self) -> PermissionStatus:
        self.calls["permission"] += 1
        return self.permission

    async def last_known_position(self) -> Optional[Fix]:
        self.calls["last_known"] += 1
        return self.last_known

    async def current_position(self, accuracy: str) -> Fix:
        self.calls["current"] += 1
        if self.hang:
            await asyncio.Event().wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.fix


class FakeGeocoder:
    def __init__(self) -> None:
        self.address: Optional[Address] = Address(city="Mumbai", region="Maharashtra", postal_code="400001")
        self.error: Optional[Exception] = None
        self.calls = 0

    async def reverse_geocode(self, latitude: float, longitude: float) -> Optional[Address]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.address


class FailingStore(MemoryKeyValueStore):
    async def read(self, key: str):
        raise PersistenceFailure("disk unavailable")

    async def write(self, key: str, value: bytes) -> None:
        raise PersistenceFailure("disk full")

    async def delete(self, key: str) -> None:
        raise PersistenceFailure("disk unavailable")


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def platform(clock):
    return FakePlatform(clock)


@pytest.fixture()
def geocoder():
    return FakeGeocoder()


@pytest.fixture()
def store():
    return MemoryKeyValueStore()


@pytest.fixture()
def make_service(platform, geocoder, store, clock):
    def _make(**overrides) -> LocationService:
        config = LocationConfig(**overrides)
        return LocationService(
            platform=platform,
            store=store,
            geocoder=geocoder,
            config=config,
            clock=clock,
        )

    return _make
