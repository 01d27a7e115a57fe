import asyncio

from conftest import NOW

from locator.cache.store import FileKeyValueStore
from locator.config import LocationConfig
from locator.platform.base import Fix, PermissionStatus
from locator.service import LocationService
from locator.snapshot import LocationSnapshot, decode_snapshot


def test_fresh_cache_served_without_platform_calls(make_service, platform):
    service = make_service()
    cached = LocationSnapshot(latitude=18.5, longitude=73.8, acquired_at=NOW - 240)

    async def _run():
        await service.cache.put(cached)
        return await service.get_current_location()

    assert asyncio.run(_run()) == cached
    assert sum(platform.calls.values()) == 0


def test_expired_cache_triggers_reacquisition(make_service, platform, clock):
    service = make_service()

    async def _run():
        first = await service.get_current_location()
        clock.advance(301)
        second = await service.get_current_location()
        return first, second

    first, second = asyncio.run(_run())
    assert platform.calls["current"] == 2
    assert second.acquired_at == first.acquired_at + 301


def test_concurrent_callers_share_one_acquisition(make_service, platform):
    platform.delay = 0.05
    service = make_service()

    async def _run():
        return await asyncio.gather(*(service.get_current_location() for _ in range(10)))

    results = asyncio.run(_run())
    assert platform.calls["current"] == 1
    assert platform.calls["permission"] == 1
    assert all(result is results[0] for result in results)
    assert {(r.latitude, r.longitude) for r in results} == {(19.076, 72.8777)}
    assert service.metrics.get("acquisitions") == 1
    assert service.metrics.get("followers_joined") == 9
    assert not service.coordinator.in_flight


def test_next_round_starts_after_previous_completes(make_service, platform):
    platform.delay = 0.01
    service = make_service()

    async def _run():
        await asyncio.gather(*(service.get_current_location(force_refresh=True) for _ in range(3)))
        await asyncio.gather(*(service.get_current_location(force_refresh=True) for _ in range(3)))

    asyncio.run(_run())
    assert platform.calls["current"] == 2


def test_follower_wait_is_bounded_and_falls_back_to_cache(make_service, platform, clock):
    platform.hang = True
    service = make_service(fix_timeout=0.5, follower_wait=0.05)
    expired = LocationSnapshot(latitude=18.6, longitude=73.9, acquired_at=NOW - 900)

    async def _run():
        await service.cache.put(expired)
        leader = asyncio.create_task(service.get_current_location())
        while not service.coordinator.in_flight:
            await asyncio.sleep(0)
        follower = await service.get_current_location()
        assert not leader.done()
        return follower, await leader

    follower, leader_result = asyncio.run(_run())
    assert follower == expired
    assert leader_result == expired
    assert service.metrics.get("follower_timeouts") == 1


def test_follower_timeout_with_empty_cache_returns_default(make_service, platform):
    platform.hang = True
    service = make_service(fix_timeout=0.3, follower_wait=0.05)

    async def _run():
        leader = asyncio.create_task(service.get_current_location())
        while not service.coordinator.in_flight:
            await asyncio.sleep(0)
        follower = await service.get_current_location()
        assert service.get_cached_location() is None
        await leader
        return follower

    follower = asyncio.run(_run())
    assert follower.is_default


def test_cancelled_leader_does_not_abort_round(make_service, platform):
    platform.delay = 0.05
    service = make_service()

    async def _run():
        leader = asyncio.create_task(service.get_current_location())
        while not service.coordinator.in_flight:
            await asyncio.sleep(0)
        follower = asyncio.create_task(service.get_current_location())
        await asyncio.sleep(0)
        leader.cancel()
        return await follower

    snapshot = asyncio.run(_run())
    assert not snapshot.is_default
    assert snapshot.source == "fresh"
    assert platform.calls["current"] == 1


def test_services_disabled_returns_default_without_prompt(make_service, platform):
    platform.enabled = False
    service = make_service()
    snapshot = asyncio.run(service.get_current_location())
    assert snapshot.is_default
    assert platform.calls["permission"] == 0
    assert platform.calls["current"] == 0


def test_default_is_idempotent_and_recached(make_service, platform, store):
    platform.permission = PermissionStatus.DENIED
    service = make_service()

    async def _run():
        first = await service.get_current_location()
        stored_first = decode_snapshot(await store.read("cached_gps_location"))
        second = await service.get_current_location()
        stored_second = decode_snapshot(await store.read("cached_gps_location"))
        return first, second, stored_first, stored_second

    first, second, stored_first, stored_second = asyncio.run(_run())
    assert (first.latitude, first.longitude) == (second.latitude, second.longitude)
    assert first.is_default and second.is_default
    assert stored_first.is_default and stored_second.is_default
    assert platform.calls["permission"] == 2


def test_last_known_scenario(make_service, platform):
    platform.last_known = Fix(latitude=18.52, longitude=73.85, timestamp=NOW - 120)
    service = make_service()
    snapshot = asyncio.run(service.get_current_location(False))
    assert (snapshot.latitude, snapshot.longitude) == (18.52, 73.85)
    assert platform.calls["current"] == 0


def test_force_refresh_bypasses_cache(make_service, platform):
    service = make_service()
    old = LocationSnapshot(latitude=18.5, longitude=73.8, acquired_at=NOW - 600)
    recent = LocationSnapshot(latitude=18.5, longitude=73.8, acquired_at=NOW - 10)

    async def _run():
        await service.cache.put(old)
        refreshed = await service.get_current_location(force_refresh=True)
        await service.cache.put(recent)
        forced_again = await service.get_current_location(force_refresh=True)
        return refreshed, forced_again

    refreshed, forced_again = asyncio.run(_run())
    assert refreshed.source == "fresh"
    assert forced_again.source == "fresh"
    assert platform.calls["current"] == 2


def test_crashing_coordinator_still_answers(make_service, monkeypatch):
    service = make_service()

    async def boom():
        raise RuntimeError("unexpected")

    monkeypatch.setattr(service.coordinator, "acquire", boom)
    snapshot = asyncio.run(service.get_current_location())
    assert snapshot.is_default


def test_cached_location_is_synchronous_and_clearable(make_service, platform):
    service = make_service()
    assert service.get_cached_location() is None

    async def _run():
        snapshot = await service.get_current_location()
        assert service.get_cached_location() == snapshot
        await service.clear_cache()

    asyncio.run(_run())
    assert service.get_cached_location() is None


def test_warm_up_restores_previous_process_state(make_service, store, clock):
    async def _run():
        first = make_service()
        snapshot = await first.get_current_location()
        clock.advance(3600)
        second = make_service()
        assert second.get_cached_location() is None
        restored = await second.warm_up()
        return snapshot, restored

    snapshot, restored = asyncio.run(_run())
    assert restored == snapshot


def test_unusable_cache_key_still_answers(tmp_path, platform, geocoder, clock):
    service = LocationService(
        platform=platform,
        store=FileKeyValueStore(tmp_path),
        geocoder=geocoder,
        config=LocationConfig(cache_key="gps/location"),
        clock=clock,
    )

    async def _run():
        await service.warm_up()
        return await service.get_current_location()

    snapshot = asyncio.run(_run())
    assert snapshot.source == "fresh"
    assert not snapshot.is_default
    assert service.get_cached_location() == snapshot
    assert service.metrics.get("persistence_failures") >= 2
    assert not list(tmp_path.iterdir())


def test_cache_crash_falls_through_to_acquisition(make_service, platform, monkeypatch):
    service = make_service()

    async def boom():
        raise RuntimeError("corrupt cache state")

    monkeypatch.setattr(service.cache, "get", boom)
    snapshot = asyncio.run(service.get_current_location())
    assert snapshot.source == "fresh"
    assert platform.calls["current"] == 1
