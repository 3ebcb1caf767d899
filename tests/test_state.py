import json

import pytest

from zonetrack_processor.state import (
    InMemoryStateCache,
    VehicleState,
    VehicleStateStore,
    stable_hash,
)
from zonetrack_processor.refresh import StateSweepTask
from tests.conftest import FailingCache


def _state(zone_id="a", updated_at=0.0):
    return VehicleState(
        zone_id=zone_id,
        zone_name="Zone A" if zone_id else None,
        lat=5.0,
        lng=5.0,
        speed=10.0,
        updated_at=updated_at,
    )


def test_stable_hash_is_deterministic():
    assert stable_hash("taxi-7") == stable_hash("taxi-7")
    assert stable_hash("taxi-7") != stable_hash("taxi-8")


def test_cache_expires_entries(clock):
    cache = InMemoryStateCache(clock=clock)
    cache.set("k", "v", ttl=10)
    assert cache.get("k") == "v"

    clock.advance(10)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_cache_purge_expired(clock):
    cache = InMemoryStateCache(shards=4, clock=clock)
    cache.set("old", "1", ttl=1)
    cache.set("new", "2", ttl=100)
    clock.advance(5)

    assert cache.purge_expired() == 1
    assert cache.get("new") == "2"


def test_cache_rejects_bad_arguments():
    with pytest.raises(ValueError):
        InMemoryStateCache(shards=0)
    with pytest.raises(ValueError):
        InMemoryStateCache().set("k", "v", ttl=0)


def test_cache_delete():
    cache = InMemoryStateCache()
    cache.set("k", "v", ttl=10)
    cache.delete("k")
    cache.delete("k")
    assert cache.get("k") is None


def test_store_round_trip(state_store, clock):
    assert state_store.put("taxi-7", _state(updated_at=clock.now))
    state = state_store.get("taxi-7")
    assert state.zone_id == "a"
    assert state.speed == 10.0


def test_store_outside_state_is_kept(state_store, clock):
    state_store.put("taxi-7", _state(zone_id=None, updated_at=clock.now))
    state = state_store.get("taxi-7")
    assert state is not None
    assert state.zone_id is None


def test_store_unknown_vehicle(state_store):
    assert state_store.get("nobody") is None


def test_store_entry_goes_stale(state_store, clock):
    state_store.put("taxi-7", _state(updated_at=clock.now))
    clock.advance(301)
    assert state_store.get("taxi-7") is None


def test_store_age_check_covers_long_lived_cache(clock):
    cache = FailingCache(fail_get=False, fail_set=False)
    store = VehicleStateStore(cache, ttl_s=60, clock=clock)
    store.put("taxi-7", _state(updated_at=clock.now))

    clock.advance(30)
    assert store.get("taxi-7") is not None
    clock.advance(31)
    assert store.get("taxi-7") is None


def test_store_read_failure_is_absent(clock):
    store = VehicleStateStore(FailingCache(fail_get=True, fail_set=False), clock=clock)
    assert store.get("taxi-7") is None


def test_store_write_failure_returns_false(clock):
    store = VehicleStateStore(FailingCache(fail_get=False, fail_set=True), clock=clock)
    assert store.put("taxi-7", _state(updated_at=clock.now)) is False


@pytest.mark.parametrize("raw", ["not json", json.dumps({"zone_id": "a"}), json.dumps([1, 2])])
def test_store_corrupt_entry_is_absent(clock, raw):
    cache = FailingCache(fail_get=False, fail_set=False)
    cache.data["vehicle:taxi-7"] = raw
    store = VehicleStateStore(cache, clock=clock)
    assert store.get("taxi-7") is None


def test_store_rejects_non_positive_ttl():
    with pytest.raises(ValueError):
        VehicleStateStore(InMemoryStateCache(), ttl_s=0)


def test_vehicle_state_from_dict_requires_fields():
    with pytest.raises(ValueError):
        VehicleState.from_dict({"zone_id": None, "lat": 1.0})


def test_cache_keys_skip_expired(clock):
    cache = InMemoryStateCache(shards=4, clock=clock)
    cache.set("vehicle:a", "1", ttl=10)
    cache.set("vehicle:b", "2", ttl=100)
    cache.set("other", "3", ttl=100)
    clock.advance(20)

    assert cache.keys("vehicle:") == ["vehicle:b"]


def test_store_latest_lists_fresh_vehicles(state_store, clock):
    state_store.put("taxi-7", _state(updated_at=clock.now))
    state_store.put("taxi-9", _state(zone_id=None, updated_at=clock.now))

    latest = state_store.latest()

    assert state_store.vehicle_ids() == ["taxi-7", "taxi-9"]
    assert latest["taxi-7"].zone_id == "a"
    assert latest["taxi-9"].zone_id is None


def test_store_latest_drops_stale_vehicles(state_store, clock):
    state_store.put("old", _state(updated_at=clock.now))
    clock.advance(200)
    state_store.put("new", _state(updated_at=clock.now))
    clock.advance(150)

    assert list(state_store.latest()) == ["new"]


def test_store_listing_failure_is_empty(clock):
    store = VehicleStateStore(FailingCache(fail_get=True, fail_set=False), clock=clock)
    assert store.vehicle_ids() == []
    assert store.latest() == {}


def test_sweep_releases_expired_vehicles_without_reads(clock):
    cache = InMemoryStateCache(clock=clock)
    store = VehicleStateStore(cache, ttl_s=300, clock=clock)
    for i in range(5000):
        store.put(f"taxi-{i}", _state(updated_at=clock.now))
    assert len(cache) == 5000

    clock.advance(10_000)
    assert StateSweepTask(store).run_once() == 5000
    assert len(cache) == 0


def test_sweep_uses_ttl_cadence(state_store):
    assert StateSweepTask(state_store).interval_s == 300


def test_sweep_skips_caches_without_purge(clock):
    store = VehicleStateStore(FailingCache(fail_get=False, fail_set=False), clock=clock)
    assert store.purge_expired() == 0
