import json
import sqlite3

import pytest

from zonetrack_mqtt.schemas import CrossingEvent, Timestamp
from zonetrack_processor.registry import ZoneDirectory
from zonetrack_processor.storage import SqliteCrossingLog, SqliteZoneStore, YamlZoneSource
from zonetrack_zone import EventType
from tests.conftest import ZONE_A, square


def _event(vehicle_id="taxi-7", seconds=0, previous=None, current="a"):
    if previous is None:
        event_type = EventType.ENTER
    elif current is None:
        event_type = EventType.EXIT
    else:
        event_type = EventType.CROSSING
    return CrossingEvent(
        vehicle_id=vehicle_id,
        previous_zone_id=previous,
        current_zone_id=current,
        event_type=event_type,
        lat=1.0,
        lng=2.0,
        speed=3.0,
        timestamp=Timestamp.from_epoch(1_700_000_000 + seconds),
    )


@pytest.fixture
def zone_store(tmp_path):
    store = SqliteZoneStore(tmp_path / "db" / "zonetrack.db")
    yield store
    store.close()


@pytest.fixture
def crossing_log():
    log = SqliteCrossingLog(":memory:")
    yield log
    log.close()


def test_zone_store_lists_in_insertion_order(zone_store):
    zone_store.upsert_zone("z2", "Second", square(0, 0, 1, 1))
    zone_store.upsert_zone("z1", "First", json.dumps(square(2, 2, 3, 3)))

    rows = zone_store.list_zones()
    assert [r["id"] for r in rows] == ["z2", "z1"]
    assert isinstance(rows[0]["boundary"], str)


def test_zone_store_update_keeps_position(zone_store):
    zone_store.upsert_zone("z1", "One", square(0, 0, 1, 1))
    zone_store.upsert_zone("z2", "Two", square(0, 0, 1, 1))
    zone_store.upsert_zone("z1", "One renamed", square(0, 0, 2, 2))

    rows = zone_store.list_zones()
    assert [r["id"] for r in rows] == ["z1", "z2"]
    assert rows[0]["name"] == "One renamed"


def test_zone_store_explicit_position(zone_store):
    zone_store.upsert_zone("z1", "One", square(0, 0, 1, 1))
    zone_store.upsert_zone("z0", "Zero", square(0, 0, 1, 1), position=-1)
    assert [r["id"] for r in zone_store.list_zones()] == ["z0", "z1"]


def test_zone_store_delete(zone_store):
    zone_store.upsert_zone("z1", "One", square(0, 0, 1, 1))
    assert zone_store.delete_zone("z1") is True
    assert zone_store.delete_zone("z1") is False
    assert zone_store.list_zones() == []


def test_zone_store_rejects_empty_id(zone_store):
    with pytest.raises(ValueError):
        zone_store.upsert_zone("", "x", square(0, 0, 1, 1))


def test_zone_store_feeds_directory(zone_store):
    zone_store.upsert_zone("a", "Zone A", square(0, 0, 10, 10))
    zone_store.upsert_zone("broken", "Broken", "{not json")

    directory = ZoneDirectory(zone_store)
    report = directory.refresh()
    assert report.loaded == 1
    assert directory.find_containing((5, 5)) == "a"


def test_crossing_log_append_and_history(crossing_log):
    assert crossing_log.append(_event(seconds=0))
    assert crossing_log.append(_event(seconds=10, previous="a", current=None))
    assert crossing_log.append(_event(vehicle_id="other", seconds=5))

    history = crossing_log.history("taxi-7")
    assert [h["event_type"] for h in history] == ["EXIT", "ENTER"]
    assert history[0]["previous_zone"] == "a"
    assert history[0]["current_zone"] is None
    assert crossing_log.count() == 3


def test_crossing_log_recent_paginates(crossing_log):
    for i in range(5):
        crossing_log.append(_event(vehicle_id=f"v{i}", seconds=i))

    assert [r["vehicle_id"] for r in crossing_log.recent(limit=2)] == ["v4", "v3"]
    assert [r["vehicle_id"] for r in crossing_log.recent(limit=2, offset=2)] == ["v2", "v1"]


def test_crossing_log_same_timestamp_orders_by_insertion(crossing_log):
    crossing_log.append(_event(vehicle_id="first"))
    crossing_log.append(_event(vehicle_id="second"))
    assert crossing_log.recent(limit=1)[0]["vehicle_id"] == "second"


@pytest.mark.parametrize("limit, offset", [(0, 0), (1001, 0), (10, -1), (True, 0)])
def test_crossing_log_rejects_bad_pages(crossing_log, limit, offset):
    with pytest.raises(ValueError):
        crossing_log.recent(limit=limit, offset=offset)


def test_crossing_log_append_failure_returns_false(crossing_log):
    crossing_log.conn.execute("DROP TABLE zone_crossings")
    assert crossing_log.append(_event()) is False


def test_crossing_log_survives_reopen(tmp_path):
    path = tmp_path / "log.db"
    log = SqliteCrossingLog(path)
    log.append(_event())
    log.close()

    reopened = SqliteCrossingLog(path)
    assert reopened.count() == 1
    reopened.close()

    with sqlite3.connect(path) as conn:
        assert conn.execute("SELECT COUNT(*) FROM zone_crossings").fetchone()[0] == 1


def test_yaml_zone_source_returns_copies():
    source = YamlZoneSource([ZONE_A])
    rows = source.list_zones()
    rows[0]["boundary"]["coordinates"].clear()
    assert source.list_zones()[0]["boundary"]["coordinates"]
