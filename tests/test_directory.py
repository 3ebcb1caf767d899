import threading

from zonetrack_processor.registry import ZoneDirectory
from zonetrack_processor.refresh import ZoneRefreshTask
from tests.conftest import ZONE_A, ZONE_B, ZONE_C, FakeZoneSource, square


def test_refresh_loads_valid_zones(directory):
    assert len(directory) == 2
    assert [z.zone_id for z in directory.snapshot()] == ["a", "b"]
    assert directory.get("b").name == "Zone B"
    assert directory.get("missing") is None


def test_find_containing(directory):
    assert directory.find_containing((5, 5)) == "a"
    assert directory.find_containing((25, 5)) == "b"
    assert directory.find_containing((15, 5)) is None


def test_overlap_resolves_to_first_listed():
    directory = ZoneDirectory(FakeZoneSource([ZONE_A, ZONE_C]))
    directory.refresh()
    assert directory.find_containing((7, 7)) == "a"
    assert directory.find_containing((12, 12)) == "c"
    assert [z.zone_id for z in directory.find_all_containing((7, 7))] == ["a", "c"]


def test_invalid_rows_are_skipped_and_reported(clock):
    rows = [
        ZONE_A,
        {"id": "bad", "name": "Bad", "boundary": {"type": "Point", "coordinates": [0, 0]}},
        {"id": "open", "name": "Open", "boundary": {
            "type": "Polygon", "coordinates": [[[20, 0], [30, 0], [30, 10], [20, 10]]],
        }},
    ]
    directory = ZoneDirectory(FakeZoneSource(rows), clock=clock)
    report = directory.refresh()

    assert report.success
    assert report.loaded == 2
    assert [s.zone_id for s in report.skipped] == ["bad"]
    assert report.repaired == ("open",)
    assert report.refreshed_at == clock.now
    assert directory.find_containing((25, 5)) == "open"


def test_duplicate_ids_keep_first():
    duplicate = {"id": "a", "name": "Shadow", "boundary": square(20, 0, 30, 10)}
    directory = ZoneDirectory(FakeZoneSource([ZONE_A, duplicate]))
    report = directory.refresh()

    assert report.loaded == 1
    assert report.skipped[0].reason == "duplicate zone id"
    assert directory.get("a").name == "Zone A"
    assert directory.find_containing((25, 5)) is None


def test_fetch_failure_keeps_previous_zones(directory, zone_source):
    zone_source.error = ConnectionError("database down")
    report = directory.refresh()

    assert not report.success
    assert report.loaded == 2
    assert "database down" in report.error
    assert directory.find_containing((5, 5)) == "a"
    assert directory.last_refresh is report


def test_refresh_replaces_snapshot(directory, zone_source):
    zone_source.rows = [ZONE_B]
    directory.refresh()
    assert directory.find_containing((5, 5)) is None
    assert directory.find_containing((25, 5)) == "b"


def test_empty_source_gives_empty_directory():
    directory = ZoneDirectory(FakeZoneSource([]))
    report = directory.refresh()
    assert report.success
    assert len(directory) == 0
    assert directory.find_containing((0, 0)) is None


def test_list_zones_counts_vertices_without_closing_point(directory):
    assert directory.list_zones()[0] == {"id": "a", "name": "Zone A", "vertices": 4}


def test_report_to_dict(directory):
    data = directory.last_refresh.to_dict()
    assert data["success"] is True
    assert data["loaded"] == 2
    assert data["skipped"] == []


def test_readers_see_whole_snapshots_during_refresh():
    source = FakeZoneSource([ZONE_A])
    directory = ZoneDirectory(source)
    directory.refresh()
    alternatives = [[ZONE_A], [ZONE_A, ZONE_B]]
    seen = set()
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            seen.add(tuple(z.zone_id for z in directory.snapshot()))

    thread = threading.Thread(target=reader)
    thread.start()
    for i in range(200):
        source.rows = alternatives[i % 2]
        directory.refresh()
    stop.set()
    thread.join()

    assert seen <= {("a",), ("a", "b")}


def test_refresh_task_refresh_now(directory, zone_source):
    task = ZoneRefreshTask(directory, interval_s=3600)
    zone_source.rows = [ZONE_B]
    report = task.refresh_now()
    assert report.loaded == 1
    assert not task.is_running()


def test_refresh_task_runs_periodically(zone_source):
    directory = ZoneDirectory(zone_source)
    task = ZoneRefreshTask(directory, interval_s=0.01)
    task.start()
    try:
        deadline = threading.Event()
        for _ in range(200):
            if zone_source.calls >= 2:
                break
            deadline.wait(0.01)
    finally:
        task.stop()

    assert zone_source.calls >= 2
    assert not task.is_running()
