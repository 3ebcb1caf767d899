import pytest

from zonetrack_mqtt.schemas import PositionUpdate
from zonetrack_processor.detector import CrossingDetector, DetectionResult
from zonetrack_processor.dispatch import Topic
from zonetrack_processor.state import VehicleStateStore
from zonetrack_zone import EventType, VehiclePhase, ZoneCounter
from tests.conftest import FailingCache, FakeCrossingLog, RecordingSink

INSIDE_A = (5.0, 5.0)     # (lng, lat)
INSIDE_B = (25.0, 5.0)
OUTSIDE = (15.0, 5.0)


def _update(point, vehicle_id="taxi-7", speed=0.0):
    lng, lat = point
    return PositionUpdate(vehicle_id=vehicle_id, lat=lat, lng=lng, speed=speed)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def crossing_log():
    return FakeCrossingLog()


@pytest.fixture
def detector(directory, state_store, sink, crossing_log, clock):
    return CrossingDetector(
        directory=directory,
        state_store=state_store,
        publisher=sink,
        crossing_log=crossing_log,
        counter=ZoneCounter(),
        clock=clock,
    )


def _event_types(results):
    return [r.event.event_type if r.event else None for r in results]


def test_first_sighting_seeds_state_without_event(detector, state_store, crossing_log):
    result = detector.process(_update(INSIDE_A))

    assert result.first_sighting
    assert result.event is None
    assert result.zone_id == "a"
    assert state_store.get("taxi-7").zone_id == "a"
    assert crossing_log.events == []


def test_first_sighting_outside_seeds_outside_state(detector, state_store):
    result = detector.process(_update(OUTSIDE))
    assert result.event is None
    assert state_store.get("taxi-7").zone_id is None


def test_exit_then_enter(detector, crossing_log, clock):
    detector.process(_update(INSIDE_A))
    clock.advance(1)
    exit_result = detector.process(_update(OUTSIDE))
    clock.advance(1)
    enter_result = detector.process(_update(INSIDE_B))

    assert exit_result.event.event_type is EventType.EXIT
    assert exit_result.event.previous_zone_id == "a"
    assert exit_result.event.current_zone_id is None
    assert exit_result.event.describe() == "taxi-7 EXIT: Zone A -> Outside"

    assert enter_result.event.event_type is EventType.ENTER
    assert enter_result.event.previous_zone_id is None
    assert enter_result.event.current_zone_id == "b"
    assert enter_result.event.current_zone_name == "Zone B"

    assert [e.event_type for e in crossing_log.events] == [EventType.EXIT, EventType.ENTER]


def test_direct_crossing_between_zones(detector, clock):
    detector.process(_update(INSIDE_A))
    clock.advance(1)
    result = detector.process(_update(INSIDE_B, speed=30.0))

    assert result.event.event_type is EventType.CROSSING
    assert result.event.previous_zone_name == "Zone A"
    assert result.event.current_zone_name == "Zone B"
    assert result.event.speed == 30.0
    assert result.recorded is True


def test_staying_put_emits_nothing(detector, clock):
    results = []
    for point in [INSIDE_A, INSIDE_A, (6.0, 6.0), OUTSIDE, OUTSIDE]:
        results.append(detector.process(_update(point)))
        clock.advance(1)

    assert _event_types(results) == [None, None, None, EventType.EXIT, None]


def test_state_always_reflects_latest_update(detector, state_store, clock):
    detector.process(_update(INSIDE_A, speed=1.0))
    clock.advance(1)
    detector.process(_update((6.0, 6.0), speed=2.0))

    state = state_store.get("taxi-7")
    assert state.zone_id == "a"
    assert (state.lng, state.lat, state.speed) == (6.0, 6.0, 2.0)
    assert state.updated_at == clock.now


def test_vehicles_are_independent(detector, clock):
    detector.process(_update(INSIDE_A, vehicle_id="v1"))
    detector.process(_update(INSIDE_B, vehicle_id="v2"))
    clock.advance(1)

    r1 = detector.process(_update(INSIDE_B, vehicle_id="v1"))
    r2 = detector.process(_update(INSIDE_B, vehicle_id="v2"))

    assert r1.event.event_type is EventType.CROSSING
    assert r2.event is None


def test_stale_state_is_a_first_sighting(detector, clock):
    detector.process(_update(INSIDE_A))
    clock.advance(301)
    result = detector.process(_update(OUTSIDE))

    assert result.first_sighting
    assert result.event is None


def test_every_update_publishes_a_position(detector, sink, clock):
    for point in [INSIDE_A, OUTSIDE, INSIDE_B]:
        detector.process(_update(point))
        clock.advance(1)

    positions = sink.of(Topic.POSITION)
    assert [p.zone_id for p in positions] == ["a", None, "b"]
    assert [p.zone_name for p in positions] == ["Zone A", None, "Zone B"]
    assert len(sink.of(Topic.CROSSING)) == 2


def test_crossing_published_before_position(detector, sink, clock):
    detector.process(_update(INSIDE_A))
    clock.advance(1)
    detector.process(_update(INSIDE_B))

    topics = [t for t, _ in sink.messages]
    assert topics == [Topic.POSITION, Topic.CROSSING, Topic.POSITION]


def test_failed_append_keeps_state_and_publishes(directory, state_store, sink, clock):
    log = FakeCrossingLog(raise_error=True)
    detector = CrossingDetector(directory, state_store, sink, log, clock=clock)

    detector.process(_update(INSIDE_A))
    clock.advance(1)
    result = detector.process(_update(OUTSIDE))

    assert result.event.event_type is EventType.EXIT
    assert result.recorded is False
    assert state_store.get("taxi-7").zone_id is None
    assert len(sink.of(Topic.CROSSING)) == 1


def test_rejected_append_is_reported(directory, state_store, sink, clock):
    detector = CrossingDetector(directory, state_store, sink, FakeCrossingLog(fail=True), clock=clock)
    detector.process(_update(INSIDE_A))
    clock.advance(1)
    assert detector.process(_update(OUTSIDE)).recorded is False


def test_unavailable_state_means_no_events(directory, sink, clock):
    store = VehicleStateStore(FailingCache(), clock=clock)
    detector = CrossingDetector(directory, store, sink, FakeCrossingLog(), clock=clock)

    results = [detector.process(_update(p)) for p in [INSIDE_A, OUTSIDE, INSIDE_B]]

    assert all(r.first_sighting for r in results)
    assert _event_types(results) == [None, None, None]
    assert len(sink.of(Topic.POSITION)) == 3


def test_counter_tracks_transitions(detector, clock):
    for point in [INSIDE_A, INSIDE_B, OUTSIDE, INSIDE_A]:
        detector.process(_update(point))
        clock.advance(1)

    a = detector.counter.get_stats("a")
    b = detector.counter.get_stats("b")
    assert (a.crossed_out, a.total_entered) == (1, 1)
    assert (b.crossed_in, b.total_exited) == (1, 1)


def test_zone_refresh_changes_outcome(detector, directory, zone_source, clock):
    detector.process(_update(INSIDE_A))
    zone_source.rows = []
    directory.refresh()
    clock.advance(1)

    result = detector.process(_update(INSIDE_A))
    assert result.event.event_type is EventType.EXIT


def test_result_to_dict(detector, clock):
    detector.process(_update(INSIDE_A))
    clock.advance(1)
    data = detector.process(_update(OUTSIDE)).to_dict()

    assert data["event"]["event_type"] == "EXIT"
    assert data["previous_zone_id"] == "a"
    assert data["recorded"] is True
    assert (data["previous_phase"], data["phase"]) == ("in_zone", "outside")


def test_result_phases():
    first = DetectionResult(vehicle_id="v", zone_id="a", previous_zone_id=None, first_sighting=True)
    assert first.previous_phase is VehiclePhase.UNSEEN
    assert first.phase is VehiclePhase.IN_ZONE

    came_back_outside = DetectionResult(vehicle_id="v", zone_id=None, previous_zone_id=None, first_sighting=False)
    assert came_back_outside.previous_phase is VehiclePhase.OUTSIDE
    assert came_back_outside.phase is VehiclePhase.OUTSIDE


class ExplodingSink:
    def __init__(self):
        self.attempts = 0

    def publish(self, topic, message):
        self.attempts += 1
        raise ConnectionError("transport down")


def test_publisher_errors_do_not_stop_recording(directory, state_store, crossing_log, clock):
    sink = ExplodingSink()
    detector = CrossingDetector(directory, state_store, sink, crossing_log, clock=clock)

    detector.process(_update(OUTSIDE))
    clock.advance(1)
    result = detector.process(_update(INSIDE_A))

    assert result.event.event_type is EventType.ENTER
    assert result.recorded is True
    assert [e.event_type for e in crossing_log.events] == [EventType.ENTER]
    assert state_store.get("taxi-7").zone_id == "a"
    # crossing and position both attempted on the second update
    assert sink.attempts == 3
