import threading
import time

from zonetrack_mqtt.schemas import PositionUpdate
from zonetrack_processor.dispatch import PublishDispatcher, Topic
from zonetrack_processor.workers import UpdateWorkerPool


class StubPublisher:
    def __init__(self, ok=True, error=None):
        self.ok = ok
        self.error = error
        self.sent = []

    def _send(self, message):
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return self.ok

    publish_position = _send
    publish_crossing = _send


def _update(vehicle_id, seq):
    return PositionUpdate(vehicle_id=vehicle_id, lat=0.0, lng=0.0, speed=float(seq))


def test_dispatcher_routes_by_topic():
    positions, crossings = StubPublisher(), StubPublisher()
    dispatcher = PublishDispatcher(positions, crossings)
    dispatcher.start()
    try:
        assert dispatcher.publish(Topic.POSITION, "p1")
        assert dispatcher.publish(Topic.CROSSING, "c1")
        assert dispatcher.publish("position", "p2")
        dispatcher.wait_idle()
    finally:
        dispatcher.stop()

    assert positions.sent == ["p1", "p2"]
    assert crossings.sent == ["c1"]
    assert dispatcher.get_stats()["published"] == 3


def test_dispatcher_drops_when_full():
    dispatcher = PublishDispatcher(StubPublisher(), StubPublisher(), queue_size=2)

    results = [dispatcher.publish(Topic.POSITION, i) for i in range(3)]

    assert results == [True, True, False]
    stats = dispatcher.get_stats()
    assert stats["dropped"] == 1
    assert stats["queued"] == 2


def test_dispatcher_stop_drains_queue():
    positions = StubPublisher()
    dispatcher = PublishDispatcher(positions, StubPublisher())
    for i in range(50):
        dispatcher.publish(Topic.POSITION, i)

    dispatcher.start()
    dispatcher.stop()

    assert positions.sent == list(range(50))


def test_dispatcher_counts_failures_and_keeps_going():
    crossings = StubPublisher(error=RuntimeError("broker gone"))
    positions = StubPublisher(ok=False)
    dispatcher = PublishDispatcher(positions, crossings)
    dispatcher.start()
    try:
        dispatcher.publish(Topic.CROSSING, "c")
        dispatcher.publish(Topic.POSITION, "p")
        dispatcher.wait_idle()
    finally:
        dispatcher.stop()

    assert dispatcher.get_stats()["failed"] == 2


def test_pool_routes_vehicle_to_one_worker():
    pool = UpdateWorkerPool(handler=lambda u: None, workers=8)
    assert pool.size == 8
    assert pool.worker_for("taxi-7") == pool.worker_for("taxi-7")
    assert 0 <= pool.worker_for("taxi-7") < 8


def test_pool_preserves_per_vehicle_order():
    seen = {}
    lock = threading.Lock()

    def handler(update):
        # Jitter so workers interleave
        time.sleep(0.0005 if int(update.speed) % 3 == 0 else 0)
        with lock:
            seen.setdefault(update.vehicle_id, []).append(int(update.speed))

    pool = UpdateWorkerPool(handler=handler, workers=4)
    pool.start()
    try:
        for seq in range(50):
            for vehicle in ("v1", "v2", "v3", "v4", "v5"):
                assert pool.submit(_update(vehicle, seq))
        pool.wait_idle()
    finally:
        pool.stop()

    assert set(seen) == {"v1", "v2", "v3", "v4", "v5"}
    for sequence in seen.values():
        assert sequence == list(range(50))
    assert pool.get_stats()["processed"] == 250


def test_pool_drops_when_worker_queue_full():
    pool = UpdateWorkerPool(handler=lambda u: None, workers=1, queue_size=1)

    assert pool.submit(_update("v", 0))
    assert not pool.submit(_update("v", 1))
    assert pool.get_stats()["dropped"] == 1


def test_pool_survives_handler_errors():
    handled = []

    def handler(update):
        if update.speed == 0:
            raise ValueError("boom")
        handled.append(update.speed)

    pool = UpdateWorkerPool(handler=handler, workers=1)
    pool.start()
    try:
        pool.submit(_update("v", 0))
        pool.submit(_update("v", 1))
        pool.wait_idle()
    finally:
        pool.stop()

    assert handled == [1.0]
    assert pool.get_stats()["errors"] == 1


def test_pool_stop_drains_queued_updates():
    handled = []
    pool = UpdateWorkerPool(handler=handled.append, workers=2)
    for seq in range(20):
        pool.submit(_update(f"v{seq % 3}", seq))

    pool.start()
    pool.stop()

    assert len(handled) == 20
