"""Shared fakes and fixtures for the zonetrack test suite."""

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import paho.mqtt.client as mqtt
import pytest

from zonetrack_processor.dispatch import Topic
from zonetrack_processor.registry import ZoneDirectory
from zonetrack_processor.state import InMemoryStateCache, VehicleStateStore


def square(x0: float, y0: float, x1: float, y1: float) -> Dict[str, Any]:
    """Closed GeoJSON Polygon for an axis-aligned box, (lng, lat) order."""
    return {
        "type": "Polygon",
        "coordinates": [[[x0, y0], [x1, y0], [x1, y1], [x0, y1], [x0, y0]]],
    }


# Zone A: [0, 10] x [0, 10]; Zone B: [20, 30] x [0, 10]; Zone C overlaps A
ZONE_A = {"id": "a", "name": "Zone A", "boundary": square(0, 0, 10, 10)}
ZONE_B = {"id": "b", "name": "Zone B", "boundary": square(20, 0, 30, 10)}
ZONE_C = {"id": "c", "name": "Zone C", "boundary": square(5, 5, 15, 15)}


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeZoneSource:
    """ZoneSource returning fixed rows, or raising when told to."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows = list(rows or [])
        self.error: Optional[Exception] = None
        self.calls = 0

    def list_zones(self) -> List[Dict[str, Any]]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.rows)


class RecordingSink:
    """EventSink that keeps what it is given."""

    def __init__(self):
        self.messages: List[tuple] = []

    def publish(self, topic: Topic, message: Any) -> bool:
        self.messages.append((Topic(topic), message))
        return True

    def of(self, topic: Topic) -> List[Any]:
        return [m for t, m in self.messages if t is topic]


class FakeCrossingLog:
    def __init__(self, fail: bool = False, raise_error: bool = False):
        self.events: List[Any] = []
        self.fail = fail
        self.raise_error = raise_error

    def append(self, event) -> bool:
        if self.raise_error:
            raise RuntimeError("crossing log unavailable")
        if self.fail:
            return False
        self.events.append(event)
        return True

    def history(self, vehicle_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        rows = [e.to_dict() for e in self.events if e.vehicle_id == vehicle_id]
        return list(reversed(rows))[:limit]

    def recent(self, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        rows = [e.to_dict() for e in reversed(self.events)]
        return rows[offset:offset + limit]


class FailingCache:
    """StateCache whose reads and/or writes blow up."""

    def __init__(self, fail_get: bool = True, fail_set: bool = True):
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        if self.fail_get:
            raise ConnectionError("cache unavailable")
        return self.data.get(key)

    def keys(self, prefix: str = "") -> List[str]:
        if self.fail_get:
            raise ConnectionError("cache unavailable")
        return [k for k in self.data if k.startswith(prefix)]

    def set(self, key: str, value: str, ttl: float) -> None:
        if self.fail_set:
            raise ConnectionError("cache unavailable")
        self.data[key] = value


class FakeMQTTClient:
    """Stand-in for paho's Client: records calls, never touches the network."""

    def __init__(self, rc: int = mqtt.MQTT_ERR_SUCCESS, connect_error: Optional[Exception] = None):
        self.rc = rc
        self.connect_error = connect_error
        self.published: List[Dict[str, Any]] = []
        self.subscriptions: List[tuple] = []
        self.connected = False
        self.loop_running = False
        self.on_connect = None
        self.on_disconnect = None
        self.on_message = None
        self.on_subscribe = None

    def username_pw_set(self, username, password=None):
        self.credentials = (username, password)

    def connect(self, host, port=1883, keepalive=60):
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        if self.on_connect is not None:
            self.on_connect(self, None, None, SimpleNamespace(is_failure=False), None)

    def loop_start(self):
        self.loop_running = True

    def loop_stop(self):
        self.loop_running = False

    def disconnect(self):
        self.connected = False

    def subscribe(self, topic, qos=0):
        self.subscriptions.append((topic, qos))

    def publish(self, topic, payload=None, qos=0, retain=False):
        self.published.append({"topic": topic, "payload": payload, "qos": qos, "retain": retain})
        return SimpleNamespace(rc=self.rc, wait_for_publish=lambda timeout=None: None)

    def payloads(self, topic: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            json.loads(p["payload"]) for p in self.published
            if topic is None or p["topic"] == topic
        ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def zone_source() -> FakeZoneSource:
    return FakeZoneSource([ZONE_A, ZONE_B])


@pytest.fixture
def directory(zone_source, clock) -> ZoneDirectory:
    d = ZoneDirectory(zone_source, clock=clock)
    d.refresh()
    return d


@pytest.fixture
def state_store(clock) -> VehicleStateStore:
    return VehicleStateStore(InMemoryStateCache(clock=clock), ttl_s=300, clock=clock)
