"""
Vehicle State Store - last known zone per vehicle, with a staleness window.

Layers:
- StateCache: key/value collaborator with per-key TTL (get / set)
- InMemoryStateCache: in-process StateCache with striped locks
- VehicleStateStore: typed facade storing VehicleState as JSON

An entry older than the staleness window is treated as absent, so a vehicle
that goes quiet and comes back is a first sighting again, never an EXIT.

Failure policy:
- read failure or undecodable payload -> None (logged)
- write failure -> logged and swallowed
"""

import json
import threading
import time
import zlib
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from zonetrack_mqtt.logging import LogEvent, StructuredLogger, create_logger

DEFAULT_STATE_TTL_S = 300.0


def stable_hash(key: str) -> int:
    """Process-independent hash for routing keys to shards/workers."""
    return zlib.crc32(key.encode("utf-8"))


class StateCache(Protocol):
    """Key/value cache with per-key expiry; keys() lists live keys by prefix."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str, ttl: float) -> None:
        ...

    def keys(self, prefix: str = "") -> List[str]:
        ...


class InMemoryStateCache:
    """
    Thread-safe in-process StateCache.

    Keys are spread across shards, each with its own lock, so updates for
    different vehicles rarely contend. Expired entries are dropped lazily on
    read and by purge_expired(), which the service runs periodically.
    """

    def __init__(self, shards: int = 16, clock: Callable[[], float] = time.monotonic):
        if shards < 1:
            raise ValueError(f"shards must be >= 1, got {shards}")
        self._clock = clock
        self._shards: List[Tuple[threading.Lock, Dict[str, Tuple[str, float]]]] = [
            (threading.Lock(), {}) for _ in range(shards)
        ]

    def _shard(self, key: str) -> Tuple[threading.Lock, Dict[str, Tuple[str, float]]]:
        return self._shards[stable_hash(key) % len(self._shards)]

    def get(self, key: str) -> Optional[str]:
        lock, entries = self._shard(key)
        with lock:
            entry = entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be > 0, got {ttl}")
        lock, entries = self._shard(key)
        with lock:
            entries[key] = (value, self._clock() + ttl)

    def keys(self, prefix: str = "") -> List[str]:
        """Unexpired keys starting with prefix."""
        now = self._clock()
        found: List[str] = []
        for lock, entries in self._shards:
            with lock:
                found.extend(
                    k for k, (_, expires_at) in entries.items()
                    if k.startswith(prefix) and now < expires_at
                )
        return found

    def delete(self, key: str) -> None:
        lock, entries = self._shard(key)
        with lock:
            entries.pop(key, None)

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        removed = 0
        for lock, entries in self._shards:
            with lock:
                expired = [k for k, (_, expires_at) in entries.items() if now >= expires_at]
                for k in expired:
                    del entries[k]
                removed += len(expired)
        return removed

    def __len__(self) -> int:
        total = 0
        for lock, entries in self._shards:
            with lock:
                total += len(entries)
        return total


@dataclass(frozen=True)
class VehicleState:
    """
    Last known position and zone of one vehicle.

    Attributes:
        zone_id: Containing zone (None = outside all zones)
        zone_name: Display name of that zone (None = outside)
        lat, lng, speed: Last position
        updated_at: Epoch seconds when the tracker processed it
    """

    zone_id: Optional[str]
    zone_name: Optional[str]
    lat: float
    lng: float
    speed: float
    updated_at: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VehicleState":
        """
        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            zone_id = data["zone_id"]
            return cls(
                zone_id=str(zone_id) if zone_id is not None else None,
                zone_name=data.get("zone_name"),
                lat=float(data["lat"]),
                lng=float(data["lng"]),
                speed=float(data.get("speed", 0.0)),
                updated_at=float(data["updated_at"]),
            )
        except KeyError as e:
            raise ValueError(f"Missing required VehicleState field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid VehicleState data: {e}")


class VehicleStateStore:
    """
    Typed access to per-vehicle state.

    Usage:
        store = VehicleStateStore(InMemoryStateCache(), ttl_s=300)
        store.put("taxi-7", VehicleState(zone_id="z1", zone_name="Downtown",
                                         lat=40.7, lng=-74.0, speed=0.0,
                                         updated_at=time.time()))
        store.get("taxi-7").zone_id  # "z1"
    """

    KEY_PREFIX = "vehicle:"

    def __init__(
        self,
        cache: StateCache,
        ttl_s: float = DEFAULT_STATE_TTL_S,
        logger: Optional[StructuredLogger] = None,
        clock: Callable[[], float] = time.time,
    ):
        if ttl_s <= 0:
            raise ValueError(f"ttl_s must be > 0, got {ttl_s}")
        self._cache = cache
        self.ttl_s = ttl_s
        self._logger = logger or create_logger("state_store")
        self._clock = clock

    def _key(self, vehicle_id: str) -> str:
        return f"{self.KEY_PREFIX}{vehicle_id}"

    def get(self, vehicle_id: str) -> Optional[VehicleState]:
        """Fresh state for the vehicle, or None (absent, stale, unreadable)."""
        try:
            raw = self._cache.get(self._key(vehicle_id))
        except Exception as e:
            self._logger.error(
                event=LogEvent.STATE_READ_FAILED,
                message="Vehicle state read failed, treating as first sighting",
                metadata={"vehicle_id": vehicle_id},
                exc_info=e,
            )
            return None

        if raw is None:
            return None

        try:
            state = VehicleState.from_dict(json.loads(raw))
        except (TypeError, ValueError) as e:
            self._logger.warning(
                event=LogEvent.STATE_CORRUPT,
                message="Stored vehicle state could not be decoded",
                metadata={"vehicle_id": vehicle_id},
                exc_info=e,
            )
            return None

        # The cache TTL is the primary expiry; this also covers caches whose
        # expiry is coarser than ours.
        if self._clock() - state.updated_at > self.ttl_s:
            return None

        return state

    def put(self, vehicle_id: str, state: VehicleState) -> bool:
        """Overwrite the vehicle's state. Returns False on (logged) failure."""
        try:
            self._cache.set(self._key(vehicle_id), json.dumps(state.to_dict()), self.ttl_s)
        except Exception as e:
            self._logger.error(
                event=LogEvent.STATE_WRITE_FAILED,
                message="Vehicle state write failed",
                metadata={"vehicle_id": vehicle_id},
                exc_info=e,
            )
            return False
        return True

    def vehicle_ids(self) -> List[str]:
        """Ids of vehicles with live cache entries ([] when listing fails)."""
        try:
            keys = self._cache.keys(self.KEY_PREFIX)
        except Exception as e:
            self._logger.error(
                event=LogEvent.STATE_READ_FAILED,
                message="Vehicle state listing failed",
                exc_info=e,
            )
            return []
        return sorted(k[len(self.KEY_PREFIX):] for k in keys)

    def latest(self) -> Dict[str, VehicleState]:
        """Fresh state of every live vehicle, keyed by vehicle id."""
        states = {}
        for vehicle_id in self.vehicle_ids():
            state = self.get(vehicle_id)
            if state is not None:
                states[vehicle_id] = state
        return states

    def purge_expired(self) -> int:
        """
        Drop expired entries from caches that keep them until read.

        Caches without purge_expired() expire entries on their own and are
        left alone.
        """
        purge = getattr(self._cache, "purge_expired", None)
        if purge is None:
            return 0
        try:
            removed = purge()
        except Exception as e:
            self._logger.error(
                event=LogEvent.STATE_PURGE_FAILED,
                message="Expired vehicle state purge failed",
                exc_info=e,
            )
            return 0
        if removed:
            self._logger.debug(
                event=LogEvent.STATE_PURGED,
                message=f"Purged {removed} expired vehicle states",
                metadata={"removed": removed},
            )
        return removed
