"""
Crossing Event Message Schema
=============================

Bounded Context: Zone Transition Data Structures

A CrossingEvent is created exactly when a vehicle's containing zone differs
from the one in its (fresh) prior state. It is immutable, published on the
crossing topic and appended to the crossing log.

Zone display names are denormalized into the event so subscribers can show
"Outside" or the zone name without a lookup.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from zonetrack_zone.analytics.transitions import EventType, classify_transition
from .common import Timestamp

OUTSIDE_LABEL = "Outside"


@dataclass(frozen=True)
class CrossingEvent:
    """
    Single zone transition of one vehicle.

    Attributes:
        vehicle_id: Vehicle identifier
        previous_zone_id: Zone before the update (None = outside all zones)
        current_zone_id: Zone after the update (None = outside all zones)
        event_type: ENTER, EXIT or CROSSING
        lat, lng, speed: Position that triggered the transition
        timestamp: Arrival time assigned by the tracker
        previous_zone_name: Display name of previous zone (None if outside)
        current_zone_name: Display name of current zone (None if outside)
        schema_version: Message schema version

    Invariants:
        - previous_zone_id != current_zone_id
        - event_type matches the (previous, current) pair

    Example:
        >>> event = CrossingEvent(
        ...     vehicle_id="taxi-7",
        ...     previous_zone_id=None,
        ...     current_zone_id="z-downtown",
        ...     event_type=EventType.ENTER,
        ...     lat=40.75, lng=-73.98, speed=32.0,
        ...     timestamp=Timestamp.now(),
        ... )
    """
    vehicle_id: str
    previous_zone_id: Optional[str]
    current_zone_id: Optional[str]
    event_type: EventType
    lat: float
    lng: float
    speed: float
    timestamp: Timestamp
    previous_zone_name: Optional[str] = None
    current_zone_name: Optional[str] = None
    schema_version: str = "1.0"

    def __post_init__(self):
        """Validate invariants."""
        if not self.vehicle_id:
            raise ValueError("vehicle_id must be non-empty")
        expected = classify_transition(self.previous_zone_id, self.current_zone_id)
        if expected is None:
            raise ValueError(
                f"No transition between {self.previous_zone_id!r} and {self.current_zone_id!r}"
            )
        if expected != self.event_type:
            raise ValueError(
                f"event_type {self.event_type.value} does not match transition "
                f"{self.previous_zone_id!r} -> {self.current_zone_id!r} ({expected.value})"
            )

    @property
    def previous_label(self) -> str:
        return self.previous_zone_name or self.previous_zone_id or OUTSIDE_LABEL

    @property
    def current_label(self) -> str:
        return self.current_zone_name or self.current_zone_id or OUTSIDE_LABEL

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'vehicle_id': self.vehicle_id,
            'event_type': self.event_type.value,
            'previous_zone_id': self.previous_zone_id,
            'previous_zone_name': self.previous_zone_name,
            'current_zone_id': self.current_zone_id,
            'current_zone_name': self.current_zone_name,
            'lat': self.lat,
            'lng': self.lng,
            'speed': self.speed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CrossingEvent':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                vehicle_id=str(data['vehicle_id']),
                previous_zone_id=data.get('previous_zone_id'),
                current_zone_id=data.get('current_zone_id'),
                event_type=EventType(data['event_type']),
                lat=float(data['lat']),
                lng=float(data['lng']),
                speed=float(data.get('speed', 0.0)),
                timestamp=Timestamp(value=data['timestamp']),
                previous_zone_name=data.get('previous_zone_name'),
                current_zone_name=data.get('current_zone_name'),
                schema_version=str(data.get('schema_version', '1.0')),
            )
        except KeyError as e:
            raise ValueError(f"Missing required CrossingEvent field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid CrossingEvent data: {e}")

    def describe(self) -> str:
        """One-line human-readable summary."""
        return f"{self.vehicle_id} {self.event_type.value}: {self.previous_label} -> {self.current_label}"
