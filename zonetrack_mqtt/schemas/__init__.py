"""
Zonetrack MQTT Schemas
======================

Bounded Context: Data Structures

Immutable, typed data structures for MQTT messages.

Design:
- Frozen dataclasses (immutability)
- to_dict() for JSON serialization
- from_dict() for deserialization (raises ValueError)
- Schema versioning for evolution

Public API
----------
Common Types:
    Coordinates: Validated lat/lng pair
    Timestamp: ISO 8601 timestamp wrapper

Position Types:
    PositionUpdate: Validated inbound update
    PositionMessage: Outbound raw position

Crossing Types:
    CrossingEvent: One zone transition (ENTER / EXIT / CROSSING)

Example:
    >>> from zonetrack_mqtt.schemas import PositionUpdate
    >>> PositionUpdate.from_dict({'vehicle_id': 'taxi-7', 'lat': 40.7, 'lng': -74.0})
"""

from .common import Coordinates, Timestamp
from .position import PositionUpdate, PositionMessage
from .crossing import CrossingEvent, OUTSIDE_LABEL

__all__ = [
    # Common types
    'Coordinates',
    'Timestamp',
    # Position types
    'PositionUpdate',
    'PositionMessage',
    # Crossing types
    'CrossingEvent',
    'OUTSIDE_LABEL',
]
