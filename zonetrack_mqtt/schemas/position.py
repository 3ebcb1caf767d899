"""
Position Message Schemas
========================

Bounded Context: Vehicle Position Data Structures

Two shapes:

- PositionUpdate: inbound update as sent by a vehicle
  ``{vehicle_id, lat, lng, speed?}``. Validated before it reaches the core.
  Any sender timestamp is ignored; the core stamps arrival time itself.
- PositionMessage: outbound raw position, published on the position topic
  for every processed update, with the zone the vehicle is currently in.

Message Flow:
    Ingest topic → PositionUpdate → CrossingDetector → PositionMessage → MQTT
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .common import Coordinates, Timestamp, require_number


@dataclass(frozen=True)
class PositionUpdate:
    """
    Validated inbound position update.

    Attributes:
        vehicle_id: Non-empty vehicle identifier
        lat: Latitude in degrees, [-90, 90]
        lng: Longitude in degrees, [-180, 180]
        speed: Non-negative speed (defaults to 0)

    Example:
        >>> update = PositionUpdate.from_dict({'vehicle_id': 'taxi-7', 'lat': 40.75, 'lng': -73.98})
        >>> update.speed
        0.0
    """
    vehicle_id: str
    lat: float
    lng: float
    speed: float = 0.0

    def __post_init__(self):
        """Validate invariants."""
        if not isinstance(self.vehicle_id, str) or not self.vehicle_id.strip():
            raise ValueError("vehicle_id must be a non-empty string")
        # Raises on out-of-range coordinates
        Coordinates(lat=self.lat, lng=self.lng)
        if self.speed < 0:
            raise ValueError(f"speed must be >= 0, got {self.speed}")

    @property
    def point(self) -> Tuple[float, float]:
        """(lng, lat), the order polygon rings use."""
        return (self.lng, self.lat)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'vehicle_id': self.vehicle_id,
            'lat': self.lat,
            'lng': self.lng,
            'speed': self.speed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PositionUpdate':
        """Deserialize and validate an inbound update.

        Args:
            data: Decoded JSON payload

        Returns:
            PositionUpdate instance

        Raises:
            ValueError: If vehicle_id missing/empty, lat/lng missing,
                non-numeric or out of range, or speed negative/non-numeric
        """
        if not isinstance(data, dict):
            raise ValueError(f"Position update must be an object, got {type(data).__name__}")

        vehicle_id = data.get('vehicle_id')
        if vehicle_id is None:
            raise ValueError("Missing required field: 'vehicle_id'")
        if not isinstance(vehicle_id, (str, int)) or isinstance(vehicle_id, bool):
            raise ValueError(f"vehicle_id must be a string, got {type(vehicle_id).__name__}")

        speed = require_number(data, 'speed') if data.get('speed') is not None else 0.0

        return cls(
            vehicle_id=str(vehicle_id),
            lat=require_number(data, 'lat'),
            lng=require_number(data, 'lng'),
            speed=speed,
        )


@dataclass(frozen=True)
class PositionMessage:
    """
    Outbound raw position, published for every processed update.

    Attributes:
        schema_version: Message schema version (for evolution)
        timestamp: Arrival time assigned by the tracker
        vehicle_id: Vehicle identifier
        lat, lng, speed: Position as received
        zone_id: Zone currently containing the vehicle (None if outside)
        zone_name: Display name of that zone (None if outside)
    """
    schema_version: str
    timestamp: Timestamp
    vehicle_id: str
    lat: float
    lng: float
    speed: float
    zone_id: Optional[str] = None
    zone_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'vehicle_id': self.vehicle_id,
            'lat': self.lat,
            'lng': self.lng,
            'speed': self.speed,
            'zone_id': self.zone_id,
            'zone_name': self.zone_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PositionMessage':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                schema_version=str(data['schema_version']),
                timestamp=Timestamp(value=data['timestamp']),
                vehicle_id=str(data['vehicle_id']),
                lat=float(data['lat']),
                lng=float(data['lng']),
                speed=float(data.get('speed', 0.0)),
                zone_id=data.get('zone_id'),
                zone_name=data.get('zone_name'),
            )
        except KeyError as e:
            raise ValueError(f"Missing required PositionMessage field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid PositionMessage data: {e}")
