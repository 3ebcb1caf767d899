"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

This module defines common types used across position and crossing messages.

Design Principles:
- Immutability: frozen=True prevents accidental mutation
- Type Safety: All fields explicitly typed
- Serialization: to_dict() for JSON export
- Validation: Constructor validates invariants

Types:
- Coordinates: WGS84 latitude/longitude pair
- Timestamp: ISO 8601 timestamp wrapper (UTC)
"""

import math
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Tuple


def require_number(data: Dict[str, Any], key: str) -> float:
    """
    Extract a finite real number from a message dict.

    Booleans and numeric strings are rejected: a position is JSON numbers
    or it is malformed.

    Raises:
        ValueError: If key missing, non-numeric or not finite
    """
    if key not in data or data[key] is None:
        raise ValueError(f"Missing required field: '{key}'")
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Field '{key}' must be a number, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Field '{key}' must be finite, got {value}")
    return value


@dataclass(frozen=True)
class Coordinates:
    """
    Immutable WGS84 coordinate pair.

    Attributes:
        lat: Latitude in degrees, [-90, 90]
        lng: Longitude in degrees, [-180, 180]

    Example:
        >>> c = Coordinates(lat=40.7128, lng=-74.0060)
        >>> c.point
        (-74.006, 40.7128)
    """
    lat: float
    lng: float

    def __post_init__(self):
        """Validate invariants."""
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude must be in [-90, 90], got {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude must be in [-180, 180], got {self.lng}")

    @property
    def point(self) -> Tuple[float, float]:
        """(lng, lat) order, as used by polygon rings."""
        return (self.lng, self.lat)

    def to_dict(self) -> Dict[str, float]:
        """Serialize to JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Coordinates':
        """Deserialize from dict.

        Raises:
            ValueError: If lat/lng missing, non-numeric or out of range
        """
        return cls(lat=require_number(data, 'lat'), lng=require_number(data, 'lng'))


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable ISO 8601 timestamp wrapper.

    Attributes:
        value: ISO 8601 formatted timestamp string (UTC offset included)

    Example:
        >>> ts = Timestamp.now()
        >>> ts.value
        '2025-10-24T15:30:45.123456+00:00'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current time."""
        return cls(value=datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_datetime(cls, dt: datetime) -> 'Timestamp':
        """Create timestamp from datetime object."""
        return cls(value=dt.isoformat())

    @classmethod
    def from_epoch(cls, seconds: float) -> 'Timestamp':
        """Create timestamp from Unix epoch seconds."""
        return cls(value=datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat())

    def to_datetime(self) -> datetime:
        """Parse to datetime object.

        Raises:
            ValueError: If timestamp format invalid
        """
        try:
            return datetime.fromisoformat(self.value)
        except ValueError as e:
            raise ValueError(f"Invalid ISO timestamp: {self.value}") from e

    def to_dict(self) -> str:
        """Serialize to JSON (as string)."""
        return self.value
