"""
Zone Definition Module
======================

Bounded Context: Named geographic zones.

Design:
- A Zone is a value object: id + display name + polygon boundary
- Immutable (frozen dataclass), safe to share between threads
- Containment delegates to the geometry layer
"""

from dataclasses import dataclass
from typing import Any, Dict

from zonetrack_zone.geometry.shapes import PolygonBoundary, Point


@dataclass(frozen=True, eq=False)
class Zone:
    """
    Named polygonal zone.

    Attributes:
        zone_id: Opaque, stable identifier (as stored in the zone source)
        name: Display name
        boundary: Validated polygon ring
    """

    zone_id: str
    name: str
    boundary: PolygonBoundary

    def __post_init__(self):
        if not self.zone_id:
            raise ValueError("zone_id cannot be empty")

    def contains_point(self, point: Point) -> bool:
        """Check if a (lng, lat) point falls inside this zone."""
        return self.boundary.contains_point(point)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict (zone source row shape)."""
        return {
            "id": self.zone_id,
            "name": self.name,
            "boundary": self.boundary.to_geojson(),
        }

    def __repr__(self) -> str:
        return f"Zone(zone_id={self.zone_id!r}, name={self.name!r}, points={len(self.boundary)})"
