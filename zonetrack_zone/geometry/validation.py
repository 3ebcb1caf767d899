"""
Zone Validation Module
======================

Single source of truth for turning raw zone rows into Zone objects.

Both the directory refresh and the offline `validate-zones` CLI go through
validate_zone(); neither raises on bad data, they read the structured result.

Accepted boundary forms:
- GeoJSON Polygon dict: {"type": "Polygon", "coordinates": [[[lng, lat], ...]]}
- The same object serialized as a JSON string

Only the outer ring is used; holes are ignored. An unclosed ring is closed
by repeating its first point and the result is flagged as repaired.
"""

import json
import numbers
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from zonetrack_zone.geometry.shapes import PolygonBoundary
from zonetrack_zone.zone import Zone


@dataclass(frozen=True)
class BoundaryValidation:
    """Outcome of parsing one boundary value."""

    boundary: Optional[PolygonBoundary] = None
    reason: Optional[str] = None
    repaired: bool = False

    @property
    def is_valid(self) -> bool:
        return self.boundary is not None


@dataclass(frozen=True)
class ZoneValidation:
    """
    Outcome of validating one zone row.

    Attributes:
        zone_id: Row id as a string (None when the row has no id)
        name: Row display name (falls back to the id)
        zone: Valid Zone, or None when rejected
        reason: Human-readable rejection reason (None when valid)
        repaired: True when the ring had to be closed
    """

    zone_id: Optional[str]
    name: Optional[str]
    zone: Optional[Zone] = None
    reason: Optional[str] = None
    repaired: bool = False

    @property
    def is_valid(self) -> bool:
        return self.zone is not None

    def to_dict(self) -> dict:
        return {
            "zone_id": self.zone_id,
            "name": self.name,
            "valid": self.is_valid,
            "reason": self.reason,
            "repaired": self.repaired,
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _reject(reason: str) -> BoundaryValidation:
    return BoundaryValidation(reason=reason)


def validate_boundary(raw: Any) -> BoundaryValidation:
    """
    Parse and validate a zone boundary.

    Args:
        raw: GeoJSON Polygon as dict or JSON string

    Returns:
        BoundaryValidation with either a PolygonBoundary or a reason
    """
    if raw is None:
        return _reject("missing boundary")

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _reject("boundary is not valid JSON")

    if not isinstance(raw, Mapping):
        return _reject(f"boundary must be a GeoJSON object, got {type(raw).__name__}")

    geometry_type = raw.get("type")
    if not geometry_type:
        return _reject("boundary has no geometry type")
    if geometry_type != "Polygon":
        return _reject(f"unsupported geometry type {geometry_type!r} (expected 'Polygon')")

    coordinates = raw.get("coordinates")
    if not isinstance(coordinates, (list, tuple)) or not coordinates:
        return _reject("boundary has no coordinates")

    ring = coordinates[0]
    if not isinstance(ring, (list, tuple)) or not ring:
        return _reject("boundary ring is empty")

    points = []
    for coord in ring:
        if (
            not isinstance(coord, (list, tuple))
            or len(coord) < 2
            or not _is_number(coord[0])
            or not _is_number(coord[1])
        ):
            return _reject("boundary ring contains a malformed coordinate")
        points.append([float(coord[0]), float(coord[1])])

    repaired = False
    if points[0] != points[-1]:
        points.append(list(points[0]))
        repaired = True

    try:
        boundary = PolygonBoundary.from_ring(points)
    except (TypeError, ValueError) as e:
        return _reject(str(e))

    return BoundaryValidation(boundary=boundary, repaired=repaired)


def validate_zone(row: Mapping[str, Any]) -> ZoneValidation:
    """
    Validate one zone row of shape {id, name, boundary}.

    Returns:
        ZoneValidation (never raises for bad row content)
    """
    if not isinstance(row, Mapping):
        return ZoneValidation(zone_id=None, name=None, reason="zone row must be a mapping")

    raw_id = row.get("id")
    if raw_id is None or str(raw_id) == "":
        return ZoneValidation(zone_id=None, name=row.get("name"), reason="missing zone id")

    zone_id = str(raw_id)
    name = row.get("name") or zone_id

    result = validate_boundary(row.get("boundary"))
    if not result.is_valid:
        return ZoneValidation(zone_id=zone_id, name=name, reason=result.reason)

    return ZoneValidation(
        zone_id=zone_id,
        name=name,
        zone=Zone(zone_id=zone_id, name=str(name), boundary=result.boundary),
        repaired=result.repaired,
    )
