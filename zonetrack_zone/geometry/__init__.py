"""
Geometry Layer
==============

Bounded Context: Pure geometric shapes and spatial queries.

Responsibilities:
- Polygon representation (immutable)
- Point-in-polygon tests (even-odd ray casting)
- Boundary parsing and validation
- NO state, NO side effects

Coordinates are (lng, lat) pairs throughout, as in GeoJSON.
"""

from zonetrack_zone.geometry.shapes import PolygonBoundary, contains
from zonetrack_zone.geometry.validation import (
    BoundaryValidation,
    ZoneValidation,
    validate_boundary,
    validate_zone,
)
from zonetrack_zone.geometry.detector import ZoneDetector

__all__ = [
    "PolygonBoundary",
    "contains",
    "BoundaryValidation",
    "ZoneValidation",
    "validate_boundary",
    "validate_zone",
    "ZoneDetector",
]
