"""
Zonetrack Zones v1.0
====================

Bounded Context: Geographic zones and zone membership rules.

Design Philosophy:
- Separation of Concerns: Geometry and Analytics separated
- Pure geometry, no I/O: zone rows come in already fetched
- Coordinates are (lng, lat), as stored in GeoJSON

Architecture:

    zonetrack_zone/
    ├── geometry/          # Pure geometry (immutable, stateless)
    │   ├── shapes.py      # PolygonBoundary, contains()
    │   ├── validation.py  # validate_boundary(), validate_zone()
    │   └── detector.py    # ZoneDetector (stateless lookup over zones)
    │
    ├── analytics/         # Transition rules & statistics
    │   ├── transitions.py # EventType, classify_transition()
    │   └── counter.py     # ZoneCounter, ZoneStats
    │
    └── zone.py            # Zone value object

Usage:

    from zonetrack_zone import validate_zone, ZoneDetector

    result = validate_zone({
        "id": "downtown",
        "name": "Downtown",
        "boundary": {"type": "Polygon",
                     "coordinates": [[[0, 0], [0, 1], [1, 1], [1, 0], [0, 0]]]},
    })
    if result.is_valid:
        zone = ZoneDetector.find_containing([result.zone], (0.5, 0.5))
"""

# Geometry Layer (immutable, stateless)
from zonetrack_zone.geometry.shapes import PolygonBoundary, contains
from zonetrack_zone.geometry.validation import (
    BoundaryValidation,
    ZoneValidation,
    validate_boundary,
    validate_zone,
)
from zonetrack_zone.geometry.detector import ZoneDetector
from zonetrack_zone.zone import Zone

# Analytics Layer
from zonetrack_zone.analytics.transitions import (
    EventType,
    VehiclePhase,
    classify_transition,
    phase_of,
)
from zonetrack_zone.analytics.counter import ZoneCounter, ZoneStats

__all__ = [
    # Geometry
    "PolygonBoundary",
    "contains",
    "BoundaryValidation",
    "ZoneValidation",
    "validate_boundary",
    "validate_zone",
    "ZoneDetector",
    "Zone",
    # Analytics
    "EventType",
    "VehiclePhase",
    "classify_transition",
    "phase_of",
    "ZoneCounter",
    "ZoneStats",
]

__version__ = "1.0.0"
