"""
Zone Detector Module
====================

Stateless detection logic - applies geometry to a set of zones.

Design:
- Pure functions (no state)
- Linear scan in the order zones are given
- Thread-safe (no mutations)
"""

import numpy as np
from typing import List, Optional, Sequence

from zonetrack_zone.geometry.shapes import Point
from zonetrack_zone.zone import Zone


class ZoneDetector:
    """
    Stateless detector for applying zone geometry to a point.

    Design Philosophy:
    - All methods are static (no instance state)
    - Caller owns the zone snapshot and its order
    """

    @staticmethod
    def containment_mask(zones: Sequence[Zone], point: Point) -> np.ndarray:
        """
        Test a point against every zone.

        Args:
            zones: Zones in iteration order
            point: (lng, lat)

        Returns:
            Boolean mask of shape (N,) where True = point inside zone
        """
        if len(zones) == 0:
            return np.array([], dtype=bool)

        return np.array([zone.contains_point(point) for zone in zones], dtype=bool)

    @staticmethod
    def find_containing(zones: Sequence[Zone], point: Point) -> Optional[Zone]:
        """
        First zone (in iteration order) that contains the point.

        Overlapping zones resolve to whichever is encountered first; this is
        not a priority rule, only a stable tie-break.
        """
        for zone in zones:
            if zone.contains_point(point):
                return zone
        return None

    @staticmethod
    def find_all_containing(zones: Sequence[Zone], point: Point) -> List[Zone]:
        """Every zone that contains the point, in iteration order."""
        mask = ZoneDetector.containment_mask(zones, point)
        return [zone for zone, inside in zip(zones, mask) if inside]
