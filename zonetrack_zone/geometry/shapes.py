"""
Geometric Shapes Module
========================

Pure geometric representations - NO state, NO side effects.

Design:
- Immutable shapes (frozen dataclass pattern)
- Even-odd ray casting for point-in-polygon
- Coordinates are (lng, lat) pairs, GeoJSON order
- Thread-safe by design (read-only vertex arrays)

Points lying exactly on a vertex or an edge are implementation-defined:
they may be reported inside or outside depending on edge orientation.
"""

import numpy as np
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

Point = Tuple[float, float]

MIN_RING_POINTS = 4
MIN_DISTINCT_VERTICES = 3


def _as_ring(polygon: Any) -> Optional[np.ndarray]:
    """Coerce a polygon-like value to an Nx2 float array, or None."""
    if isinstance(polygon, PolygonBoundary):
        return polygon.vertices
    try:
        ring = np.asarray(polygon, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if ring.ndim != 2 or ring.shape[1] != 2 or len(ring) == 0:
        return None
    if not np.isfinite(ring).all():
        return None
    return ring


def distinct_vertex_count(ring: np.ndarray) -> int:
    """Number of unique (lng, lat) vertices in a ring."""
    if len(ring) == 0:
        return 0
    return int(np.unique(ring, axis=0).shape[0])


def contains(polygon: Any, point: Point) -> bool:
    """
    Even-odd point-in-polygon test.

    Casts a horizontal ray from the point towards +infinity and counts the
    edges it crosses; edges wrap from the last vertex back to the first.

    Args:
        polygon: PolygonBoundary, Nx2 array or sequence of (lng, lat) pairs
        point: (lng, lat)

    Returns:
        True if the crossing count is odd. Degenerate or malformed input
        (fewer than 3 distinct vertices) always returns False.
    """
    ring = _as_ring(polygon)
    if ring is None or distinct_vertex_count(ring) < MIN_DISTINCT_VERTICES:
        return False

    try:
        x, y = float(point[0]), float(point[1])
    except (TypeError, ValueError, IndexError):
        return False

    xi, yi = ring[:, 0], ring[:, 1]
    xj, yj = np.roll(xi, 1), np.roll(yi, 1)

    straddles = (yi > y) != (yj > y)
    with np.errstate(divide="ignore", invalid="ignore"):
        x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
    hits = straddles & (x < x_cross)

    return bool(np.count_nonzero(hits) % 2 == 1)


@dataclass(frozen=True, eq=False)
class PolygonBoundary:
    """
    Immutable polygon ring in (lng, lat) order.

    Invariants (checked at construction, ValueError otherwise):
    - Nx2 array of finite numbers
    - closed ring (first point == last point)
    - at least 4 points including the closing point
    - at least 3 distinct vertices
    - lng in [-180, 180], lat in [-90, 90]

    Attributes:
        vertices: Nx2 read-only array of (lng, lat) pairs
    """

    vertices: np.ndarray

    def __post_init__(self):
        """Validate ring and freeze the vertex array."""
        if not isinstance(self.vertices, np.ndarray):
            raise TypeError(f"vertices must be np.ndarray, got {type(self.vertices)}")
        if self.vertices.ndim != 2 or self.vertices.shape[1] != 2:
            raise ValueError(f"vertices must be Nx2 array, got shape {self.vertices.shape}")
        if not np.isfinite(self.vertices).all():
            raise ValueError("vertices must be finite numbers")
        if len(self.vertices) < MIN_RING_POINTS:
            raise ValueError(
                f"Polygon ring must have at least {MIN_RING_POINTS} points, got {len(self.vertices)}"
            )
        if not np.array_equal(self.vertices[0], self.vertices[-1]):
            raise ValueError("Polygon ring must be closed (first point == last point)")

        distinct = distinct_vertex_count(self.vertices)
        if distinct < MIN_DISTINCT_VERTICES:
            raise ValueError(
                f"Polygon must have at least {MIN_DISTINCT_VERTICES} distinct vertices, got {distinct}"
            )

        lngs, lats = self.vertices[:, 0], self.vertices[:, 1]
        if (np.abs(lngs) > 180).any() or (np.abs(lats) > 90).any():
            raise ValueError("Polygon coordinates out of range (lng in [-180, 180], lat in [-90, 90])")

        self.vertices.flags.writeable = False

    @classmethod
    def from_ring(cls, ring) -> "PolygonBoundary":
        """Build from a sequence of [lng, lat] pairs."""
        return cls(vertices=np.array(ring, dtype=np.float64))

    def contains_point(self, point: Point) -> bool:
        """
        Check if (lng, lat) point is inside the polygon.

        Args:
            point: (lng, lat) coordinates

        Returns:
            True if point is inside polygon, False otherwise
        """
        return contains(self.vertices, point)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(min_lng, min_lat, max_lng, max_lat)."""
        mins = self.vertices.min(axis=0)
        maxs = self.vertices.max(axis=0)
        return float(mins[0]), float(mins[1]), float(maxs[0]), float(maxs[1])

    @property
    def centroid(self) -> Point:
        """Vertex average, closing point excluded."""
        center = self.vertices[:-1].mean(axis=0)
        return float(center[0]), float(center[1])

    def to_geojson(self) -> Dict[str, Any]:
        """GeoJSON Polygon geometry with a single ring."""
        return {"type": "Polygon", "coordinates": [self.vertices.tolist()]}

    def __len__(self) -> int:
        return len(self.vertices)
