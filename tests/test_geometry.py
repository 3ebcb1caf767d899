import json

import numpy as np
import pytest

from zonetrack_zone import (
    PolygonBoundary,
    Zone,
    ZoneDetector,
    contains,
    validate_boundary,
    validate_zone,
)
from tests.conftest import square

SQUARE = [[0, 0], [10, 0], [10, 10], [0, 10], [0, 0]]


def test_contains_interior_and_exterior_points():
    assert contains(SQUARE, (5, 5))
    assert not contains(SQUARE, (15, 5))
    assert not contains(SQUARE, (-1, -1))


def test_contains_works_without_closing_point():
    assert contains([[0, 0], [10, 0], [10, 10], [0, 10]], (5, 5))


def test_contains_concave_polygon():
    # U shape: the notch [4, 6] x [5, 10] is outside
    ring = [[0, 0], [10, 0], [10, 10], [6, 10], [6, 5], [4, 5], [4, 10], [0, 10], [0, 0]]
    assert contains(ring, (2, 8))
    assert contains(ring, (8, 8))
    assert not contains(ring, (5, 8))
    assert contains(ring, (5, 2))


@pytest.mark.parametrize("polygon", [
    [],
    [[0, 0], [1, 1]],
    [[0, 0], [1, 1], [0, 0], [1, 1]],
    "not a polygon",
    [[0, 0], [10, 0], [float("nan"), 10]],
    None,
])
def test_contains_degenerate_input_is_false(polygon):
    assert contains(polygon, (0.5, 0.5)) is False


def test_contains_malformed_point_is_false():
    assert contains(SQUARE, ("x", 1)) is False
    assert contains(SQUARE, ()) is False


def test_polygon_boundary_rejects_open_ring():
    with pytest.raises(ValueError, match="closed"):
        PolygonBoundary.from_ring([[0, 0], [1, 0], [1, 1], [0, 1]])


def test_polygon_boundary_rejects_out_of_range():
    with pytest.raises(ValueError, match="out of range"):
        PolygonBoundary.from_ring([[0, 0], [200, 0], [200, 1], [0, 0]])


def test_polygon_boundary_is_read_only():
    boundary = PolygonBoundary.from_ring(SQUARE)
    with pytest.raises(ValueError):
        boundary.vertices[0, 0] = 3.0


def test_polygon_boundary_bounds_and_centroid():
    boundary = PolygonBoundary.from_ring(SQUARE)
    assert boundary.bounds == (0.0, 0.0, 10.0, 10.0)
    assert boundary.centroid == (5.0, 5.0)
    assert len(boundary) == 5


def test_validate_boundary_accepts_json_string():
    result = validate_boundary(json.dumps(square(0, 0, 1, 1)))
    assert result.is_valid
    assert not result.repaired


def test_validate_boundary_closes_open_ring():
    raw = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1]]]}
    result = validate_boundary(raw)
    assert result.is_valid
    assert result.repaired
    assert np.array_equal(result.boundary.vertices[0], result.boundary.vertices[-1])


def test_validate_boundary_ignores_holes():
    raw = square(0, 0, 10, 10)
    raw["coordinates"].append([[4, 4], [6, 4], [6, 6], [4, 6], [4, 4]])
    result = validate_boundary(raw)
    assert result.is_valid
    assert result.boundary.contains_point((5, 5))


@pytest.mark.parametrize("raw, reason", [
    (None, "missing boundary"),
    ("{not json", "not valid JSON"),
    ([1, 2, 3], "GeoJSON object"),
    ({"coordinates": [[[0, 0]]]}, "no geometry type"),
    ({"type": "Point", "coordinates": [0, 0]}, "unsupported geometry type"),
    ({"type": "Polygon"}, "no coordinates"),
    ({"type": "Polygon", "coordinates": [[]]}, "ring is empty"),
    ({"type": "Polygon", "coordinates": [[[0, 0], ["a", 1], [1, 1]]]}, "malformed coordinate"),
    ({"type": "Polygon", "coordinates": [[[0, 0], [1, 1], [0, 0]]]}, "at least"),
])
def test_validate_boundary_rejections(raw, reason):
    result = validate_boundary(raw)
    assert not result.is_valid
    assert reason in result.reason


def test_validate_zone_builds_zone():
    result = validate_zone({"id": 7, "name": "Seven", "boundary": square(0, 0, 1, 1)})
    assert result.is_valid
    assert result.zone_id == "7"
    assert result.zone.name == "Seven"
    assert result.to_dict()["valid"] is True


def test_validate_zone_name_falls_back_to_id():
    result = validate_zone({"id": "z", "boundary": square(0, 0, 1, 1)})
    assert result.zone.name == "z"


def test_validate_zone_missing_id():
    result = validate_zone({"name": "Nameless", "boundary": square(0, 0, 1, 1)})
    assert not result.is_valid
    assert result.reason == "missing zone id"


def test_validate_zone_non_mapping():
    assert not validate_zone(["id", "a"]).is_valid


def test_zone_requires_id():
    boundary = PolygonBoundary.from_ring(SQUARE)
    with pytest.raises(ValueError):
        Zone(zone_id="", name="x", boundary=boundary)


def test_zone_to_dict_round_trips_through_validation():
    zone = validate_zone({"id": "a", "name": "A", "boundary": square(0, 0, 1, 1)}).zone
    again = validate_zone(zone.to_dict())
    assert again.is_valid
    assert again.zone.contains_point((0.5, 0.5))


def test_detector_first_zone_in_order_wins():
    a = validate_zone({"id": "a", "boundary": square(0, 0, 10, 10)}).zone
    c = validate_zone({"id": "c", "boundary": square(5, 5, 15, 15)}).zone

    assert ZoneDetector.find_containing([a, c], (7, 7)) is a
    assert ZoneDetector.find_containing([c, a], (7, 7)) is c
    assert ZoneDetector.find_containing([a, c], (50, 50)) is None
    assert [z.zone_id for z in ZoneDetector.find_all_containing([a, c], (7, 7))] == ["a", "c"]


def test_detector_mask_for_empty_zone_list():
    mask = ZoneDetector.containment_mask([], (0, 0))
    assert mask.shape == (0,)
