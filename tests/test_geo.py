import math

import pytest

from routefacts.geo import (
    bounds_plausible,
    compute_bounds,
    compute_sanity_stats,
    haversine_km,
    is_point_in_bbox,
    is_valid_point,
    maybe_swap_coordinates,
)
from routefacts.geofence import FREJUS, MONT_BLANC
from routefacts.models import Point, PolylineBounds


def P(lat, lng):
    return Point(lat=lat, lng=lng)


class TestHaversine:
    def test_paris_london(self):
        assert haversine_km(P(48.8566, 2.3522), P(51.5074, -0.1278)) == pytest.approx(344, abs=1)

    def test_one_degree_longitude_at_equator(self):
        assert haversine_km(P(0, 0), P(0, 1)) == pytest.approx(111.2, abs=0.05)

    def test_same_point(self):
        assert haversine_km(P(45.086, 6.706), P(45.086, 6.706)) == 0.0

    def test_symmetric(self):
        a, b = P(45.086, 6.706), P(45.924, 6.968)
        assert haversine_km(a, b) == pytest.approx(haversine_km(b, a))

    def test_antipodes(self):
        assert haversine_km(P(0, 0), P(0, 180)) == pytest.approx(math.pi * 6371)


class TestBoundingBox:
    @pytest.mark.parametrize("point", [
        P(45.03, 6.60),   # min corner
        P(45.17, 6.78),   # max corner
        P(45.03, 6.78),
        P(45.17, 6.60),
        P(45.1, 6.7),
    ])
    def test_frejus_edges_are_inclusive(self, point):
        assert is_point_in_bbox(point, FREJUS.bbox)

    @pytest.mark.parametrize("point", [
        P(45.02, 6.70),
        P(45.18, 6.70),
        P(45.10, 6.59),
        P(45.10, 6.79),
    ])
    def test_just_outside_frejus(self, point):
        assert not is_point_in_bbox(point, FREJUS.bbox)

    def test_mont_blanc(self):
        assert is_point_in_bbox(P(45.82, 6.92), MONT_BLANC.bbox)
        assert is_point_in_bbox(P(45.9, 6.98), MONT_BLANC.bbox)
        assert not is_point_in_bbox(P(45.81, 6.98), MONT_BLANC.bbox)
        assert not is_point_in_bbox(P(45.9, 7.04), MONT_BLANC.bbox)

    def test_boxes_do_not_overlap(self):
        assert FREJUS.bbox.max_lat < MONT_BLANC.bbox.min_lat

    def test_centers_inside_their_boxes(self):
        assert is_point_in_bbox(FREJUS.center, FREJUS.bbox)
        assert is_point_in_bbox(MONT_BLANC.center, MONT_BLANC.bbox)


class TestBounds:
    def test_empty(self):
        assert compute_bounds([]) is None
        assert not bounds_plausible(None)

    def test_bounds(self):
        bounds = compute_bounds([P(45.0, 7.6), P(45.5, 5.9), P(45.1, 6.7)])
        assert bounds == PolylineBounds(min_lat=45.0, max_lat=45.5, min_lng=5.9, max_lng=7.6)
        assert bounds_plausible(bounds)

    @pytest.mark.parametrize("points", [
        [P(45.0, 7.0), P(95.0, 7.0)],
        [P(45.0, 7.0), P(45.0, -181.0)],
        [P(4507.03, 768690.0)],
    ])
    def test_implausible(self, points):
        assert not bounds_plausible(compute_bounds(points))

    def test_world_edges_are_plausible(self):
        assert bounds_plausible(compute_bounds([P(-90, -180), P(90, 180)]))

    def test_sanity_stats(self):
        stats = compute_sanity_stats([P(45.0703012, 7.686912), P(45.5646, 5.9178)])
        assert stats.point_count == 2
        assert stats.polyline_first_point == P(45.0703, 7.68691)
        assert stats.polyline_last_point == P(45.5646, 5.9178)
        assert stats.polyline_bounds.min_lng == 5.9178

    def test_sanity_stats_empty(self):
        stats = compute_sanity_stats([])
        assert stats.point_count == 0
        assert stats.polyline_bounds is None
        assert stats.polyline_first_point is None

    def test_valid_point(self):
        assert is_valid_point(P(90, -180))
        assert not is_valid_point(P(90.1, 0))
        assert not is_valid_point(P(0, float("nan")))


class TestCoordinateSwap:
    def test_swapped_european_route_is_corrected(self):
        points = [P(6.7, 45.1), P(7.0, 45.3)]
        fixed, swapped = maybe_swap_coordinates(points)
        assert swapped
        assert fixed == [P(45.1, 6.7), P(45.3, 7.0)]

    def test_normal_route_untouched(self):
        points = [P(45.1, 6.7), P(45.3, 7.0)]
        fixed, swapped = maybe_swap_coordinates(points)
        assert not swapped
        assert fixed is points

    def test_swap_rejected_when_result_is_not_europe(self):
        # first point triggers, but the swapped box would reach lng 60
        points = [P(5.0, 35.0), P(60.0, 35.0)]
        fixed, swapped = maybe_swap_coordinates(points)
        assert not swapped
        assert fixed is points

    def test_empty(self):
        assert maybe_swap_coordinates([]) == ([], False)
