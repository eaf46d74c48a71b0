import logging
import math
from typing import List, Optional, Sequence, Tuple

from .models import BoundingBox, Point, PolylineBounds, PolylineSanityStats

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

# Swapped-order heuristic windows (see maybe_swap_coordinates)
SWAP_TRIGGER_LAT = (-10.0, 10.0)
SWAP_TRIGGER_LNG = (30.0, 70.0)
EUROPE_LAT = (30.0, 70.0)
EUROPE_LNG = (-20.0, 40.0)


def haversine_km(a: Point, b: Point) -> float:
    """Great-circle distance on a sphere with the mean Earth radius."""
    lat1, lon1 = math.radians(a.lat), math.radians(a.lng)
    lat2, lon2 = math.radians(b.lat), math.radians(b.lng)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2)
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def is_valid_point(point: Point) -> bool:
    return (
        math.isfinite(point.lat) and math.isfinite(point.lng)
        and -90.0 <= point.lat <= 90.0
        and -180.0 <= point.lng <= 180.0
    )


def is_point_in_bbox(point: Point, bbox: BoundingBox) -> bool:
    # inclusive on every edge
    return (bbox.min_lat <= point.lat <= bbox.max_lat and
            bbox.min_lng <= point.lng <= bbox.max_lng)


def compute_bounds(points: Sequence[Point]) -> Optional[PolylineBounds]:
    if not points:
        return None
    min_lat = min_lng = float("inf")
    max_lat = max_lng = float("-inf")
    for p in points:
        if p.lat < min_lat:
            min_lat = p.lat
        if p.lat > max_lat:
            max_lat = p.lat
        if p.lng < min_lng:
            min_lng = p.lng
        if p.lng > max_lng:
            max_lng = p.lng
    return PolylineBounds(min_lat=min_lat, max_lat=max_lat, min_lng=min_lng, max_lng=max_lng)


def _round_point(p: Point) -> Point:
    return Point(lat=round(p.lat, 5), lng=round(p.lng, 5))


def compute_sanity_stats(points: Sequence[Point]) -> PolylineSanityStats:
    """
    Bounds, first and last point of a decoded sequence, rounded to 5 decimals.
    Only used for diagnostics and the plausibility gate.
    """
    bounds = compute_bounds(points)
    if bounds is None:
        return PolylineSanityStats()
    return PolylineSanityStats(
        polyline_bounds=PolylineBounds(
            min_lat=round(bounds.min_lat, 5),
            max_lat=round(bounds.max_lat, 5),
            min_lng=round(bounds.min_lng, 5),
            max_lng=round(bounds.max_lng, 5),
        ),
        polyline_first_point=_round_point(points[0]),
        polyline_last_point=_round_point(points[-1]),
        point_count=len(points),
    )


def bounds_plausible(bounds: Optional[PolylineBounds]) -> bool:
    """
    A decoded polyline is only trusted when its box sits inside Earth's
    coordinate ranges. A broken header decode can yield boxes spanning
    hundreds of thousands of degrees.
    """
    if bounds is None:
        return False
    values = (bounds.min_lat, bounds.max_lat, bounds.min_lng, bounds.max_lng)
    if not all(math.isfinite(v) for v in values):
        return False
    return (-90.0 <= bounds.min_lat <= bounds.max_lat <= 90.0 and
            -180.0 <= bounds.min_lng <= bounds.max_lng <= 180.0)


def _within(value: float, window: Tuple[float, float]) -> bool:
    return window[0] <= value <= window[1]


def maybe_swap_coordinates(points: List[Point]) -> Tuple[List[Point], bool]:
    """
    Correction for an upstream defect: some European routes come back with
    lat and lng swapped. A first point with "lat" in [-10, 10] and "lng" in
    [30, 70] looks like that. The swap is kept only when the swapped box lies
    inside Europe (lat 30..70, lng -20..40); otherwise the points are returned
    untouched.

    Deliberately narrow. It can misfire outside Europe and is not meant to be
    generalised.
    """
    if not points:
        return points, False
    first = points[0]
    if not (_within(first.lat, SWAP_TRIGGER_LAT) and _within(first.lng, SWAP_TRIGGER_LNG)):
        return points, False

    swapped = [Point(lat=p.lng, lng=p.lat) for p in points]
    bounds = compute_bounds(swapped)
    if (bounds is not None and
            _within(bounds.min_lat, EUROPE_LAT) and _within(bounds.max_lat, EUROPE_LAT) and
            _within(bounds.min_lng, EUROPE_LNG) and _within(bounds.max_lng, EUROPE_LNG)):
        logger.debug("Polyline lat/lng swap applied (first point %s,%s)", first.lat, first.lng)
        return swapped, True

    return points, False
