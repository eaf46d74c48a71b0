"""
Alpine tunnel geofencing.

Decides whether a route passes through the Frejus or Mont Blanc tunnel
corridor. That verdict alone drives the Alps-crossing risk flag, so the
checks are layered and every decision keeps its provenance:

  1. plausibility gate on the decoded polyline box
  2. lat/lng swap correction for a known upstream defect
  3. bounding box scan (authoritative)
  4. haversine proximity to the tunnel center (fallback)

When no polyline is usable, step 4 runs on the origin / waypoints / destination.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pydantic.alias_generators import to_camel

from . import polyline
from .geo import (
    bounds_plausible,
    compute_bounds,
    compute_sanity_stats,
    haversine_km,
    is_point_in_bbox,
    is_valid_point,
    maybe_swap_coordinates,
)
from .models import (
    AlpsCenterDistances,
    AlpsOverride,
    AlpsTunnelCheck,
    BoundingBox,
    CenterDistances,
    GeofenceDiagnostics,
    MatchReasons,
    Point,
    Tunnel,
    TunnelDetails,
    TunnelFlags,
    TunnelMatchDetail,
    WaypointProximity,
)

logger = logging.getLogger(__name__)

TUNNEL_PROXIMITY_KM = 3.0


@dataclass(frozen=True)
class TunnelCorridor:
    key: str
    bbox: BoundingBox
    center: Point
    tunnel: Tunnel


# Hand-tuned, generous boxes: a false negative costs more than a false positive.
FREJUS = TunnelCorridor(
    key="frejus",
    bbox=BoundingBox(name="Frejus", min_lat=45.03, max_lat=45.17, min_lng=6.60, max_lng=6.78),
    # between Modane (FR) and Bardonecchia (IT)
    center=Point(lat=45.086, lng=6.706),
    tunnel=Tunnel(name="Fréjus Tunnel", category="alpine", country="FRA/ITA"),
)

MONT_BLANC = TunnelCorridor(
    key="mont_blanc",
    bbox=BoundingBox(name="Mont Blanc", min_lat=45.82, max_lat=45.96, min_lng=6.92, max_lng=7.03),
    # between Chamonix (FR) and Courmayeur (IT)
    center=Point(lat=45.924, lng=6.968),
    tunnel=Tunnel(name="Mont Blanc Tunnel", category="alpine", country="FRA/ITA"),
)

ALPS_CORRIDORS: Tuple[TunnelCorridor, ...] = (FREJUS, MONT_BLANC)


# ---------------- per-corridor matching ----------------

@dataclass
class _CorridorScan:
    points_inside: int = 0
    first_inside: Optional[Point] = None
    closest_km: Optional[float] = None
    closest_point: Optional[Point] = None


def _scan(points: Sequence[Point], corridor: TunnelCorridor) -> _CorridorScan:
    scan = _CorridorScan()
    for p in points:
        if is_point_in_bbox(p, corridor.bbox):
            scan.points_inside += 1
            if scan.first_inside is None:
                scan.first_inside = p
        d = haversine_km(p, corridor.center)
        if scan.closest_km is None or d < scan.closest_km:
            scan.closest_km = d
            scan.closest_point = p
    return scan


def _rounded_km(scan: _CorridorScan) -> Optional[float]:
    return None if scan.closest_km is None else round(scan.closest_km, 2)


def _match_by_box(scan: _CorridorScan) -> Optional[TunnelMatchDetail]:
    if scan.points_inside == 0:
        return None
    return TunnelMatchDetail(
        matched=True,
        points_inside=scan.points_inside,
        first_point=scan.first_inside,
        closest_distance_km=_rounded_km(scan),
    )


def _match_by_proximity(scan: _CorridorScan) -> Optional[TunnelMatchDetail]:
    if scan.closest_km is None or scan.closest_km > TUNNEL_PROXIMITY_KM:
        return None
    return TunnelMatchDetail(
        matched=True,
        points_inside=scan.points_inside,
        first_point=scan.closest_point,
        matched_by_proximity=True,
        closest_distance_km=_rounded_km(scan),
    )


# Evaluated in order, first hit wins: a box match always beats proximity.
CORRIDOR_MATCHERS: Tuple[Callable[[_CorridorScan], Optional[TunnelMatchDetail]], ...] = (
    _match_by_box,
    _match_by_proximity,
)


def match_corridor(points: Sequence[Point], corridor: TunnelCorridor) -> TunnelMatchDetail:
    scan = _scan(points, corridor)
    for matcher in CORRIDOR_MATCHERS:
        detail = matcher(scan)
        if detail is not None:
            return detail
    return TunnelMatchDetail(matched=False, points_inside=0, closest_distance_km=_rounded_km(scan))


def check_alps_tunnels(points: Sequence[Point]) -> AlpsTunnelCheck:
    """
    Check a point sequence against both tunnel corridors.
    Empty input gives no match and zero points checked.
    """
    frejus = match_corridor(points, FREJUS)
    mont_blanc = match_corridor(points, MONT_BLANC)
    return AlpsTunnelCheck(
        frejus=frejus.matched,
        mont_blanc=mont_blanc.matched,
        points_checked=len(points),
        details=TunnelDetails(frejus=frejus, mont_blanc=mont_blanc),
    )


def check_alps_tunnels_from_polyline(encoded: str) -> AlpsTunnelCheck:
    """Decode and check in one call. Decode errors propagate."""
    return check_alps_tunnels(polyline.decode(encoded))


# ---------------- waypoint fallback ----------------

def _candidates(origin: Optional[Point], waypoints: Sequence[Point], destination: Optional[Point]) -> List[Point]:
    pts = [origin] + list(waypoints) + [destination]
    return [p for p in pts if p is not None and is_valid_point(p)]


def check_waypoint_proximity(
    origin: Optional[Point],
    waypoints: Sequence[Point] = (),
    destination: Optional[Point] = None,
) -> WaypointProximity:
    """
    Proximity rule on individual caller points. No box scan here: a sparse
    set of stops says nothing about the path between them.
    """
    candidates = _candidates(origin, waypoints, destination)
    hits: Dict[str, bool] = {}
    for corridor in ALPS_CORRIDORS:
        hits[corridor.key] = any(
            haversine_km(p, corridor.center) <= TUNNEL_PROXIMITY_KM for p in candidates
        )
    return WaypointProximity(
        frejus=hits["frejus"],
        mont_blanc=hits["mont_blanc"],
        reasons=MatchReasons(
            frejus="waypointProximity" if hits["frejus"] else "none",
            mont_blanc="waypointProximity" if hits["mont_blanc"] else "none",
        ),
    )


def compute_alps_center_distances(
    origin: Optional[Point],
    waypoints: Sequence[Point] = (),
    destination: Optional[Point] = None,
) -> AlpsCenterDistances:
    def dist(p: Optional[Point], corridor: TunnelCorridor) -> Optional[float]:
        if p is None or not is_valid_point(p):
            return None
        return round(haversine_km(p, corridor.center), 2)

    def per_corridor(corridor: TunnelCorridor) -> CenterDistances:
        return CenterDistances(
            from_origin=dist(origin, corridor),
            from_waypoints=[d for d in (dist(wp, corridor) for wp in waypoints) if d is not None],
            from_destination=dist(destination, corridor),
        )

    return AlpsCenterDistances(frejus=per_corridor(FREJUS), mont_blanc=per_corridor(MONT_BLANC))


def alps_debug_config() -> dict:
    """Centers, boxes and threshold currently in use."""
    return {
        "centers": {to_camel(c.key): c.center.model_dump(by_alias=True) for c in ALPS_CORRIDORS},
        "bboxes": {to_camel(c.key): c.bbox.model_dump(by_alias=True, exclude={"name"}) for c in ALPS_CORRIDORS},
        "proximityKm": TUNNEL_PROXIMITY_KM,
    }


# ---------------- route level ----------------

@dataclass(frozen=True)
class GeofenceResult:
    frejus: bool
    mont_blanc: bool
    diagnostics: GeofenceDiagnostics = field(default_factory=GeofenceDiagnostics)

    @property
    def detected_tunnels(self) -> List[Tunnel]:
        out = []
        if self.frejus:
            out.append(FREJUS.tunnel)
        if self.mont_blanc:
            out.append(MONT_BLANC.tunnel)
        return out


def _decode_all(polylines: Sequence[object]) -> Tuple[List[Point], int]:
    points: List[Point] = []
    failures = 0
    for idx, encoded in enumerate(polylines):
        if not isinstance(encoded, str) or not encoded:
            continue
        try:
            points.extend(polyline.decode(encoded))
        except polyline.PolylineDecodeError as e:
            failures += 1
            logger.warning("Skipping undecodable polyline #%d (%d chars): %s", idx, len(encoded), e)
    return points, failures


def _polyline_reason(detail: TunnelMatchDetail) -> str:
    if not detail.matched:
        return "none"
    return "polylineDistance" if detail.matched_by_proximity else "polylineBbox"


def evaluate_route_geofence(
    polylines: Sequence[object],
    origin: Optional[Point] = None,
    waypoints: Sequence[Point] = (),
    destination: Optional[Point] = None,
    override: Optional[AlpsOverride] = None,
) -> GeofenceResult:
    """
    Route-level verdict for both tunnels.

    polylines: encoded section polylines (non-strings are ignored).
    origin/waypoints/destination: points for the proximity fallback.
    override: a pre-computed verdict; skips polyline geofencing entirely.
    """
    distances = compute_alps_center_distances(origin, waypoints, destination)
    proximity = check_waypoint_proximity(origin, waypoints, destination)

    if override is not None:
        logger.debug("Alps verdict overridden by caller: %s", override)
        return GeofenceResult(
            frejus=override.frejus,
            mont_blanc=override.mont_blanc,
            diagnostics=GeofenceDiagnostics(
                alps_match=TunnelFlags(frejus=override.frejus, mont_blanc=override.mont_blanc),
                waypoint_proximity=proximity,
                alps_match_reason=MatchReasons(
                    frejus="override" if override.frejus else "none",
                    mont_blanc="override" if override.mont_blanc else "none",
                ),
                alps_center_distances=distances,
            ),
        )

    points, failures = _decode_all(polylines)
    plausible = bounds_plausible(compute_bounds(points))
    swapped = False
    check = AlpsTunnelCheck()

    if points and plausible:
        points, swapped = maybe_swap_coordinates(points)
        check = check_alps_tunnels(points)
    elif points:
        logger.warning(
            "Implausible polyline bounds %s over %d points, using waypoint proximity instead",
            compute_bounds(points), len(points),
        )

    if check.points_checked > 0:
        frejus, mont_blanc = check.frejus, check.mont_blanc
        reasons = MatchReasons(
            frejus=_polyline_reason(check.details.frejus),
            mont_blanc=_polyline_reason(check.details.mont_blanc),
        )
    else:
        frejus, mont_blanc = proximity.frejus, proximity.mont_blanc
        reasons = proximity.reasons

    logger.debug("Alps verdict frejus=%s (%s) mont_blanc=%s (%s)",
                 frejus, reasons.frejus, mont_blanc, reasons.mont_blanc)

    return GeofenceResult(
        frejus=frejus,
        mont_blanc=mont_blanc,
        diagnostics=GeofenceDiagnostics(
            polyline_points_checked=check.points_checked,
            decode_failures=failures,
            polyline_sanity=compute_sanity_stats(points),
            polyline_bounds_plausible=plausible,
            polyline_swap_applied=swapped,
            alps_match=TunnelFlags(frejus=frejus, mont_blanc=mont_blanc),
            alps_match_details=check.details,
            waypoint_proximity=proximity,
            alps_match_reason=reasons,
            alps_center_distances=distances,
        ),
    )
