"""
Turn a raw HERE Routing v8 truck response into canonical RouteFacts.

The response is walked as plain JSON (dicts and lists). Every nested field is
optional upstream and any of them can be missing, null or the wrong shape, so
each level is type-checked where it is used and skipped when malformed.
Nothing in here raises for bad provider data.
"""
import logging
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from .config import settings
from .geo import is_valid_point
from .geofence import GeofenceResult, evaluate_route_geofence
from .models import (
    AlpsOverride,
    GeofenceDiagnostics,
    Geography,
    Infrastructure,
    Point,
    Raw,
    Regulatory,
    RiskFlags,
    RouteFacts,
    RouteSummary,
    RouteWarning,
    Tunnel,
)
from .tunnels import match_tunnel_text

logger = logging.getLogger(__name__)

SCANDINAVIA_COUNTRIES = frozenset({"SWE", "NOR", "DNK", "FIN", "SE", "NO", "DK", "FI"})
BALTIC_COUNTRIES = frozenset({"LTU", "LVA", "EST", "LT", "LV", "EE"})
UK_COUNTRIES = frozenset({"GBR", "GB", "UK"})
ISLAND_COUNTRIES = frozenset({
    "GBR", "GB", "UK",
    "IRL", "IE",
    "ISL", "IS",
    "CYP", "CY",
    "MLT", "MT",
})

RESTRICTION_CODES = frozenset({
    "truckRestriction",
    "vehicleRestriction",
    "weightRestriction",
    "heightRestriction",
    "lengthRestriction",
    "hazardousGoodsRestriction",
})
RESTRICTION_KEYWORDS = ("restriction", "prohibited", "not allowed")
FERRY_PHRASES = ("ferry", "take the ferry", "board ferry")

UNKNOWN_WARNING_CODE = "unknown"
# A single fare at or above this is corrupt data, not a toll
MAX_FARE_VALUE = Decimal("1e12")

AlpsMatch = Union[AlpsOverride, Mapping[str, Any]]


# ---------------- shape guards ----------------

def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _finite_float(value: Any) -> Optional[float]:
    """JSON number as a finite float; None for anything else, including ints too big for a float."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _number(value: Any) -> float:
    """Numeric summary field; anything else counts as 0."""
    number = _finite_float(value)
    return 0.0 if number is None else number


def _dicts(value: Any) -> Iterator[dict]:
    for item in _as_list(value):
        if isinstance(item, dict):
            yield item


def _location(place_holder: Any) -> Optional[Point]:
    """section.departure / section.arrival -> place.location as a Point."""
    loc = _as_dict(_as_dict(_as_dict(place_holder).get("place")).get("location"))
    lat, lng = _finite_float(loc.get("lat")), _finite_float(loc.get("lng"))
    if lat is None or lng is None:
        return None
    point = Point(lat=lat, lng=lng)
    return point if is_valid_point(point) else None


# ---------------- totals ----------------

def _totals(sections: Sequence[dict]) -> RouteSummary:
    length_m = 0.0
    duration_s = 0.0
    for section in sections:
        summary = _as_dict(section.get("summary"))
        length_m += _number(summary.get("length"))
        duration_s += _number(summary.get("duration"))
    # finite parts can still overflow when summed
    if not math.isfinite(length_m):
        logger.debug("Route length overflowed, reporting 0")
        length_m = 0.0
    if not math.isfinite(duration_s):
        logger.debug("Route duration overflowed, reporting unknown")
        duration_s = 0.0

    # No attempt to tell "no duration data" from a zero-length trip
    duration_hours = round(duration_s / 3600, 2) if duration_s != 0 else None
    return RouteSummary(
        distance_km=round(length_m / 1000, 2),
        duration_hours=duration_hours,
        sections=len(sections),
    )


# ---------------- tolls ----------------

def _iter_tolls(sections: Sequence[dict]) -> Iterator[Tuple[str, dict]]:
    """(country_code, toll) for every well-formed toll entry, in route order."""
    for section in sections:
        for group in _dicts(section.get("tolls")):
            for toll in _dicts(group.get("tolls")):
                country = _as_str(toll.get("countryCode")).strip()
                if not country:
                    continue
                yield country, toll


def _fare_value(fare: dict) -> Optional[Decimal]:
    value = _as_dict(fare.get("price")).get("value")
    if value is None or isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.debug("Ignoring unparsable fare value %r", value)
        return None
    if not parsed.is_finite() or abs(parsed) >= MAX_FARE_VALUE:
        logger.debug("Ignoring unusable fare value %r", value)
        return None
    return parsed


def _extract_tolls(sections: Sequence[dict]) -> Tuple[List[str], Optional[float]]:
    countries = set()
    total = Decimal(0)
    valid_fares = 0
    for country, toll in _iter_tolls(sections):
        countries.add(country)
        for fare in _dicts(toll.get("fares")):
            value = _fare_value(fare)
            if value is None:
                continue
            total += value
            valid_fares += 1

    cost = float(total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)) if valid_fares else None
    return sorted(countries), cost


def _countries_in_order(sections: Sequence[dict]) -> List[str]:
    seen = []
    for country, _ in _iter_tolls(sections):
        if country not in seen:
            seen.append(country)
    return seen


# ---------------- ferries ----------------

def _is_ferry_section(section: dict) -> bool:
    mode = _as_str(_as_dict(section.get("transport")).get("mode")).lower()
    return mode == "ferry" or _as_str(section.get("type")).lower() == "ferry"


def _is_ferry_action(action: dict) -> bool:
    if _as_str(action.get("action")).lower() == "ferry":
        return True
    instruction = _as_str(action.get("instruction")).lower()
    return any(phrase in instruction for phrase in FERRY_PHRASES)


def _count_ferry_segments(sections: Sequence[dict]) -> int:
    segments = 0
    for section in sections:
        if _is_ferry_section(section):
            segments += 1
            continue
        segments += sum(1 for action in _dicts(section.get("actions")) if _is_ferry_action(action))
    return segments


# ---------------- tunnels ----------------

def _tunnel_texts(sections: Sequence[dict]) -> Iterator[str]:
    for section in sections:
        for action in _dicts(section.get("actions")):
            yield _as_str(action.get("instruction"))
        for notice in _dicts(section.get("notices")):
            yield _as_str(notice.get("title"))


def _extract_tunnels(sections: Sequence[dict], geofenced: Sequence[Tunnel]) -> Tuple[bool, List[Tunnel]]:
    """
    Geofenced tunnels first, then anything named in actions / notices.
    Generic tunnel mentions only flip the flag.
    """
    tunnels = list(geofenced)
    seen = {t.name for t in tunnels}
    mentioned = False
    for text in _tunnel_texts(sections):
        found = match_tunnel_text(text)
        if found is None:
            continue
        mentioned = True
        if found.tunnel is not None and found.tunnel.name not in seen:
            seen.add(found.tunnel.name)
            tunnels.append(found.tunnel)
    return bool(tunnels) or mentioned, tunnels


# ---------------- notices ----------------

def _extract_notices(sections: Sequence[dict]) -> Tuple[List[str], List[RouteWarning]]:
    reasons: List[str] = []
    warnings: List[RouteWarning] = []
    for section in sections:
        for notice in _dicts(section.get("notices")):
            code = _as_str(notice.get("code")) or UNKNOWN_WARNING_CODE
            title = _as_str(notice.get("title"))
            warnings.append(RouteWarning(code=code, message=title))

            lowered = title.lower()
            if code in RESTRICTION_CODES or any(k in lowered for k in RESTRICTION_KEYWORDS):
                reason = title or code
                if reason not in reasons:
                    reasons.append(reason)
    return reasons, warnings


# ---------------- geography / risk ----------------

def _in(codes: frozenset, country: str) -> bool:
    return country.upper() in codes


def _risk_flags(
    countries_crossed: Sequence[str],
    destination: Optional[str],
    has_ferry: bool,
    geofence: GeofenceResult,
) -> RiskFlags:
    all_countries = list(countries_crossed)
    if destination:
        all_countries.append(destination)
    return RiskFlags(
        is_uk=any(_in(UK_COUNTRIES, c) for c in all_countries),
        is_island=has_ferry and destination is not None and _in(ISLAND_COUNTRIES, destination),
        # only a Frejus / Mont Blanc geofence hit counts, never alpine countries or other tunnels
        crosses_alps=geofence.frejus or geofence.mont_blanc,
        is_scandinavia=any(_in(SCANDINAVIA_COUNTRIES, c) for c in all_countries),
        is_baltic=any(_in(BALTIC_COUNTRIES, c) for c in all_countries),
    )


# ---------------- entry points ----------------

def _first_route(response: Optional[Mapping[str, Any]]) -> Optional[dict]:
    if response is None:
        return None
    if not isinstance(response, Mapping):
        raise TypeError(f"Expected a routing response mapping, got {type(response).__name__}")
    routes = response.get("routes")
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        return None
    return routes[0]


def _fallback_points(
    sections: Sequence[dict],
    origin: Optional[Point],
    waypoints: Sequence[Point],
    destination: Optional[Point],
) -> Tuple[Optional[Point], List[Point], Optional[Point]]:
    """
    Caller points win. Without them, section departure/arrival locations
    stand in for origin, waypoints and destination.
    """
    if origin is not None or destination is not None or waypoints:
        return origin, list(waypoints), destination
    if not sections:
        return None, [], None
    via = [p for p in (_location(s.get("arrival")) for s in sections[:-1]) if p is not None]
    return _location(sections[0].get("departure")), via, _location(sections[-1].get("arrival"))


def _coerce_override(alps_match: Optional[AlpsMatch]) -> Optional[AlpsOverride]:
    if alps_match is None or isinstance(alps_match, AlpsOverride):
        return alps_match
    return AlpsOverride.model_validate(dict(alps_match))


def extract_route_facts_with_diagnostics(
    response: Optional[Mapping[str, Any]],
    *,
    alps_match: Optional[AlpsMatch] = None,
    origin: Optional[Point] = None,
    waypoints: Sequence[Point] = (),
    destination: Optional[Point] = None,
    sample_limit: Optional[int] = None,
) -> Tuple[RouteFacts, GeofenceDiagnostics]:
    """
    Same as extract_route_facts(), plus the geofencing diagnostics that
    explain the Alps verdict.
    """
    route = _first_route(response)
    if route is None:
        return RouteFacts(), GeofenceDiagnostics()

    sections = list(_dicts(route.get("sections")))
    override = _coerce_override(alps_match)
    fb_origin, fb_via, fb_destination = _fallback_points(sections, origin, waypoints, destination)

    geofence = evaluate_route_geofence(
        [s.get("polyline") for s in sections],
        origin=fb_origin,
        waypoints=fb_via,
        destination=fb_destination,
        override=override,
    )

    toll_countries, toll_cost = _extract_tolls(sections)
    ferry_segments = _count_ferry_segments(sections)
    has_tunnel, tunnels = _extract_tunnels(sections, geofence.detected_tunnels)
    restriction_reasons, warnings = _extract_notices(sections)

    # Best effort: toll countries in route order stand in for the countries crossed
    countries = _countries_in_order(sections)
    origin_country = countries[0] if countries else None
    destination_country = countries[-1] if countries else None
    is_international = (len(countries) > 1) if countries else None

    has_ferry = ferry_segments > 0
    route_id = route.get("id") if isinstance(route.get("id"), str) and route.get("id") else None

    facts = RouteFacts(
        route=_totals(sections),
        geography=Geography(
            origin_country=origin_country,
            destination_country=destination_country,
            countries_crossed=countries,
            is_international=is_international,
        ),
        infrastructure=Infrastructure(
            has_ferry=has_ferry,
            ferry_segments=ferry_segments,
            has_toll_roads=bool(toll_countries),
            toll_countries=toll_countries,
            toll_cost_estimate=toll_cost,
            has_tunnel=has_tunnel,
            tunnels=tunnels,
        ),
        regulatory=Regulatory(
            truck_restricted=bool(restriction_reasons),
            restriction_reasons=restriction_reasons,
        ),
        risk_flags=_risk_flags(countries, destination_country, has_ferry, geofence),
        raw=Raw(here_route_id=route_id, warnings=warnings),
    )

    limit = settings.debug_sample_limit if sample_limit is None else sample_limit
    instructions = [_as_str(a.get("instruction")) for s in sections for a in _dicts(s.get("actions"))]
    diagnostics = geofence.diagnostics.model_copy(update={
        "sections_count": len(sections),
        "actions_count_total": len(instructions),
        "samples": [i for i in instructions if i][:max(limit, 0)],
    })

    logger.debug(
        "Route %s: %.2f km, %d sections, tolls=%s ferry=%s tunnel=%s alps=%s",
        route_id, facts.route.distance_km, len(sections), toll_countries,
        has_ferry, has_tunnel, facts.risk_flags.crosses_alps,
    )
    return facts, diagnostics


def extract_route_facts(
    response: Optional[Mapping[str, Any]],
    *,
    alps_match: Optional[AlpsMatch] = None,
    origin: Optional[Point] = None,
    waypoints: Sequence[Point] = (),
    destination: Optional[Point] = None,
) -> RouteFacts:
    """
    Canonical RouteFacts for the first route of a HERE routing response.

    A missing or empty route list gives the all-defaults record.
    alps_match: optional pre-computed {frejus, montBlanc} verdict that replaces
    polyline geofencing for this call.
    origin/waypoints/destination: points for the proximity fallback when the
    polyline is missing or implausible.
    """
    facts, _ = extract_route_facts_with_diagnostics(
        response,
        alps_match=alps_match,
        origin=origin,
        waypoints=waypoints,
        destination=destination,
    )
    return facts
