from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional


class FrozenModel(BaseModel):
    """
    Base for every record we hand out: immutable once built, snake_case in
    Python, camelCase on the wire (that's what the pricing calculator reads).
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class Point(FrozenModel):
    lat: float
    lng: float


class BoundingBox(FrozenModel):
    name: str
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


class PolylineBounds(FrozenModel):
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


class PolylineSanityStats(FrozenModel):
    polyline_bounds: Optional[PolylineBounds] = None
    polyline_first_point: Optional[Point] = None
    polyline_last_point: Optional[Point] = None
    point_count: int = 0


class TunnelMatchDetail(FrozenModel):
    matched: bool = False
    points_inside: int = 0
    first_point: Optional[Point] = None
    matched_by_proximity: Optional[bool] = Field(None, description="Only set when the proximity fallback matched")
    closest_distance_km: Optional[float] = Field(None, description="Closest observed distance to the tunnel center")


class TunnelDetails(FrozenModel):
    frejus: TunnelMatchDetail = TunnelMatchDetail()
    mont_blanc: TunnelMatchDetail = TunnelMatchDetail()


class AlpsTunnelCheck(FrozenModel):
    frejus: bool = False
    mont_blanc: bool = False
    points_checked: int = 0
    details: TunnelDetails = TunnelDetails()


class AlpsOverride(FrozenModel):
    """Pre-computed tunnel verdict that bypasses polyline geofencing."""
    frejus: bool = False
    mont_blanc: bool = False


# --- Route facts ---

class Tunnel(FrozenModel):
    name: Optional[str] = None
    category: Optional[str] = None
    country: Optional[str] = None


class RouteWarning(FrozenModel):
    code: str = "unknown"
    message: str = ""


class RouteSummary(FrozenModel):
    distance_km: float = 0.0
    duration_hours: Optional[float] = None
    sections: Optional[int] = None


class Geography(FrozenModel):
    origin_country: Optional[str] = None
    destination_country: Optional[str] = None
    countries_crossed: List[str] = []
    is_international: Optional[bool] = None
    is_eu: Optional[bool] = Field(None, alias="isEU")


class Infrastructure(FrozenModel):
    has_ferry: bool = False
    ferry_segments: int = 0
    has_toll_roads: bool = False
    toll_countries: List[str] = []
    toll_cost_estimate: Optional[float] = None
    has_tunnel: bool = False
    tunnels: List[Tunnel] = []


class Regulatory(FrozenModel):
    truck_restricted: bool = False
    restriction_reasons: List[str] = []
    adr_required: Optional[bool] = None
    low_emission_zones: List[str] = []
    weight_limit_violations: Optional[bool] = None


class RiskFlags(FrozenModel):
    is_uk: bool = Field(False, alias="isUK")
    is_island: bool = False
    crosses_alps: bool = Field(False, description="Only set by a Frejus / Mont Blanc geofence match")
    is_scandinavia: bool = False
    is_baltic: bool = False


class Raw(FrozenModel):
    provider: Literal["here"] = "here"
    here_route_id: Optional[str] = None
    warnings: List[RouteWarning] = []


class RouteFacts(FrozenModel):
    route: RouteSummary = RouteSummary()
    geography: Geography = Geography()
    infrastructure: Infrastructure = Infrastructure()
    regulatory: Regulatory = Regulatory()
    risk_flags: RiskFlags = RiskFlags()
    raw: Raw = Raw()


# --- Diagnostics ---

AlpsMatchReason = Literal["polylineBbox", "polylineDistance", "waypointProximity", "override", "none"]


class TunnelFlags(FrozenModel):
    frejus: bool = False
    mont_blanc: bool = False


class MatchReasons(FrozenModel):
    frejus: AlpsMatchReason = "none"
    mont_blanc: AlpsMatchReason = "none"


class WaypointProximity(FrozenModel):
    frejus: bool = False
    mont_blanc: bool = False
    reasons: MatchReasons = MatchReasons()


class CenterDistances(FrozenModel):
    from_origin: Optional[float] = None
    from_waypoints: List[float] = []
    from_destination: Optional[float] = None


class AlpsCenterDistances(FrozenModel):
    frejus: CenterDistances = CenterDistances()
    mont_blanc: CenterDistances = CenterDistances()


class GeofenceDiagnostics(FrozenModel):
    sections_count: int = 0
    actions_count_total: int = 0
    polyline_points_checked: int = 0
    decode_failures: int = 0
    polyline_sanity: PolylineSanityStats = PolylineSanityStats()
    polyline_bounds_plausible: bool = False
    polyline_swap_applied: bool = False
    alps_match: TunnelFlags = TunnelFlags()
    alps_match_details: TunnelDetails = TunnelDetails()
    waypoint_proximity: WaypointProximity = WaypointProximity()
    alps_match_reason: MatchReasons = MatchReasons()
    alps_center_distances: AlpsCenterDistances = AlpsCenterDistances()
    samples: List[str] = []


# --- API ---

class ValidPoint(Point):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class RouteFactsRequest(FrozenModel):
    here_response: Dict[str, Any] = Field(..., description="Raw HERE Routing v8 response body")
    origin: Optional[ValidPoint] = None
    destination: Optional[ValidPoint] = None
    waypoints: Optional[List[ValidPoint]] = None
    via: Optional[List[ValidPoint]] = Field(None, description="Alias of waypoints")
    origin_country: Optional[str] = None
    destination_country: Optional[str] = None
    alps_override: Optional[AlpsOverride] = None
    debug: bool = False

    def resolved_waypoints(self) -> List[ValidPoint]:
        if self.waypoints is not None:
            return list(self.waypoints)
        return list(self.via or [])


class RouteFactsResponse(FrozenModel):
    route_facts: RouteFacts
    debug: Optional[GeofenceDiagnostics] = None
