import logging

from fastapi import FastAPI, HTTPException

from .config import settings
from .geofence import alps_debug_config
from .geography import apply_endpoint_countries
from .here import extract_route_facts_with_diagnostics
from .models import RouteFactsRequest, RouteFactsResponse

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.api_title, version="0.3.0")


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/api/alps-config")
def alps_config():
    return alps_debug_config()


@app.post("/api/route-facts", response_model=RouteFactsResponse)
def route_facts(request: RouteFactsRequest):
    """
    Normalize a raw HERE truck routing response into route facts.
    Set `debug` to also get the geofencing diagnostics behind the Alps verdict.
    """
    try:
        facts, diagnostics = extract_route_facts_with_diagnostics(
            request.here_response,
            alps_match=request.alps_override,
            origin=request.origin,
            waypoints=request.resolved_waypoints(),
            destination=request.destination,
        )
    except Exception:
        logger.exception("Route facts extraction failed")
        raise HTTPException(status_code=500, detail="An internal server error occurred.")

    if request.origin_country or request.destination_country:
        try:
            facts = apply_endpoint_countries(facts, request.origin_country, request.destination_country)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    return RouteFactsResponse(
        route_facts=facts,
        debug=diagnostics if request.debug else None,
    )
