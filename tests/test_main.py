import pytest
from fastapi.testclient import TestClient

from routefacts.main import app


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_alps_config(client):
    body = client.get("/api/alps-config").json()
    assert set(body["centers"]) == {"frejus", "montBlanc"}
    assert body["bboxes"]["frejus"]["minLat"] == 45.03
    assert body["proximityKm"] == 3.0


def test_route_facts(client, munich_milan_tolls):
    r = client.post("/api/route-facts", json={"hereResponse": munich_milan_tolls})
    assert r.status_code == 200

    body = r.json()
    facts = body["routeFacts"]
    assert facts["infrastructure"]["tollCountries"] == ["AUT", "DEU", "ITA"]
    assert facts["infrastructure"]["tollCostEstimate"] == 103.3
    assert facts["riskFlags"]["crossesAlps"] is False
    assert "isUK" in facts["riskFlags"]
    assert body["debug"] is None


def test_route_facts_with_debug(client, turin_chambery_polyline):
    r = client.post("/api/route-facts", json={"hereResponse": turin_chambery_polyline, "debug": True})
    body = r.json()

    assert body["routeFacts"]["riskFlags"]["crossesAlps"] is True
    assert body["debug"]["alpsMatchReason"]["frejus"] == "polylineBbox"
    assert body["debug"]["polylinePointsChecked"] == 3
    assert body["debug"]["samples"] == ["Head west toward Frejus", "Enter the Fréjus Tunnel"]


def test_via_points_feed_the_proximity_fallback(client, berlin_warsaw):
    payload = {
        "hereResponse": berlin_warsaw,
        "origin": {"lat": 45.0703, "lng": 7.6869},
        "via": [{"lat": 45.924, "lng": 6.968}],
        "destination": {"lat": 46.2044, "lng": 6.1432},
        "debug": True,
    }
    body = client.post("/api/route-facts", json=payload).json()

    assert body["routeFacts"]["riskFlags"]["crossesAlps"] is True
    assert body["debug"]["alpsMatchReason"]["montBlanc"] == "waypointProximity"


def test_alps_override(client, berlin_warsaw):
    payload = {"hereResponse": berlin_warsaw, "alpsOverride": {"frejus": True}}
    body = client.post("/api/route-facts", json=payload).json()
    assert body["routeFacts"]["riskFlags"]["crossesAlps"] is True


def test_endpoint_countries(client, berlin_warsaw):
    payload = {"hereResponse": berlin_warsaw, "originCountry": "DEU", "destinationCountry": "POL"}
    geo = client.post("/api/route-facts", json=payload).json()["routeFacts"]["geography"]

    assert geo["originCountry"] == "DE"
    assert geo["destinationCountry"] == "PL"
    assert geo["isInternational"] is True
    assert geo["isEU"] is True


def test_invalid_point_is_rejected(client, berlin_warsaw):
    r = client.post("/api/route-facts", json={"hereResponse": berlin_warsaw, "origin": {"lat": 95, "lng": 7}})
    assert r.status_code == 422


def test_missing_response_is_rejected(client):
    assert client.post("/api/route-facts", json={"debug": True}).status_code == 422


def test_empty_response_gives_defaults(client):
    body = client.post("/api/route-facts", json={"hereResponse": {}}).json()
    assert body["routeFacts"]["route"]["distanceKm"] == 0.0
    assert body["routeFacts"]["raw"]["provider"] == "here"


def test_absurd_upstream_values_are_not_a_server_error(client):
    here_response = {"routes": [{"sections": [{
        "summary": {"length": 10 ** 400, "duration": 3600},
        "departure": {"place": {"location": {"lat": 10 ** 400, "lng": 7.0}}},
        "polyline": "F" + "_" * 220 + "AA",
        "tolls": [{"tolls": [{"countryCode": "FRA", "fares": [{"price": {"value": "1e30"}}]}]}],
    }]}]}
    r = client.post("/api/route-facts", json={"hereResponse": here_response, "debug": True})

    assert r.status_code == 200
    body = r.json()
    assert body["routeFacts"]["infrastructure"]["tollCostEstimate"] is None
    assert body["debug"]["decodeFailures"] == 1


def test_extraction_failure_is_a_server_error(client, monkeypatch, berlin_warsaw):
    from routefacts import main

    def broken(*args, **kwargs):
        raise ValueError("bad provider data")

    monkeypatch.setattr(main, "extract_route_facts_with_diagnostics", broken)
    r = client.post("/api/route-facts", json={"hereResponse": berlin_warsaw})

    assert r.status_code == 500
    assert "bad provider data" not in r.text


def test_enrichment_value_error_is_a_client_error(client, monkeypatch, berlin_warsaw):
    from routefacts import main

    def rejecting(*args, **kwargs):
        raise ValueError("unknown country")

    monkeypatch.setattr(main, "apply_endpoint_countries", rejecting)
    r = client.post("/api/route-facts", json={"hereResponse": berlin_warsaw, "originCountry": "ZZ"})

    assert r.status_code == 400
    assert r.json()["detail"] == "unknown country"
