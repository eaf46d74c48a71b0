import pytest

from routefacts import polyline


def _section(section_id, length, duration, mode="truck", **extra):
    section = {
        "id": section_id,
        "type": "ferry" if mode == "ferry" else "vehicle",
        "summary": {"duration": duration, "length": length, "baseDuration": duration},
        "transport": {"mode": mode},
    }
    section.update(extra)
    return section


def _place(lat, lng):
    return {"time": "2024-01-15T08:00:00+01:00", "place": {"type": "place", "location": {"lat": lat, "lng": lng}}}


@pytest.fixture
def berlin_warsaw():
    """Plain EU land route: no tolls, ferries or tunnels."""
    return {
        "routes": [{
            "id": "route-berlin-warsaw",
            "sections": [
                _section(
                    "section-1", 574000, 23400,
                    departure=_place(52.52, 13.405),
                    arrival=_place(52.2297, 21.0122),
                    actions=[
                        {"action": "depart", "duration": 0, "length": 0, "instruction": "Head east on A10", "offset": 0},
                        {"action": "arrive", "duration": 0, "length": 0, "instruction": "Arrive at destination", "offset": 1},
                    ],
                ),
            ],
        }],
    }


@pytest.fixture
def london_paris_ferry():
    return {
        "routes": [{
            "id": "route-london-paris",
            "sections": [
                _section(
                    "section-1", 120000, 7200,
                    actions=[{"action": "depart", "instruction": "Head southeast on M20"}],
                ),
                _section(
                    "section-2", 50000, 5400, mode="ferry",
                    actions=[{"action": "ferry", "instruction": "Take the ferry from Dover to Calais"}],
                ),
                _section(
                    "section-3", 290000, 12600,
                    tolls=[{"tolls": [{
                        "countryCode": "FRA",
                        "tollSystem": "Autoroutes",
                        "fares": [{"id": "fare-1", "price": {"type": "total", "value": "28.50", "currency": "EUR"}}],
                    }]}],
                ),
            ],
        }],
    }


@pytest.fixture
def munich_milan_tolls():
    return {
        "routes": [{
            "id": "route-munich-milan",
            "sections": [
                _section(
                    "section-1", 490000, 21600,
                    tolls=[{"tolls": [
                        {"countryCode": "DEU", "fares": [{"price": {"value": "45.00", "currency": "EUR"}}]},
                        {"countryCode": "AUT", "fares": [{"price": {"value": "22.50", "currency": "EUR"}}]},
                        {"countryCode": "ITA", "fares": [{"price": {"value": "35.80", "currency": "EUR"}}]},
                    ]}],
                    actions=[
                        {"action": "depart", "instruction": "Head south on A8"},
                        {"action": "continue", "instruction": "Continue through Brenner Pass"},
                    ],
                ),
            ],
        }],
    }


@pytest.fixture
def lyon_turin_text_only():
    """Frejus named in the text, but no geometry at all."""
    return {
        "routes": [{
            "id": "route-lyon-turin",
            "sections": [
                _section(
                    "section-1", 312000, 16200,
                    tolls=[{"tolls": [
                        {"countryCode": "FRA", "fares": [{"price": {"value": "42.20", "currency": "EUR"}}]},
                        {"countryCode": "ITA", "fares": [{"price": {"value": "48.90", "currency": "EUR"}}]},
                    ]}],
                    actions=[
                        {"action": "depart", "instruction": "Head east on A43"},
                        {"action": "continue", "instruction": "Enter the Fréjus Tunnel"},
                        {"action": "continue", "instruction": "Exit tunnel and continue on A32"},
                    ],
                    notices=[{
                        "title": "Hazardous goods restrictions in Fréjus Tunnel",
                        "code": "hazardousGoodsRestriction",
                        "severity": "critical",
                    }],
                ),
            ],
        }],
    }


@pytest.fixture
def turin_chambery_polyline():
    """Turin -> Frejus tunnel -> Chambery with a real polyline."""
    encoded = polyline.encode([(45.0703, 7.6869), (45.1, 6.7), (45.5646, 5.9178)])
    return {
        "routes": [{
            "id": "route-turin-chambery",
            "sections": [
                _section(
                    "section-1", 150000, 14400,
                    departure=_place(45.0703, 7.6869),
                    arrival=_place(45.5646, 5.9178),
                    polyline=encoded,
                    actions=[
                        {"action": "depart", "instruction": "Head west toward Frejus"},
                        {"action": "continue", "instruction": "Enter the Fréjus Tunnel"},
                    ],
                ),
            ],
        }],
    }
