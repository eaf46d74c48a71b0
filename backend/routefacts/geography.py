import logging
from typing import Dict, List, Optional

from .models import RouteFacts

logger = logging.getLogger(__name__)

ALPHA3_TO_ALPHA2: Dict[str, str] = {
    # EU member states
    "AUT": "AT", "BEL": "BE", "BGR": "BG", "HRV": "HR", "CYP": "CY",
    "CZE": "CZ", "DNK": "DK", "EST": "EE", "FIN": "FI", "FRA": "FR",
    "DEU": "DE", "GRC": "GR", "HUN": "HU", "IRL": "IE", "ITA": "IT",
    "LVA": "LV", "LTU": "LT", "LUX": "LU", "MLT": "MT", "NLD": "NL",
    "POL": "PL", "PRT": "PT", "ROU": "RO", "SVK": "SK", "SVN": "SI",
    "ESP": "ES", "SWE": "SE",
    # rest of Europe
    "GBR": "GB", "NOR": "NO", "CHE": "CH", "ISL": "IS", "LIE": "LI",
    "UKR": "UA", "BLR": "BY", "MDA": "MD", "SRB": "RS", "MKD": "MK",
    "ALB": "AL", "MNE": "ME", "BIH": "BA", "XKX": "XK", "AND": "AD",
    "MCO": "MC", "SMR": "SM", "VAT": "VA", "TUR": "TR", "RUS": "RU",
}

EU_COUNTRIES = frozenset({
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR",
    "DE", "GR", "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL",
    "PL", "PT", "RO", "SK", "SI", "ES", "SE",
})


def to_alpha2(code: Optional[str]) -> Optional[str]:
    """
    Normalize a country code to ISO alpha-2.
    "UK" becomes "GB", alpha-2 passes through upper-cased, known alpha-3 is
    mapped, anything else gives None.
    """
    if not code:
        return None
    normalized = code.strip().upper()
    if normalized == "UK":
        return "GB"
    if len(normalized) == 2:
        return normalized
    if len(normalized) == 3:
        alpha2 = ALPHA3_TO_ALPHA2.get(normalized)
        if alpha2 is None:
            logger.debug("Unknown alpha-3 country code: %s", normalized)
        return alpha2
    logger.debug("Invalid country code format: %r", code)
    return None


def is_uk_code(code: Optional[str]) -> bool:
    if not code:
        return False
    return code.strip().upper() in ("GB", "GBR", "UK")


def is_eu_country(alpha2: Optional[str]) -> bool:
    return bool(alpha2) and alpha2 in EU_COUNTRIES


def apply_endpoint_countries(
    facts: RouteFacts,
    origin_country: Optional[str],
    destination_country: Optional[str],
) -> RouteFacts:
    """
    Returns a copy of `facts` with geography taken from known endpoint
    countries (e.g. from geocoding the stops) instead of toll data.
    Countries crossed are normalized to alpha-2 and include both endpoints.
    Only the UK flag is recomputed; the Alps flag is never touched here.
    """
    origin = to_alpha2(origin_country)
    destination = to_alpha2(destination_country)
    geo = facts.geography

    crossed: List[str] = []
    for code in list(geo.countries_crossed) + [origin, destination]:
        alpha2 = to_alpha2(code)
        if alpha2 and alpha2 not in crossed:
            crossed.append(alpha2)

    update = {
        "countries_crossed": crossed,
        "origin_country": origin if origin else geo.origin_country,
        "destination_country": destination if destination else geo.destination_country,
    }
    if origin and destination:
        update["is_international"] = origin != destination
        update["is_eu"] = is_eu_country(origin) and is_eu_country(destination)

    is_uk = is_uk_code(destination) or any(is_uk_code(c) for c in crossed)
    return facts.model_copy(update={
        "geography": geo.model_copy(update=update),
        "risk_flags": facts.risk_flags.model_copy(update={"is_uk": is_uk}),
    })
