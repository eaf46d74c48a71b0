"""
Recognise tunnels named in free text (driving instructions, notice titles).

Text is compared with diacritics stripped and lowercased, so "Fréjus",
"FREJUS" and "Frejus" are the same. French, Italian and English spellings of
the same tunnel share one entry.
"""
import re
import unicodedata
from typing import Callable, NamedTuple, Optional, Tuple

from .models import Tunnel


def normalize_text(text: str) -> str:
    """Decompose, drop combining marks, lowercase."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def _tunnel(name: str, category: str, country: str) -> Tunnel:
    return Tunnel(name=name, category=category, country=country)


FREJUS_TUNNEL = _tunnel("Fréjus Tunnel", "alpine", "FRA/ITA")
MONT_BLANC_TUNNEL = _tunnel("Mont Blanc Tunnel", "alpine", "FRA/ITA")

# (variants, tunnel). Variants are already normalized. Order matters: the
# first entry with a matching variant wins.
KNOWN_TUNNELS: Tuple[Tuple[Tuple[str, ...], Tunnel], ...] = (
    (("frejus",), FREJUS_TUNNEL),
    (("mont blanc", "mont-blanc", "montblanc", "monte bianco"), MONT_BLANC_TUNNEL),
    (("gotthard", "gottardo", "gothard"), _tunnel("Gotthard Tunnel", "alpine", "CHE")),
    (("brenner", "brennero"), _tunnel("Brenner Tunnel", "alpine", "AUT/ITA")),
    (("arlberg",), _tunnel("Arlberg Tunnel", "alpine", "AUT")),
    (("tauern",), _tunnel("Tauern Tunnel", "alpine", "AUT")),
    (("karawanken", "karavanke"), _tunnel("Karawanken Tunnel", "alpine", "AUT/SVN")),
    (("san bernardino", "saint-bernardin"), _tunnel("San Bernardino Tunnel", "alpine", "CHE")),
    (("great st bernard", "great saint bernard", "grand saint-bernard", "grand-saint-bernard",
      "gran san bernardo"), _tunnel("Great St Bernard Tunnel", "alpine", "CHE/ITA")),
    (("simplon", "sempione"), _tunnel("Simplon Tunnel", "alpine", "CHE")),
    (("lotschberg", "loetschberg"), _tunnel("Lötschberg Tunnel", "alpine", "CHE")),
    (("channel tunnel", "eurotunnel", "tunnel sous la manche", "galleria della manica"),
     _tunnel("Channel Tunnel", "undersea", "FRA/GBR")),
)

TUNNEL_INDICATORS = ("tunnel", "traforo", "galleria")

# Variants that are also town names (Frejus on the A8 Riviera motorway): they
# only name the tunnel when the text also says tunnel.
PLACE_NAME_VARIANTS = frozenset({"frejus"})

_CAP_WORD = r"[A-ZÀ-ÖØ-Þ][\w'’-]*"
# "Enter the Blackwall Tunnel", "through Kingsway tunnel", "take the Tyne Tunnel"
ENGLISH_NAME_RE = re.compile(
    r"(?i:\b(?:enter|through|via|take))\s+(?:(?i:the)\s+)?"
    rf"({_CAP_WORD}(?:\s+{_CAP_WORD})*)\s+(?i:tunnel)\b"
)
# "Traforo del Gran Sasso", "traforo Colle di Tenda"
ITALIAN_NAME_RE = re.compile(
    r"(?i:\btraforo)\s+(?:(?i:del|dello|della|di)\s+|(?i:dell)['’]\s*)?"
    rf"({_CAP_WORD}(?:\s+(?:di\s+|del\s+)?{_CAP_WORD})*)"
)


class TunnelTextMatch(NamedTuple):
    # None when the text only says "tunnel" without a usable name
    tunnel: Optional[Tunnel]
    source: str


def _mentions_indicator(normalized: str) -> bool:
    return any(word in normalized for word in TUNNEL_INDICATORS)


def _match_known(text: str, normalized: str) -> Optional[TunnelTextMatch]:
    for variants, tunnel in KNOWN_TUNNELS:
        hits = [v for v in variants if v in normalized]
        if any(v not in PLACE_NAME_VARIANTS or _mentions_indicator(normalized) for v in hits):
            return TunnelTextMatch(tunnel, "known")
    return None


def _match_english_name(text: str, normalized: str) -> Optional[TunnelTextMatch]:
    m = ENGLISH_NAME_RE.search(text)
    if not m:
        return None
    return TunnelTextMatch(Tunnel(name=f"{m.group(1).strip()} Tunnel"), "english")


def _match_italian_name(text: str, normalized: str) -> Optional[TunnelTextMatch]:
    m = ITALIAN_NAME_RE.search(text)
    if not m:
        return None
    return TunnelTextMatch(Tunnel(name=f"{m.group(1).strip()} Tunnel"), "italian")


def _match_indicator(text: str, normalized: str) -> Optional[TunnelTextMatch]:
    if _mentions_indicator(normalized):
        return TunnelTextMatch(None, "indicator")
    return None


# Named patterns before generic ones; first hit wins.
TEXT_MATCHERS: Tuple[Callable[[str, str], Optional[TunnelTextMatch]], ...] = (
    _match_known,
    _match_english_name,
    _match_italian_name,
    _match_indicator,
)


def match_tunnel_text(text: object) -> Optional[TunnelTextMatch]:
    """
    Returns None when the text says nothing about a tunnel, a match with
    tunnel=None when it only mentions one generically, or a named Tunnel.
    Non-string input is treated as empty.
    """
    if not isinstance(text, str) or not text:
        return None
    normalized = normalize_text(text)
    for matcher in TEXT_MATCHERS:
        found = matcher(text, normalized)
        if found is not None:
            return found
    return None
