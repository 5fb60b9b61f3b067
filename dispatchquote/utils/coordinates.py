import re
from typing import NamedTuple, Optional

COORD_FRAGMENT = r"(-?\d{1,3}(?:\.\d+)?)"

LINK_PATTERNS = [
    re.compile(r"@" + COORD_FRAGMENT + "," + COORD_FRAGMENT),
    re.compile(r"[?&]q=" + COORD_FRAGMENT + "," + COORD_FRAGMENT),
    re.compile(r"search/" + COORD_FRAGMENT + "," + COORD_FRAGMENT),
    re.compile(r"[?&]ll=" + COORD_FRAGMENT + "," + COORD_FRAGMENT),
]

PAIR_PATTERN = re.compile(
    r"^(?:geo:|gps:)?\s*" + COORD_FRAGMENT + r"\s*[,;\s/]\s*" + COORD_FRAGMENT + r"(?:\s|$)",
    re.IGNORECASE,
)


class ParsedCoordinates(NamedTuple):
    lat: float
    lng: float
    original_link: str


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"


def _to_parsed(lat_raw: str, lng_raw: str, original: str) -> Optional[ParsedCoordinates]:
    lat = float(lat_raw)
    lng = float(lng_raw)
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return ParsedCoordinates(lat=lat, lng=lng, original_link=original)


def parse_map_link(url: str) -> Optional[ParsedCoordinates]:
    """Extract a coordinate pair from a Google Maps URL.

    Recognised forms, in order: ``@lat,lng``, ``?q=lat,lng``, ``search/lat,lng``
    and ``?ll=lat,lng``. Short links are not followed.
    """
    trimmed = (url or "").strip()
    if not trimmed:
        return None
    for pattern in LINK_PATTERNS:
        match = pattern.search(trimmed)
        if match:
            return _to_parsed(match.group(1), match.group(2), trimmed)
    return None


def parse_coordinate_pair(text: str) -> Optional[ParsedCoordinates]:
    """Parse a bare ``lat, lng`` pair, optionally prefixed with ``geo:`` or ``gps:``."""
    trimmed = (text or "").strip()
    if not trimmed:
        return None
    match = PAIR_PATTERN.match(trimmed)
    if not match:
        return None
    parsed = _to_parsed(match.group(1), match.group(2), trimmed)
    if parsed is None:
        return None
    return parsed._replace(original_link=f"https://www.google.com/maps?q={parsed.lat},{parsed.lng}")


def parse_coordinates(text: str) -> Optional[ParsedCoordinates]:
    return parse_map_link(text) or parse_coordinate_pair(text)
