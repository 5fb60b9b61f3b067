import logging
import math
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

from dispatchquote.core.settings import Settings, get_settings
from dispatchquote.models.location import LatLng, Location, LocationKind, ResolutionState, Stop
from dispatchquote.models.results import Err, InputUnresolved, Ok, ResolutionFailed, Result
from dispatchquote.repositories.base import BaseMapsAdapter, MapsServiceError
from dispatchquote.utils.coordinates import format_coordinates, parse_coordinates

logger = logging.getLogger(__name__)

GPS_PLACE_ID = "GPS"
GEOCODED_PLACE_ID = "GEOCODED_STOP"


def search_link(query: str) -> str:
    return f"https://www.google.com/maps/search/?api=1&query={quote(query, safe='')}"


def location_from_candidate(candidate: Optional[Dict[str, Any]], query: str) -> Optional[Location]:
    """Build a Location from a geocoding or place-search candidate, if it has usable coordinates."""
    if not candidate:
        return None
    point = (candidate.get("geometry") or {}).get("location") or {}
    try:
        lat = float(point.get("lat"))
        lng = float(point.get("lng"))
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return Location(
        lat=lat,
        lng=lng,
        source_text=query,
        address=str(candidate.get("formatted_address") or candidate.get("name") or query),
        original_link=search_link(query),
        place_id=str(candidate.get("place_id") or GEOCODED_PLACE_ID),
    )


class LocationResolver:
    """Resolves free-form text to a Location.

    Map links and bare coordinate pairs are authoritative and never reach the
    network. Otherwise the chain is: country-restricted geocode, biased place
    search, unrestricted geocode. The first usable candidate wins.
    """

    def __init__(self, maps_adapter: BaseMapsAdapter, settings: Optional[Settings] = None):
        self.maps_adapter = maps_adapter
        self.settings = settings or get_settings()

    @property
    def region_bias(self) -> LatLng:
        return LatLng(lat=self.settings.REGION_BIAS_LAT, lng=self.settings.REGION_BIAS_LNG)

    async def resolve(self, raw_text: str, kind: LocationKind = LocationKind.PICKUP) -> Result:
        query = (raw_text or "").strip()
        if not query:
            return Err(error=ResolutionFailed(text=raw_text or "", message=f"Enter a {kind.value} location"))

        parsed = parse_coordinates(query)
        if parsed:
            logger.info(f"Parsed {kind.value} coordinates from input: {parsed.lat}, {parsed.lng}")
            return Ok(
                value=Location(
                    lat=parsed.lat,
                    lng=parsed.lng,
                    source_text=raw_text,
                    address=format_coordinates(parsed.lat, parsed.lng),
                    original_link=parsed.original_link,
                    place_id=GPS_PLACE_ID,
                )
            )

        attempts = [
            ("restricted geocode", lambda: self.maps_adapter.geocode(query, country=self.settings.REGION_CODE)),
            (
                "place search",
                lambda: self.maps_adapter.place_search(
                    query, bias=self.region_bias, radius_m=self.settings.REGION_BIAS_RADIUS_M
                ),
            ),
            ("unrestricted geocode", lambda: self.maps_adapter.geocode(query)),
        ]
        for step, attempt in attempts:
            try:
                candidates = await attempt()
            except MapsServiceError as e:
                logger.warning(f"{step} failed for '{query}', falling back: {e}")
                continue
            location = location_from_candidate(candidates[0] if candidates else None, query)
            if location:
                logger.info(f"Resolved {kind.value} '{query}' via {step} to {location.lat}, {location.lng}")
                return Ok(value=location.model_copy(update={"source_text": raw_text}))
            logger.warning(f"{step} returned no usable candidate for '{query}'")

        return Err(error=ResolutionFailed(text=raw_text, message=f"Could not resolve location: {query}"))

    async def reverse(self, lat: float, lng: float) -> Location:
        """Reverse geocode a map pin; falls back to the formatted coordinates."""
        point = LatLng(lat=lat, lng=lng)
        coordinates_text = format_coordinates(lat, lng)
        link = f"https://www.google.com/maps?q={lat},{lng}"
        try:
            candidates = await self.maps_adapter.reverse_geocode(point)
        except MapsServiceError as e:
            logger.warning(f"Reverse geocoding failed for {coordinates_text}, using coordinates: {e}")
            candidates = []

        first = candidates[0] if candidates else {}
        address = first.get("formatted_address") or coordinates_text
        return Location(
            lat=lat,
            lng=lng,
            source_text=coordinates_text,
            address=address,
            original_link=link,
            place_id=first.get("place_id") or GPS_PLACE_ID,
        )


def _field_kind(field_name: str) -> LocationKind:
    try:
        return LocationKind(field_name)
    except ValueError:
        return LocationKind.STOP


class RequestTokens:
    """Monotonic per-field request counters; the latest request for a field wins."""

    def __init__(self):
        self._counter = 0
        self._latest: Dict[str, int] = {}

    def issue(self, field: str) -> int:
        self._counter += 1
        self._latest[field] = self._counter
        return self._counter

    def is_current(self, field: str, token: int) -> bool:
        return self._latest.get(field) == token

    def invalidate(self, field: str) -> None:
        self.issue(field)


class ResolutionSession:
    """Per-quote resolution state: pickup/destination locations and ordered stops."""

    def __init__(self, resolver: LocationResolver):
        self.resolver = resolver
        self.tokens = RequestTokens()
        self.locations: Dict[str, Location] = {}
        self.stops: List[Stop] = []

    async def resolve_field(self, field: Union[LocationKind, str], text: str) -> Optional[Result]:
        """Resolve text into a named field. Returns None when superseded by a newer request."""
        field_name = field.value if isinstance(field, LocationKind) else field
        token = self.tokens.issue(field_name)
        result = await self.resolver.resolve(text, _field_kind(field_name))
        if not self.tokens.is_current(field_name, token):
            logger.debug(f"Dropping stale resolution for '{field_name}' (token {token})")
            return None
        if result.is_ok:
            self.locations[field_name] = result.value
        return result

    async def resolve_coordinate(self, field: Union[LocationKind, str], lat: float, lng: float) -> Optional[Location]:
        """Map click/drag flow: reverse geocode under the same token rule."""
        field_name = field.value if isinstance(field, LocationKind) else field
        token = self.tokens.issue(field_name)
        location = await self.resolver.reverse(lat, lng)
        if not self.tokens.is_current(field_name, token):
            logger.debug(f"Dropping stale reverse geocode for '{field_name}' (token {token})")
            return None
        self.locations[field_name] = location
        return location

    def add_stop(self, text: str = "") -> Stop:
        stop = Stop(text=text)
        self.stops.append(stop)
        return stop

    def remove_stop(self, index: int) -> Stop:
        stop = self.stops.pop(index)
        self.tokens.invalidate(self._stop_field(stop))
        return stop

    def edit_stop(self, index: int, text: str) -> Stop:
        stop = self.stops[index]
        if stop.state == ResolutionState.PENDING:
            # An edit supersedes the in-flight request for this stop.
            self.tokens.invalidate(self._stop_field(stop))
            stop.fail()
        stop.edit(text)
        return stop

    async def resolve_stop(self, index: int) -> Optional[Result]:
        stop = self.stops[index]
        field = self._stop_field(stop)
        token = self.tokens.issue(field)
        stop.begin()
        result = await self.resolver.resolve(stop.text, LocationKind.STOP)
        if not self.tokens.is_current(field, token):
            logger.debug(f"Dropping stale resolution for stop {index} (token {token})")
            return None
        if result.is_ok:
            stop.succeed(result.value)
            return Ok(value=stop)
        stop.fail()
        return result

    async def resolve_stops(self) -> Result:
        """Resolve every non-blank stop in order, stopping at the first failure."""
        for index, stop in enumerate(self.stops):
            if stop.is_blank or stop.is_resolved:
                continue
            result = await self.resolve_stop(index)
            if result is None:
                return Err(
                    error=InputUnresolved(
                        field=LocationKind.STOP.value,
                        stop_index=index,
                        text=stop.text,
                        message=f"Stop {index + 1} was edited while resolving",
                    )
                )
            if not result.is_ok:
                return Err(
                    error=ResolutionFailed(
                        text=stop.text,
                        stop_index=index,
                        message=f"Resolve stop before quoting: {stop.text.strip()}",
                    )
                )
        return Ok(value=list(self.stops))

    @staticmethod
    def _stop_field(stop: Stop) -> str:
        return f"stop:{stop.key}"
