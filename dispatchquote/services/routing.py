import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import polyline

from dispatchquote.core.settings import Settings, get_settings
from dispatchquote.models.location import Location, LocationKind, Stop
from dispatchquote.models.results import (
    Err,
    Failure,
    InputUnresolved,
    Ok,
    Result,
    RoutingBlocked,
    RoutingInvalidArgument,
    RoutingTransient,
)
from dispatchquote.models.route import RouteRequest, RouteResult
from dispatchquote.repositories.base import BaseMapsAdapter, MapsServiceError
from dispatchquote.utils.numbers import clamp, finite_or, round_half_up

logger = logging.getLogger(__name__)

BLOCKED_MARKERS = ("PERMISSION_DENIED", "API_KEY", "REQUEST_DENIED")
INVALID_ARGUMENT_MARKER = "INVALID_ARGUMENT"
BLOCKED_MESSAGE = (
    "Routes API returned 403 (Forbidden). Enable the Routes API, attach billing, "
    "and allow this client in the key restrictions."
)


def compute_traffic_index(duration_in_traffic_min: float, baseline_duration_min: float) -> int:
    """0-100 congestion index from the live/baseline duration ratio (ratio clamped to [1, 2.5])."""
    if not (math.isfinite(duration_in_traffic_min) and math.isfinite(baseline_duration_min)):
        return 0
    if baseline_duration_min <= 0:
        return 0
    ratio = clamp(duration_in_traffic_min / baseline_duration_min, 1.0, 2.5)
    return int(clamp(round_half_up(((ratio - 1) / 1.5) * 100), 0, 100))


def parse_duration_minutes(duration: Any) -> int:
    """Convert a protobuf duration ("754s") to whole minutes, rounding up."""
    if duration is None:
        return 0
    text = str(duration).strip().rstrip("s")
    seconds = finite_or(text, 0.0) if text else 0.0
    return int(math.ceil(max(0.0, seconds) / 60))


def safe_departure_time(
    requested: Optional[datetime],
    now: datetime,
    min_lead_minutes: int,
) -> datetime:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    earliest = now + timedelta(minutes=min_lead_minutes)
    if requested is None:
        return earliest
    if requested.tzinfo is None:
        requested = requested.replace(tzinfo=timezone.utc)
    return max(requested, earliest)


def classify_routing_error(error: MapsServiceError) -> Failure:
    status_code = getattr(error, "status_code", None)
    detail = getattr(error, "detail", None) or str(error)
    if status_code == 403 or any(marker in detail for marker in BLOCKED_MARKERS):
        return RoutingBlocked(message=BLOCKED_MESSAGE, status_code=status_code, detail=detail)
    if status_code == 400 or INVALID_ARGUMENT_MARKER in detail:
        return RoutingInvalidArgument(
            message=f"Routes API returned 400 (Bad Request): {detail}",
            status_code=status_code,
            detail=detail,
        )
    return RoutingTransient(message=f"Routing error. {detail}", status_code=status_code, detail=detail)


def first_unresolved(
    origin: Optional[Location],
    destination: Optional[Location],
    stops: Sequence[Stop],
) -> Optional[InputUnresolved]:
    if origin is None:
        return InputUnresolved(field=LocationKind.PICKUP.value, message="Resolve pickup before quoting")
    if destination is None:
        return InputUnresolved(field=LocationKind.DESTINATION.value, message="Resolve destination before quoting")
    for index, stop in enumerate(stops):
        if stop.is_blank:
            continue
        if not stop.is_resolved:
            return InputUnresolved(
                field=LocationKind.STOP.value,
                stop_index=index,
                text=stop.text,
                message=f"Resolve stop before quoting: {stop.text.strip()}",
            )
    return None


def decode_path(polyline_field: Any) -> List[Tuple[float, float]]:
    """Decode the route polyline; a malformed one yields an empty path."""
    encoded = polyline_field.get("encodedPolyline") if isinstance(polyline_field, dict) else None
    if not encoded:
        return []
    try:
        return polyline.decode(encoded)
    except (IndexError, TypeError, ValueError) as e:
        logger.warning(f"Ignoring malformed route polyline: {e}")
        return []


def build_route_result(
    payload: Dict[str, Any],
    origin: Location,
    destination: Location,
    stops: List[Location],
    departure_time: Optional[datetime] = None,
) -> Optional[RouteResult]:
    if not isinstance(payload, dict):
        return None
    routes = payload.get("routes") or []
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        return None
    route = routes[0]

    distance_meters = max(0.0, finite_or(route.get("distanceMeters"), 0.0))
    duration_in_traffic_min = parse_duration_minutes(route.get("duration"))
    baseline_min = parse_duration_minutes(route.get("staticDuration") or route.get("duration"))
    distance_km = distance_meters / 1000

    return RouteResult(
        distance_km=distance_km,
        duration_min=baseline_min,
        duration_in_traffic_min=duration_in_traffic_min,
        traffic_index=compute_traffic_index(duration_in_traffic_min, baseline_min),
        surplus_min=max(0, duration_in_traffic_min - baseline_min),
        distance_text=f"{distance_km:.1f} km",
        duration_text=f"{baseline_min} min",
        duration_in_traffic_text=f"{duration_in_traffic_min} min",
        pickup_address=origin.address or origin.source_text or "Pickup",
        destination_address=destination.address or destination.source_text or "Destination",
        path=decode_path(route.get("polyline")),
        stops=stops,
        departure_time=departure_time,
    )


class RouteService:
    """Route & traffic model over an injected map adapter.

    A 403/permission failure blocks the service until reset_blocked() is called;
    no failure is retried automatically.
    """

    def __init__(
        self,
        maps_adapter: BaseMapsAdapter,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.maps_adapter = maps_adapter
        self.settings = settings or get_settings()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.blocked = False
        self._blocked_failure: Optional[RoutingBlocked] = None

    def reset_blocked(self) -> None:
        logger.info("Routing collaborator unblocked")
        self.blocked = False
        self._blocked_failure = None

    async def compute_route(
        self,
        origin: Optional[Location],
        destination: Optional[Location],
        stops: Optional[Sequence[Stop]] = None,
        departure_time: Optional[datetime] = None,
    ) -> Result:
        stops = list(stops or [])
        unresolved = first_unresolved(origin, destination, stops)
        if unresolved:
            logger.warning(f"Route not computed: {unresolved.message}")
            return Err(error=unresolved)

        if self.blocked:
            logger.warning("Routing collaborator is blocked for this session; not calling provider")
            return Err(error=self._blocked_failure or RoutingBlocked(message=BLOCKED_MESSAGE))

        waypoints = [stop.location for stop in stops if not stop.is_blank]
        request = RouteRequest(
            origin=origin.to_lat_lng(),
            destination=destination.to_lat_lng(),
            intermediates=[waypoint.to_lat_lng() for waypoint in waypoints],
            departure_time=safe_departure_time(departure_time, self.clock(), self.settings.MIN_LEAD_MINUTES),
        )

        try:
            payload = await self.maps_adapter.compute_route(request)
        except MapsServiceError as e:
            failure = classify_routing_error(e)
            if isinstance(failure, RoutingBlocked):
                self.blocked = True
                self._blocked_failure = failure
            logger.error(f"Route computation failed ({failure.kind}): {failure.detail}")
            return Err(error=failure)

        result = build_route_result(payload, origin, destination, waypoints, request.departure_time)
        if result is None:
            logger.warning("Routes API returned no route")
            return Err(error=RoutingTransient(message="Routing error. No route returned from Routes API"))

        logger.info(
            f"Route computed: {result.distance_text}, {result.duration_in_traffic_min} min in traffic "
            f"(baseline {result.duration_min} min, index {result.traffic_index})"
        )
        return Ok(value=result)
