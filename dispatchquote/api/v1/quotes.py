import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from dispatchquote.api.dependencies import get_quote_service
from dispatchquote.api.v1.models import (
    FareRequest,
    RankRequest,
    ResolveRequest,
    RouteRequestBody,
    StopResolveRequest,
)
from dispatchquote.models.driver import DriverScore
from dispatchquote.models.fare import FareQuote
from dispatchquote.models.location import Location, Stop
from dispatchquote.models.results import Result
from dispatchquote.models.route import RouteResult
from dispatchquote.services import drivers
from dispatchquote.services.quote import QuoteService

logger = logging.getLogger(__name__)
router = APIRouter()

FAILURE_STATUS = {
    "input_unresolved": 409,
    "resolution_failed": 422,
    "routing_blocked": 503,
    "routing_invalid_argument": 400,
    "routing_transient": 502,
}


def unwrap(result: Result):
    """Return the value of an Ok result or raise the failure as an HTTP error."""
    if result.is_ok:
        return result.value
    failure = result.error
    status_code = FAILURE_STATUS.get(failure.kind, 500)
    logger.warning(f"Request failed with {failure.kind} ({status_code}): {failure.message}")
    raise HTTPException(status_code=status_code, detail=failure.model_dump())


@router.post("/resolve", response_model=Location)
async def resolve_location_api(
    request: ResolveRequest,
    quote_service: QuoteService = Depends(get_quote_service),
):
    """Resolve a map link, coordinate pair or address to a location."""
    logger.info(f"Received resolve request: kind={request.kind.value}, text='{request.text}'")
    return unwrap(await quote_service.resolve_location(request.text, request.kind))


@router.post("/stops/resolve", response_model=Stop)
async def resolve_stop_api(
    request: StopResolveRequest,
    quote_service: QuoteService = Depends(get_quote_service),
):
    logger.info(f"Received stop resolve request: text='{request.text}'")
    return unwrap(await quote_service.resolve_stop(request.text))


@router.post("/route", response_model=RouteResult)
async def compute_route_api(
    request: RouteRequestBody,
    quote_service: QuoteService = Depends(get_quote_service),
):
    """Compute a traffic-aware route between resolved locations."""
    logger.info(f"Received route request with {len(request.stops)} stop(s)")
    result = await quote_service.compute_route(
        request.origin, request.destination, request.stops, request.departure_time
    )
    return unwrap(result)


@router.post("/fare", response_model=FareQuote)
async def compute_fare_api(
    request: FareRequest,
    quote_service: QuoteService = Depends(get_quote_service),
):
    return quote_service.compute_fare(request.route, request.modifiers, request.rates)


@router.post("/drivers/rank", response_model=List[DriverScore])
async def rank_drivers_api(
    request: RankRequest,
    quote_service: QuoteService = Depends(get_quote_service),
):
    """Rank active drivers for the current quote context."""
    logger.info(f"Received ranking request for {len(request.drivers)} driver(s)")
    if request.query:
        return drivers.search_drivers(
            request.query,
            request.drivers,
            request.trips,
            request.context,
            request.weights,
            limit=request.limit or 8,
        )
    ranked = quote_service.rank_drivers(request.drivers, request.trips, request.context, request.weights)
    return ranked[: request.limit] if request.limit else ranked


@router.post("/route/unblock", status_code=204)
async def unblock_routing_api(quote_service: QuoteService = Depends(get_quote_service)):
    """Clear a session-level routing block after the key or billing has been fixed."""
    quote_service.route_service.reset_blocked()
