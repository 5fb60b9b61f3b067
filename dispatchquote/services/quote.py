import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from dispatchquote.core.settings import Settings, get_settings
from dispatchquote.models.driver import Driver, DriverScore, QuoteContext, ScoringWeights, Trip
from dispatchquote.models.fare import FareModifiers, FareQuote, RateConfiguration, TripQuote
from dispatchquote.models.location import Location, LocationKind, Stop
from dispatchquote.models.results import Ok, Result
from dispatchquote.models.route import RouteResult
from dispatchquote.repositories.base import BaseMapsAdapter
from dispatchquote.services import drivers, fare
from dispatchquote.services.location import LocationResolver, ResolutionSession
from dispatchquote.services.routing import RouteService

logger = logging.getLogger(__name__)


class QuoteService:
    """Entry point for one quoting session.

    Resolution and routing go through the injected map adapter; fare and
    driver ranking are pure and never fail.
    """

    def __init__(
        self,
        maps_adapter: BaseMapsAdapter,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or get_settings()
        self.resolver = LocationResolver(maps_adapter, self.settings)
        self.route_service = RouteService(maps_adapter, self.settings, clock=clock)

    @property
    def rates(self) -> RateConfiguration:
        return RateConfiguration.from_settings(self.settings)

    async def resolve_location(self, text: str, kind: LocationKind = LocationKind.PICKUP) -> Result:
        return await self.resolver.resolve(text, kind)

    async def resolve_stop(self, text: str) -> Result:
        stop = Stop(text=text)
        stop.begin()
        result = await self.resolver.resolve(text, LocationKind.STOP)
        if not result.is_ok:
            stop.fail()
            return result
        stop.succeed(result.value)
        return Ok(value=stop)

    async def compute_route(
        self,
        origin: Optional[Location],
        destination: Optional[Location],
        stops: Optional[Sequence[Stop]] = None,
        departure_time: Optional[datetime] = None,
    ) -> Result:
        return await self.route_service.compute_route(origin, destination, stops, departure_time)

    def compute_fare(
        self,
        route: RouteResult,
        modifiers: Optional[FareModifiers] = None,
        rates: Optional[RateConfiguration] = None,
    ) -> FareQuote:
        return fare.compute_fare(route, modifiers, rates or self.rates)

    def rank_drivers(
        self,
        driver_list: Sequence[Driver],
        trips: Sequence[Trip],
        context: Optional[QuoteContext] = None,
        weights: Optional[ScoringWeights] = None,
    ) -> List[DriverScore]:
        return drivers.rank_drivers(driver_list, trips, context, weights)

    async def price_trip(
        self,
        pickup_text: str,
        destination_text: str,
        stop_texts: Optional[Sequence[str]] = None,
        modifiers: Optional[FareModifiers] = None,
        departure_time: Optional[datetime] = None,
    ) -> Result:
        """Resolve pickup, destination and stops in order, then route and price the trip."""
        pickup = await self.resolve_location(pickup_text, LocationKind.PICKUP)
        if not pickup.is_ok:
            return pickup
        destination = await self.resolve_location(destination_text, LocationKind.DESTINATION)
        if not destination.is_ok:
            return destination

        session = ResolutionSession(self.resolver)
        for text in stop_texts or []:
            session.add_stop(text or "")
        stops = await session.resolve_stops()
        if not stops.is_ok:
            return stops

        route = await self.compute_route(pickup.value, destination.value, stops.value, departure_time)
        if not route.is_ok:
            return route

        modifiers = modifiers or FareModifiers()
        quote = self.compute_fare(route.value, modifiers)
        return Ok(value=TripQuote(route=route.value, fare=quote, modifiers=modifiers))

