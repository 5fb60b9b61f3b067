from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from dispatchquote.models.driver import Driver, QuoteContext, ScoringWeights, Trip
from dispatchquote.models.fare import FareModifiers, RateConfiguration
from dispatchquote.models.location import Location, LocationKind, Stop
from dispatchquote.models.route import RouteResult


# Request Models
class ResolveRequest(BaseModel):
    text: str = Field(..., description="Map link, 'lat, lng' pair or address")
    kind: LocationKind = Field(LocationKind.PICKUP, description="Which field is being resolved")


class StopResolveRequest(BaseModel):
    text: str = Field(..., description="Stop text to resolve")


class RouteRequestBody(BaseModel):
    origin: Optional[Location] = None
    destination: Optional[Location] = None
    stops: List[Stop] = Field(default_factory=list)
    departure_time: Optional[datetime] = Field(
        None, description="Requested departure; moved forward to the minimum lead time"
    )


class FareRequest(BaseModel):
    route: RouteResult
    modifiers: FareModifiers = Field(default_factory=FareModifiers)
    rates: Optional[RateConfiguration] = Field(None, description="Defaults to configured rates")


class RankRequest(BaseModel):
    drivers: List[Driver]
    trips: List[Trip] = Field(default_factory=list)
    context: QuoteContext = Field(default_factory=QuoteContext)
    weights: Optional[ScoringWeights] = None
    limit: Optional[int] = Field(None, ge=1)
    query: Optional[str] = Field(None, description="Filter by name, plate or current status")

