from typing import Optional
from pydantic import BaseModel, Field

from dispatchquote.core.settings import Settings, get_settings
from dispatchquote.models.route import RouteResult


class RateConfiguration(BaseModel):
    rate_per_km: float = 1.10
    hourly_wait_rate: float = 5
    exchange_rate: float = 90000
    minimum_fare_usd: float = 7

    class Config:
        frozen = True

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RateConfiguration":
        settings = settings or get_settings()
        return cls(
            rate_per_km=settings.RATE_PER_KM,
            hourly_wait_rate=settings.HOURLY_WAIT_RATE,
            exchange_rate=settings.EXCHANGE_RATE,
            minimum_fare_usd=settings.MINIMUM_FARE_USD,
        )


class FareModifiers(BaseModel):
    is_round_trip: bool = False
    add_wait_time: bool = False
    wait_hours: float = 0


class FareQuote(BaseModel):
    fare_usd: float
    fare_lbp: float
    minimum_fare_applied: bool
    base_usd: int = 0
    wait_usd: int = 0


class TripQuote(BaseModel):
    route: RouteResult
    fare: FareQuote
    modifiers: FareModifiers = Field(default_factory=FareModifiers)
