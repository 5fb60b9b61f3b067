import logging
from typing import Optional

from dispatchquote.models.fare import FareModifiers, FareQuote, RateConfiguration
from dispatchquote.models.route import RouteResult
from dispatchquote.utils.numbers import ceil_money, finite_or

logger = logging.getLogger(__name__)


def calculate_fare(
    distance_km: float,
    modifiers: Optional[FareModifiers] = None,
    rates: Optional[RateConfiguration] = None,
) -> FareQuote:
    """Price a trip distance. Total over its inputs: non-finite values fall back to safe defaults."""
    modifiers = modifiers or FareModifiers()
    rates = rates or RateConfiguration()

    distance = max(0.0, finite_or(distance_km, 0.0))
    rate_per_km = max(0.0, finite_or(rates.rate_per_km, 0.0))
    hourly_wait_rate = max(0.0, finite_or(rates.hourly_wait_rate, 0.0))
    exchange_rate = max(0.0, finite_or(rates.exchange_rate, 0.0))
    minimum_fare = max(0.0, finite_or(rates.minimum_fare_usd, RateConfiguration().minimum_fare_usd))
    wait_hours = max(0.0, finite_or(modifiers.wait_hours, 0.0))

    multiplier = 2 if modifiers.is_round_trip else 1
    base = ceil_money(distance * multiplier * rate_per_km)
    wait = ceil_money(wait_hours * hourly_wait_rate) if modifiers.add_wait_time else 0
    computed = base + wait
    final_usd = max(float(computed), minimum_fare)

    return FareQuote(
        fare_usd=final_usd,
        fare_lbp=final_usd * exchange_rate,
        minimum_fare_applied=computed < minimum_fare,
        base_usd=base,
        wait_usd=wait,
    )


def compute_fare(
    route: RouteResult,
    modifiers: Optional[FareModifiers] = None,
    rates: Optional[RateConfiguration] = None,
) -> FareQuote:
    quote = calculate_fare(route.distance_km, modifiers, rates)
    logger.info(
        f"Fare for {route.distance_text or route.distance_km}: ${quote.fare_usd:g}"
        f"{' (minimum fare)' if quote.minimum_fare_applied else ''}"
    )
    return quote
