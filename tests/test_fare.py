import math

import pytest

from dispatchquote.models.fare import FareModifiers, RateConfiguration
from dispatchquote.models.route import RouteResult
from dispatchquote.services.fare import calculate_fare, compute_fare

RATES = RateConfiguration(rate_per_km=1.10, hourly_wait_rate=5, exchange_rate=90000, minimum_fare_usd=7)


def test_fare_for_ten_km_is_not_inflated_by_float_noise():
    quote = calculate_fare(10, FareModifiers(), RATES)

    assert quote.fare_usd == 11
    assert quote.fare_lbp == 11 * 90000
    assert quote.minimum_fare_applied is False


def test_short_trip_gets_minimum_fare():
    quote = calculate_fare(2, FareModifiers(), RATES)

    assert quote.base_usd == 3
    assert quote.fare_usd == 7
    assert quote.minimum_fare_applied is True


def test_round_trip_doubles_distance():
    quote = calculate_fare(10, FareModifiers(is_round_trip=True), RATES)

    assert quote.fare_usd == 22


def test_wait_time_is_ceiled_and_added():
    quote = calculate_fare(10, FareModifiers(add_wait_time=True, wait_hours=1.5), RATES)

    assert quote.wait_usd == 8
    assert quote.fare_usd == 19


def test_wait_time_ignored_unless_enabled():
    quote = calculate_fare(10, FareModifiers(add_wait_time=False, wait_hours=3), RATES)

    assert quote.wait_usd == 0
    assert quote.fare_usd == 11


def test_wait_counts_toward_minimum():
    quote = calculate_fare(2, FareModifiers(add_wait_time=True, wait_hours=1), RATES)

    assert quote.fare_usd == 8
    assert quote.minimum_fare_applied is False


@pytest.mark.parametrize("wait_hours", [float("nan"), float("inf"), -2])
def test_bad_wait_hours_are_treated_as_zero(wait_hours):
    quote = calculate_fare(10, FareModifiers(add_wait_time=True, wait_hours=wait_hours), RATES)

    assert quote.wait_usd == 0
    assert quote.fare_usd == 11


def test_non_finite_inputs_never_produce_nan():
    rates = RateConfiguration(rate_per_km=float("nan"), minimum_fare_usd=float("nan"), exchange_rate=90000)

    quote = calculate_fare(float("inf"), FareModifiers(), rates)

    assert quote.fare_usd == 7
    assert quote.minimum_fare_applied is True
    assert math.isfinite(quote.fare_lbp)


@pytest.mark.parametrize("distance", [0, 0.5, 3, 6.36, 6.37, 25, 140.2])
def test_fare_never_below_minimum(distance):
    quote = calculate_fare(distance, FareModifiers(), RATES)
    computed = quote.base_usd + quote.wait_usd

    assert quote.fare_usd >= RATES.minimum_fare_usd
    assert quote.minimum_fare_applied == (computed < RATES.minimum_fare_usd)


def test_compute_fare_uses_route_distance():
    route = RouteResult(
        distance_km=10,
        duration_min=15,
        duration_in_traffic_min=20,
        traffic_index=22,
        surplus_min=5,
    )

    assert compute_fare(route, FareModifiers(), RATES).fare_usd == 11


def test_unusable_minimum_falls_back_to_rate_configuration_default():
    rates = RateConfiguration(minimum_fare_usd=float("nan"))

    quote = calculate_fare(1, FareModifiers(), rates)

    assert quote.fare_usd == RateConfiguration().minimum_fare_usd
    assert calculate_fare(1, FareModifiers(), RateConfiguration(minimum_fare_usd=12)).fare_usd == 12
