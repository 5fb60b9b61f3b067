import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Union

from dispatchquote.models.driver import (
    Driver,
    DriverAvailability,
    DriverScore,
    DriverStatus,
    QuoteContext,
    ScoringWeights,
    SubScores,
    Trip,
    TripStatus,
)
from dispatchquote.utils.numbers import clamp, finite_or, round_half_up
from dispatchquote.utils.phone import customer_phone_key

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_WINDOW = timedelta(days=30)


def parse_trip_timestamp(trip: Trip) -> Optional[datetime]:
    """Trip date, falling back to creation time; None when neither parses."""
    source: Union[datetime, str, None] = trip.trip_date or trip.created_at
    if source is None:
        return None
    if isinstance(source, str):
        try:
            source = datetime.fromisoformat(source.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if source.tzinfo is None:
        source = source.replace(tzinfo=timezone.utc)
    return source


def customer_trip_counts(trips: Iterable[Trip], customer_phone: Optional[str]) -> Counter:
    counts: Counter = Counter()
    phone_key = customer_phone_key(customer_phone)
    if not phone_key:
        return counts
    for trip in trips:
        if trip.driver_id and customer_phone_key(trip.customer_phone) == phone_key:
            counts[trip.driver_id] += 1
    return counts


def readiness(driver: Driver, weights: ScoringWeights):
    fuel_range = max(0.0, finite_or(driver.fuel_range_km, 0.0))
    mileage = finite_or(driver.base_mileage, 0.0)
    km_since_oil = max(0.0, mileage - finite_or(driver.last_oil_change_km, 0.0))
    km_since_checkup = max(0.0, mileage - finite_or(driver.last_checkup_km, 0.0))

    alerts = []
    if fuel_range < weights.fuel_critical_alert:
        alerts.append("Critical fuel range")
    elif fuel_range < weights.fuel_low_alert:
        alerts.append("Low fuel range")
    if km_since_oil > weights.oil_heavy:
        alerts.append("Oil service overdue")
    elif km_since_oil > weights.oil_light:
        alerts.append("Oil service approaching")
    if km_since_checkup > weights.checkup_heavy:
        alerts.append("Checkup overdue")
    elif km_since_checkup > weights.checkup_light:
        alerts.append("Checkup approaching")

    penalty = 0.0
    if fuel_range < weights.fuel_heavy:
        penalty += weights.fuel_heavy_penalty
    elif fuel_range < weights.fuel_light:
        penalty += weights.fuel_light_penalty
    if km_since_oil > weights.oil_heavy:
        penalty += weights.oil_heavy_penalty
    elif km_since_oil > weights.oil_light:
        penalty += weights.oil_light_penalty
    if km_since_checkup > weights.checkup_heavy:
        penalty += weights.checkup_heavy_penalty
    elif km_since_checkup > weights.checkup_light:
        penalty += weights.checkup_light_penalty

    score = clamp(100 - penalty, weights.readiness_floor, 100)
    return score, alerts, fuel_range, km_since_oil, km_since_checkup


def fairness_penalty(
    timestamps: Sequence[datetime],
    customer_trips: int,
    now: datetime,
    weights: ScoringWeights,
) -> float:
    window = timedelta(minutes=weights.fairness_window_min)
    recent = sum(1 for stamp in timestamps if now - stamp <= window)

    penalty = 0.0
    if recent >= weights.fairness_window_trips:
        penalty += min(weights.fairness_window_max, (recent - 1) * weights.fairness_per_trip)

    if timestamps:
        last_trip_age_min = max(0.0, (now - max(timestamps)).total_seconds() / 60)
        if last_trip_age_min < weights.fairness_last_trip_short_min:
            penalty += weights.fairness_last_trip_short_penalty
        elif last_trip_age_min < weights.fairness_last_trip_long_min:
            penalty += weights.fairness_last_trip_long_penalty

    if customer_trips >= weights.fairness_customer_trips:
        penalty += weights.fairness_customer_penalty
    return penalty


def score_driver(
    driver: Driver,
    trips: Sequence[Trip],
    context: Optional[QuoteContext] = None,
    weights: Optional[ScoringWeights] = None,
    customer_trips: Optional[int] = None,
) -> DriverScore:
    """Weighted composite score for one driver against a read-only snapshot."""
    context = context or QuoteContext()
    weights = weights or ScoringWeights()
    now = context.now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    driver_trips = [trip for trip in trips if trip.driver_id == driver.id]
    total_trips = len(driver_trips)
    completed_trips = sum(1 for trip in driver_trips if trip.status == TripStatus.COMPLETED)
    timestamps = [stamp for stamp in (parse_trip_timestamp(trip) for trip in driver_trips) if stamp is not None]
    recent_trips_30d = sum(1 for stamp in timestamps if now - stamp <= RECENT_ACTIVITY_WINDOW)

    if customer_trips is None:
        customer_trips = customer_trip_counts(trips, context.customer_phone)[driver.id]
    affinity_score = min(100.0, customer_trips * weights.affinity_per_trip)

    availability_score = weights.availability_scores.get(driver.current_status, 0)

    readiness_score, readiness_alerts, fuel_range, km_since_oil, km_since_checkup = readiness(driver, weights)

    off_duty = driver.current_status == DriverAvailability.OFF_DUTY
    inactive = driver.status != DriverStatus.ACTIVE
    governance_alerts = []
    if off_duty:
        governance_alerts.append("Driver is off duty")
    if inactive:
        governance_alerts.append("Driver profile inactive")
    governance_penalty = (weights.governance_off_duty_penalty if off_duty else 0) + (
        weights.governance_inactive_penalty if inactive else 0
    )
    governance_score = clamp(100 - governance_penalty, 0, 100)
    is_blocked = off_duty or inactive

    consistency = (
        completed_trips / total_trips * 100 if total_trips > 0 else weights.performance_neutral_consistency
    )
    performance_score = clamp(
        weights.performance_base + min(weights.performance_span, consistency * weights.performance_span / 100),
        weights.performance_base,
        100,
    )

    if context.traffic_index is None:
        traffic_fit = weights.traffic_fit_no_route
    elif context.traffic_index >= weights.high_traffic_index:
        traffic_fit = weights.traffic_fit_high.get(driver.current_status, 0)
    else:
        traffic_fit = weights.traffic_fit_normal.get(driver.current_status, 0)
    trip_fit_score = clamp(affinity_score * weights.affinity_blend + traffic_fit * weights.traffic_fit_blend, 0, 100)

    penalty = fairness_penalty(timestamps, customer_trips, now, weights)
    boost = weights.assignment_boost if context.selected_driver_id == driver.id else 0

    weighted = (
        availability_score * weights.availability_weight
        + readiness_score * weights.readiness_weight
        + trip_fit_score * weights.trip_fit_weight
        + performance_score * weights.performance_weight
        + governance_score * weights.governance_weight
        + boost
        - penalty
    )
    if is_blocked:
        weighted = min(weighted, weights.governance_cap)
    overall = int(clamp(round_half_up(weighted), 0, 100))

    reasons = []
    if driver.current_status == DriverAvailability.AVAILABLE:
        reasons.append("Available now")
    if customer_trips > 0:
        reasons.append(f"Handled {customer_trips} trips for this customer")
    if readiness_score >= 80:
        reasons.append("Unit readiness healthy")
    if performance_score >= 80:
        reasons.append("Strong completion consistency")
    if governance_score >= 80:
        reasons.append("Governance profile clean")
    if penalty > 0:
        reasons.append("Rotation balancing applied")

    return DriverScore(
        driver_id=driver.id,
        name=driver.name,
        overall=overall,
        subscores=SubScores(
            availability=availability_score,
            readiness=readiness_score,
            trip_fit=trip_fit_score,
            performance=performance_score,
            governance=governance_score,
        ),
        fairness_penalty=penalty,
        is_governance_blocked=is_blocked,
        reasons=reasons[: weights.max_reasons],
        customer_affinity_trips=customer_trips,
        completed_trips=completed_trips,
        total_trips=total_trips,
        recent_trips_30d=recent_trips_30d,
        fuel_range_km=fuel_range,
        km_since_oil_change=km_since_oil,
        km_since_checkup=km_since_checkup,
        readiness_alerts=readiness_alerts,
        governance_alerts=governance_alerts,
    )


def rank_drivers(
    drivers: Sequence[Driver],
    trips: Sequence[Trip],
    context: Optional[QuoteContext] = None,
    weights: Optional[ScoringWeights] = None,
) -> List[DriverScore]:
    """Score ACTIVE drivers; highest overall first, ties broken by name."""
    context = context or QuoteContext()
    if context.now is None:
        # One clock reading per ranking call.
        context = context.model_copy(update={"now": datetime.now(timezone.utc)})
    weights = weights or ScoringWeights()
    counts = customer_trip_counts(trips, context.customer_phone)

    scores = [
        score_driver(driver, trips, context, weights, customer_trips=counts[driver.id])
        for driver in drivers
        if driver.status == DriverStatus.ACTIVE
    ]
    scores.sort(key=lambda score: (-score.overall, score.name))
    logger.info(
        f"Ranked {len(scores)} driver(s)"
        + (f"; top: {scores[0].name} ({scores[0].overall})" if scores else "")
    )
    return scores


def recommend_drivers(
    drivers: Sequence[Driver],
    trips: Sequence[Trip],
    context: Optional[QuoteContext] = None,
    weights: Optional[ScoringWeights] = None,
    limit: int = 4,
) -> List[DriverScore]:
    return rank_drivers(drivers, trips, context, weights)[:limit]


def search_drivers(
    query: str,
    drivers: Sequence[Driver],
    trips: Sequence[Trip],
    context: Optional[QuoteContext] = None,
    weights: Optional[ScoringWeights] = None,
    limit: int = 8,
) -> List[DriverScore]:
    """Ranked drivers whose name, plate or current status contains the query."""
    needle = (query or "").strip().lower()
    by_id = {driver.id: driver for driver in drivers}
    ranked = rank_drivers(drivers, trips, context, weights)
    if not needle:
        return ranked[:limit]

    def matches(score: DriverScore) -> bool:
        driver = by_id[score.driver_id]
        haystack = (driver.name, driver.plate_number, driver.current_status.value)
        return any(needle in value.lower() for value in haystack)

    return [score for score in ranked if matches(score)][:limit]
