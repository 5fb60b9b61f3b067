from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field


class DriverStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class DriverAvailability(str, Enum):
    AVAILABLE = "AVAILABLE"
    BUSY = "BUSY"
    OFF_DUTY = "OFF_DUTY"


class TripStatus(str, Enum):
    QUOTED = "QUOTED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Driver(BaseModel):
    id: str
    name: str
    plate_number: str = ""
    status: DriverStatus = DriverStatus.ACTIVE
    current_status: DriverAvailability = DriverAvailability.AVAILABLE
    base_mileage: float = 0
    last_oil_change_km: float = 0
    last_checkup_km: float = 0
    fuel_range_km: float = 0

    class Config:
        frozen = True


class Trip(BaseModel):
    id: str
    driver_id: Optional[str] = None
    customer_phone: str = ""
    status: TripStatus = TripStatus.QUOTED
    trip_date: Optional[Union[datetime, str]] = None
    created_at: Optional[Union[datetime, str]] = None

    class Config:
        frozen = True


class QuoteContext(BaseModel):
    customer_phone: Optional[str] = None
    traffic_index: Optional[int] = Field(None, ge=0, le=100, description="None when no route is quoted")
    selected_driver_id: Optional[str] = None
    now: Optional[datetime] = None


class ScoringWeights(BaseModel):
    """Empirical constants of the recommendation score."""

    availability_weight: float = 0.32
    readiness_weight: float = 0.24
    trip_fit_weight: float = 0.16
    performance_weight: float = 0.14
    governance_weight: float = 0.14

    availability_scores: Dict[DriverAvailability, float] = Field(
        default_factory=lambda: {
            DriverAvailability.AVAILABLE: 100,
            DriverAvailability.BUSY: 55,
            DriverAvailability.OFF_DUTY: 10,
        }
    )

    # Readiness bands: (threshold, penalty)
    fuel_heavy: float = 50
    fuel_heavy_penalty: float = 38
    fuel_light: float = 110
    fuel_light_penalty: float = 18
    oil_heavy: float = 7000
    oil_heavy_penalty: float = 34
    oil_light: float = 4500
    oil_light_penalty: float = 16
    checkup_heavy: float = 12000
    checkup_heavy_penalty: float = 34
    checkup_light: float = 7000
    checkup_light_penalty: float = 16
    readiness_floor: float = 5
    fuel_critical_alert: float = 60
    fuel_low_alert: float = 120

    governance_off_duty_penalty: float = 60
    governance_inactive_penalty: float = 60
    governance_cap: float = 38

    affinity_per_trip: float = 22
    affinity_blend: float = 0.58
    traffic_fit_blend: float = 0.42
    high_traffic_index: int = 70
    traffic_fit_no_route: float = 58
    traffic_fit_high: Dict[DriverAvailability, float] = Field(
        default_factory=lambda: {
            DriverAvailability.AVAILABLE: 86,
            DriverAvailability.BUSY: 52,
            DriverAvailability.OFF_DUTY: 20,
        }
    )
    traffic_fit_normal: Dict[DriverAvailability, float] = Field(
        default_factory=lambda: {
            DriverAvailability.AVAILABLE: 74,
            DriverAvailability.BUSY: 57,
            DriverAvailability.OFF_DUTY: 25,
        }
    )

    performance_base: float = 58
    performance_span: float = 42
    performance_neutral_consistency: float = 72

    assignment_boost: float = 4

    fairness_window_min: float = 90
    fairness_window_trips: int = 2
    fairness_per_trip: float = 3
    fairness_window_max: float = 10
    fairness_last_trip_short_min: float = 30
    fairness_last_trip_short_penalty: float = 6
    fairness_last_trip_long_min: float = 60
    fairness_last_trip_long_penalty: float = 3
    fairness_customer_trips: int = 3
    fairness_customer_penalty: float = 2

    max_reasons: int = 3


class SubScores(BaseModel):
    availability: float
    readiness: float
    trip_fit: float
    performance: float
    governance: float


class DriverScore(BaseModel):
    driver_id: str
    name: str
    overall: int
    subscores: SubScores
    fairness_penalty: float = 0
    is_governance_blocked: bool = False
    reasons: List[str] = Field(default_factory=list)
    customer_affinity_trips: int = 0
    completed_trips: int = 0
    total_trips: int = 0
    recent_trips_30d: int = 0
    fuel_range_km: float = 0
    km_since_oil_change: float = 0
    km_since_checkup: float = 0
    readiness_alerts: List[str] = Field(default_factory=list)
    governance_alerts: List[str] = Field(default_factory=list)
