from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

from dispatchquote.models.location import LatLng, Location


class RouteRequest(BaseModel):
    """Request body sent to the routing collaborator."""

    origin: LatLng
    destination: LatLng
    intermediates: List[LatLng] = Field(default_factory=list)
    departure_time: datetime
    travel_mode: str = "DRIVE"
    routing_preference: str = "TRAFFIC_AWARE"
    units: str = "METRIC"
    language_code: str = "en-US"

    def to_payload(self) -> Dict[str, Any]:
        def waypoint(point: LatLng) -> Dict[str, Any]:
            return {"location": {"latLng": {"latitude": point.lat, "longitude": point.lng}}}

        payload: Dict[str, Any] = {
            "origin": waypoint(self.origin),
            "destination": waypoint(self.destination),
            "travelMode": self.travel_mode,
            "routingPreference": self.routing_preference,
            "languageCode": self.language_code,
            "units": self.units,
            "departureTime": self.departure_time.isoformat().replace("+00:00", "Z"),
        }
        if self.intermediates:
            payload["intermediates"] = [waypoint(point) for point in self.intermediates]
        return payload


class RouteResult(BaseModel):
    distance_km: float = Field(..., ge=0)
    duration_min: int = Field(..., ge=0, description="Baseline duration in whole minutes")
    duration_in_traffic_min: int = Field(..., ge=0)
    traffic_index: int = Field(..., ge=0, le=100)
    surplus_min: int = Field(..., ge=0)
    distance_text: str = ""
    duration_text: str = ""
    duration_in_traffic_text: str = ""
    pickup_address: str = "Pickup"
    destination_address: str = "Destination"
    path: List[Tuple[float, float]] = Field(default_factory=list)
    stops: List[Location] = Field(default_factory=list)
    departure_time: Optional[datetime] = None
