from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from dispatchquote.models.location import LatLng
from dispatchquote.models.route import RouteRequest


class MapsServiceError(Exception):
    """Base class for map provider errors."""
    pass


class GeocodingError(MapsServiceError):
    """Error during geocoding."""
    pass


class ReverseGeocodingError(MapsServiceError):
    """Error during reverse geocoding."""
    pass


class PlacesSearchError(MapsServiceError):
    """Error searching for places."""
    pass


class DirectionsError(MapsServiceError):
    """Error computing a route; carries the HTTP status and provider detail."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail or message


class BaseMapsAdapter(ABC):
    """Map provider seen by the quoting core.

    Geocoding calls return candidates shaped as
    ``{"place_id", "formatted_address", "geometry": {"location": {"lat", "lng"}}}``
    and an empty list when nothing matched.
    """

    @abstractmethod
    async def geocode(self, address: str, country: Optional[str] = None) -> List[Dict[str, Any]]:
        """Convert an address to candidates, optionally restricted to a country."""
        pass

    @abstractmethod
    async def place_search(
        self,
        query: str,
        bias: LatLng,
        radius_m: int,
    ) -> List[Dict[str, Any]]:
        """Find places by text with a circular location bias."""
        pass

    @abstractmethod
    async def reverse_geocode(self, point: LatLng) -> List[Dict[str, Any]]:
        """Convert coordinates to address candidates."""
        pass

    @abstractmethod
    async def compute_route(self, request: RouteRequest) -> Dict[str, Any]:
        """Return the raw routing response (``{"routes": [...]}``)."""
        pass
