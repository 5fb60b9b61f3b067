import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
import googlemaps
import googlemaps.exceptions

from dispatchquote.models.location import LatLng
from dispatchquote.models.route import RouteRequest
from dispatchquote.repositories.base import (
    BaseMapsAdapter,
    DirectionsError,
    GeocodingError,
    PlacesSearchError,
    ReverseGeocodingError,
)

logger = logging.getLogger(__name__)

ROUTES_FIELD_MASK = ",".join(
    [
        "routes.distanceMeters",
        "routes.duration",
        "routes.staticDuration",
        "routes.polyline.encodedPolyline",
    ]
)
PLACE_FIELDS = ["place_id", "name", "formatted_address", "geometry"]


class GoogleMapsRepository(BaseMapsAdapter):
    def __init__(
        self,
        api_key: str,
        routes_url: str = "https://routes.googleapis.com/directions/v2:computeRoutes",
        language: str = "en",
    ):
        """Initialize Google Maps clients."""
        if not api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY is not configured")
        logger.info("Initializing Google Maps client")
        self.api_key = api_key
        self.routes_url = routes_url
        self.language = language
        self.client = googlemaps.Client(key=api_key)

    async def geocode(self, address: str, country: Optional[str] = None) -> List[Dict[str, Any]]:
        scope = f"country={country}" if country else "unrestricted"
        logger.info(f"Attempting to geocode address: '{address}' ({scope})")
        components = {"country": country} if country else None
        try:
            results = await asyncio.to_thread(
                self.client.geocode, address, components=components, language=self.language
            )
            if not results:
                logger.warning(f"No geocoding results found for address: '{address}' ({scope})")
                return []
            logger.info(f"Geocoded '{address}' ({scope}) to {len(results)} candidate(s)")
            return results
        except googlemaps.exceptions.ApiError as e:
            logger.error(f"Google Maps API error while geocoding '{address}': {e}", exc_info=True)
            raise GeocodingError(f"API error during geocoding for '{address}': {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error while geocoding '{address}': {e}", exc_info=True)
            raise GeocodingError(f"Unexpected error during geocoding for '{address}': {e}") from e

    async def place_search(self, query: str, bias: LatLng, radius_m: int) -> List[Dict[str, Any]]:
        location_bias = f"circle:{radius_m}@{bias.lat},{bias.lng}"
        logger.info(f"Attempting place search for '{query}' with bias {location_bias}")
        try:
            response = await asyncio.to_thread(
                self.client.find_place,
                query,
                "textquery",
                fields=PLACE_FIELDS,
                location_bias=location_bias,
                language=self.language,
            )
            candidates = response.get("candidates", []) if response else []
            if not candidates:
                logger.warning(f"No place candidates found for '{query}'")
                return []
            logger.info(f"Found {len(candidates)} place candidate(s) for '{query}'")
            return candidates
        except googlemaps.exceptions.ApiError as e:
            logger.error(f"Google Maps API error during place search for '{query}': {e}", exc_info=True)
            raise PlacesSearchError(f"API error during place search: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error during place search for '{query}': {e}", exc_info=True)
            raise PlacesSearchError(f"Unexpected error during place search: {e}") from e

    async def reverse_geocode(self, point: LatLng) -> List[Dict[str, Any]]:
        logger.info(f"Attempting to reverse geocode location: lat={point.lat}, lng={point.lng}")
        try:
            results = await asyncio.to_thread(
                self.client.reverse_geocode, (point.lat, point.lng), language=self.language
            )
            if not results:
                logger.warning(f"No reverse geocoding results found for location: {point}")
                return []
            logger.info(f"Reverse geocoded {point} to address: '{results[0].get('formatted_address')}'")
            return results
        except googlemaps.exceptions.ApiError as e:
            logger.error(f"Google Maps API error during reverse geocoding for {point}: {e}", exc_info=True)
            raise ReverseGeocodingError(f"API error during reverse geocoding for {point}: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error during reverse geocoding for {point}: {e}", exc_info=True)
            raise ReverseGeocodingError(f"Unexpected error during reverse geocoding for {point}: {e}") from e

    async def compute_route(self, request: RouteRequest) -> Dict[str, Any]:
        """Call the Routes API with a traffic-aware request and an explicit field mask."""
        logger.info(
            f"Attempting to compute route from {request.origin} to {request.destination} "
            f"with {len(request.intermediates)} stop(s), departure {request.departure_time.isoformat()}"
        )
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": ROUTES_FIELD_MASK,
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.routes_url, json=request.to_payload(), headers=headers) as response:
                    if response.status != 200:
                        detail = await self._error_detail(response)
                        logger.error(f"Routes API returned {response.status}: {detail}")
                        raise DirectionsError(
                            detail or f"Routes API error ({response.status})",
                            status_code=response.status,
                            detail=detail,
                        )
                    payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Network error while computing route: {e!r}", exc_info=True)
            raise DirectionsError(f"Network error while computing route: {e!r}") from e
        except ValueError as e:
            logger.error(f"Routes API returned an unreadable body: {e}", exc_info=True)
            raise DirectionsError(f"Routes API returned an unreadable body: {e}") from e

        if not isinstance(payload, dict):
            raise DirectionsError(f"Routes API returned an unexpected body: {type(payload).__name__}")
        logger.info(f"Routes API returned {len(payload.get('routes') or [])} route(s)")
        return payload

    @staticmethod
    async def _error_detail(response: aiohttp.ClientResponse) -> str:
        if "application/json" in response.headers.get("Content-Type", ""):
            try:
                body = await response.json()
            except ValueError:
                return await response.text()
            error = body.get("error") if isinstance(body, dict) else None
            if isinstance(error, dict) and error.get("message"):
                status = error.get("status")
                return f"{status}: {error['message']}" if status else str(error["message"])
            return str(body)
        return await response.text()
