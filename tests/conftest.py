import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from dispatchquote.core.settings import Settings
from dispatchquote.models.location import LatLng
from dispatchquote.models.route import RouteRequest
from dispatchquote.repositories.base import BaseMapsAdapter

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


def candidate(lat: float, lng: float, address: str = "", place_id: Optional[str] = "place-1") -> Dict[str, Any]:
    result: Dict[str, Any] = {"geometry": {"location": {"lat": lat, "lng": lng}}}
    if address:
        result["formatted_address"] = address
    if place_id:
        result["place_id"] = place_id
    return result


class FakeMapsAdapter(BaseMapsAdapter):
    """In-memory map adapter recording every call.

    Responses are keyed by query text; a value that is an Exception is raised.
    ``gates`` lets a test hold a geocode call open until it sets the event.
    """

    def __init__(self):
        self.restricted: Dict[str, Any] = {}
        self.places: Dict[str, Any] = {}
        self.unrestricted: Dict[str, Any] = {}
        self.reverse: Any = []
        self.route_response: Any = {"routes": []}
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[tuple] = []

    @staticmethod
    def _answer(value: Any) -> Any:
        if isinstance(value, Exception):
            raise value
        return value

    async def geocode(self, address: str, country: Optional[str] = None) -> List[Dict[str, Any]]:
        self.calls.append(("geocode", address, country))
        if address in self.gates:
            await self.gates[address].wait()
        table = self.restricted if country else self.unrestricted
        return self._answer(table.get(address, []))

    async def place_search(self, query: str, bias: LatLng, radius_m: int) -> List[Dict[str, Any]]:
        self.calls.append(("place_search", query, (bias.lat, bias.lng, radius_m)))
        return self._answer(self.places.get(query, []))

    async def reverse_geocode(self, point: LatLng) -> List[Dict[str, Any]]:
        self.calls.append(("reverse_geocode", point.lat, point.lng))
        return self._answer(self.reverse)

    async def compute_route(self, request: RouteRequest) -> Dict[str, Any]:
        self.calls.append(("compute_route", request))
        return self._answer(self.route_response)


@pytest.fixture
def settings() -> Settings:
    return Settings(GOOGLE_MAPS_API_KEY="test-key", _env_file=None)


@pytest.fixture
def maps_adapter() -> FakeMapsAdapter:
    return FakeMapsAdapter()


@pytest.fixture
def clock():
    return lambda: NOW
