from enum import Enum
from typing import Optional
from uuid import uuid4
from pydantic import BaseModel, Field


class LocationKind(str, Enum):
    PICKUP = "pickup"
    DESTINATION = "destination"
    STOP = "stop"


class ResolutionState(str, Enum):
    UNRESOLVED = "UNRESOLVED"
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    STALE = "STALE"


class InvalidTransitionError(Exception):
    """Raised when a stop is moved between resolution states out of order."""
    pass


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    class Config:
        frozen = True


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    source_text: str = Field(..., description="Raw text the location was resolved from")
    address: str = Field(default="", description="Display address captured at resolution time")
    original_link: Optional[str] = None
    place_id: Optional[str] = None

    class Config:
        frozen = True

    def to_lat_lng(self) -> LatLng:
        return LatLng(lat=self.lat, lng=self.lng)


def _text_key(text: str) -> str:
    return (text or "").strip().lower()


class Stop(BaseModel):
    """An intermediate waypoint and the freshness of its resolution.

    UNRESOLVED -> PENDING on resolve start, PENDING -> RESOLVED on success,
    PENDING -> UNRESOLVED on failure, RESOLVED -> STALE when the display text
    no longer matches (case-insensitively) the text captured at resolution.
    """

    key: str = Field(default_factory=lambda: uuid4().hex)
    text: str = ""
    state: ResolutionState = ResolutionState.UNRESOLVED
    location: Optional[Location] = None
    resolved_text: Optional[str] = None

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    @property
    def is_resolved(self) -> bool:
        return self.state == ResolutionState.RESOLVED and self.location is not None

    def begin(self) -> None:
        self.state = ResolutionState.PENDING

    def succeed(self, location: Location) -> None:
        if self.state != ResolutionState.PENDING:
            raise InvalidTransitionError(f"Cannot resolve stop in state {self.state.value}")
        self.location = location
        self.text = location.address or self.text
        self.resolved_text = self.text
        self.state = ResolutionState.RESOLVED

    def fail(self) -> None:
        if self.state != ResolutionState.PENDING:
            raise InvalidTransitionError(f"Cannot fail stop in state {self.state.value}")
        self.location = None
        self.resolved_text = None
        self.state = ResolutionState.UNRESOLVED

    def edit(self, text: str) -> None:
        self.text = text
        if self.state == ResolutionState.RESOLVED and _text_key(text) != _text_key(self.resolved_text):
            self.state = ResolutionState.STALE
