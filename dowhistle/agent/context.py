from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from dowhistle.auth.store import Credentials


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def as_text(self) -> str:
        return f"{self.latitude},{self.longitude}"


@dataclass(frozen=True)
class RequestContext:
    """Per-message context, built at send time and discarded after the reply."""

    raw_text: str
    location: Location | None = None
    credentials: Credentials | None = None


class LocationProvider(Protocol):
    """Device location source. Read-only from the core's side."""

    def get_location(self) -> Location | None: ...


class StaticLocation:
    """Fixed location (or none), e.g. from command-line flags."""

    def __init__(self, location: Location | None = None) -> None:
        self._location = location

    def get_location(self) -> Location | None:
        return self._location
