import asyncio
import math
from collections import Counter
from typing import Dict, List, Optional, Sequence

import pytest

from geolookup.config.settings import CacheSettings, CoalescerSettings, Settings
from geolookup.core.cache import TTLCache
from geolookup.core.coalescer import RequestCoalescer
from geolookup.core.exceptions import NotFoundError, TransientError
from geolookup.core.keys import KeyCodec
from geolookup.models.internal_models import (
    DistanceDuration,
    PlaceCandidate,
    PlaceSuggestion,
    RouteInfo,
)
from geolookup.services.maps_service import MapsLookupService
from geolookup.services.upstream_gateway import UpstreamGateway


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway(UpstreamGateway):
    """
    In-memory gateway that counts calls per operation.

    ``delay`` makes every call suspend so concurrent callers overlap;
    ``failures`` maps an operation to the exception it raises;
    ``failing_inputs`` lists texts or place refs that raise TransientError.
    """

    def __init__(self):
        self.calls: Counter = Counter()
        self.call_args: List[tuple] = []
        self.suggestions: Dict[str, List[PlaceSuggestion]] = {}
        self.places: Dict[str, PlaceCandidate] = {}
        self.addresses: Dict[tuple, str] = {}
        self.default_address = "Calle 5 # 38-25, Cali, Valle del Cauca"
        self.delay = 0.0
        self.failures: Dict[str, Exception] = {}
        self.failing_inputs = set()
        self.closed = False

    async def _enter(self, operation: str, *args) -> None:
        self.calls[operation] += 1
        self.call_args.append((operation,) + args)
        if self.delay:
            await asyncio.sleep(self.delay)
        if operation in self.failures:
            raise self.failures[operation]

    async def suggest(self, text: str, locale: str, country: str) -> List[PlaceSuggestion]:
        await self._enter("suggest", text, locale, country)
        if text in self.failing_inputs:
            raise TransientError(f"suggest failed for {text}", operation="suggest")
        return list(self.suggestions.get(text, []))

    async def details(self, place_ref: str) -> PlaceCandidate:
        await self._enter("details", place_ref)
        if place_ref in self.failing_inputs:
            raise TransientError(f"details failed for {place_ref}", operation="details")
        if place_ref not in self.places:
            raise NotFoundError(operation="details")
        return self.places[place_ref]

    async def reverse_geocode(self, lat: float, lng: float) -> str:
        await self._enter("reverse_geocode", lat, lng)
        return self.addresses.get((lat, lng), self.default_address)

    async def matrix(self, origins: Sequence, destinations: Sequence) -> List[List[DistanceDuration]]:
        await self._enter("matrix", tuple(origins), tuple(destinations))
        return [
            [DistanceDuration(distance_m=1000 * (i + 1) + j, duration_s=60 * (i + 1) + j)
             for j in range(len(destinations))]
            for i in range(len(origins))
        ]

    async def directions(self, origin, destination, mode: str) -> RouteInfo:
        await self._enter("directions", origin, destination, mode)
        return RouteInfo(distance_m=4200, duration_s=780, start_address=str(origin),
                         end_address=str(destination), polyline="abc123")

    async def aclose(self) -> None:
        self.closed = True

    def add_place(self, place_id: str, phrase: str, lat: float, lng: float,
                  name: Optional[str] = None, types: Sequence[str] = ()) -> None:
        """Register a place returned by ``phrase`` and resolvable through details."""
        name = name or f"Place {place_id}"
        self.suggestions.setdefault(phrase, []).append(
            PlaceSuggestion(place_id=place_id, main_text=name, full_text=f"{name}, Cali", types=tuple(types))
        )
        self.places[place_id] = PlaceCandidate(
            external_id=place_id, name=name, address=f"{name}, Cali",
            lat=lat, lng=lng, category_tags=tuple(types),
        )


def north_of(lat: float, lng: float, distance_km: float):
    """A point exactly ``distance_km`` due north, by haversine."""
    return lat + math.degrees(distance_km / 6371.0), lng


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def offset_point():
    return north_of


@pytest.fixture
def app_settings():
    return Settings(
        cache=CacheSettings(sweep_interval_seconds=0),
        coalescer=CoalescerSettings(debounce_window_ms=300),
    )


@pytest.fixture
def service(gateway, clock, app_settings):
    return MapsLookupService(
        gateway=gateway,
        cache=TTLCache.from_settings(app_settings.cache, clock=clock),
        codec=KeyCodec(),
        coalescer=RequestCoalescer(app_settings.coalescer.debounce_window_seconds),
        settings=app_settings,
    )
