"""
Mapping provider gateway.

The only component allowed to perform metered network calls. It does no
caching and no retries: every failure is mapped onto the upstream error
taxonomy and raised to the caller, which decides what to do with it.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Dict, List, Optional, Sequence, TypeVar

import httpx
from pydantic import ValidationError

from geolookup.config.settings import UpstreamSettings
from geolookup.core.exceptions import (
    ErrorCode,
    InvalidInputError,
    NotFoundError,
    RateLimitedError,
    TransientError,
    UpstreamTimeoutError,
)
from geolookup.models.internal_models import (
    DistanceDuration,
    LatLng,
    PlaceCandidate,
    PlaceSuggestion,
    RouteInfo,
    Waypoint,
)
from geolookup.schemas.provider import (
    GEOCODE_ADDRESS_PATHS,
    MatrixSchema,
    PlaceDetailsSchema,
    RouteSchema,
    SuggestionSchema,
    pick,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Provider body statuses that carry an error despite a 200 response
_NOT_FOUND_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}
_RATE_LIMIT_STATUSES = {"OVER_QUERY_LIMIT", "OVER_DAILY_LIMIT", "RESOURCE_EXHAUSTED"}
_INVALID_STATUSES = {"INVALID_REQUEST", "INVALID_ARGUMENT"}


class UpstreamGateway(ABC):
    """
    Abstract boundary over the provider's lookup primitives.

    Implementations return typed records and raise RateLimitedError,
    NotFoundError, TransientError or InvalidInputError.
    """

    @abstractmethod
    async def suggest(self, text: str, locale: str, country: str) -> List[PlaceSuggestion]:
        """Free-text place search with no radius awareness."""

    @abstractmethod
    async def details(self, place_ref: str) -> PlaceCandidate:
        """Resolve a place reference to address and coordinates."""

    @abstractmethod
    async def reverse_geocode(self, lat: float, lng: float) -> str:
        """Coordinate to formatted address."""

    @abstractmethod
    async def matrix(
        self,
        origins: Sequence[Waypoint],
        destinations: Sequence[Waypoint],
    ) -> List[List[DistanceDuration]]:
        """Distance and duration for every origin/destination pair, rows in origin order."""

    @abstractmethod
    async def directions(self, origin: Waypoint, destination: Waypoint, mode: str) -> RouteInfo:
        """Route summary between two waypoints."""

    async def aclose(self) -> None:
        """Release network resources."""


def waypoint_param(waypoint: Waypoint) -> str:
    """Wire form of a waypoint: the address text or 'lat,lng'."""
    if isinstance(waypoint, LatLng):
        return waypoint.as_text()
    if isinstance(waypoint, (tuple, list)):
        return LatLng(float(waypoint[0]), float(waypoint[1])).as_text()
    return str(waypoint).strip()


class HttpUpstreamGateway(UpstreamGateway):
    """
    Gateway over the backend maps proxy.

    Each primitive maps 1:1 onto one proxy endpoint.
    """

    AUTOCOMPLETE_PATH = "/maps/autocomplete"
    PLACE_DETAILS_PATH = "/maps/place-details"
    REVERSE_GEOCODE_PATH = "/maps/reverse-geocode"
    DISTANCE_MATRIX_PATH = "/maps/distance-matrix"
    ROUTE_PATH = "/maps/calculate-route"

    def __init__(
        self,
        upstream_settings: Optional[UpstreamSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = upstream_settings or UpstreamSettings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.settings.base_url,
            headers=self._get_headers(),
            timeout=self.settings.timeout_seconds,
        )

        if not self.settings.api_key:
            logger.warning(
                "Upstream API key not configured. "
                "Set UPSTREAM_API_KEY if the maps proxy requires one."
            )

    def _get_headers(self) -> dict:
        """Get headers for proxy requests."""
        headers = {"Accept": "application/json"}
        if self.settings.api_key:
            headers[self.settings.api_key_header] = f"Bearer {self.settings.api_key}"
        return headers

    async def suggest(self, text: str, locale: str, country: str) -> List[PlaceSuggestion]:
        body = await self._post("suggest", self.AUTOCOMPLETE_PATH, {
            "input": text,
            "types": ["establishment", "geocode"],
            "language": locale,
            "country": country,
            "limit": self.settings.autocomplete_max_results,
        }, empty_ok=True)

        raw = body.get("suggestions") or body.get("predictions") or []
        if not isinstance(raw, list):
            raise _malformed("suggest", "suggestions is not a list")

        suggestions = []
        for item in raw:
            try:
                suggestions.append(SuggestionSchema.model_validate(item).to_record())
            except ValidationError as e:
                # One bad prediction does not invalidate the rest.
                logger.warning(f"Skipping malformed suggestion: {e.errors()[0].get('msg')}")
        return suggestions

    async def details(self, place_ref: str) -> PlaceCandidate:
        body = await self._post("details", self.PLACE_DETAILS_PATH, {"placeId": place_ref})
        place = body.get("place") or body.get("result")
        if not place:
            raise NotFoundError(f"No details for place {place_ref}", operation="details")
        if isinstance(place, dict) and not pick(place, ("placeId", "place_id", "id")):
            place = {**place, "placeId": place_ref}
        try:
            return PlaceDetailsSchema.model_validate(place).to_record()
        except ValidationError as e:
            raise _malformed("details", str(e)) from e

    async def reverse_geocode(self, lat: float, lng: float) -> str:
        body = await self._post("reverse_geocode", self.REVERSE_GEOCODE_PATH, {"lat": lat, "lng": lng})
        address = pick(body, GEOCODE_ADDRESS_PATHS)
        if not address:
            raise NotFoundError(f"No address for {lat},{lng}", operation="reverse_geocode")
        if not isinstance(address, str):
            raise _malformed("reverse_geocode", "address is not a string")
        return address

    async def matrix(
        self,
        origins: Sequence[Waypoint],
        destinations: Sequence[Waypoint],
    ) -> List[List[DistanceDuration]]:
        body = await self._post("matrix", self.DISTANCE_MATRIX_PATH, {
            "origins": [waypoint_param(o) for o in origins],
            "destinations": [waypoint_param(d) for d in destinations],
            "mode": "driving",
            "units": "metric",
        })
        result = body.get("result") or body
        try:
            rows = MatrixSchema.model_validate({"rows": result.get("rows")}).to_rows()
        except (ValidationError, AttributeError) as e:
            raise _malformed("matrix", str(e)) from e
        return [list(row) for row in rows]

    async def directions(self, origin: Waypoint, destination: Waypoint, mode: str) -> RouteInfo:
        body = await self._post("directions", self.ROUTE_PATH, {
            "origin": waypoint_param(origin),
            "destination": waypoint_param(destination),
            "mode": mode,
        })
        route = body.get("route")
        if not route:
            raise NotFoundError("No route found", operation="directions")
        try:
            return RouteSchema.model_validate(route).to_record()
        except ValidationError as e:
            raise _malformed("directions", str(e)) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(
        self,
        operation: str,
        path: str,
        payload: Dict[str, Any],
        empty_ok: bool = False,
    ) -> Dict[str, Any]:
        logger.info(f"Upstream call: {operation}", extra={"operation": operation, "path": path})
        try:
            response = await self._client.post(path, json=payload)
        except httpx.TimeoutException as e:
            raise TransientError(
                f"Timeout calling {operation}",
                operation=operation,
                error_code=ErrorCode.UPSTREAM_TIMEOUT,
            ) from e
        except httpx.HTTPError as e:
            raise TransientError(f"Network error calling {operation}: {e}", operation=operation) from e

        _raise_for_status(operation, response)

        try:
            body = response.json()
        except ValueError as e:
            raise _malformed(operation, "response is not JSON") from e
        if not isinstance(body, dict):
            raise _malformed(operation, "response is not a JSON object")

        status = str(body.get("status") or "OK").upper()
        if status in _NOT_FOUND_STATUSES and empty_ok:
            return {}
        _raise_for_body_status(operation, status, body)
        return body


def _raise_for_status(operation: str, response: httpx.Response) -> None:
    code = response.status_code
    if code < 400:
        return
    details = {"status_code": code}
    if code == 429:
        raise RateLimitedError(operation=operation, details=details)
    if code == 404:
        raise NotFoundError(operation=operation, details=details)
    if code in (400, 422):
        raise InvalidInputError(f"Upstream rejected {operation} input", details={**details, "operation": operation})
    raise TransientError(f"Upstream returned {code} for {operation}", operation=operation, details=details)


def _raise_for_body_status(operation: str, status: str, body: Dict[str, Any]) -> None:
    if status == "OK":
        return
    details = {"provider_status": status}
    if body.get("error_message"):
        details["provider_message"] = body["error_message"]
    if status in _NOT_FOUND_STATUSES:
        raise NotFoundError(operation=operation, details=details)
    if status in _RATE_LIMIT_STATUSES:
        raise RateLimitedError(operation=operation, details=details)
    if status in _INVALID_STATUSES:
        raise InvalidInputError(f"Upstream rejected {operation} input", details={**details, "operation": operation})
    raise TransientError(f"Upstream status {status} for {operation}", operation=operation, details=details)


def _malformed(operation: str, reason: str) -> TransientError:
    return TransientError(
        f"Malformed upstream response for {operation}",
        operation=operation,
        details={"reason": reason},
        error_code=ErrorCode.UPSTREAM_MALFORMED,
    )


async def call_upstream(awaitable: Awaitable[T], timeout: Optional[float], operation: str) -> T:
    """
    Await an upstream call under a caller-supplied timeout.

    A timeout surfaces as UpstreamTimeoutError (a TransientError) and the
    underlying call is cancelled.
    """
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"Upstream {operation} timed out after {timeout:g}s")
        raise UpstreamTimeoutError(timeout, operation=operation) from e
