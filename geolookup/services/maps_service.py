"""
Cached maps lookups: the inbound facade of the geolookup layer.

Every lookup follows the same path:

    validate -> (debounce) -> cache -> in-flight de-duplication
             -> gateway under timeout -> cache -> caller

Only successful, non-empty results are cached. Upstream errors and
timeouts propagate unchanged and leave the cache untouched.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from geolookup.config.settings import Settings
from geolookup.core.cache import CacheCategory, TTLCache
from geolookup.core.coalescer import RequestCoalescer
from geolookup.core.exceptions import CacheKeyError, InvalidInputError
from geolookup.core.keys import KeyCodec
from geolookup.core.metrics import LatencyRecorder
from geolookup.core.validation import (
    validate_coordinates,
    validate_place_ref,
    validate_query,
    validate_waypoints,
)
from geolookup.models.internal_models import (
    DistanceMatrix,
    NearbyReport,
    NearbyResult,
    PlaceCandidate,
    PlaceSuggestion,
    RouteInfo,
    Waypoint,
)
from geolookup.services.category_mapping import RegionPhraseResolver
from geolookup.services.matrix_batcher import DistanceMatrixBatcher
from geolookup.services.nearby_synthesizer import NearbySynthesizer
from geolookup.services.upstream_gateway import UpstreamGateway, call_upstream, waypoint_param

logger = logging.getLogger(__name__)

TRAVEL_MODES = ("driving", "walking", "bicycling", "transit")


class MapsLookupService:
    """
    Caching, coalescing facade over the upstream gateway.

    Owns no global state: one instance is built by the service container and
    shared by every caller in the process.
    """

    def __init__(
        self,
        gateway: UpstreamGateway,
        cache: TTLCache,
        codec: KeyCodec,
        coalescer: RequestCoalescer,
        settings: Settings,
        latency: Optional[LatencyRecorder] = None,
        resolver: Optional[RegionPhraseResolver] = None,
    ):
        self.gateway = gateway
        self.cache = cache
        self.codec = codec
        self.coalescer = coalescer
        self.settings = settings
        self.latency = latency or LatencyRecorder()
        self.default_timeout = settings.upstream.timeout_seconds
        self.locale = settings.upstream.locale
        self.country = settings.upstream.country

        self.nearby = NearbySynthesizer(
            lookup=self,
            cache=cache,
            codec=codec,
            nearby_settings=settings.nearby,
            language=self.locale,
            resolver=resolver,
        )
        self.matrix = DistanceMatrixBatcher(
            gateway=gateway,
            cache=cache,
            codec=codec,
            coalescer=coalescer,
            latency=self.latency,
            default_timeout=self.default_timeout,
        )

    # ------------------------------------------------------------------
    # Inbound operations
    # ------------------------------------------------------------------

    async def suggest_places(
        self,
        text: str,
        session_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> List[PlaceSuggestion]:
        """
        Autocomplete suggestions for ``text``.

        With a ``session_id`` the call is debounced per session: only the
        last keystroke inside the quiet window reaches the cache and the
        upstream, and superseded callers receive its result. Queries shorter
        than the minimum length still take the debounce slot but resolve to
        an empty list without an upstream call.

        Raises:
            InvalidInputError: If ``text`` is empty
        """
        text = validate_query(text)
        if session_id:
            return await self.coalescer.debounce(
                f"autocomplete:{session_id}",
                lambda: self._suggest(text, timeout),
            )
        return await self._suggest(text, timeout)

    async def _suggest(self, text: str, timeout: Optional[float]) -> List[PlaceSuggestion]:
        if len(text) < self.settings.upstream.min_query_length:
            return []

        key =self._key(self.codec.text_key, CacheCategory.AUTOCOMPLETE, text, self.locale, self.country)
        suggestions = await self._cached(
            key,
            CacheCategory.AUTOCOMPLETE,
            "suggest",
            lambda: self._fetch_suggestions(text),
            timeout,
        )
        return list(suggestions)

    async def _fetch_suggestions(self, text: str):
        return tuple(await self.gateway.suggest(text, self.locale, self.country))

    async def get_place_details(self, place_ref: str, timeout: Optional[float] = None) -> PlaceCandidate:
        place_ref = validate_place_ref(place_ref)
        key = self._key(self.codec.identifier_key, CacheCategory.PLACE_DETAILS, place_ref)
        return await self._cached(
            key,
            CacheCategory.PLACE_DETAILS,
            "details",
            lambda: self.gateway.details(place_ref),
            timeout,
        )

    async def reverse_geocode(self, lat: float, lng: float, timeout: Optional[float] = None) -> str:
        """Formatted address for (lat, lng); nearby points in the same grid cell share one entry."""
        lat, lng = validate_coordinates(lat, lng)
        key = self._key(self.codec.geo_key, CacheCategory.GEOCODING, lat, lng, self.locale)
        return await self._cached(
            key,
            CacheCategory.GEOCODING,
            "reverse_geocode",
            lambda: self.gateway.reverse_geocode(lat, lng),
            timeout,
        )

    async def search_nearby(
        self,
        lat: float,
        lng: float,
        radius_km: Optional[float] = None,
        category=None,
        limit: Optional[int] = None,
    ) -> List[NearbyResult]:
        return await self.nearby.search(lat, lng, radius_km, category, limit)

    async def search_nearby_report(
        self,
        lat: float,
        lng: float,
        radius_km: Optional[float] = None,
        category=None,
        limit: Optional[int] = None,
    ) -> NearbyReport:
        return await self.nearby.search_with_report(lat, lng, radius_km, category, limit)

    async def distance_matrix(
        self,
        origins: List[Waypoint],
        destinations: List[Waypoint],
        timeout: Optional[float] = None,
    ) -> DistanceMatrix:
        try:
            return await self.matrix.get_or_compute(origins, destinations, timeout)
        except CacheKeyError as e:
            self._log_key_error(e)
            raise

    async def calculate_route(
        self,
        origin: Waypoint,
        destination: Waypoint,
        mode: str = "driving",
        timeout: Optional[float] = None,
    ) -> RouteInfo:
        """Route summary, cached under the composite "origin>destination" text and mode."""
        origin = validate_waypoints([origin], "origin")[0]
        destination = validate_waypoints([destination], "destination")[0]
        if mode not in TRAVEL_MODES:
            raise InvalidInputError(
                f"Unsupported travel mode '{mode}'",
                details={"mode": mode, "supported": list(TRAVEL_MODES)},
            )

        route_text = f"{waypoint_param(origin)}>{waypoint_param(destination)}"
        key = self._key(self.codec.text_key, CacheCategory.DIRECTIONS, route_text, mode)
        return await self._cached(
            key,
            CacheCategory.DIRECTIONS,
            "directions",
            lambda: self.gateway.directions(origin, destination, mode),
            timeout,
        )

    # ------------------------------------------------------------------
    # Diagnostics and lifecycle
    # ------------------------------------------------------------------

    def cache_stats(self) -> Dict[str, Any]:
        return {
            "overall": self.cache.stats(),
            "categories": self.cache.stats_by_category(),
        }

    def diagnostics(self) -> Dict[str, Any]:
        return {
            "cache": self.cache_stats(),
            "upstream": self.latency.snapshot(),
            "coalescer": self.coalescer.stats(),
        }

    def clear_cache(self) -> None:
        self.cache.clear()

    def start(self) -> None:
        self.cache.start()

    async def shutdown(self) -> None:
        await self.coalescer.shutdown()
        await self.cache.shutdown()
        self.cache.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _key(self, derive: Callable[..., str], *args) -> str:
        try:
            return derive(*args)
        except CacheKeyError as e:
            self._log_key_error(e)
            raise

    def _log_key_error(self, error: CacheKeyError) -> None:
        logger.error(f"Cache key derivation failed: {error}", exc_info=True,
                     extra={"error_code": error.error_code.value})

    async def _cached(
        self,
        key: str,
        category: CacheCategory,
        operation: str,
        factory: Callable[[], Awaitable[Any]],
        timeout: Optional[float],
    ) -> Any:
        cached = self.cache.get(key, category)
        if cached is not None:
            return cached

        timeout = self.default_timeout if timeout is None else timeout

        async def fetch():
            with self.latency.record(operation):
                value = await call_upstream(factory(), timeout, operation)
            # Empty results are not cached.
            if value:
                self.cache.set(key, value, category)
            return value

        def peek():
            if self.cache.contains(key, category):
                return self.cache.get(key, category)
            return None

        return await self.coalescer.run(key, fetch, recheck=peek)
