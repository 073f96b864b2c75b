"""
Nearby-place synthesis without a native radius search.

Emulates "places of category C within R km of (lat, lng)" out of the
cheaper text primitives: locale-aware phrases are sent to autocomplete,
hits are resolved to coordinates through place details, and the resolved
candidates are distance-filtered locally.

All lookups go through the caching facade; this module never talks to the
gateway. Individual phrase or candidate failures are dropped and logged so
one bad phrase does not abort an otherwise useful search. The "no place
selected" sentinel is always the first result.
"""

import asyncio
import logging
import math
from typing import List, Optional, Protocol, Sequence, Tuple

from geolookup.config.settings import NearbySettings
from geolookup.core.cache import CacheCategory, TTLCache
from geolookup.core.exceptions import InvalidInputError, UpstreamError
from geolookup.core.keys import KeyCodec
from geolookup.core.validation import validate_coordinates, validate_limit, validate_radius_km
from geolookup.models.internal_models import (
    NearbyReport,
    NearbyResult,
    PlaceCandidate,
    PlaceSuggestion,
)
from geolookup.services.category_mapping import (
    DEFAULT_LANGUAGE,
    PlaceCategory,
    RegionPhraseResolver,
    infer_category,
    parse_category,
    search_terms_for,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

# Soft failures a phrase or candidate lookup may raise
_RECOVERABLE = (UpstreamError, InvalidInputError)


class PlaceLookup(Protocol):
    """The cached lookups the synthesizer drives."""

    async def suggest_places(self, text: str, session_id: Optional[str] = None,
                             timeout: Optional[float] = None) -> List[PlaceSuggestion]: ...

    async def get_place_details(self, place_ref: str,
                                timeout: Optional[float] = None) -> PlaceCandidate: ...


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi, dlam = math.radians(lat2 - lat1), math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class NearbySynthesizer:
    def __init__(
        self,
        lookup: PlaceLookup,
        cache: TTLCache,
        codec: KeyCodec,
        nearby_settings: Optional[NearbySettings] = None,
        language: str = DEFAULT_LANGUAGE,
        resolver: Optional[RegionPhraseResolver] = None,
    ):
        self.lookup = lookup
        self.cache = cache
        self.codec = codec
        self.settings = nearby_settings or NearbySettings()
        self.language = language
        self.resolver = resolver or RegionPhraseResolver()

    def sentinel(self) -> NearbyResult:
        return NearbyResult.sentinel(self.settings.sentinel_id, self.settings.sentinel_name)

    def phrases_for(self, category: PlaceCategory, lat: float, lng: float) -> List[str]:
        terms = search_terms_for(category, self.language)
        if not terms:
            return []
        return self.resolver.phrases(terms, lat, lng, self.language, self.settings.max_phrases)

    def classify(self, candidate: PlaceCandidate) -> PlaceCategory:
        """Infer the internal category of an already-fetched candidate."""
        return infer_category(candidate.category_tags)

    async def search(
        self,
        lat: float,
        lng: float,
        radius_km: Optional[float] = None,
        category=None,
        limit: Optional[int] = None,
    ) -> List[NearbyResult]:
        report = await self.search_with_report(lat, lng, radius_km, category, limit)
        return report.results

    async def search_with_report(
        self,
        lat: float,
        lng: float,
        radius_km: Optional[float] = None,
        category=None,
        limit: Optional[int] = None,
    ) -> NearbyReport:
        """
        Search places of ``category`` within ``radius_km`` of (lat, lng).

        Args:
            lat: Query latitude
            lng: Query longitude
            radius_km: Search radius; defaults to NEARBY_DEFAULT_RADIUS_KM
            category: A PlaceCategory or its string value
            limit: Maximum real results, excluding the sentinel

        Returns:
            NearbyReport whose results start with the sentinel, followed by
            at most ``limit`` places sorted by ascending distance

        Raises:
            InvalidInputError: For malformed coordinates, radius or limit
        """
        lat, lng = validate_coordinates(lat, lng)
        radius_km = validate_radius_km(
            self.settings.default_radius_km if radius_km is None else radius_km,
            self.settings.max_radius_km,
        )
        limit = validate_limit(self.settings.default_limit if limit is None else limit)

        report = NearbyReport(results=[self.sentinel()])

        parsed = parse_category(category)
        if parsed is None:
            logger.info(f"Unknown nearby category {category!r}; returning sentinel only")
            return report
        if parsed == PlaceCategory.NONE:
            return report

        candidates = await self._candidates(parsed, lat, lng, report)

        results = []
        for candidate in candidates:
            distance = haversine_km(lat, lng, candidate.lat, candidate.lng)
            if distance > radius_km:
                continue
            results.append(NearbyResult(
                id=candidate.external_id,
                name=candidate.name,
                address=candidate.address,
                lat=candidate.lat,
                lng=candidate.lng,
                category=parsed.value,
                distance_km=distance,
            ))
        results.sort(key=lambda r: r.distance_km)
        report.results.extend(results[:limit])

        logger.info(
            f"Nearby search found {len(report.results) - 1} place(s)",
            extra={
                "category": parsed.value,
                "radius_km": radius_km,
                "phrases": len(report.phrases),
                "failed_phrases": len(report.failed_phrases),
                "from_cache": report.from_cache,
            },
        )
        return report

    async def _candidates(self, category: PlaceCategory, lat: float, lng: float,
                          report: NearbyReport) -> Tuple[PlaceCandidate, ...]:
        """Resolved candidates for the query cell, from cache or a fresh synthesis."""
        key = self.codec.geo_key(CacheCategory.NEARBY_SEARCH, lat, lng, category.value, self.language)
        cached = self.cache.get(key, CacheCategory.NEARBY_SEARCH)
        if cached is not None:
            report.from_cache = True
            return cached

        report.phrases = self.phrases_for(category, lat, lng)
        if not report.phrases:
            return ()

        suggestions = await self._collect_suggestions(report)
        if len(report.failed_phrases) == len(report.phrases):
            warning = "Nearby search unavailable: every search phrase failed"
            logger.warning(warning, extra={"category": category.value})
            report.warnings.append(warning)
            return ()

        candidates = await self._resolve(suggestions, report)
        if suggestions and len(report.dropped_candidates) == len(suggestions):
            warning = "Nearby search unavailable: every place lookup failed"
            logger.warning(warning, extra={"category": category.value})
            report.warnings.append(warning)

        # Empty cells stay uncached so newly listed places show up.
        if candidates and not report.degraded:
            self.cache.set(key, candidates, CacheCategory.NEARBY_SEARCH)
        return candidates

    async def _collect_suggestions(self, report: NearbyReport) -> List[Tuple[str, PlaceSuggestion]]:
        outcomes = await asyncio.gather(
            *(self.lookup.suggest_places(phrase) for phrase in report.phrases),
            return_exceptions=True,
        )

        seen = set()
        collected: List[Tuple[str, PlaceSuggestion]] = []
        for phrase, outcome in zip(report.phrases, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, _RECOVERABLE):
                    raise outcome
                logger.warning(f"Nearby phrase '{phrase}' failed: {outcome}")
                report.failed_phrases.append(phrase)
                continue
            for suggestion in outcome[:self.settings.results_per_phrase]:
                if suggestion.place_id in seen:
                    continue
                seen.add(suggestion.place_id)
                collected.append((phrase, suggestion))
        return collected

    async def _resolve(self, suggestions: Sequence[Tuple[str, PlaceSuggestion]],
                       report: NearbyReport) -> Tuple[PlaceCandidate, ...]:
        outcomes = await asyncio.gather(
            *(self.lookup.get_place_details(s.place_id) for _, s in suggestions),
            return_exceptions=True,
        )

        resolved = []
        for (phrase, suggestion), outcome in zip(suggestions, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, _RECOVERABLE):
                    raise outcome
                logger.warning(f"Dropping candidate {suggestion.place_id}: {outcome}")
                report.dropped_candidates.append(suggestion.place_id)
                continue
            if not outcome.has_coordinates:
                logger.debug(f"Skipping candidate {suggestion.place_id} without coordinates")
                continue
            resolved.append(PlaceCandidate(
                external_id=suggestion.place_id,
                name=outcome.name or suggestion.main_text,
                address=outcome.address or suggestion.full_text,
                lat=outcome.lat,
                lng=outcome.lng,
                category_tags=tuple(dict.fromkeys(suggestion.types + outcome.category_tags)),
                source_query=phrase,
            ))
        return tuple(resolved)
