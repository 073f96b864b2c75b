"""
Models package for the geolookup layer.

Internal records exchanged between the cache, the upstream gateway and
the nearby synthesizer.
"""

from .internal_models import (
    LatLng,
    Waypoint,
    PlaceSuggestion,
    PlaceCandidate,
    NearbyResult,
    NearbyReport,
    DistanceDuration,
    DistanceMatrix,
    RouteInfo,
)

__all__ = [
    "LatLng",
    "Waypoint",
    "PlaceSuggestion",
    "PlaceCandidate",
    "NearbyResult",
    "NearbyReport",
    "DistanceDuration",
    "DistanceMatrix",
    "RouteInfo",
]
