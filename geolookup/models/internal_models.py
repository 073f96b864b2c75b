"""
Internal data models for the geolookup layer.

Records are frozen so that a value served from cache can never be mutated
in place by one caller and observed by another.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class LatLng:
    """A coordinate pair in decimal degrees."""
    lat: float
    lng: float

    def as_text(self) -> str:
        return f"{self.lat:.6f},{self.lng:.6f}"


# A routing waypoint: free-text address, LatLng, or a bare (lat, lng) tuple
Waypoint = Union[str, LatLng, Tuple[float, float]]


@dataclass(frozen=True)
class PlaceSuggestion:
    """Autocomplete hit; carries no coordinates."""
    place_id: str
    main_text: str
    secondary_text: str = ""
    full_text: str = ""
    types: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PlaceCandidate:
    """A resolved place, not yet de-duplicated or distance-filtered."""
    external_id: str
    name: str
    address: str
    lat: Optional[float]
    lng: Optional[float]
    category_tags: Tuple[str, ...] = ()
    source_query: str = ""

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass(frozen=True)
class NearbyResult:
    """Final, distance-filtered nearby record."""
    id: str
    name: str
    address: str
    lat: float
    lng: float
    category: str
    distance_km: float
    is_sentinel_none: bool = False

    @classmethod
    def sentinel(cls, sentinel_id: str, name: str) -> "NearbyResult":
        """The "no place selected" record, always first in nearby output."""
        return cls(
            id=sentinel_id,
            name=name,
            address="",
            lat=0.0,
            lng=0.0,
            category="none",
            distance_km=0.0,
            is_sentinel_none=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "latitude": self.lat,
            "longitude": self.lng,
            "category": self.category,
            "distance_km": round(self.distance_km, 3),
            "is_sentinel_none": self.is_sentinel_none,
        }


@dataclass(frozen=True)
class DistanceDuration:
    """One origin/destination cell of a distance matrix."""
    distance_m: Optional[int]
    duration_s: Optional[int]
    status: str = "OK"

    @property
    def ok(self) -> bool:
        return self.status == "OK"


@dataclass(frozen=True)
class DistanceMatrix:
    """Rows follow origin order, columns follow destination order."""
    origins: Tuple[str, ...]
    destinations: Tuple[str, ...]
    rows: Tuple[Tuple[DistanceDuration, ...], ...]

    @property
    def shape(self) -> Tuple[int, int]:
        return (len(self.rows), len(self.rows[0]) if self.rows else 0)

    def element(self, origin_index: int, destination_index: int) -> DistanceDuration:
        return self.rows[origin_index][destination_index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origins": list(self.origins),
            "destinations": list(self.destinations),
            "rows": [
                [
                    {"distance_m": c.distance_m, "duration_s": c.duration_s, "status": c.status}
                    for c in row
                ]
                for row in self.rows
            ],
        }


@dataclass(frozen=True)
class RouteInfo:
    """Directions summary between two waypoints."""
    distance_m: int
    duration_s: int
    start_address: str = ""
    end_address: str = ""
    polyline: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "distance_m": self.distance_m,
            "duration_s": self.duration_s,
            "start_address": self.start_address,
            "end_address": self.end_address,
            "polyline": self.polyline,
        }


@dataclass
class NearbyReport:
    """Outcome of one nearby synthesis, including soft warnings."""
    results: List[NearbyResult]
    phrases: List[str] = field(default_factory=list)
    failed_phrases: List[str] = field(default_factory=list)
    dropped_candidates: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    from_cache: bool = False

    @property
    def degraded(self) -> bool:
        return bool(self.failed_phrases or self.dropped_candidates)
