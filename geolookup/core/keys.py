"""
Cache key derivation.

One strategy per input shape:

- exact text    -> autocomplete queries, composite route strings
- identifier    -> place details, keyed by the provider's opaque reference
- geo grid      -> reverse geocoding and "near this point" lookups
- batch         -> distance matrices, keyed by both ordered waypoint lists

Every key starts with its category value, so key spaces never overlap.
Malformed input raises CacheKeyError instead of producing a key that could
collide with a valid one.
"""

import hashlib
import json
import math
from dataclasses import dataclass
from numbers import Real
from typing import Iterable, List, Optional, Sequence, Tuple

from geolookup.core.cache import CacheCategory
from geolookup.core.exceptions import CacheKeyError
from geolookup.models.internal_models import LatLng, Waypoint

# Grid cell edge in degrees. 0.01 deg is ~1.1 km of latitude (less of
# longitude away from the equator). Smaller cells give more accurate cached
# answers for point lookups but fewer cache hits; larger cells the reverse.
GEO_CELL_SIZE_DEG = 0.01

# Waypoint coordinates are serialized with this many decimals (~0.1 m).
COORDINATE_DECIMALS = 6

# Guards float noise such as 0.29 / 0.01 == 28.999999999999996.
_INDEX_ROUNDING = 9


def check_coordinates(lat, lng) -> Tuple[float, float]:
    """Return (lat, lng) as floats or raise CacheKeyError."""
    for name, value in (("latitude", lat), ("longitude", lng)):
        if isinstance(value, bool) or not isinstance(value, Real):
            raise CacheKeyError(f"{name} must be a number", {name: repr(value)})
        if not math.isfinite(value):
            raise CacheKeyError(f"{name} must be finite", {name: repr(value)})
    if not -90.0 <= lat <= 90.0:
        raise CacheKeyError(f"Latitude {lat} out of range (must be -90 to 90)", {"latitude": lat})
    if not -180.0 <= lng <= 180.0:
        raise CacheKeyError(f"Longitude {lng} out of range (must be -180 to 180)", {"longitude": lng})
    return float(lat), float(lng)


def normalize_text(text) -> str:
    """Trim, collapse inner whitespace and case-fold."""
    if not isinstance(text, str):
        raise CacheKeyError("Text key input must be a string", {"value": repr(text)})
    normalized = " ".join(text.split()).casefold()
    if not normalized:
        raise CacheKeyError("Text key input is empty")
    return normalized


def normalize_waypoint(waypoint: Waypoint) -> str:
    """Canonical text for one waypoint: normalized address or fixed-precision 'lat,lng'."""
    if isinstance(waypoint, str):
        return normalize_text(waypoint)
    if isinstance(waypoint, LatLng):
        lat, lng = check_coordinates(waypoint.lat, waypoint.lng)
    elif isinstance(waypoint, (tuple, list)) and len(waypoint) == 2:
        lat, lng = check_coordinates(waypoint[0], waypoint[1])
    else:
        raise CacheKeyError("Unsupported waypoint", {"waypoint": repr(waypoint)})
    return f"{lat:.{COORDINATE_DECIMALS}f},{lng:.{COORDINATE_DECIMALS}f}"


@dataclass(frozen=True)
class GeoCell:
    """A (lat, lng) quantized onto a fixed grid. Same cell means same cache entry."""
    lat_index: int
    lng_index: int
    cell_size: float = GEO_CELL_SIZE_DEG

    @classmethod
    def from_coordinates(cls, lat, lng, cell_size: float = GEO_CELL_SIZE_DEG) -> "GeoCell":
        lat, lng = check_coordinates(lat, lng)
        return cls(
            lat_index=math.floor(round(lat / cell_size, _INDEX_ROUNDING)),
            lng_index=math.floor(round(lng / cell_size, _INDEX_ROUNDING)),
            cell_size=cell_size,
        )

    def center(self) -> Tuple[float, float]:
        return (
            (self.lat_index + 0.5) * self.cell_size,
            (self.lng_index + 0.5) * self.cell_size,
        )

    def bounds(self) -> dict:
        return {
            "min_lat": self.lat_index * self.cell_size,
            "max_lat": (self.lat_index + 1) * self.cell_size,
            "min_lng": self.lng_index * self.cell_size,
            "max_lng": (self.lng_index + 1) * self.cell_size,
        }

    def __str__(self) -> str:
        return f"{self.lat_index}:{self.lng_index}"


class KeyCodec:
    """Derives category-prefixed cache keys. Stateless and deterministic across processes."""

    def __init__(self, cell_size: float = GEO_CELL_SIZE_DEG):
        if not cell_size > 0:
            raise ValueError("cell_size must be positive")
        self.cell_size = cell_size

    def text_key(self, category: CacheCategory, text: str, *qualifiers: Optional[str]) -> str:
        parts = [normalize_text(text)]
        parts.extend(_normalize_qualifier(q) for q in qualifiers)
        return f"{category.value}:text:" + "|".join(parts)

    def identifier_key(self, category: CacheCategory, place_ref: str) -> str:
        if not isinstance(place_ref, str) or not place_ref.strip():
            raise CacheKeyError("Place reference must be a non-empty string", {"place_ref": repr(place_ref)})
        return f"{category.value}:id:{place_ref}"

    def geo_cell(self, lat, lng) -> GeoCell:
        return GeoCell.from_coordinates(lat, lng, self.cell_size)

    def geo_key(self, category: CacheCategory, lat, lng, *qualifiers: Optional[str]) -> str:
        key = f"{category.value}:{self.geo_cell(lat, lng)}"
        if qualifiers:
            key += ":" + "|".join(_normalize_qualifier(q) for q in qualifiers)
        return key

    def batch_key(
        self,
        category: CacheCategory,
        origins: Sequence[Waypoint],
        destinations: Sequence[Waypoint],
    ) -> str:
        payload = {
            "origins": _normalize_list(origins, "origins"),
            "destinations": _normalize_list(destinations, "destinations"),
        }
        digest = hashlib.sha256(
            json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        ).hexdigest()
        return f"{category.value}:batch:{digest}"


def _normalize_qualifier(value: Optional[str]) -> str:
    if value is None:
        return "-"
    return " ".join(str(value).split()).casefold() or "-"


def _normalize_list(waypoints: Iterable[Waypoint], name: str) -> List[str]:
    if isinstance(waypoints, str):
        raise CacheKeyError(f"{name} must be a list of waypoints, not a string")
    normalized = [normalize_waypoint(w) for w in waypoints]
    if not normalized:
        raise CacheKeyError(f"{name} must not be empty")
    return normalized
