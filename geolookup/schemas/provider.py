"""
Schemas for mapping provider payloads.

The provider proxy is loosely typed: the same field may arrive under
different names depending on which upstream API version answered. Each
schema resolves its fields from a priority-ordered list of source paths
(first non-empty value wins) and then validates strictly, so the rest of the
package only ever sees typed records.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from geolookup.models.internal_models import (
    DistanceDuration,
    PlaceCandidate,
    PlaceSuggestion,
    RouteInfo,
)


# Field -> source paths, highest priority first. Dotted segments walk
# nested objects; numeric segments index into lists.
SUGGESTION_FIELDS: Dict[str, Tuple[str, ...]] = {
    "place_id": ("placeId", "place_id", "id"),
    "main_text": ("mainText", "structured_formatting.main_text", "description", "fullText"),
    "secondary_text": ("secondaryText", "structured_formatting.secondary_text"),
    "full_text": ("fullText", "description", "mainText"),
    "types": ("types",),
}

PLACE_FIELDS: Dict[str, Tuple[str, ...]] = {
    "external_id": ("placeId", "place_id", "id"),
    "name": ("name", "displayName.text", "displayName"),
    "address": ("formattedAddress", "formatted_address", "vicinity", "address"),
    "lat": ("location.lat", "geometry.location.lat", "latitude", "lat"),
    "lng": ("location.lng", "geometry.location.lng", "longitude", "lng"),
    "types": ("types",),
}

ROUTE_FIELDS: Dict[str, Tuple[str, ...]] = {
    "distance_m": ("distance.value", "legs.0.distance.value", "distanceMeters"),
    "duration_s": ("duration.value", "legs.0.duration.value", "durationSeconds"),
    "start_address": ("startAddress", "legs.0.start_address", "start_address"),
    "end_address": ("endAddress", "legs.0.end_address", "end_address"),
    "polyline": ("polyline", "overview_polyline.points", "overviewPolyline"),
}

GEOCODE_ADDRESS_PATHS: Tuple[str, ...] = (
    "address",
    "formattedAddress",
    "results.0.formatted_address",
)


def pick(data: Any, paths: Sequence[str]) -> Any:
    """Return the first non-empty value found along ``paths``."""
    for path in paths:
        value = _walk(data, path)
        if value is not None and value != "" and value != []:
            return value
    return None


def resolve(data: Any, table: Dict[str, Tuple[str, ...]]) -> Any:
    if not isinstance(data, dict):
        return data
    resolved = {}
    for name, paths in table.items():
        value = pick(data, paths)
        if value is not None:
            resolved[name] = value
    return resolved


def _walk(data: Any, path: str) -> Any:
    current = data
    for segment in path.split("."):
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


class SuggestionSchema(BaseModel):
    place_id: str = Field(min_length=1)
    main_text: str = Field(min_length=1)
    secondary_text: str = ""
    full_text: str = ""
    types: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def resolve_fields(cls, data):
        return resolve(data, SUGGESTION_FIELDS)

    def to_record(self) -> PlaceSuggestion:
        return PlaceSuggestion(
            place_id=self.place_id,
            main_text=self.main_text,
            secondary_text=self.secondary_text,
            full_text=self.full_text or self.main_text,
            types=tuple(self.types),
        )


class PlaceDetailsSchema(BaseModel):
    external_id: str = Field(min_length=1)
    name: str = ""
    address: str = ""
    lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    lng: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    types: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def resolve_fields(cls, data):
        return resolve(data, PLACE_FIELDS)

    @model_validator(mode="after")
    def coordinates_come_in_pairs(self):
        if (self.lat is None) != (self.lng is None):
            raise ValueError("latitude and longitude must both be present or both absent")
        return self

    def to_record(self, source_query: str = "") -> PlaceCandidate:
        return PlaceCandidate(
            external_id=self.external_id,
            name=self.name or self.address,
            address=self.address,
            lat=self.lat,
            lng=self.lng,
            category_tags=tuple(self.types),
            source_query=source_query,
        )


class MatrixElementSchema(BaseModel):
    distance_m: Optional[int] = None
    duration_s: Optional[int] = None
    status: str = "OK"

    @model_validator(mode="before")
    @classmethod
    def resolve_fields(cls, data):
        return resolve(data, {
            "distance_m": ("distance.value", "distanceMeters"),
            "duration_s": ("duration.value", "durationSeconds"),
            "status": ("status",),
        })

    def to_record(self) -> DistanceDuration:
        return DistanceDuration(
            distance_m=self.distance_m,
            duration_s=self.duration_s,
            status=self.status,
        )


class MatrixSchema(BaseModel):
    rows: List[List[MatrixElementSchema]]

    @field_validator("rows", mode="before")
    @classmethod
    def unwrap_elements(cls, v):
        # Provider rows look like {"elements": [...]}; bare lists are accepted too.
        if isinstance(v, list):
            return [row.get("elements", []) if isinstance(row, dict) else row for row in v]
        return v

    def to_rows(self) -> Tuple[Tuple[DistanceDuration, ...], ...]:
        return tuple(tuple(cell.to_record() for cell in row) for row in self.rows)


class RouteSchema(BaseModel):
    distance_m: int = Field(ge=0)
    duration_s: int = Field(ge=0)
    start_address: str = ""
    end_address: str = ""
    polyline: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def resolve_fields(cls, data):
        return resolve(data, ROUTE_FIELDS)

    def to_record(self) -> RouteInfo:
        return RouteInfo(
            distance_m=self.distance_m,
            duration_s=self.duration_s,
            start_address=self.start_address,
            end_address=self.end_address,
            polyline=self.polyline,
        )
