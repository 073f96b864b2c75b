"""Maps lookup endpoints."""
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Tuple, Union

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from geolookup.services.maps_service import MapsLookupService

router = APIRouter(prefix="/maps", tags=["maps"])

# Address text or [lat, lng]
WaypointIn = Union[str, Tuple[float, float]]


# ============================================================================
# Request/Response Models
# ============================================================================

class DistanceMatrixRequest(BaseModel):
    """Request model for a batched distance matrix"""
    origins: List[WaypointIn] = Field(min_length=1)
    destinations: List[WaypointIn] = Field(min_length=1)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class RouteRequest(BaseModel):
    """Request model for a route summary"""
    origin: WaypointIn
    destination: WaypointIn
    mode: str = "driving"
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class EnvelopeResponse(BaseModel):
    """Response envelope shared by every maps endpoint"""
    status: str
    data: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None


def get_maps_service(request: Request) -> MapsLookupService:
    return request.app.state.container.maps


def ok(data: Any) -> EnvelopeResponse:
    return EnvelopeResponse(status="ok", data=data, error=None)


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/autocomplete", response_model=EnvelopeResponse)
async def autocomplete(
    q: str = Query(..., description="Text typed so far"),
    session_id: Optional[str] = Query(None, description="Debounce keystrokes of one input session"),
    service: MapsLookupService = Depends(get_maps_service),
):
    """
    Autocomplete place suggestions.

    Queries shorter than the configured minimum length return an empty list
    without reaching the provider.
    """
    suggestions = await service.suggest_places(q, session_id=session_id)
    return ok({"suggestions": [asdict(s) for s in suggestions]})


@router.get("/places/{place_ref}", response_model=EnvelopeResponse)
async def place_details(place_ref: str, service: MapsLookupService = Depends(get_maps_service)):
    place = await service.get_place_details(place_ref)
    data = asdict(place)
    data["category"] = service.nearby.classify(place).value
    return ok(data)


@router.get("/reverse-geocode", response_model=EnvelopeResponse)
async def reverse_geocode(
    lat: float = Query(...),
    lng: float = Query(...),
    service: MapsLookupService = Depends(get_maps_service),
):
    address = await service.reverse_geocode(lat, lng)
    return ok({"address": address})


@router.get("/nearby", response_model=EnvelopeResponse)
async def nearby(
    lat: float = Query(...),
    lng: float = Query(...),
    category: str = Query(..., description="Place category, or 'none' for no lookup"),
    radius_km: Optional[float] = Query(None),
    limit: Optional[int] = Query(None),
    service: MapsLookupService = Depends(get_maps_service),
):
    """
    Places of a category near a point.

    The first result is always the "no place selected" record. Upstream
    failures degrade to fewer results plus warnings, never to an error.
    """
    report = await service.search_nearby_report(lat, lng, radius_km, category, limit)
    return ok({
        "results": [r.to_dict() for r in report.results],
        "warnings": report.warnings,
        "degraded": report.degraded,
        "from_cache": report.from_cache,
    })


@router.post("/distance-matrix", response_model=EnvelopeResponse)
async def distance_matrix(request: DistanceMatrixRequest,
                          service: MapsLookupService = Depends(get_maps_service)):
    matrix = await service.distance_matrix(
        list(request.origins),
        list(request.destinations),
        timeout=request.timeout_seconds,
    )
    return ok(matrix.to_dict())


@router.post("/route", response_model=EnvelopeResponse)
async def route(request: RouteRequest, service: MapsLookupService = Depends(get_maps_service)):
    info = await service.calculate_route(
        request.origin,
        request.destination,
        mode=request.mode,
        timeout=request.timeout_seconds,
    )
    return ok(info.to_dict())


@router.get("/cache/stats", response_model=EnvelopeResponse)
async def cache_stats(service: MapsLookupService = Depends(get_maps_service)):
    return ok(service.diagnostics())


@router.delete("/cache", response_model=EnvelopeResponse)
async def clear_cache(service: MapsLookupService = Depends(get_maps_service)):
    service.clear_cache()
    return ok({"cleared": True})
