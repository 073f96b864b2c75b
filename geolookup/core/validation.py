"""
Input validation for inbound lookups.

Runs before any cache or network activity and raises InvalidInputError.
"""
import math
from numbers import Real
from typing import List, Sequence

from geolookup.core.exceptions import ErrorCode, InvalidInputError
from geolookup.models.internal_models import LatLng, Waypoint


def validate_latitude(lat) -> float:
    """
    Validate latitude coordinate

    Args:
        lat: Latitude value

    Returns:
        Validated latitude

    Raises:
        InvalidInputError: If latitude is not a finite number in range
    """
    lat = _finite_number(lat, "latitude")
    if not -90.0 <= lat <= 90.0:
        raise InvalidInputError(
            f"Latitude {lat} out of range (must be -90 to 90)",
            details={"latitude": lat},
            error_code=ErrorCode.INVALID_COORDINATES
        )
    return lat


def validate_longitude(lng) -> float:
    """
    Validate longitude coordinate

    Args:
        lng: Longitude value

    Returns:
        Validated longitude

    Raises:
        InvalidInputError: If longitude is not a finite number in range
    """
    lng = _finite_number(lng, "longitude")
    if not -180.0 <= lng <= 180.0:
        raise InvalidInputError(
            f"Longitude {lng} out of range (must be -180 to 180)",
            details={"longitude": lng},
            error_code=ErrorCode.INVALID_COORDINATES
        )
    return lng


def validate_coordinates(lat, lng):
    return validate_latitude(lat), validate_longitude(lng)


def validate_query(text) -> str:
    """Reject empty or non-string queries; returns the stripped text."""
    if not isinstance(text, str) or not text.strip():
        raise InvalidInputError("Query must not be empty", error_code=ErrorCode.EMPTY_QUERY)
    return text.strip()


def validate_place_ref(place_ref) -> str:
    """
    Validate an opaque place reference

    The reference is returned verbatim, so ``" abc"`` and ``"abc"`` are
    distinct identifiers with separate cache entries.

    Raises:
        InvalidInputError: If the reference is not a string or is blank
    """
    if not isinstance(place_ref, str) or not place_ref.strip():
        raise InvalidInputError("Place reference must not be empty", error_code=ErrorCode.EMPTY_QUERY)
    return place_ref


def validate_radius_km(radius_km, max_radius_km: float) -> float:
    """
    Validate search radius (in kilometres)

    Raises:
        InvalidInputError: If radius is not positive or exceeds the maximum
    """
    radius_km = _finite_number(radius_km, "radius_km")
    if radius_km <= 0:
        raise InvalidInputError("Radius must be positive", details={"radius_km": radius_km})
    if radius_km > max_radius_km:
        raise InvalidInputError(
            f"Radius {radius_km}km exceeds maximum {max_radius_km}km",
            details={"radius_km": radius_km, "max_radius_km": max_radius_km}
        )
    return radius_km


def validate_limit(limit, max_limit: int = 100) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidInputError("Limit must be a positive integer", details={"limit": repr(limit)})
    if limit > max_limit:
        raise InvalidInputError(f"Limit {limit} exceeds maximum {max_limit}", details={"limit": limit})
    return limit


def validate_waypoints(waypoints: Sequence[Waypoint], name: str) -> List[Waypoint]:
    """Accept addresses, LatLng or (lat, lng) pairs; the list keeps its order."""
    if isinstance(waypoints, str) or not waypoints:
        raise InvalidInputError(f"{name} must be a non-empty list", details={name: repr(waypoints)})
    validated: List[Waypoint] = []
    for waypoint in waypoints:
        if isinstance(waypoint, str):
            validated.append(validate_query(waypoint))
        elif isinstance(waypoint, LatLng):
            validate_coordinates(waypoint.lat, waypoint.lng)
            validated.append(waypoint)
        elif isinstance(waypoint, (tuple, list)) and len(waypoint) == 2:
            lat, lng = validate_coordinates(waypoint[0], waypoint[1])
            validated.append(LatLng(lat, lng))
        else:
            raise InvalidInputError(f"Unsupported waypoint in {name}", details={"waypoint": repr(waypoint)})
    return validated


def _finite_number(value, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise InvalidInputError(
            f"{name} must be a finite number",
            details={name: repr(value)},
            error_code=ErrorCode.INVALID_COORDINATES
        )
    return float(value)
