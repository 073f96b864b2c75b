from .provider import (
    SuggestionSchema,
    PlaceDetailsSchema,
    MatrixSchema,
    RouteSchema,
    GEOCODE_ADDRESS_PATHS,
    pick,
)

__all__ = [
    "SuggestionSchema",
    "PlaceDetailsSchema",
    "MatrixSchema",
    "RouteSchema",
    "GEOCODE_ADDRESS_PATHS",
    "pick",
]
