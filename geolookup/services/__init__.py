# Lookup services

from .upstream_gateway import UpstreamGateway, HttpUpstreamGateway
from .category_mapping import PlaceCategory, Region, RegionPhraseResolver, infer_category
from .nearby_synthesizer import NearbySynthesizer, haversine_km
from .matrix_batcher import DistanceMatrixBatcher
from .maps_service import MapsLookupService

__all__ = [
    "UpstreamGateway",
    "HttpUpstreamGateway",
    "PlaceCategory",
    "Region",
    "RegionPhraseResolver",
    "infer_category",
    "NearbySynthesizer",
    "haversine_km",
    "DistanceMatrixBatcher",
    "MapsLookupService",
]
