"""
Category tables for nearby-place synthesis.

Maps internal place categories to locale-aware search phrases, and
provider place types back to internal categories.

Region phrasing is pluggable: a region is a coarse bounding box plus the
phrase templates to use inside it. The two Colombian regions below are
illustrative defaults.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple


class PlaceCategory(str, Enum):
    NONE = "none"                    # explicit "no lookup needed" marker
    USER_PROPOSED = "user_proposed"  # fallback for unmapped provider types
    METRO_STATION = "metro_station"
    MALL = "mall"
    UNIVERSITY = "university"
    HOSPITAL = "hospital"
    BANK = "bank"
    PARK = "park"
    GOVERNMENT = "government"
    CHURCH = "church"
    HOTEL = "hotel"
    RESTAURANT = "restaurant"
    GAS_STATION = "gas_station"
    SUPERMARKET = "supermarket"


# =============================================================================
# Search terms (category -> phrases, per language)
# =============================================================================

SEARCH_TERMS: Dict[str, Dict[PlaceCategory, Tuple[str, ...]]] = {
    "es": {
        PlaceCategory.METRO_STATION: ("estación metro", "metro", "transmilenio", "estación transporte"),
        PlaceCategory.MALL: ("centro comercial", "mall", "plaza comercial"),
        PlaceCategory.UNIVERSITY: ("universidad", "colegio", "institución educativa"),
        PlaceCategory.HOSPITAL: ("hospital", "clínica", "centro médico"),
        PlaceCategory.BANK: ("banco", "cajero", "entidad financiera"),
        PlaceCategory.PARK: ("parque", "zona verde"),
        PlaceCategory.GOVERNMENT: ("alcaldía", "gobierno", "oficina pública"),
        PlaceCategory.CHURCH: ("iglesia", "catedral", "templo"),
        PlaceCategory.HOTEL: ("hotel", "hostal", "alojamiento"),
        PlaceCategory.RESTAURANT: ("restaurante", "comida", "café"),
        PlaceCategory.GAS_STATION: ("gasolinera", "estación servicio"),
        PlaceCategory.SUPERMARKET: ("supermercado", "tienda", "minimercado"),
    },
    "en": {
        PlaceCategory.METRO_STATION: ("metro station", "subway", "bus station"),
        PlaceCategory.MALL: ("shopping mall", "mall", "shopping center"),
        PlaceCategory.UNIVERSITY: ("university", "college", "school"),
        PlaceCategory.HOSPITAL: ("hospital", "clinic", "medical center"),
        PlaceCategory.BANK: ("bank", "atm"),
        PlaceCategory.PARK: ("park", "green space"),
        PlaceCategory.GOVERNMENT: ("city hall", "government office"),
        PlaceCategory.CHURCH: ("church", "cathedral", "temple"),
        PlaceCategory.HOTEL: ("hotel", "hostel", "lodging"),
        PlaceCategory.RESTAURANT: ("restaurant", "food", "cafe"),
        PlaceCategory.GAS_STATION: ("gas station", "petrol station"),
        PlaceCategory.SUPERMARKET: ("supermarket", "grocery store", "convenience store"),
    },
}

DEFAULT_LANGUAGE = "es"

# Suffix used when the point falls in no known region
GENERIC_TEMPLATES: Dict[str, Tuple[str, ...]] = {
    "es": ("{term} cerca",),
    "en": ("{term} near me",),
}


def parse_category(value) -> Optional[PlaceCategory]:
    """Return the PlaceCategory for ``value``, or None when it is not a known category."""
    if isinstance(value, PlaceCategory):
        return value
    if not isinstance(value, str):
        return None
    try:
        return PlaceCategory(value.strip().lower())
    except ValueError:
        return None


def search_terms_for(category: PlaceCategory, language: str = DEFAULT_LANGUAGE) -> Tuple[str, ...]:
    table = SEARCH_TERMS.get(language) or SEARCH_TERMS[DEFAULT_LANGUAGE]
    return table.get(category, ())


# =============================================================================
# Region phrasing
# =============================================================================

@dataclass(frozen=True)
class Region:
    """A coarse bounding box and the phrase templates used inside it."""
    name: str
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float
    templates: Tuple[str, ...]

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


DEFAULT_REGIONS: Tuple[Region, ...] = (
    Region(
        name="cali",
        min_lat=3.0, max_lat=4.0, min_lng=-77.0, max_lng=-76.0,
        templates=("{term} en Cali", "{term} Valle del Cauca"),
    ),
    Region(
        name="pereira",
        min_lat=4.5, max_lat=5.0, min_lng=-75.0, max_lng=-74.0,
        templates=("{term} en Pereira", "{term} Risaralda"),
    ),
)


class RegionPhraseResolver:
    """
    Chooses phrase templates by a bounding-box test on the query point.

    Regions are tested in order; the first containing region wins. Points
    outside every region get the generic template for the language.
    """

    def __init__(self, regions: Optional[Iterable[Region]] = None,
                 generic_templates: Optional[Dict[str, Tuple[str, ...]]] = None):
        self.regions: List[Region] = list(DEFAULT_REGIONS if regions is None else regions)
        self.generic_templates = generic_templates or GENERIC_TEMPLATES

    def region_for(self, lat: float, lng: float) -> Optional[Region]:
        for region in self.regions:
            if region.contains(lat, lng):
                return region
        return None

    def templates_for(self, lat: float, lng: float, language: str = DEFAULT_LANGUAGE) -> Tuple[str, ...]:
        region = self.region_for(lat, lng)
        if region is not None:
            return region.templates
        return self.generic_templates.get(language) or self.generic_templates[DEFAULT_LANGUAGE]

    def phrases(self, terms: Sequence[str], lat: float, lng: float,
                language: str = DEFAULT_LANGUAGE, max_phrases: int = 3) -> List[str]:
        """
        Build search phrases for ``terms`` at (lat, lng).

        Each term contributes itself followed by its templated forms; the
        combined list is truncated to ``max_phrases``.
        """
        templates = self.templates_for(lat, lng, language)
        phrases: List[str] = []
        for term in terms:
            phrases.append(term)
            phrases.extend(template.format(term=term) for template in templates)
        return phrases[:max_phrases]


# =============================================================================
# Provider type -> internal category
# =============================================================================

# Ordered by priority: the first entry matching any candidate tag wins.
TYPE_PRIORITY: Tuple[Tuple[str, PlaceCategory], ...] = (
    ("subway_station", PlaceCategory.METRO_STATION),
    ("transit_station", PlaceCategory.METRO_STATION),
    ("bus_station", PlaceCategory.METRO_STATION),
    ("shopping_mall", PlaceCategory.MALL),
    ("department_store", PlaceCategory.MALL),
    ("university", PlaceCategory.UNIVERSITY),
    ("school", PlaceCategory.UNIVERSITY),
    ("hospital", PlaceCategory.HOSPITAL),
    ("doctor", PlaceCategory.HOSPITAL),
    ("bank", PlaceCategory.BANK),
    ("atm", PlaceCategory.BANK),
    ("park", PlaceCategory.PARK),
    ("city_hall", PlaceCategory.GOVERNMENT),
    ("local_government_office", PlaceCategory.GOVERNMENT),
    ("church", PlaceCategory.CHURCH),
    ("place_of_worship", PlaceCategory.CHURCH),
    ("lodging", PlaceCategory.HOTEL),
    ("gas_station", PlaceCategory.GAS_STATION),
    ("supermarket", PlaceCategory.SUPERMARKET),
    ("grocery_or_supermarket", PlaceCategory.SUPERMARKET),
    ("restaurant", PlaceCategory.RESTAURANT),
    ("food", PlaceCategory.RESTAURANT),
)


def infer_category(types: Iterable[str]) -> PlaceCategory:
    """
    Map provider place types to an internal category.

    Args:
        types: Provider type tags (e.g., ["shopping_mall", "point_of_interest"])

    Returns:
        The highest-priority matching category, or USER_PROPOSED when no tag
        is mapped. Never returns NONE.
    """
    tags = {t.strip().lower() for t in types if isinstance(t, str)}
    for provider_type, category in TYPE_PRIORITY:
        if provider_type in tags:
            return category
    return PlaceCategory.USER_PROPOSED
