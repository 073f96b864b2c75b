import math

import pytest

from geolookup.core.cache import CacheCategory
from geolookup.core.exceptions import CacheKeyError
from geolookup.core.keys import GEO_CELL_SIZE_DEG, GeoCell, KeyCodec
from geolookup.models.internal_models import LatLng

codec = KeyCodec()


def test_text_key_is_normalized():
    a = codec.text_key(CacheCategory.AUTOCOMPLETE, "  Centro   Comercial ", "es", "co")
    b = codec.text_key(CacheCategory.AUTOCOMPLETE, "centro comercial", "ES", "CO")
    assert a == b
    assert a == "autocomplete:text:centro comercial|es|co"


def test_text_key_depends_on_qualifiers():
    assert codec.text_key(CacheCategory.DIRECTIONS, "a>b", "driving") != \
        codec.text_key(CacheCategory.DIRECTIONS, "a>b", "walking")


def test_empty_text_fails_key_derivation():
    with pytest.raises(CacheKeyError):
        codec.text_key(CacheCategory.AUTOCOMPLETE, "   ")


def test_identifier_key_is_verbatim():
    assert codec.identifier_key(CacheCategory.PLACE_DETAILS, "ChIJabc") == "place_details:id:ChIJabc"
    assert codec.identifier_key(CacheCategory.PLACE_DETAILS, "ChIJabc") != \
        codec.identifier_key(CacheCategory.PLACE_DETAILS, "chijabc")


def test_points_in_same_cell_share_geo_key():
    a = codec.geo_key(CacheCategory.GEOCODING, 3.4512, -76.5321)
    b = codec.geo_key(CacheCategory.GEOCODING, 3.4599, -76.5301)
    assert a == b
    assert a.startswith("geocoding:")


def test_points_two_cells_apart_differ():
    lat, lng = 3.4516, -76.5320
    far = lat + 2.5 * GEO_CELL_SIZE_DEG
    assert codec.geo_key(CacheCategory.GEOCODING, lat, lng) != codec.geo_key(CacheCategory.GEOCODING, far, lng)


def test_cell_boundaries_are_stable_against_float_noise():
    # 0.29 / 0.01 evaluates to 28.999999999999996
    assert GeoCell.from_coordinates(0.29, 0.0).lat_index == 29
    assert GeoCell.from_coordinates(-0.005, 0.0).lat_index == -1


def test_geo_cell_center_is_inside_cell():
    cell = GeoCell.from_coordinates(3.4516, -76.5320)
    center_lat, center_lng = cell.center()
    assert GeoCell.from_coordinates(center_lat, center_lng) == cell


def test_geo_key_categories_do_not_collide():
    assert codec.geo_key(CacheCategory.GEOCODING, 1.0, 1.0) != codec.geo_key(CacheCategory.NEARBY_SEARCH, 1.0, 1.0)


@pytest.mark.parametrize("lat,lng", [
    (float("nan"), 0.0),
    (0.0, float("inf")),
    (90.5, 0.0),
    (0.0, -180.1),
    ("3.4", 0.0),
    (True, 0.0),
])
def test_malformed_coordinates_fail_with_key_error(lat, lng):
    with pytest.raises(KeyError):
        codec.geo_key(CacheCategory.GEOCODING, lat, lng)


def test_key_error_is_also_a_geolookup_error():
    with pytest.raises(CacheKeyError) as exc_info:
        codec.geo_cell(math.nan, 0)
    assert exc_info.value.error_code.value == "CACHE_KEY_INVALID"


def test_batch_key_is_stable_and_order_sensitive():
    origins = ["Cra 1 #2-3, Cali", (3.45, -76.53)]
    destinations = [LatLng(3.40, -76.55)]
    key = codec.batch_key(CacheCategory.DISTANCE_MATRIX, origins, destinations)
    assert key == codec.batch_key(CacheCategory.DISTANCE_MATRIX, list(origins), list(destinations))
    assert key == codec.batch_key(CacheCategory.DISTANCE_MATRIX, [" cra 1  #2-3, CALI", LatLng(3.45, -76.53)],
                                  [(3.40, -76.55)])
    assert key != codec.batch_key(CacheCategory.DISTANCE_MATRIX, list(reversed(origins)), destinations)
    assert key.startswith("distance_matrix:batch:")


def test_batch_key_does_not_mix_origins_and_destinations():
    a = codec.batch_key(CacheCategory.DISTANCE_MATRIX, ["a", "b"], ["c"])
    b = codec.batch_key(CacheCategory.DISTANCE_MATRIX, ["a"], ["b", "c"])
    assert a != b


def test_batch_key_rejects_empty_lists():
    with pytest.raises(CacheKeyError):
        codec.batch_key(CacheCategory.DISTANCE_MATRIX, [], ["x"])
