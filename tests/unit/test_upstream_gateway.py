import json

import httpx
import pytest

from geolookup.config.settings import UpstreamSettings
from geolookup.core.exceptions import (
    ErrorCode,
    InvalidInputError,
    NotFoundError,
    RateLimitedError,
    TransientError,
)
from geolookup.models.internal_models import LatLng
from geolookup.services.upstream_gateway import HttpUpstreamGateway, call_upstream

BASE_URL = "http://maps-proxy.test/api"


def make_gateway(handler):
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpUpstreamGateway(UpstreamSettings(base_url=BASE_URL, api_key="test-key"), client=client)


def respond(payload, status=200):
    def handler(request):
        return httpx.Response(status, json=payload)
    return handler


@pytest.mark.asyncio
async def test_suggest_normalizes_both_payload_shapes():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": "OK", "suggestions": [
            {"placeId": "p1", "mainText": "Chipichape", "secondaryText": "Cali", "types": ["shopping_mall"]},
            {"place_id": "p2", "description": "Unicentro, Cali",
             "structured_formatting": {"main_text": "Unicentro", "secondary_text": "Cali"}},
        ]})

    gateway = make_gateway(handler)
    suggestions = await gateway.suggest("centro comercial", "es", "co")

    assert seen["path"] == "/api/maps/autocomplete"
    assert seen["body"]["input"] == "centro comercial"
    assert seen["body"]["language"] == "es"
    assert seen["body"]["country"] == "co"
    assert [s.place_id for s in suggestions] == ["p1", "p2"]
    assert suggestions[0].types == ("shopping_mall",)
    assert suggestions[1].main_text == "Unicentro"
    assert suggestions[1].full_text == "Unicentro, Cali"


@pytest.mark.asyncio
async def test_suggest_skips_malformed_items():
    gateway = make_gateway(respond({"suggestions": [{"mainText": "no id"}, {"placeId": "ok", "mainText": "Ok"}]}))
    suggestions = await gateway.suggest("abc", "es", "co")
    assert [s.place_id for s in suggestions] == ["ok"]


@pytest.mark.asyncio
async def test_suggest_zero_results_is_empty_list():
    gateway = make_gateway(respond({"status": "ZERO_RESULTS"}))
    assert await gateway.suggest("zzzz", "es", "co") == []


@pytest.mark.asyncio
async def test_details_resolves_nested_location():
    gateway = make_gateway(respond({"status": "OK", "place": {
        "name": "Chipichape",
        "formatted_address": "Calle 38N # 6N-35, Cali",
        "geometry": {"location": {"lat": 3.4760, "lng": -76.5270}},
        "types": ["shopping_mall"],
    }}))
    place = await gateway.details("p1")
    assert place.external_id == "p1"
    assert place.name == "Chipichape"
    assert place.address == "Calle 38N # 6N-35, Cali"
    assert (place.lat, place.lng) == (3.4760, -76.5270)
    assert place.has_coordinates


@pytest.mark.asyncio
async def test_details_with_half_a_coordinate_is_malformed():
    gateway = make_gateway(respond({"place": {"placeId": "p1", "name": "X", "location": {"lat": 3.4}}}))
    with pytest.raises(TransientError) as exc_info:
        await gateway.details("p1")
    assert exc_info.value.error_code == ErrorCode.UPSTREAM_MALFORMED


@pytest.mark.asyncio
async def test_reverse_geocode_reads_first_result():
    gateway = make_gateway(respond({"results": [{"formatted_address": "Cra 100 # 5-169, Cali"}]}))
    assert await gateway.reverse_geocode(3.37, -76.53) == "Cra 100 # 5-169, Cali"


@pytest.mark.asyncio
async def test_matrix_sends_ordered_waypoints_and_parses_rows():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"result": {"rows": [
            {"elements": [
                {"status": "OK", "distance": {"value": 1200}, "duration": {"value": 300}},
                {"status": "ZERO_RESULTS"},
            ]},
        ]}})

    gateway = make_gateway(handler)
    rows = await gateway.matrix([LatLng(3.45, -76.53)], ["Chipichape, Cali", (3.40, -76.55)])

    assert seen["body"]["origins"] == ["3.450000,-76.530000"]
    assert seen["body"]["destinations"] == ["Chipichape, Cali", "3.400000,-76.550000"]
    assert rows[0][0].distance_m == 1200 and rows[0][0].ok
    assert rows[0][1].distance_m is None and not rows[0][1].ok


@pytest.mark.asyncio
async def test_directions_reads_first_leg():
    gateway = make_gateway(respond({"route": {
        "legs": [{"distance": {"value": 5400}, "duration": {"value": 900},
                  "start_address": "A", "end_address": "B"}],
        "overview_polyline": {"points": "xyz"},
    }}))
    route = await gateway.directions("A", "B", "driving")
    assert (route.distance_m, route.duration_s, route.polyline) == (5400, 900, "xyz")


@pytest.mark.parametrize("status,error", [
    (429, RateLimitedError),
    (404, NotFoundError),
    (400, InvalidInputError),
    (422, InvalidInputError),
    (500, TransientError),
    (503, TransientError),
])
@pytest.mark.asyncio
async def test_http_status_mapping(status, error):
    gateway = make_gateway(respond({"error": "x"}, status=status))
    with pytest.raises(error):
        await gateway.details("p1")


@pytest.mark.parametrize("provider_status,error", [
    ("OVER_QUERY_LIMIT", RateLimitedError),
    ("NOT_FOUND", NotFoundError),
    ("INVALID_REQUEST", InvalidInputError),
    ("UNKNOWN_ERROR", TransientError),
])
@pytest.mark.asyncio
async def test_body_status_mapping(provider_status, error):
    gateway = make_gateway(respond({"status": provider_status}))
    with pytest.raises(error):
        await gateway.reverse_geocode(3.4, -76.5)


@pytest.mark.asyncio
async def test_network_errors_are_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    gateway = make_gateway(handler)
    with pytest.raises(TransientError) as exc_info:
        await gateway.suggest("abc", "es", "co")
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_transport_timeout_is_transient():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    gateway = make_gateway(handler)
    with pytest.raises(TransientError) as exc_info:
        await gateway.reverse_geocode(3.4, -76.5)
    assert exc_info.value.error_code == ErrorCode.UPSTREAM_TIMEOUT


@pytest.mark.asyncio
async def test_non_json_body_is_malformed():
    gateway = make_gateway(lambda request: httpx.Response(200, content=b"<html>"))
    with pytest.raises(TransientError) as exc_info:
        await gateway.reverse_geocode(3.4, -76.5)
    assert exc_info.value.error_code == ErrorCode.UPSTREAM_MALFORMED


@pytest.mark.asyncio
async def test_call_upstream_maps_timeout():
    import asyncio

    async def never():
        await asyncio.sleep(10)

    with pytest.raises(TransientError) as exc_info:
        await call_upstream(never(), 0.01, "details")
    assert exc_info.value.error_code == ErrorCode.UPSTREAM_TIMEOUT
    assert exc_info.value.details["operation"] == "details"


@pytest.mark.asyncio
async def test_injected_client_is_not_closed():
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(respond({})))
    gateway = HttpUpstreamGateway(UpstreamSettings(base_url=BASE_URL), client=client)
    await gateway.aclose()
    assert not client.is_closed
    await client.aclose()
