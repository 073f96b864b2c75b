import asyncio

import pytest

from geolookup.core.cache import CacheCategory
from geolookup.core.exceptions import InvalidInputError, RateLimitedError, TransientError
from geolookup.models.internal_models import DistanceDuration, LatLng

A = LatLng(3.4516, -76.5320)
B = LatLng(3.3765, -76.5334)
X = "Chipichape, Cali"
Y = (3.4760, -76.5270)


@pytest.mark.asyncio
async def test_miss_then_hit(service, gateway):
    first = await service.distance_matrix([A, B], [X, Y])
    second = await service.distance_matrix([A, B], [X, Y])

    assert gateway.calls["matrix"] == 1
    assert first == second
    assert first.shape == (2, 2)
    assert first.element(1, 0).distance_m == 2000


@pytest.mark.asyncio
async def test_batches_never_partially_satisfy_each_other(service, gateway):
    await service.distance_matrix([A], [X, Y])
    result = await service.distance_matrix([A, B], [X, Y])

    assert gateway.calls["matrix"] == 2
    assert result.shape == (2, 2)

    await service.distance_matrix([A], [X])
    assert gateway.calls["matrix"] == 3


@pytest.mark.asyncio
async def test_order_is_part_of_the_key(service, gateway):
    ab = await service.distance_matrix([A, B], [X])
    ba = await service.distance_matrix([B, A], [X])

    assert gateway.calls["matrix"] == 2
    assert ab.origins == tuple(reversed(ba.origins))
    # Each call was sent in the order given, never sorted.
    sent = [args[1] for args in gateway.call_args if args[0] == "matrix"]
    assert sent == [(A, B), (B, A)]


@pytest.mark.asyncio
async def test_equivalent_waypoints_share_an_entry(service, gateway):
    await service.distance_matrix([(3.4516, -76.5320)], ["  chipichape, CALI "])
    await service.distance_matrix([A], [X])
    assert gateway.calls["matrix"] == 1


@pytest.mark.asyncio
async def test_concurrent_identical_batches_share_one_call(service, gateway):
    gateway.delay = 0.05
    results = await asyncio.gather(*(service.distance_matrix([A], [X, Y]) for _ in range(5)))
    assert gateway.calls["matrix"] == 1
    assert all(r == results[0] for r in results)


@pytest.mark.asyncio
async def test_upstream_error_is_not_cached(service, gateway):
    gateway.failures["matrix"] = RateLimitedError(operation="matrix")
    with pytest.raises(RateLimitedError):
        await service.distance_matrix([A], [X])
    assert service.cache.size(CacheCategory.DISTANCE_MATRIX) == 0

    del gateway.failures["matrix"]
    result = await service.distance_matrix([A], [X])
    assert result.shape == (1, 1)
    assert gateway.calls["matrix"] == 2


@pytest.mark.asyncio
async def test_shape_mismatch_is_transient_and_not_cached(service, gateway):
    async def short_matrix(origins, destinations):
        gateway.calls["matrix"] += 1
        return [[DistanceDuration(100, 10)]]

    gateway.matrix = short_matrix
    with pytest.raises(TransientError):
        await service.distance_matrix([A, B], [X])
    assert service.cache.size(CacheCategory.DISTANCE_MATRIX) == 0


@pytest.mark.asyncio
async def test_timeout_never_populates_cache(service, gateway):
    gateway.delay = 0.2
    with pytest.raises(TransientError):
        await service.distance_matrix([A], [X], timeout=0.01)
    assert service.cache.size(CacheCategory.DISTANCE_MATRIX) == 0


@pytest.mark.parametrize("origins,destinations", [
    ([], [X]),
    ([A], []),
    ([(91.0, 0.0)], [X]),
    (["   "], [X]),
    ("not a list", [X]),
])
@pytest.mark.asyncio
async def test_invalid_waypoints_are_rejected(service, gateway, origins, destinations):
    with pytest.raises(InvalidInputError):
        await service.distance_matrix(origins, destinations)
    assert gateway.calls["matrix"] == 0
