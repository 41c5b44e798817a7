"""
Restaurant query tests against the simulator gateway.

Covers per-family caching, the top-list fallback, disabled queries and
invalidation.
"""

import asyncio

import pytest

from src.adapters.memory_cache_store import InMemoryCacheStore
from src.adapters.ports import ApiError
from src.adapters.simulator_restaurants import SimulatorRestaurantGateway
from src.config import HOUR_MS, SyncConfig
from src.query_executor import QueryExecutor
from src.restaurant_queries import (
    TIME_RANGE_ALL_TIME,
    TIME_RANGE_THIS_WEEK,
    Location,
    RestaurantKeys,
    RestaurantQueries,
)

PARIS = Location(48.8566, 2.3522)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def gateway():
    gw = SimulatorRestaurantGateway()
    gw.inject_restaurant({"id": 1, "name": "Chez Marcel", "cuisineType": "FRENCH", "featured": True})
    gw.inject_restaurant({"id": 2, "name": "Sakura", "cuisineType": "JAPANESE"})
    gw.inject_restaurant({"id": 3, "name": "Le Petit Zinc", "cuisineType": "FRENCH"})
    return gw


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor(clock):
    return QueryExecutor(InMemoryCacheStore(), SyncConfig(), clock=clock)


@pytest.fixture
def queries(executor, gateway):
    return RestaurantQueries(executor, gateway, SyncConfig())


@pytest.mark.asyncio
async def test_nearby_cached_between_reads(queries, gateway):
    first = await queries.nearby(PARIS, 5.0)
    second = await queries.nearby(PARIS, 5.0)
    assert first == second
    assert len(first["restaurants"]) == 3
    assert len(gateway.calls_to("get_nearby")) == 1


@pytest.mark.asyncio
async def test_nearby_other_radius_is_separate_query(queries, gateway):
    await queries.nearby(PARIS, 5.0)
    await queries.nearby(PARIS, 10.0)
    assert len(gateway.calls_to("get_nearby")) == 2


@pytest.mark.asyncio
async def test_no_location_disables_query(queries, gateway):
    assert await queries.nearby(None, 5.0) is None
    assert await queries.featured(None, 5.0) is None
    assert await queries.top("pizza", None, 5.0) is None
    assert await queries.cuisines(None, 5.0) is None
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_featured(queries):
    featured = await queries.featured(PARIS, 5.0)
    assert [r["id"] for r in featured] == [1]


@pytest.mark.asyncio
async def test_cuisines_counted(queries):
    cuisines = await queries.cuisines(PARIS, 5.0)
    assert cuisines == [{"cuisineType": "FRENCH", "count": 2}, {"cuisineType": "JAPANESE", "count": 1}]


@pytest.mark.asyncio
async def test_top_uses_this_week_when_populated(queries, gateway):
    gateway.inject_top("french", TIME_RANGE_THIS_WEEK, [{"id": 1}])
    gateway.inject_top("french", TIME_RANGE_ALL_TIME, [{"id": 3}])
    result = await queries.top("french", PARIS, 5.0)
    assert result["restaurants"] == [{"id": 1}]
    assert len(gateway.calls_to("get_top")) == 1


@pytest.mark.asyncio
async def test_top_falls_back_to_all_time(queries, gateway):
    gateway.inject_top("french", TIME_RANGE_ALL_TIME, [{"id": 3}])
    result = await queries.top("french", PARIS, 5.0)
    assert result["restaurants"] == [{"id": 3}]
    assert [args[1] for args in gateway.calls_to("get_top")] == [TIME_RANGE_THIS_WEEK, TIME_RANGE_ALL_TIME]


@pytest.mark.asyncio
async def test_detail_cached_for_a_day(queries, gateway, clock):
    await queries.detail(2)
    clock.now += 23 * HOUR_MS
    assert (await queries.detail(2))["name"] == "Sakura"
    assert len(gateway.calls_to("get_detail")) == 1


@pytest.mark.asyncio
async def test_detail_unknown_restaurant_raises(queries):
    with pytest.raises(ApiError) as exc_info:
        await queries.detail(404)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_invalidate_all_revalidates_restaurant_queries(queries, gateway, executor):
    await queries.nearby(PARIS, 5.0)
    await queries.detail(1)

    assert queries.invalidate_all() == 2
    assert executor.get(RestaurantKeys.detail(1)).fetched_at is None

    assert (await queries.detail(1))["name"] == "Chez Marcel"
    for _ in range(5):
        await asyncio.sleep(0)
    assert len(gateway.calls_to("get_detail")) == 2
    assert executor.get(RestaurantKeys.detail(1)).fetched_at is not None
