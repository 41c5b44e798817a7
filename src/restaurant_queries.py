"""
Restaurant metadata queries that share the cache with availability.

Each query family has a key factory and its own stale window from
SyncConfig. Changing any parameter changes the key, which makes it a
different query. A query without a location is disabled: it returns None
and never touches the network.
"""

import logging
from dataclasses import dataclass

from src.adapters.ports import RestaurantGateway
from src.config import SyncConfig
from src.query_executor import QueryExecutor

log = logging.getLogger(__name__)

TIME_RANGE_THIS_WEEK = "THIS_WEEK"
TIME_RANGE_ALL_TIME = "ALL_TIME"


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


class RestaurantKeys:
    """Key factories; the first two elements name the family."""

    @staticmethod
    def all() -> tuple:
        return ("restaurants",)

    @staticmethod
    def nearby(lat: float, lng: float, radius: float, page: int = 0) -> tuple:
        return ("restaurants", "nearby", lat, lng, radius, page)

    @staticmethod
    def featured(lat: float, lng: float, radius: float) -> tuple:
        return ("restaurants", "featured", lat, lng, radius)

    @staticmethod
    def top(category: str, lat: float, lng: float, radius: float) -> tuple:
        return ("restaurants", "top", category, lat, lng, radius)

    @staticmethod
    def cuisines(lat: float, lng: float, radius: float) -> tuple:
        return ("restaurants", "cuisines", lat, lng, radius)

    @staticmethod
    def detail(restaurant_id: int) -> tuple:
        return ("restaurants", "detail", restaurant_id)


class RestaurantQueries:

    def __init__(self, executor: QueryExecutor, gateway: RestaurantGateway, config: SyncConfig | None = None):
        self._executor = executor
        self._gateway = gateway
        self._cfg = config or SyncConfig()

    async def nearby(self, location: Location | None, radius_km: float, page: int = 0, size: int = 20) -> dict | None:
        if location is None:
            return None
        return await self._executor.fetch(
            RestaurantKeys.nearby(location.latitude, location.longitude, radius_km, page),
            lambda: self._gateway.get_nearby(location.latitude, location.longitude, radius_km, page, size),
            self._cfg.nearby_stale_ms,
        )

    async def featured(self, location: Location | None, radius_km: float, limit: int = 10) -> list[dict] | None:
        if location is None:
            return None
        return await self._executor.fetch(
            RestaurantKeys.featured(location.latitude, location.longitude, radius_km),
            lambda: self._gateway.get_featured(location.latitude, location.longitude, radius_km, limit),
            self._cfg.featured_stale_ms,
        )

    async def top(self, category: str, location: Location | None, radius_km: float, limit: int = 10) -> dict | None:
        """This week's ranking, or the all-time ranking when this week is empty."""
        if location is None:
            return None

        async def fetch_top() -> dict:
            data = await self._gateway.get_top(
                category, TIME_RANGE_THIS_WEEK, location.latitude, location.longitude, radius_km, limit
            )
            if not data.get("restaurants"):
                log.debug("top category=%s empty this week, using all-time ranking", category)
                data = await self._gateway.get_top(
                    category, TIME_RANGE_ALL_TIME, location.latitude, location.longitude, radius_km, limit
                )
            return data

        return await self._executor.fetch(
            RestaurantKeys.top(category, location.latitude, location.longitude, radius_km),
            fetch_top,
            self._cfg.top_stale_ms,
        )

    async def cuisines(self, location: Location | None, radius_km: float) -> list[dict] | None:
        if location is None:
            return None
        return await self._executor.fetch(
            RestaurantKeys.cuisines(location.latitude, location.longitude, radius_km),
            lambda: self._gateway.get_cuisines(location.latitude, location.longitude, radius_km),
            self._cfg.cuisines_stale_ms,
        )

    async def detail(self, restaurant_id: int) -> dict:
        return await self._executor.fetch(
            RestaurantKeys.detail(restaurant_id),
            lambda: self._gateway.get_detail(restaurant_id),
            self._cfg.detail_stale_ms,
        )

    def invalidate_all(self) -> int:
        """Pull-to-refresh: every restaurant query revalidates on next read."""
        return self._executor.invalidate(RestaurantKeys.all())
