from .ports import ApiError, RestaurantGateway


class SimulatorRestaurantGateway(RestaurantGateway):
    """
    In-memory fake restaurant service.

    Test helpers:
        inject_restaurant() - register a restaurant (visible in every list)
        inject_top() - set the ranking for (category, time_range)
        calls - list of (method, args) tuples, in call order
    """

    def __init__(self):
        self._restaurants: dict[int, dict] = {}
        self._top: dict[tuple[str, str], list[dict]] = {}
        self.calls: list[tuple[str, tuple]] = []

    def inject_restaurant(self, restaurant: dict) -> None:
        self._restaurants[restaurant["id"]] = restaurant

    def inject_top(self, category: str, time_range: str, restaurants: list[dict]) -> None:
        self._top[(category, time_range)] = list(restaurants)

    def calls_to(self, method: str) -> list[tuple]:
        return [args for name, args in self.calls if name == method]

    async def get_nearby(self, latitude, longitude, radius_km, page=0, size=20) -> dict:
        self.calls.append(("get_nearby", (latitude, longitude, radius_km, page, size)))
        restaurants = list(self._restaurants.values())
        chunk = restaurants[page * size:(page + 1) * size]
        return {"restaurants": chunk, "page": page, "totalElements": len(restaurants)}

    async def get_featured(self, latitude, longitude, radius_km, limit=10) -> list[dict]:
        self.calls.append(("get_featured", (latitude, longitude, radius_km, limit)))
        return [r for r in self._restaurants.values() if r.get("featured")][:limit]

    async def get_top(self, category, time_range, latitude, longitude, radius_km, limit=10) -> dict:
        self.calls.append(("get_top", (category, time_range, latitude, longitude, radius_km, limit)))
        return {"restaurants": self._top.get((category, time_range), [])[:limit]}

    async def get_cuisines(self, latitude, longitude, radius_km) -> list[dict]:
        self.calls.append(("get_cuisines", (latitude, longitude, radius_km)))
        counts: dict[str, int] = {}
        for r in self._restaurants.values():
            cuisine = r.get("cuisineType")
            if cuisine:
                counts[cuisine] = counts.get(cuisine, 0) + 1
        return [{"cuisineType": c, "count": n} for c, n in sorted(counts.items())]

    async def get_detail(self, restaurant_id: int) -> dict:
        self.calls.append(("get_detail", (restaurant_id,)))
        if restaurant_id not in self._restaurants:
            raise ApiError("Restaurant not found", status_code=404)
        return self._restaurants[restaurant_id]
