from abc import ABC, abstractmethod
from typing import Any

from src.domain.slots import AvailabilityResponse


class NetworkError(Exception):
    """The request never got an HTTP response (no connectivity, timeout)."""


class ApiError(Exception):
    """
    The server answered with an error status.

    `payload` is the decoded response body when there was one, so callers
    can dig out structured details (e.g. field validation errors).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: dict[str, list[str]] | None = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors
        self.payload = payload


class AvailabilityGateway(ABC):
    """
    Port: where bookable time slots come from.

    The poller depends ONLY on this interface. It doesn't know or care
    whether slots come from the processing service or an in-memory simulator.
    """

    @abstractmethod
    async def get_available_slots(
        self, restaurant_id: int, date: str, party_size: int
    ) -> AvailabilityResponse:
        """
        Return slots for a restaurant on date (YYYY-MM-DD) for party_size guests.

        Raises NetworkError or ApiError on failure.
        """
        ...


class RestaurantGateway(ABC):
    """Port: restaurant metadata. Payloads are passed through as decoded JSON."""

    @abstractmethod
    async def get_nearby(
        self, latitude: float, longitude: float, radius_km: float, page: int = 0, size: int = 20
    ) -> dict:
        ...

    @abstractmethod
    async def get_featured(
        self, latitude: float, longitude: float, radius_km: float, limit: int = 10
    ) -> list[dict]:
        ...

    @abstractmethod
    async def get_top(
        self,
        category: str,
        time_range: str,
        latitude: float,
        longitude: float,
        radius_km: float,
        limit: int = 10,
    ) -> dict:
        """Return {"restaurants": [...], ...} ranked within category over time_range."""
        ...

    @abstractmethod
    async def get_cuisines(self, latitude: float, longitude: float, radius_km: float) -> list[dict]:
        ...

    @abstractmethod
    async def get_detail(self, restaurant_id: int) -> dict:
        ...
