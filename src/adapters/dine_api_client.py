import asyncio
import logging
from typing import Any, Callable

import requests

from src.config import SyncConfig
from src.domain.slots import AvailabilityResponse

from .ports import ApiError, AvailabilityGateway, NetworkError, RestaurantGateway

log = logging.getLogger(__name__)

# message used when the server gives no detail, by status
_STATUS_FALLBACKS = {
    400: "Bad request. Please check your input.",
    401: "Your session has expired. Please login again.",
    403: "Access denied.",
    404: "Not found.",
    409: "This resource already exists.",
    422: "Validation failed.",
    429: "Too many requests. Please try again later.",
}


def _error_detail(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    body = payload.get("body")
    if isinstance(body, dict) and body.get("detail"):
        return body["detail"]
    return payload.get("detail") or payload.get("message")


def api_error_from_response(resp: requests.Response) -> ApiError:
    """Turn an error response into an ApiError carrying the server's own message."""
    try:
        payload = resp.json()
    except ValueError:
        payload = resp.text or None
    detail = _error_detail(payload)
    status = resp.status_code
    if detail:
        message = detail
    elif status >= 500:
        message = "Server error. Please try again later."
    else:
        message = _STATUS_FALLBACKS.get(status, "An error occurred.")
    errors = payload.get("errors") if isinstance(payload, dict) and isinstance(payload.get("errors"), dict) else None
    return ApiError(message, status_code=status, errors=errors, payload=payload)


class DineApiClient(AvailabilityGateway, RestaurantGateway):
    """Adapter: real HTTP client for the processing and restaurant services."""

    def __init__(
        self,
        config: SyncConfig,
        token_provider: Callable[[], str | None] = lambda: None,
        session: requests.Session | None = None,
    ):
        self._cfg = config
        self._token_provider = token_provider
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
                "X-Mobile-App": "true",
            }
        )
        if config.api_key:
            self.session.headers["X-API-Key"] = config.api_key

    # -- transport ---------------------------------------------------------------

    def _get_sync(self, url: str, params: dict | None = None) -> Any:
        headers = {}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self._cfg.request_timeout_s)
        except requests.Timeout as exc:
            raise NetworkError(f"Request timed out: {url}") from exc
        except requests.ConnectionError as exc:
            raise NetworkError(f"Network unreachable: {url}") from exc

        log.debug("GET %s → %d", resp.url, resp.status_code)
        if resp.status_code >= 400:
            raise api_error_from_response(resp)
        return resp.json()

    async def _get(self, url: str, params: dict | None = None) -> Any:
        # requests blocks; run it off the event loop
        return await asyncio.to_thread(self._get_sync, url, params)

    # -- availability ------------------------------------------------------------

    async def get_available_slots(self, restaurant_id: int, date: str, party_size: int) -> AvailabilityResponse:
        data = await self._get(
            f"{self._cfg.processing_base_url}/mobile/availability/{restaurant_id}",
            params={"date": date, "partySize": party_size},
        )
        return AvailabilityResponse.from_dict(data)

    # -- restaurants -------------------------------------------------------------

    @property
    def _restaurants_url(self) -> str:
        return f"{self._cfg.restaurant_base_url}/customer/restaurants"

    async def get_nearby(self, latitude, longitude, radius_km, page=0, size=20) -> dict:
        return await self._get(
            f"{self._restaurants_url}/nearby",
            params={"latitude": latitude, "longitude": longitude, "radiusKm": radius_km, "page": page, "size": size},
        )

    async def get_featured(self, latitude, longitude, radius_km, limit=10) -> list[dict]:
        return await self._get(
            f"{self._restaurants_url}/featured",
            params={"limit": limit, "latitude": latitude, "longitude": longitude, "radiusKm": radius_km},
        )

    async def get_top(self, category, time_range, latitude, longitude, radius_km, limit=10) -> dict:
        return await self._get(
            f"{self._restaurants_url}/top/{category}",
            params={
                "timeRange": time_range,
                "latitude": latitude,
                "longitude": longitude,
                "radiusKm": radius_km,
                "limit": limit,
            },
        )

    async def get_cuisines(self, latitude, longitude, radius_km) -> list[dict]:
        return await self._get(
            f"{self._restaurants_url}/cuisines",
            params={"latitude": latitude, "longitude": longitude, "radiusKm": radius_km},
        )

    async def get_detail(self, restaurant_id: int) -> dict:
        return await self._get(f"{self._restaurants_url}/{restaurant_id}")
