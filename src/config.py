"""
Tunable settings for caching, polling and slot previews.

All durations are milliseconds. Defaults match the mobile client; any value
can be overridden from the environment with load_config().

Environment variables (all optional):
    DINE_API_URL                 - processing service base URL (availability)
    DINE_RESTAURANT_API_URL      - restaurant service base URL (metadata)
    DINE_API_KEY                 - value for the X-API-Key header
    DINE_REQUEST_TIMEOUT_S       - HTTP timeout in seconds (default: 30)
    DINE_POLL_INTERVAL_MS        - availability polling interval (default: 30000)
    DINE_DEFAULT_STALE_MS        - stale window for queries without a family
    DINE_GC_AFTER_MS             - how long unobserved entries are kept
"""

import os
from dataclasses import dataclass, fields

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


@dataclass(frozen=True)
class SyncConfig:
    # -- cache -----------------------------------------------------------------
    default_stale_ms: int = 5 * MINUTE_MS
    gc_after_ms: int = 10 * MINUTE_MS

    # per query family
    nearby_stale_ms: int = 10 * MINUTE_MS      # location-sensitive
    featured_stale_ms: int = 4 * HOUR_MS       # curated list
    top_stale_ms: int = HOUR_MS                # leaderboard
    cuisines_stale_ms: int = HOUR_MS
    detail_stale_ms: int = 24 * HOUR_MS        # name / address / images
    availability_stale_ms: int = 0             # every poll tick revalidates

    # -- polling ---------------------------------------------------------------
    poll_interval_ms: int = 30_000

    # -- slot previews ---------------------------------------------------------
    detail_preview_size: int = 4
    booking_preview_size: int = 8
    low_availability_threshold: int = 3

    # -- transport -------------------------------------------------------------
    processing_base_url: str = "http://localhost:8083/processing"
    restaurant_base_url: str = "http://localhost:8081/restaurant"
    api_key: str = ""
    request_timeout_s: float = 30.0

    def __post_init__(self):
        if self.poll_interval_ms <= 0:
            raise ValueError(f"poll_interval_ms must be positive, got {self.poll_interval_ms}")
        for f in fields(self):
            if f.name.endswith("_ms") and getattr(self, f.name) < 0:
                raise ValueError(f"{f.name} must not be negative")
        if self.detail_preview_size <= 0 or self.booking_preview_size <= 0:
            raise ValueError("preview sizes must be positive")


_ENV_OVERRIDES = {
    "DINE_API_URL": ("processing_base_url", str),
    "DINE_RESTAURANT_API_URL": ("restaurant_base_url", str),
    "DINE_API_KEY": ("api_key", str),
    "DINE_REQUEST_TIMEOUT_S": ("request_timeout_s", float),
    "DINE_POLL_INTERVAL_MS": ("poll_interval_ms", int),
    "DINE_DEFAULT_STALE_MS": ("default_stale_ms", int),
    "DINE_GC_AFTER_MS": ("gc_after_ms", int),
}


def load_config(env: dict[str, str] | None = None) -> SyncConfig:
    """
    Build a SyncConfig from defaults overlaid with environment variables.

    Pass an explicit mapping to avoid reading os.environ (tests).
    Raises ValueError when a value cannot be parsed or is out of range.
    """
    env = os.environ if env is None else env
    overrides = {}
    for var, (field_name, cast) in _ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            value = cast(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from None
        if field_name.endswith("_url"):
            value = value.rstrip("/")
        overrides[field_name] = value
    return SyncConfig(**overrides)
