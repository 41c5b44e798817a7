"""
Console availability watcher.

Polls one restaurant's availability every DINE_POLL_INTERVAL_MS and prints
the slots closest to the requested time, the booking strip, and the meal
period breakdown whenever they change. A thin stand-in for a screen.

Usage:
    source .env && python scripts/run.py

Environment variables (required unless noted):
    RESTAURANT_ID          - restaurant to watch
    RESERVATION_DATE       - YYYY-MM-DD (default: today)
    PARTY_SIZE             - number of guests (default: 2)
    TARGET_TIME            - HH:MM or ASAP (default: ASAP)
    DINE_ACCESS_TOKEN      - bearer token; polling only runs when set
    DINE_API_URL, DINE_RESTAURANT_API_URL, DINE_API_KEY, DINE_POLL_INTERVAL_MS
                           - see src/config.py
"""

import asyncio
import logging
import os
import sys
from datetime import date

# Make sure project root is on sys.path when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.adapters.dine_api_client import DineApiClient
from src.adapters.memory_cache_store import InMemoryCacheStore
from src.config import SyncConfig, load_config
from src.domain.availability_error import error_action_text
from src.domain.slot_selection import closest_slots, group_by_meal_period, is_low_availability, visible_window
from src.domain.slots import ReservationContext
from src.poller import AvailabilityPoller, AvailabilitySnapshot
from src.query_executor import QueryExecutor

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        print(f"ERROR: environment variable {name!r} is not set.", file=sys.stderr)
        sys.exit(1)
    return value


def _fmt(slots, threshold: int) -> str:
    parts = []
    for slot in slots:
        if slot.available_capacity is None:
            parts.append(slot.time)
        else:
            marker = "!" if is_low_availability(slot, threshold) else ""
            parts.append(f"{slot.time}({slot.available_capacity}{marker})")
    return " ".join(parts) or "-"


def render(snapshot: AvailabilitySnapshot, target_time: str, config: SyncConfig) -> None:
    if snapshot.is_loading:
        log.info("Loading availability …")
        return
    error = snapshot.display_error
    if error is not None:
        log.warning("%s: %s [%s]", error.title, error.message, error_action_text(error))
        if error.show_contact_info:
            log.warning("Call the restaurant to book by phone.")
    if not snapshot.has_result:
        return

    low = config.low_availability_threshold
    preview = closest_slots(snapshot.slots, target_time, config.detail_preview_size)
    log.info("Closest to %s: %s", target_time, _fmt(preview, low))
    strip = visible_window(snapshot.slots, preview[0].time if preview else None, config.booking_preview_size)
    log.info("Booking strip: %s", _fmt(strip, low))
    for period, slots in group_by_meal_period(snapshot.all_slots):
        log.info("  %-10s %s", period, _fmt(slots, low))


async def main() -> None:
    config = load_config()
    context = ReservationContext(
        restaurant_id=int(_require_env("RESTAURANT_ID")),
        date=os.environ.get("RESERVATION_DATE", date.today().isoformat()),
        party_size=int(os.environ.get("PARTY_SIZE", "2")),
    )
    target_time = os.environ.get("TARGET_TIME", "ASAP")
    token = os.environ.get("DINE_ACCESS_TOKEN")

    client = DineApiClient(config, token_provider=lambda: token)
    executor = QueryExecutor(InMemoryCacheStore(), config)
    poller = AvailabilityPoller(executor, client, config)
    poller.subscribe(lambda snap: render(snap, target_time, config))

    log.info(
        "Watcher started: restaurant=%d  date=%s  party=%d  interval=%dms",
        context.restaurant_id,
        context.date,
        context.party_size,
        config.poll_interval_ms,
    )
    if not token:
        log.warning("DINE_ACCESS_TOKEN not set: polling stays paused until signed in")

    poller.set_gate(authenticated=bool(token), focused=True, enabled=True)
    poller.watch(context)
    try:
        await asyncio.Event().wait()
    finally:
        poller.detach()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Watcher stopped.")
