"""
Slot selection shared by every screen that shows availability.

The detail preview, the booking strip and the all-slots sheet all call these
functions, so the same slot list always resolves to the same selection.

Every function is pure: no network, no caching. Time-dependent behaviour
("ASAP") takes an explicit `now` so results are reproducible in tests.
"""

from dataclasses import dataclass, field
from datetime import datetime

from src.config import SyncConfig
from src.domain.slots import ASAP, AvailableSlot

# (label, first hour, hour after last); iteration order is display order
MEAL_PERIODS: tuple[tuple[str, int, int], ...] = (
    ("Morning", 0, 11),
    ("Lunch", 11, 14),
    ("Afternoon", 14, 17),
    ("Dinner", 17, 22),
    ("Late Night", 22, 24),
)


@dataclass
class SlotPartition:
    available: list[AvailableSlot] = field(default_factory=list)
    requires_notice: list[AvailableSlot] = field(default_factory=list)


def _now_minutes(now: datetime | None) -> int:
    now = now or datetime.now()
    return now.hour * 60 + now.minute


def time_to_minutes(time: str, now: datetime | None = None) -> int:
    """
    Minutes since midnight for "HH:MM" (seconds ignored) or "ASAP".

    ASAP is the current wall-clock minute, recomputed on every call.
    Unparseable values sort last (24:00).
    """
    if time == ASAP:
        return _now_minutes(now)
    try:
        hours, minutes = time.split(":")[:2]
        return int(hours) * 60 + int(minutes)
    except (ValueError, AttributeError):
        return 24 * 60


def slot_minutes(slot: AvailableSlot, now: datetime | None = None) -> int:
    return time_to_minutes(slot.time, now)


def is_low_availability(slot: AvailableSlot, threshold: int | None = None) -> bool:
    """True when the slot reports a capacity at or below the threshold (SyncConfig default)."""
    if threshold is None:
        threshold = SyncConfig.low_availability_threshold
    return slot.available_capacity is not None and slot.available_capacity <= threshold


def _chronological(slots: list[AvailableSlot], now: datetime | None) -> list[AvailableSlot]:
    # sorted() is stable: equal times keep their input order
    return sorted(slots, key=lambda s: slot_minutes(s, now))


def closest_slots(
    slots: list[AvailableSlot],
    target_time: str,
    n: int,
    now: datetime | None = None,
) -> list[AvailableSlot]:
    """
    Pick the n available slots nearest to target_time.

    Args:
        slots: Slot list, normally already chronological
        target_time: "HH:MM" or "ASAP" (resolved against `now`)
        n: Maximum number of slots to return
        now: Wall clock used for ASAP; defaults to datetime.now(), read once per call

    Returns:
        At most n available slots in chronological order. When there are no
        more than n available slots, all of them are returned in input order.
    """
    now = now or datetime.now()
    available = [s for s in slots if s.is_available]
    if len(available) <= n:
        return available
    if n <= 0:
        return []

    target = time_to_minutes(target_time, now)
    ranked = sorted(
        enumerate(available),
        key=lambda pair: (
            abs(slot_minutes(pair[1], now) - target),
            slot_minutes(pair[1], now),
            pair[0],
        ),
    )
    chosen = ranked[:n]
    chosen.sort(key=lambda pair: (slot_minutes(pair[1], now), pair[0]))
    return [slot for _, slot in chosen]


def group_by_meal_period(
    slots: list[AvailableSlot],
    now: datetime | None = None,
) -> list[tuple[str, list[AvailableSlot]]]:
    """
    Bucket available slots into meal periods.

    Returns (period, slots) pairs in Morning → Late Night order, skipping
    empty periods. Slots inside a period are chronological.
    """
    now = now or datetime.now()
    buckets: dict[str, list[AvailableSlot]] = {label: [] for label, _, _ in MEAL_PERIODS}
    for slot in _chronological([s for s in slots if s.is_available], now):
        hour = slot_minutes(slot, now) // 60
        for label, start, end in MEAL_PERIODS:
            if start <= hour < end:
                buckets[label].append(slot)
                break
    return [(label, buckets[label]) for label, _, _ in MEAL_PERIODS if buckets[label]]


def partition_by_notice(slots: list[AvailableSlot]) -> SlotPartition:
    """
    Split slots into bookable ones and advance-notice candidates.

    Unavailable slots that don't require notice are dropped from both.
    """
    partition = SlotPartition()
    for slot in slots:
        if slot.is_available:
            partition.available.append(slot)
        elif slot.requires_advance_notice:
            partition.requires_notice.append(slot)
    return partition


def visible_window(
    slots: list[AvailableSlot],
    selected_time: str | None,
    window_size: int,
    now: datetime | None = None,
) -> list[AvailableSlot]:
    """
    Contiguous run of up to window_size available slots for a horizontal strip.

    The window is centred on selected_time (slightly more slots after it than
    before when window_size is even). Without a selection, or when the
    selection isn't in the list, the first window_size slots are shown. The
    window never runs past either end of the list.
    """
    now = now or datetime.now()
    available = _chronological([s for s in slots if s.is_available], now)
    if window_size <= 0:
        return []
    if len(available) <= window_size:
        return available

    index = next(
        (i for i, s in enumerate(available) if selected_time and s.time == selected_time),
        None,
    )
    if index is None:
        return available[:window_size]

    before = (window_size - 1) // 2
    start = max(0, index - before)
    end = min(len(available), start + window_size)
    start = max(0, end - window_size)
    return available[start:end]
