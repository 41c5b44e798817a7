"""
Slot selection tests: closest slots, meal periods, advance-notice
partitioning and the booking strip window.
"""

from datetime import datetime, timedelta

import pytest

from src.config import SyncConfig
from src.domain import slot_selection
from src.domain.slot_selection import (
    MEAL_PERIODS,
    closest_slots,
    group_by_meal_period,
    is_low_availability,
    partition_by_notice,
    time_to_minutes,
    visible_window,
)
from src.domain.slots import ASAP, AvailableSlot


def _slots(*times, available=True):
    return [AvailableSlot(t, available) for t in times]


def _times(slots):
    return [s.time for s in slots]


def _half_hours(start_hour: int, count: int):
    return _slots(*[f"{start_hour + i // 2:02d}:{(i % 2) * 30:02d}" for i in range(count)])


# ---------------------------------------------------------------------------
# time_to_minutes
# ---------------------------------------------------------------------------


def test_time_to_minutes():
    assert time_to_minutes("00:00") == 0
    assert time_to_minutes("19:30") == 19 * 60 + 30
    assert time_to_minutes("19:30:45") == 19 * 60 + 30


def test_asap_resolves_to_now():
    assert time_to_minutes(ASAP, now=datetime(2026, 4, 1, 18, 10)) == 18 * 60 + 10


def test_unparseable_time_sorts_last():
    assert time_to_minutes("later") == 24 * 60


# ---------------------------------------------------------------------------
# closest_slots
# ---------------------------------------------------------------------------


def test_closest_slots_around_target():
    slots = _half_hours(12, 13)   # 12:00 .. 18:00
    assert _times(closest_slots(slots, "15:00", 4)) == ["14:00", "14:30", "15:00", "15:30"]


def test_closest_slots_returns_all_when_few():
    slots = _slots("20:00", "19:00")
    assert _times(closest_slots(slots, "12:00", 4)) == ["20:00", "19:00"]


def test_closest_slots_skips_unavailable():
    slots = _slots("18:00", "18:30") + _slots("19:00", available=False) + _slots("19:30", "20:00", "20:30")
    result = closest_slots(slots, "19:00", 3)
    assert _times(result) == ["18:00", "18:30", "19:30"]
    assert all(s.is_available for s in result)


def test_closest_slots_tie_prefers_earlier():
    slots = _slots("18:00", "19:00", "20:00")
    assert _times(closest_slots(slots, "19:30", 1)) == ["19:00"]


def test_closest_slots_to_asap():
    slots = _half_hours(12, 13)
    result = closest_slots(slots, ASAP, 2, now=datetime(2026, 4, 1, 17, 50))
    assert _times(result) == ["17:30", "18:00"]


def test_closest_slots_nonpositive_n():
    assert closest_slots(_half_hours(12, 4), "12:00", 0) == []


def test_closest_slots_result_is_chronological():
    slots = _half_hours(12, 13)
    result = closest_slots(slots, "13:10", 5)
    minutes = [time_to_minutes(s.time) for s in result]
    assert minutes == sorted(minutes)
    assert len(result) == 5


# ---------------------------------------------------------------------------
# group_by_meal_period
# ---------------------------------------------------------------------------


def test_group_by_meal_period_in_display_order():
    slots = _slots("19:00", "08:30", "12:00", "23:00", "11:30")
    groups = group_by_meal_period(slots)
    assert [label for label, _ in groups] == ["Morning", "Lunch", "Dinner", "Late Night"]
    assert _times(dict(groups)["Lunch"]) == ["11:30", "12:00"]


def test_group_by_meal_period_omits_empty_and_unavailable():
    slots = _slots("15:00") + _slots("19:00", available=False)
    assert [label for label, _ in group_by_meal_period(slots)] == ["Afternoon"]


def test_meal_period_boundaries():
    labels = [label for label, _, _ in MEAL_PERIODS]
    groups = dict(group_by_meal_period(_slots("10:59", "11:00", "13:59", "14:00", "16:59", "17:00", "21:59", "22:00")))
    assert labels == ["Morning", "Lunch", "Afternoon", "Dinner", "Late Night"]
    assert _times(groups["Morning"]) == ["10:59"]
    assert _times(groups["Lunch"]) == ["11:00", "13:59"]
    assert _times(groups["Afternoon"]) == ["14:00", "16:59"]
    assert _times(groups["Dinner"]) == ["17:00", "21:59"]
    assert _times(groups["Late Night"]) == ["22:00"]


def test_every_available_slot_lands_in_one_period():
    slots = _half_hours(0, 48)
    groups = group_by_meal_period(slots)
    assert sum(len(g) for _, g in groups) == 48


# ---------------------------------------------------------------------------
# partition_by_notice
# ---------------------------------------------------------------------------


def test_partition_by_notice():
    slots = [
        AvailableSlot("12:00", True),
        AvailableSlot("13:00", False, requires_advance_notice=True, advance_notice_hours=24),
        AvailableSlot("14:00", False),
        AvailableSlot("19:00", True, requires_advance_notice=True),
    ]
    partition = partition_by_notice(slots)
    assert _times(partition.available) == ["12:00", "19:00"]
    assert _times(partition.requires_notice) == ["13:00"]
    assert not set(_times(partition.available)) & set(_times(partition.requires_notice))


# ---------------------------------------------------------------------------
# visible_window
# ---------------------------------------------------------------------------


def test_visible_window_centres_selection():
    slots = _half_hours(17, 10)   # 17:00 .. 21:30
    assert _times(visible_window(slots, "19:30", 4)) == ["19:00", "19:30", "20:00", "20:30"]


def test_visible_window_clamps_at_end():
    slots = _half_hours(17, 10)
    assert _times(visible_window(slots, "21:30", 4)) == ["20:00", "20:30", "21:00", "21:30"]


def test_visible_window_clamps_at_start():
    slots = _half_hours(17, 10)
    assert _times(visible_window(slots, "17:00", 4)) == ["17:00", "17:30", "18:00", "18:30"]


def test_visible_window_without_selection_shows_first():
    slots = _half_hours(17, 10)
    assert _times(visible_window(slots, None, 3)) == ["17:00", "17:30", "18:00"]
    assert _times(visible_window(slots, "09:00", 3)) == ["17:00", "17:30", "18:00"]


def test_visible_window_shorter_list():
    slots = _slots("19:00", "18:00")
    assert _times(visible_window(slots, "19:00", 8)) == ["18:00", "19:00"]


# ---------------------------------------------------------------------------
# low availability
# ---------------------------------------------------------------------------


def test_low_availability():
    assert is_low_availability(AvailableSlot("19:00", True, 3))
    assert not is_low_availability(AvailableSlot("19:00", True, 4))
    assert not is_low_availability(AvailableSlot("19:00", True))
    assert is_low_availability(AvailableSlot("19:00", True, 5), threshold=5)


def test_low_availability_default_follows_config():
    at_threshold = AvailableSlot("19:00", True, SyncConfig().low_availability_threshold)
    above = AvailableSlot("19:00", True, SyncConfig().low_availability_threshold + 1)
    assert is_low_availability(at_threshold)
    assert not is_low_availability(above)


# ---------------------------------------------------------------------------
# wall clock read once per call
# ---------------------------------------------------------------------------


class _TickingDatetime(datetime):
    """datetime whose now() moves forward a minute on every read."""

    reads = 0

    @classmethod
    def now(cls, tz=None):
        cls.reads += 1
        return datetime(2026, 4, 1, 17, 58) + timedelta(minutes=cls.reads)


@pytest.fixture
def ticking_clock(monkeypatch):
    _TickingDatetime.reads = 0
    monkeypatch.setattr(slot_selection, "datetime", _TickingDatetime)
    return _TickingDatetime


def test_closest_slots_reads_clock_once(ticking_clock):
    slots = _slots("ASAP") + _half_hours(17, 6)
    result = closest_slots(slots, ASAP, 3)
    assert ticking_clock.reads == 1
    assert _times(result) == ["17:30", "ASAP", "18:00"]


def test_group_by_meal_period_reads_clock_once(ticking_clock):
    group_by_meal_period(_slots("ASAP", "ASAP", "12:00", "ASAP"))
    assert ticking_clock.reads == 1


def test_visible_window_reads_clock_once(ticking_clock):
    visible_window(_slots("ASAP", "18:30", "ASAP", "19:00"), "18:30", 2)
    assert ticking_clock.reads == 1
