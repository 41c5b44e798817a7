"""
Availability data model: slots, responses, and the reservation context
that keys a polling session.
"""

from dataclasses import dataclass, field
from typing import Any

ASAP = "ASAP"


@dataclass(frozen=True)
class AvailableSlot:
    """One bookable (or candidate) time for a restaurant on a date."""

    time: str                                  # "HH:MM" or "ASAP"
    is_available: bool
    available_capacity: int | None = None      # seats left, never negative
    requires_advance_notice: bool = False
    advance_notice_hours: int | None = None

    def __post_init__(self):
        if self.available_capacity is not None and self.available_capacity < 0:
            raise ValueError(f"available_capacity must be >= 0, got {self.available_capacity}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AvailableSlot":
        """Build a slot from the camelCase wire payload."""
        capacity = data.get("availableCapacity")
        notice_hours = data.get("advanceNoticeHours")
        return cls(
            time=str(data.get("time", "")),
            is_available=bool(data.get("isAvailable", False)),
            available_capacity=int(capacity) if capacity is not None else None,
            requires_advance_notice=bool(data.get("requiresAdvanceNotice", False)),
            advance_notice_hours=int(notice_hours) if notice_hours is not None else None,
        )


@dataclass(frozen=True)
class AvailabilityResponse:
    """
    Result of one availability fetch.

    `all_slots` includes candidates that need advance notice; when the
    server omits it, it falls back to `slots`.
    """

    slots: list[AvailableSlot] = field(default_factory=list)
    all_slots: list[AvailableSlot] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AvailabilityResponse":
        data = data or {}
        slots = [AvailableSlot.from_dict(s) for s in data.get("slots") or []]
        raw_all = data.get("allSlots")
        all_slots = [AvailableSlot.from_dict(s) for s in raw_all] if raw_all else list(slots)
        return cls(slots=slots, all_slots=all_slots)


def availability_key(restaurant_id: int, date: str, party_size: int) -> tuple:
    return ("availability", restaurant_id, date, party_size)


@dataclass(frozen=True)
class ReservationContext:
    """What the diner is looking at: which restaurant, which day, how many people."""

    restaurant_id: int
    date: str          # ISO: "2026-04-01"
    party_size: int

    @property
    def is_complete(self) -> bool:
        """False when the context cannot be polled (no restaurant, no date, empty party)."""
        return bool(self.restaurant_id) and bool(self.date) and self.party_size > 0

    def query_key(self) -> tuple:
        return availability_key(self.restaurant_id, self.date, self.party_size)
