import asyncio

from src.domain.slots import AvailabilityResponse, AvailableSlot

from .ports import AvailabilityGateway


class SimulatorAvailabilityGateway(AvailabilityGateway):
    """
    In-memory fake for testing. No mocking framework needed.

    Test helpers:
        inject_slots() - set the slots returned for a (restaurant, date, party)
        inject_failure() - make the next call(s) for a key raise
        hold() - make calls for a key wait until the returned event is set
        calls - list of (restaurant_id, date, party_size) per call, in order
    """

    def __init__(self):
        self._responses: dict[tuple, AvailabilityResponse] = {}
        self._failures: dict[tuple, list[Exception]] = {}
        self._holds: dict[tuple, asyncio.Event] = {}
        self.calls: list[tuple[int, str, int]] = []

    def inject_slots(
        self,
        restaurant_id: int,
        date: str,
        party_size: int,
        slots: list[AvailableSlot],
        all_slots: list[AvailableSlot] | None = None,
    ) -> None:
        """Test helper: set what the gateway answers for this key from now on."""
        self._responses[(restaurant_id, date, party_size)] = AvailabilityResponse(
            slots=list(slots),
            all_slots=list(all_slots) if all_slots is not None else list(slots),
        )

    def inject_failure(self, restaurant_id: int, date: str, party_size: int, error: Exception, times: int = 1) -> None:
        """Test helper: the next `times` calls for this key raise error."""
        self._failures.setdefault((restaurant_id, date, party_size), []).extend([error] * times)

    def hold(self, restaurant_id: int, date: str, party_size: int) -> asyncio.Event:
        """Test helper: calls for this key block until the event is set."""
        event = asyncio.Event()
        self._holds[(restaurant_id, date, party_size)] = event
        return event

    def release(self, restaurant_id: int, date: str, party_size: int) -> None:
        event = self._holds.pop((restaurant_id, date, party_size), None)
        if event is not None:
            event.set()

    def call_count(self, restaurant_id: int, date: str, party_size: int) -> int:
        return self.calls.count((restaurant_id, date, party_size))

    async def get_available_slots(self, restaurant_id: int, date: str, party_size: int) -> AvailabilityResponse:
        key = (restaurant_id, date, party_size)
        self.calls.append(key)
        # read the answer at issue time so a held call returns what was current when it was made
        failures = self._failures.get(key)
        failure = failures.pop(0) if failures else None
        response = self._responses.get(key, AvailabilityResponse())

        event = self._holds.get(key)
        if event is not None:
            await event.wait()
        if failure is not None:
            raise failure
        return response
