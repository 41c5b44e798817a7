"""
Availability poller: keeps the slots for one reservation context fresh.

A PollingSession polls one (restaurant, date, party size) key through the
QueryExecutor while its gate is open (signed in, screen focused, feature
enabled). AvailabilityPoller is what a screen holds on to: it swaps sessions
when the context changes and forwards snapshots to subscribers.

Session lifecycle:

  idle ──start──► active ◄──gate opens── paused
                    │ ──gate closes──────► │
                    └──stop / key change──► terminated ◄──┘

Entering active always fetches immediately. A terminated session never
touches state again, even if a response it asked for arrives later.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Literal

from src.adapters.ports import AvailabilityGateway
from src.config import SyncConfig
from src.domain.availability_error import AvailabilityError, classify_availability_error, no_slots_error
from src.domain.cache_store import CacheEntry, serialize_key
from src.domain.slots import AvailabilityResponse, AvailableSlot, ReservationContext
from src.query_executor import QueryExecutor

log = logging.getLogger(__name__)

PollState = Literal["idle", "active", "paused", "terminated"]


@dataclass(frozen=True)
class Gate:
    """Conditions that must all hold for polling to run. Read-only inputs."""
    authenticated: bool = False
    focused: bool = True
    enabled: bool = True

    @property
    def is_open(self) -> bool:
        return self.authenticated and self.focused and self.enabled


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """What a screen renders for the current reservation context."""
    context: ReservationContext | None = None
    state: PollState = "idle"
    slots: list[AvailableSlot] = field(default_factory=list)
    all_slots: list[AvailableSlot] = field(default_factory=list)
    is_loading: bool = False
    error: BaseException | None = None                 # raw failure of the last fetch
    availability_error: AvailabilityError | None = None
    last_updated: datetime | None = None
    has_result: bool = False

    @property
    def display_error(self) -> AvailabilityError | None:
        """The classified error, or no_slots when a loaded result has nothing bookable."""
        if self.availability_error is not None:
            return self.availability_error
        if self.has_result and not any(s.is_available for s in self.slots):
            return no_slots_error()
        return None


SnapshotListener = Callable[[AvailabilitySnapshot], None]


def _describe(context: ReservationContext) -> str:
    return f"restaurant={context.restaurant_id} date={context.date} party={context.party_size}"


class PollingSession:
    """
    Polls one reservation context. Single use: once stopped it stays stopped.

    on_change(session, snapshot) is called after every state change.
    """

    def __init__(
        self,
        context: ReservationContext,
        executor: QueryExecutor,
        gateway: AvailabilityGateway,
        gate: Gate,
        on_change: Callable[["PollingSession", AvailabilitySnapshot], None],
        interval_ms: int,
        stale_after_ms: float,
    ):
        self.context = context
        self.key = context.query_key()
        self._executor = executor
        self._gateway = gateway
        self._gate = gate
        self._on_change = on_change
        self._interval_s = interval_ms / 1000
        self._stale_after_ms = stale_after_ms
        self._state: PollState = "idle"
        self._task: asyncio.Task | None = None
        self._unobserve: Callable[[], None] | None = None
        self._data_version = 0
        self._failures_seen = 0
        self._snapshot = AvailabilitySnapshot(context=context)

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def snapshot(self) -> AvailabilitySnapshot:
        return self._snapshot

    # -- lifecycle ---------------------------------------------------------------

    def start(self) -> None:
        """Begin polling if the gate is open, otherwise wait paused."""
        if self._state != "idle":
            return
        self._unobserve = self._executor.observe(self.key, self._on_entry, self._stale_after_ms)
        entry = self._executor.get(self.key)
        if entry is not None:
            # errors recorded before this session existed aren't ours to show
            self._failures_seen = entry.failure_count
            self._apply_entry(entry, emit=False)
        if self._gate.is_open:
            self._activate()
        else:
            self._pause()

    def set_gate(self, gate: Gate) -> None:
        if self._state in ("idle", "terminated"):
            self._gate = gate
            return
        self._gate = gate
        if gate.is_open and self._state == "paused":
            self._activate()
        elif not gate.is_open and self._state == "active":
            self._pause()

    def stop(self) -> None:
        """Cancel the timer and detach from the cache. Late responses are ignored."""
        if self._state == "terminated":
            return
        self._cancel_timer()
        if self._unobserve is not None:
            self._unobserve()
            self._unobserve = None
        self._state = "terminated"
        self._set(emit=False, state="terminated", is_loading=False)
        log.info("%s polling stopped", _describe(self.context))

    async def refresh(self) -> None:
        """Fetch now, even if a scheduled fetch is in flight. No-op unless active."""
        if self._state != "active":
            return
        try:
            await self._executor.refetch(self.key, self._fetch, self._stale_after_ms)
        except Exception as exc:
            log.debug("%s manual refresh failed: %s", _describe(self.context), exc)
        self._apply_current()

    def _activate(self) -> None:
        self._state = "active"
        log.info("%s polling every %.0fs", _describe(self.context), self._interval_s)
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._set(state="active")

    def _pause(self) -> None:
        self._cancel_timer()
        self._state = "paused"
        log.info("%s polling paused (gate=%s)", _describe(self.context), self._gate)
        self._set(state="paused", is_loading=False)

    def _cancel_timer(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    # -- polling loop ------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            await self._tick()
            await asyncio.sleep(self._interval_s)

    async def _tick(self) -> None:
        if not self._snapshot.has_result and not self._snapshot.is_loading:
            self._set(is_loading=True)
        try:
            await self._executor.fetch(self.key, self._fetch, self._stale_after_ms)
        except Exception as exc:
            # recorded on the cache entry; keep polling at the same pace
            log.debug("%s tick failed: %s", _describe(self.context), exc)
        self._apply_current()

    async def _fetch(self) -> AvailabilityResponse:
        return await self._gateway.get_available_slots(
            self.context.restaurant_id, self.context.date, self.context.party_size
        )

    # -- applying results --------------------------------------------------------

    def _on_entry(self, entry: CacheEntry) -> None:
        self._apply_entry(entry)

    def _apply_current(self) -> None:
        entry = self._executor.get(self.key)
        if entry is not None:
            self._apply_entry(entry)

    def _apply_entry(self, entry: CacheEntry, emit: bool = True) -> None:
        if self._state == "terminated":
            return
        changes = {}
        if entry.has_data and entry.data_version > self._data_version:
            self._data_version = entry.data_version
            response: AvailabilityResponse = entry.value
            changes.update(
                slots=list(response.slots),
                all_slots=list(response.all_slots),
                has_result=True,
                error=None,
                availability_error=None,
                last_updated=datetime.now(timezone.utc),
            )
        if entry.failure_count > self._failures_seen:
            self._failures_seen = entry.failure_count
            if entry.error is not None:
                changes.update(error=entry.error, availability_error=classify_availability_error(entry.error))
        if not changes:
            return
        changes["is_loading"] = False
        self._set(emit=emit, **changes)

    def _set(self, emit: bool = True, **changes) -> None:
        self._snapshot = replace(self._snapshot, **changes)
        if emit:
            self._on_change(self, self._snapshot)


class AvailabilityPoller:
    """
    The object a screen holds: feed it the current context and gate,
    subscribe to snapshots, detach on unmount.
    """

    def __init__(
        self,
        executor: QueryExecutor,
        gateway: AvailabilityGateway,
        config: SyncConfig | None = None,
        gate: Gate | None = None,
    ):
        self._executor = executor
        self._gateway = gateway
        self._cfg = config or SyncConfig()
        self._gate = gate or Gate()
        self._session: PollingSession | None = None
        self._detached = False
        self._snapshot = AvailabilitySnapshot()
        self._listeners: dict[int, SnapshotListener] = {}
        self._listener_ids = itertools.count(1)

    @property
    def state(self) -> PollState:
        if self._session is None:
            return "terminated" if self._detached else "idle"
        return self._session.state

    @property
    def snapshot(self) -> AvailabilitySnapshot:
        return self._snapshot

    @property
    def gate(self) -> Gate:
        return self._gate

    @property
    def session(self) -> PollingSession | None:
        return self._session

    def watch(self, context: ReservationContext | None) -> None:
        """
        Poll context from now on.

        A different restaurant, date or party size replaces the session: the
        old one is stopped before the new one issues its first fetch. The same
        context again is a no-op.
        """
        if (
            context is not None
            and self._session is not None
            and self._session.state != "terminated"
            and serialize_key(self._session.key) == serialize_key(context.query_key())
        ):
            return

        self._stop_session()
        self._detached = False
        if context is None or not context.is_complete:
            log.info("no pollable context, idle")
            self._publish(AvailabilitySnapshot(context=context))
            return

        session = PollingSession(
            context=context,
            executor=self._executor,
            gateway=self._gateway,
            gate=self._gate,
            on_change=self._on_session_change,
            interval_ms=self._cfg.poll_interval_ms,
            stale_after_ms=self._cfg.availability_stale_ms,
        )
        self._session = session
        self._publish(session.snapshot)
        session.start()

    def set_gate(
        self,
        authenticated: bool | None = None,
        focused: bool | None = None,
        enabled: bool | None = None,
    ) -> None:
        changes = {
            name: value
            for name, value in (("authenticated", authenticated), ("focused", focused), ("enabled", enabled))
            if value is not None
        }
        self._gate = replace(self._gate, **changes)
        if self._session is not None:
            self._session.set_gate(self._gate)

    async def refresh(self) -> None:
        if self._session is not None:
            await self._session.refresh()

    def detach(self) -> None:
        """Consumer is going away: stop polling for good and publish the terminated snapshot."""
        self._stop_session()
        self._detached = True
        self._publish(replace(self._snapshot, state="terminated", is_loading=False))

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        listener_id = next(self._listener_ids)
        self._listeners[listener_id] = listener
        return lambda: self._listeners.pop(listener_id, None)

    def _stop_session(self) -> None:
        if self._session is not None:
            self._session.stop()
            self._session = None

    def _on_session_change(self, session: PollingSession, snapshot: AvailabilitySnapshot) -> None:
        if session is not self._session:
            return
        self._publish(snapshot)

    def _publish(self, snapshot: AvailabilitySnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners.values()):
            try:
                listener(snapshot)
            except Exception:
                log.exception("snapshot listener failed")
