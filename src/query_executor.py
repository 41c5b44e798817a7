"""
Query executor: stale-while-revalidate fetching over a CacheStore.

Every cacheable query (restaurant lists, restaurant detail, cuisine stats,
availability) goes through fetch():

  1. fresh entry      → cached value, no network call
  2. stale entry      → cached value now, refetch in the background
  3. no data yet      → wait for the fetch
  4. fetch in flight  → join it instead of issuing another request

Failures never erase data: the entry flips to status "error" and keeps its
last good value. Observers are called back after every applied completion.

Completions are applied in issuance order. When a forced refetch overlaps
an older request, whichever was issued last wins even if it resolves first.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable

from src.config import SyncConfig
from src.domain.cache_store import CacheEntry, CacheStore, QueryKey, key_has_prefix, serialize_key

log = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]
EntryListener = Callable[[CacheEntry], None]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


def _consume_exception(task: asyncio.Task) -> None:
    # Background revalidations have nobody awaiting them; failures are
    # already recorded on the entry.
    if not task.cancelled():
        task.exception()


@dataclass
class _Observer:
    listener: EntryListener
    stale_after_ms: float | None


class QueryExecutor:
    """
    Owns the cache bookkeeping for one CacheStore.

    All methods must be called from the same event loop.
    """

    def __init__(
        self,
        store: CacheStore,
        config: SyncConfig | None = None,
        clock: Callable[[], float] = _monotonic_ms,
    ):
        self._store = store
        self._cfg = config or SyncConfig()
        self._clock = clock
        self._in_flight: dict[str, asyncio.Task] = {}
        self._pending: dict[str, int] = {}          # requests started and not yet settled, per key
        self._issued: dict[str, int] = {}
        self._applied: dict[str, int] = {}
        self._observers: dict[str, dict[int, _Observer]] = {}
        self._unobserved_since: dict[str, float] = {}
        self._observer_ids = itertools.count(1)

    # -- reads -------------------------------------------------------------------

    def get(self, key: QueryKey) -> CacheEntry | None:
        return self._store.get(key)

    def is_fetching(self, key: QueryKey) -> bool:
        return serialize_key(key) in self._in_flight

    def effective_window(self, key: QueryKey, stale_after_ms: float | None = None) -> float:
        """Shortest stale window requested for key, by this call or any observer."""
        requested = self._cfg.default_stale_ms if stale_after_ms is None else stale_after_ms
        windows = [requested]
        for observer in self._observers.get(serialize_key(key), {}).values():
            if observer.stale_after_ms is not None:
                windows.append(observer.stale_after_ms)
        return min(windows)

    # -- fetching ----------------------------------------------------------------

    async def fetch(self, key: QueryKey, fetch_fn: FetchFn, stale_after_ms: float | None = None) -> Any:
        """
        Return the value for key, fetching with fetch_fn when needed.

        Raises whatever fetch_fn raised only when there is no cached value
        to fall back on.
        """
        window = self.effective_window(key, stale_after_ms)
        entry = self._store.get(key)
        if entry is not None and entry.has_data:
            if not entry.is_stale(self._clock(), window):
                return entry.value
            self._ensure_fetch(key, fetch_fn, window)
            return entry.value

        task = self._ensure_fetch(key, fetch_fn, window)
        # shield: a cancelled caller must not cancel a request others share
        return await asyncio.shield(task)

    async def refetch(self, key: QueryKey, fetch_fn: FetchFn, stale_after_ms: float | None = None) -> Any:
        """Issue a new request even if one is in flight (manual refresh)."""
        window = self.effective_window(key, stale_after_ms)
        task = self._ensure_fetch(key, fetch_fn, window, force=True)
        return await asyncio.shield(task)

    def _ensure_fetch(self, key: QueryKey, fetch_fn: FetchFn, window: float, force: bool = False) -> asyncio.Task:
        skey = serialize_key(key)
        task = self._in_flight.get(skey)
        if task is not None and not force:
            log.debug("key=%s joining in-flight fetch", skey)
            return task

        seq = self._issued.get(skey, 0) + 1
        self._issued[skey] = seq
        entry = self._store.get(key) or CacheEntry(key=key)
        self._store.put(replace(entry, status="loading"))
        self._pending[skey] = self._pending.get(skey, 0) + 1

        task = asyncio.ensure_future(self._run_fetch(key, skey, seq, fetch_fn, window))
        task.add_done_callback(_consume_exception)
        self._in_flight[skey] = task
        log.debug("key=%s seq=%d fetch issued", skey, seq)
        return task

    async def _run_fetch(self, key: QueryKey, skey: str, seq: int, fetch_fn: FetchFn, window: float) -> Any:
        try:
            value = await fetch_fn()
        except asyncio.CancelledError:
            self._release(key, skey)
            raise
        except Exception as exc:
            self._release(key, skey)
            self._apply_failure(key, skey, seq, exc)
            self.collect_garbage()
            raise
        self._release(key, skey)
        result = self._apply_success(key, skey, seq, value, window)
        self.collect_garbage()
        return result

    def _release(self, key: QueryKey, skey: str) -> None:
        if self._in_flight.get(skey) is asyncio.current_task():
            del self._in_flight[skey]
        remaining = self._pending.get(skey, 0) - 1
        if remaining > 0:
            self._pending[skey] = remaining
        else:
            self._pending.pop(skey, None)
        if skey not in self._observers:
            self._unobserved_since[skey] = self._clock()
        entry = self._store.get(key)
        if entry is not None and entry.status == "loading" and skey not in self._in_flight:
            # settle status now; success/failure bookkeeping may overwrite it
            self._store.put(replace(entry, status="success" if entry.has_data else "empty"))

    def _superseded(self, skey: str, seq: int) -> bool:
        return seq < self._applied.get(skey, 0)

    def _apply_success(self, key: QueryKey, skey: str, seq: int, value: Any, window: float) -> Any:
        if self._superseded(skey, seq):
            log.debug("key=%s seq=%d superseded by seq=%d, result discarded", skey, seq, self._applied[skey])
            current = self._store.get(key)
            return current.value if current is not None and current.has_data else value

        self._applied[skey] = seq
        entry = self._store.get(key) or CacheEntry(key=key)
        entry = replace(
            entry,
            value=value,
            fetched_at=self._clock(),
            stale_after_ms=window,
            status="success",
            error=None,
            data_version=entry.data_version + 1,
        )
        self._store.put(entry)
        log.debug("key=%s seq=%d fetch applied (version=%d)", skey, seq, entry.data_version)
        self._notify(skey, entry)
        return value

    def _apply_failure(self, key: QueryKey, skey: str, seq: int, exc: Exception) -> None:
        if self._superseded(skey, seq):
            log.debug("key=%s seq=%d superseded, failure discarded: %s", skey, seq, exc)
            return

        self._applied[skey] = seq
        entry = self._store.get(key) or CacheEntry(key=key)
        entry = replace(entry, status="error", error=exc, failure_count=entry.failure_count + 1)
        self._store.put(entry)
        log.warning("key=%s seq=%d fetch failed: %s", skey, seq, exc)
        self._notify(skey, entry)

    # -- observers ---------------------------------------------------------------

    def observe(
        self,
        key: QueryKey,
        listener: EntryListener,
        stale_after_ms: float | None = None,
    ) -> Callable[[], None]:
        """
        Call listener with the new entry after each applied completion for key.

        While registered, stale_after_ms also caps the window other readers of
        the key get. Returns a function that removes the listener.
        """
        skey = serialize_key(key)
        observer_id = next(self._observer_ids)
        self._observers.setdefault(skey, {})[observer_id] = _Observer(listener, stale_after_ms)
        self._unobserved_since.pop(skey, None)

        def unsubscribe() -> None:
            observers = self._observers.get(skey)
            if not observers or observer_id not in observers:
                return
            del observers[observer_id]
            if not observers:
                del self._observers[skey]
                if self._store.get(key) is not None:
                    self._unobserved_since[skey] = self._clock()
                    self.collect_garbage()

        return unsubscribe

    def observer_count(self, key: QueryKey) -> int:
        return len(self._observers.get(serialize_key(key), {}))

    def _notify(self, skey: str, entry: CacheEntry) -> None:
        for observer in list(self._observers.get(skey, {}).values()):
            try:
                observer.listener(entry)
            except Exception:
                log.exception("key=%s listener failed", skey)

    # -- maintenance -------------------------------------------------------------

    def invalidate(self, prefix: QueryKey = ()) -> int:
        """
        Mark every entry whose key starts with prefix as stale.

        Data is kept; the next read serves it and revalidates.
        Returns the number of entries marked.
        """
        count = 0
        for key in self._store.keys():
            if key_has_prefix(key, prefix):
                entry = self._store.get(key)
                self._store.put(replace(entry, fetched_at=None))
                count += 1
        log.info("invalidated %d entr%s under prefix=%s", count, "y" if count == 1 else "ies", list(prefix))
        return count

    def collect_garbage(self) -> int:
        """
        Evict entries nobody has observed for gc_after_ms.

        Entries with an observer or a request in flight are never evicted.
        Runs after every settled fetch and whenever a key loses its last
        observer; call it directly to sweep on a timer.
        Returns the number of evicted entries.
        """
        now = self._clock()
        evicted = 0
        for key in self._store.keys():
            skey = serialize_key(key)
            if skey in self._observers or skey in self._pending:
                continue
            since = self._unobserved_since.get(skey, now - self._cfg.gc_after_ms)
            if now - since < self._cfg.gc_after_ms:
                continue
            self._store.delete(key)
            for table in (self._unobserved_since, self._issued, self._applied):
                table.pop(skey, None)
            evicted += 1
        if evicted:
            log.info("evicted %d unobserved cache entr%s", evicted, "y" if evicted == 1 else "ies")
        return evicted
