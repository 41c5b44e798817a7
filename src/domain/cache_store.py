"""
CacheStore port: last known result of every cacheable query.

Keyed by QueryKey: a tuple of primitives such as
("availability", 12, "2026-04-01", 2). Two keys are the same query when
their serialized forms are equal, so structurally identical tuples share
one entry regardless of identity.

Only the QueryExecutor writes to a store. Everything else reads through
the executor.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal

QueryKey = tuple
QueryStatus = Literal["empty", "loading", "success", "error"]


def serialize_key(key: QueryKey) -> str:
    """Canonical string form of a key; equality of keys is equality of this."""
    return json.dumps(list(key), separators=(",", ":"), sort_keys=True, default=str)


def key_has_prefix(key: QueryKey, prefix: QueryKey) -> bool:
    return len(key) >= len(prefix) and serialize_key(key[: len(prefix)]) == serialize_key(prefix)


@dataclass(frozen=True)
class CacheEntry:
    key: QueryKey
    value: Any = None
    fetched_at: float | None = None     # ms, executor clock; None = never fetched or invalidated
    stale_after_ms: float = 0
    status: QueryStatus = "empty"
    error: BaseException | None = None  # last applied failure
    data_version: int = 0               # successful writes so far
    failure_count: int = 0              # failed fetches applied so far

    @property
    def has_data(self) -> bool:
        return self.data_version > 0

    def is_stale(self, now_ms: float, window_ms: float) -> bool:
        if self.fetched_at is None:
            return True
        return now_ms - self.fetched_at >= window_ms


class CacheStore(ABC):
    """
    Port: hold CacheEntry objects keyed by query.

    Implementations must treat keys structurally (see serialize_key).
    """

    @abstractmethod
    def get(self, key: QueryKey) -> CacheEntry | None:
        """Return the entry for key, or None if never stored."""
        ...

    @abstractmethod
    def put(self, entry: CacheEntry) -> None:
        """Store entry, replacing any entry with the same key."""
        ...

    @abstractmethod
    def delete(self, key: QueryKey) -> None:
        """Remove the entry for key without raising if absent."""
        ...

    @abstractmethod
    def keys(self) -> list[QueryKey]:
        """All stored keys, oldest insertion first."""
        ...

    @abstractmethod
    def clear(self) -> None:
        ...
