"""
In-memory CacheStore: the store the app runs on, and the one tests use.

Each instance is isolated; share one instance to get a process-wide cache.
"""

from src.domain.cache_store import CacheEntry, CacheStore, QueryKey, serialize_key


class InMemoryCacheStore(CacheStore):

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: QueryKey) -> CacheEntry | None:
        return self._entries.get(serialize_key(key))

    def put(self, entry: CacheEntry) -> None:
        self._entries[serialize_key(entry.key)] = entry

    def delete(self, key: QueryKey) -> None:
        self._entries.pop(serialize_key(key), None)

    def keys(self) -> list[QueryKey]:
        return [entry.key for entry in self._entries.values()]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
