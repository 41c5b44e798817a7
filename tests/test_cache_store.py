"""
Contract tests for CacheStore implementations, plus CacheEntry staleness.
"""

from src.adapters.memory_cache_store import InMemoryCacheStore
from src.domain.cache_store import CacheEntry, key_has_prefix, serialize_key
from tests.contracts.cache_store_contract import CacheStoreContract


class TestInMemoryCacheStore(CacheStoreContract):

    def create_store(self):
        return InMemoryCacheStore()

    def test_isolation_between_instances(self):
        """Two in-memory instances must not share state."""
        s1 = InMemoryCacheStore()
        s2 = InMemoryCacheStore()
        s1.put(CacheEntry(key=("restaurants", "detail", 1), value={}))
        assert s2.get(("restaurants", "detail", 1)) is None
        assert len(s1) == 1


def test_serialize_key_is_structural():
    assert serialize_key(("a", 1, "x")) == serialize_key(tuple(["a", 1, "x"]))
    assert serialize_key(("a", 1)) != serialize_key(("a", "1"))


def test_key_has_prefix():
    key = ("restaurants", "top", "pizza", 1.0, 2.0, 5)
    assert key_has_prefix(key, ("restaurants",))
    assert key_has_prefix(key, ("restaurants", "top"))
    assert key_has_prefix(key, ())
    assert not key_has_prefix(key, ("availability",))
    assert not key_has_prefix(("restaurants",), ("restaurants", "top"))


def test_entry_never_fetched_is_stale():
    assert CacheEntry(key=("a",)).is_stale(now_ms=0, window_ms=60_000)


def test_entry_stale_once_window_elapsed():
    entry = CacheEntry(key=("a",), fetched_at=1_000)
    assert not entry.is_stale(now_ms=1_500, window_ms=1_000)
    assert entry.is_stale(now_ms=2_000, window_ms=1_000)


def test_zero_window_is_always_stale():
    entry = CacheEntry(key=("a",), fetched_at=1_000)
    assert entry.is_stale(now_ms=1_000, window_ms=0)
