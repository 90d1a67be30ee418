"""
Tests for the TTL cache.
"""

from __future__ import annotations

import pytest

from .cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# --- Basic Tests ---


def test_get_missing_returns_none(clock: FakeClock) -> None:
    """Test a miss returns None and is counted."""
    cache: TTLCache[str, int] = TTLCache(max_size=10, ttl_seconds=60, clock=clock)
    assert cache.get("absent") is None
    assert cache.stats()["misses"] == 1


def test_set_then_get(clock: FakeClock) -> None:
    """Test stored values are returned before expiry."""
    cache: TTLCache[str, list[str]] = TTLCache(max_size=10, ttl_seconds=60, clock=clock)
    cache.set("query", ["a", "b"])
    assert cache.get("query") == ["a", "b"]
    assert cache.stats()["hits"] == 1


def test_invalid_max_size() -> None:
    """Test a cache must hold at least one entry."""
    with pytest.raises(ValueError):
        TTLCache(max_size=0)


# --- Expiry Tests ---


def test_entry_expires_after_ttl(clock: FakeClock) -> None:
    """Test entries are gone once their TTL elapses."""
    cache: TTLCache[str, int] = TTLCache(max_size=10, ttl_seconds=60, clock=clock)
    cache.set("k", 1)

    clock.now = 59.9
    assert cache.get("k") == 1

    clock.now = 60.0
    assert cache.get("k") is None
    assert len(cache) == 0


def test_overwrite_refreshes_ttl(clock: FakeClock) -> None:
    """Test setting an existing key restarts its TTL."""
    cache: TTLCache[str, int] = TTLCache(max_size=10, ttl_seconds=60, clock=clock)
    cache.set("k", 1)
    clock.now = 50
    cache.set("k", 2)
    clock.now = 100
    assert cache.get("k") == 2


# --- Eviction Tests ---


def test_lru_eviction_when_full(clock: FakeClock) -> None:
    """Test the least recently used entry is evicted first."""
    cache: TTLCache[str, int] = TTLCache(max_size=3, ttl_seconds=60, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    cache.get("a")
    cache.set("d", 4)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert cache.get("d") == 4


def test_expired_entries_evicted_before_live_ones(clock: FakeClock) -> None:
    """Test eviction drops expired entries before touching live ones."""
    cache: TTLCache[str, int] = TTLCache(max_size=2, ttl_seconds=10, clock=clock)
    cache.set("old", 1)
    clock.now = 5
    cache.set("fresh", 2)
    clock.now = 11
    cache.set("new", 3)

    assert cache.get("fresh") == 2
    assert cache.get("new") == 3
    assert len(cache) == 2


def test_size_never_exceeds_max(clock: FakeClock) -> None:
    """Test the cache stays bounded."""
    cache: TTLCache[int, int] = TTLCache(max_size=20, ttl_seconds=60, clock=clock)
    for i in range(100):
        cache.set(i, i)
    assert len(cache) <= 20
    assert cache.get(99) == 99


# --- Batch Tests ---


def test_get_many_splits_found_and_missing(clock: FakeClock) -> None:
    """Test batch lookup reports hits and misses."""
    cache: TTLCache[str, str] = TTLCache(max_size=10, ttl_seconds=60, clock=clock)
    cache.set_many({"1": "one", "2": "two"})

    found, missing = cache.get_many(["1", "3", "2"])

    assert found == {"1": "one", "2": "two"}
    assert missing == ["3"]


def test_clear_and_stats(clock: FakeClock) -> None:
    """Test clearing empties the cache and stats track lookups."""
    cache: TTLCache[str, int] = TTLCache(max_size=10, ttl_seconds=60, clock=clock)
    cache.set("a", 1)
    cache.get("a")
    cache.get("b")
    cache.clear()

    stats = cache.stats()
    assert stats["size"] == 0
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 0.5
