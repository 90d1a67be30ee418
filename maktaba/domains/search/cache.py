"""
TTL Cache - Bounded in-memory cache with expiry and LRU eviction.

Used for query expansions and book metadata. Instances are created once
by the dependency layer and shared across requests.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

__all__ = ["TTLCache"]

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float
    hit_count: int = 0


class TTLCache(Generic[K, V]):
    """
    In-memory cache with TTL and least-recently-used eviction.

    Methods are synchronous; callers never await while holding an entry,
    so concurrent requests on one event loop see consistent state.

    Example:
        >>> cache: TTLCache[str, list[str]] = TTLCache(max_size=100, ttl_seconds=60)
        >>> cache.set("query", ["a", "b"])
        >>> cache.get("query")
        ['a', 'b']
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        """
        Initialize cache.

        Args:
            max_size: Maximum number of cached entries
            ttl_seconds: Time-to-live for each entry
            clock: Monotonic time source (overridable in tests)
            name: Label used in log lines
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._entries: OrderedDict[K, _Entry[V]] = OrderedDict()
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self._name = name
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K) -> V | None:
        """Get a value if present and not expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self._misses += 1
            logger.debug("%s entry expired: %s", self._name, str(key)[:32])
            return None

        entry.hit_count += 1
        self._hits += 1
        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: K, value: V) -> None:
        """Store a value, evicting least-recently-used entries when full."""
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self._max_size:
            self._evict()

        self._entries[key] = _Entry(value=value, expires_at=self._clock() + self._ttl)

    def get_many(self, keys: Iterable[K]) -> tuple[dict[K, V], list[K]]:
        """
        Look up several keys at once.

        Returns:
            (found values keyed by key, keys that missed)
        """
        found: dict[K, V] = {}
        missing: list[K] = []
        for key in keys:
            value = self.get(key)
            if value is None:
                missing.append(key)
            else:
                found[key] = value
        return found, missing

    def set_many(self, items: dict[K, V]) -> None:
        """Store several values."""
        for key, value in items.items():
            self.set(key, value)

    def clear(self) -> None:
        """Clear all entries."""
        count = len(self._entries)
        self._entries.clear()
        logger.info("Cleared %d %s entries", count, self._name)

    def stats(self) -> dict[str, int | float]:
        """Size and hit statistics."""
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
        }

    def _evict(self) -> None:
        """Drop expired entries, then the least recently used 10% if still full."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        if len(self._entries) < self._max_size:
            return

        evict_count = max(1, self._max_size // 10)
        for _ in range(evict_count):
            self._entries.popitem(last=False)
        logger.debug("Evicted %d %s entries", evict_count, self._name)
