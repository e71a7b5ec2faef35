"""
In-process cache namespace for the Catalog Service.

Each namespace is a bounded table with two deadlines per entry: a write
deadline (``expire_after_write``) handled by :class:`cachetools.TTLCache`,
and an idle deadline (``expire_after_access``) checked on every read. An
entry is gone as soon as either deadline passes. Size-bound eviction is
the LRU policy of ``TTLCache``.

Values are deep-copied on the way in and on the way out, so callers never
share mutable state with the table.

Every ``invalidate_all`` bumps the namespace generation. A read-through
that started before an invalidation must not repopulate the namespace
afterwards; it passes the generation it observed to ``put``.
"""

import copy
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

from cachetools import TTLCache

from shared.logging import get_logger


@dataclass(frozen=True)
class CachePolicy:
    """Capacity and expiry bounds shared by every namespace."""
    initial_capacity: int = 100
    maximum_size: int = 10000
    expire_after_write: float = 300.0
    expire_after_access: float = 600.0


class _Entry:
    __slots__ = ("value", "accessed_at")

    def __init__(self, value: Any, accessed_at: float):
        self.value = value
        self.accessed_at = accessed_at


_MISSING = object()


class NamespaceCache:
    """Bounded, time-expiring key/value table for one query shape."""

    def __init__(
        self,
        name: str,
        policy: Optional[CachePolicy] = None,
        timer: Callable[[], float] = time.monotonic,
        on_hit: Optional[Callable[[str], None]] = None,
        on_miss: Optional[Callable[[str], None]] = None,
    ):
        self.name = name
        self.policy = policy or CachePolicy()
        self.logger = get_logger(f"catalog.cache.{name}")
        self._timer = timer
        self._on_hit = on_hit
        self._on_miss = on_miss
        self._lock = threading.RLock()
        self._entries: TTLCache = TTLCache(
            maxsize=self.policy.maximum_size,
            ttl=self.policy.expire_after_write,
            timer=timer,
        )
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self._generation = 0

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the cached value for ``key`` or ``default`` on a miss."""
        value = self._lookup(key)
        if value is _MISSING:
            return default
        return value

    def _lookup(self, key: Hashable) -> Any:
        with self._lock:
            now = self._timer()
            entry = self._entries.get(key)
            if entry is not None and self._idle_expired(entry, now):
                del self._entries[key]
                entry = None

            if entry is None:
                self.misses += 1
                hit = False
            else:
                entry.accessed_at = now
                self.hits += 1
                hit = True

        if hit:
            if self._on_hit:
                self._on_hit(self.name)
            return copy.deepcopy(entry.value)

        if self._on_miss:
            self._on_miss(self.name)
        return _MISSING

    @property
    def generation(self) -> int:
        """Count of full invalidations so far."""
        with self._lock:
            return self._generation

    def put(self, key: Hashable, value: Any, generation: Optional[int] = None) -> bool:
        """Insert or overwrite ``key``; both deadlines restart.

        With ``generation`` set, the write is dropped if the namespace was
        invalidated since that generation was read. Returns whether the
        value was stored.
        """
        stored = copy.deepcopy(value)
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entries[key] = _Entry(stored, self._timer())
        return True

    def invalidate_all(self) -> int:
        """Remove every entry. Returns the number of entries dropped."""
        with self._lock:
            self._entries.expire()
            dropped = len(self._entries)
            self._entries.clear()
            self._generation += 1
            self.evictions += dropped
        if dropped:
            self.logger.debug("Namespace invalidated", namespace=self.name, dropped=dropped)
        return dropped

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        """Hit/miss counters and policy bounds for observability."""
        with self._lock:
            total = self.hits + self.misses
            return {
                "size": len(self),
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": self.hits / total if total else 0.0,
                "evictions": self.evictions,
                "maximum_size": self.policy.maximum_size,
                "expire_after_write_seconds": self.policy.expire_after_write,
                "expire_after_access_seconds": self.policy.expire_after_access,
            }

    def _idle_expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.accessed_at >= self.policy.expire_after_access
