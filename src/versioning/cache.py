"""TTL cache for feed query results."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with TTL."""

    value: T
    expires_at: float
    created_at: float = field(default_factory=time.time)

    def is_expired(self) -> bool:
        """Check if this entry has expired."""
        return time.time() > self.expires_at


class TTLCache(Generic[T]):
    """Small thread-safe TTL cache keyed by string.

    Feed clients keep one per repository so repeated queries for the same id
    within one process (dependency walks revisit ids) do not hit the network.
    """

    def __init__(self, default_ttl: int = 600, max_entries: int = 2048):
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._cache: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[T]:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._cache[key]
                return None
            return entry.value

    def set(self, key: str, value: T, ttl: Optional[int] = None) -> None:
        """Cache a value, evicting the oldest tenth when over capacity."""
        effective_ttl = ttl if ttl is not None else self._default_ttl
        with self._lock:
            self._cache[key] = CacheEntry(value=value, expires_at=time.time() + effective_ttl)
            if len(self._cache) > self._max_entries:
                oldest = sorted(self._cache.items(), key=lambda kv: kv[1].created_at)
                for stale_key, _ in oldest[: max(1, self._max_entries // 10)]:
                    del self._cache[stale_key]

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
