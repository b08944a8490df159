"""Thread-safe TTL key/value store shared by the prompt and result caches."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    key: str
    value: V
    created_at: float
    ttl_seconds: float | None
    hit_count: int = 0

    def is_expired(self, now: float) -> bool:
        if self.ttl_seconds is None:
            return False
        return (now - self.created_at) >= self.ttl_seconds


class TTLStore(Generic[V]):
    """In-memory store with lazy expiry on read and an explicit sweep.

    An expired entry is never returned, even before a sweep removes it.
    Every operation takes the same lock; critical sections are O(1) except
    :meth:`clean_expired`.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, CacheEntry[V]] = {}
        self._lock = threading.RLock()
        self._clock = clock

    def get(self, key: str) -> CacheEntry[V] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            entry.hit_count += 1
            return entry

    def set(self, key: str, value: V, ttl_seconds: float | None) -> CacheEntry[V]:
        entry = CacheEntry(
            key=key,
            value=value,
            created_at=self._clock(),
            ttl_seconds=ttl_seconds,
        )
        with self._lock:
            self._entries[key] = entry
        return entry

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clean_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> int:
        with self._lock:
            size = len(self._entries)
            self._entries.clear()
        return size

    def entries(self) -> list[CacheEntry[V]]:
        with self._lock:
            return list(self._entries.values())
