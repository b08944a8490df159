"""Prompt fragment cache with TTL tiers, hit accounting and a background sweep."""

from __future__ import annotations

import asyncio
import contextlib
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from hashlib import sha256

from chat_agent.cache.store import TTLStore
from chat_agent.config import CacheConfig
from chat_agent.obs.log import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class CacheStats:
    hits: int
    misses: int
    total_requests: int
    efficiency_pct: float
    approx_memory_bytes: int
    entries: int
    last_cleared_at: str


@dataclass(slots=True)
class CacheInfo:
    size: int
    keys: list[str]
    memory_usage: str
    oldest_entry_at: str | None


class PromptCache:
    """Caches reusable text blobs keyed by a hash of content and category.

    The category picks the default TTL: static prompt fragments live for a
    day, temporal context for an hour, anything else for five minutes.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or CacheConfig()
        self._store: TTLStore[str] = TTLStore(clock=clock)
        self._hits = 0
        self._misses = 0
        self._counter_lock = threading.Lock()
        self._last_cleared_at = datetime.now(timezone.utc).isoformat()
        self._sweeper: asyncio.Task[None] | None = None

    @staticmethod
    def make_key(content: str, category: str) -> str:
        digest = sha256((content + category).encode("utf-8")).hexdigest()
        return f"{category}_{digest[:16]}"

    def ttl_for(self, category: str) -> float:
        if category in self.config.static_categories:
            return self.config.static_ttl_seconds
        if category in self.config.temporal_categories:
            return self.config.temporal_ttl_seconds
        return self.config.dynamic_ttl_seconds

    def get(self, content: str, category: str) -> str | None:
        entry = self._store.get(self.make_key(content, category))
        with self._counter_lock:
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
        logger.debug("Prompt cache hit for %s (%d chars)", category, len(content))
        return entry.value

    def set(self, content: str, category: str, ttl: float | None = None) -> None:
        ttl_seconds = self.ttl_for(category) if ttl is None else ttl
        self._store.set(self.make_key(content, category), content, ttl_seconds)
        logger.debug("Prompt cache stored %s (%d chars, ttl=%ss)", category, len(content), ttl_seconds)

    def get_or_set(self, content: str, category: str) -> str:
        cached = self.get(content, category)
        if cached is not None:
            return cached
        self.set(content, category)
        return content

    def preload(self, fragments: Mapping[str, str]) -> None:
        for category, content in fragments.items():
            self.set(content, category)
        logger.info("Preloaded %d prompt fragments", len(fragments))

    def clean_expired(self) -> int:
        removed = self._store.clean_expired()
        if removed:
            logger.info("Prompt cache evicted %d expired entries", removed)
        return removed

    def clear(self) -> None:
        removed = self._store.clear()
        self._last_cleared_at = datetime.now(timezone.utc).isoformat()
        logger.info("Prompt cache cleared (%d entries)", removed)

    def stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            total_requests=total,
            efficiency_pct=(self._hits / total * 100.0) if total else 0.0,
            approx_memory_bytes=self._memory_bytes(),
            entries=len(self._store),
            last_cleared_at=self._last_cleared_at,
        )

    def info(self) -> CacheInfo:
        entries = self._store.entries()
        oldest = min((entry.created_at for entry in entries), default=None)
        return CacheInfo(
            size=len(entries),
            keys=[entry.key for entry in entries],
            memory_usage=f"{self._memory_bytes() / 1024:.2f} KB",
            oldest_entry_at=(
                datetime.fromtimestamp(oldest, timezone.utc).isoformat()
                if oldest is not None
                else None
            ),
        )

    def start_auto_cleanup(self, interval_seconds: float | None = None) -> asyncio.Task[None]:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        interval = interval_seconds or self.config.sweep_interval_seconds
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever(interval))
        logger.info("Prompt cache sweep scheduled every %.0fs", interval)
        return self._sweeper

    async def stop_auto_cleanup(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.clean_expired()

    def _memory_bytes(self) -> int:
        # Two bytes per character approximates UTF-16 string storage.
        return sum(len(entry.value) * 2 for entry in self._store.entries())
