import asyncio

import pytest

from chat_agent.cache.prompt_cache import PromptCache
from chat_agent.cache.store import TTLStore
from chat_agent.config import CacheConfig


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_zero_ttl_is_a_miss_on_next_get() -> None:
    cache = PromptCache(clock=FakeClock())

    cache.set("hello", "BASE_SYSTEM", ttl=0)

    assert cache.get("hello", "BASE_SYSTEM") is None
    assert cache.stats().misses == 1


def test_category_picks_default_ttl() -> None:
    clock = FakeClock()
    cache = PromptCache(clock=clock)
    cache.set("static", "BASE_SYSTEM")
    cache.set("temporal", "TEMPORAL_CONTEXT")
    cache.set("dynamic", "USER_CONTEXT")

    clock.now += 6 * 60
    assert cache.get("static", "BASE_SYSTEM") == "static"
    assert cache.get("temporal", "TEMPORAL_CONTEXT") == "temporal"
    assert cache.get("dynamic", "USER_CONTEXT") is None

    clock.now += 60 * 60
    assert cache.get("temporal", "TEMPORAL_CONTEXT") is None
    assert cache.get("static", "BASE_SYSTEM") == "static"


def test_stats_track_hits_misses_and_memory() -> None:
    cache = PromptCache(clock=FakeClock())
    cache.preload({"BASE_SYSTEM": "abcd", "EXAMPLES": "xy"})

    assert cache.get("abcd", "BASE_SYSTEM") == "abcd"
    assert cache.get("abcd", "EXAMPLES") is None

    stats = cache.stats()
    assert stats.hits == 1
    assert stats.misses == 1
    assert stats.total_requests == 2
    assert stats.efficiency_pct == pytest.approx(50.0)
    assert stats.approx_memory_bytes == (4 + 2) * 2
    assert stats.entries == 2

    info = cache.info()
    assert info.size == 2
    assert all(key.split("_")[0] in {"BASE", "EXAMPLES"} for key in info.keys)
    assert info.oldest_entry_at is not None


def test_key_includes_category() -> None:
    assert PromptCache.make_key("same", "A") != PromptCache.make_key("same", "B")
    assert PromptCache.make_key("same", "A").startswith("A_")


def test_store_sweep_removes_only_expired_entries() -> None:
    clock = FakeClock()
    store: TTLStore[str] = TTLStore(clock=clock)
    store.set("short", "a", 10)
    store.set("forever", "b", None)

    clock.now += 11

    assert store.clean_expired() == 1
    assert len(store) == 1
    assert "forever" in store


def test_clear_resets_entries() -> None:
    cache = PromptCache(clock=FakeClock())
    cache.set("x", "EXAMPLES")

    cache.clear()

    assert cache.stats().entries == 0


@pytest.mark.asyncio
async def test_auto_cleanup_sweeps_on_interval() -> None:
    clock = FakeClock()
    cache = PromptCache(CacheConfig(sweep_interval_seconds=0.01), clock=clock)
    cache.set("stale", "USER_CONTEXT", ttl=1)
    clock.now += 5

    cache.start_auto_cleanup()
    await asyncio.sleep(0.05)
    await cache.stop_auto_cleanup()

    assert cache.stats().entries == 0
