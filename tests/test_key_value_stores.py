"""Unit tests for key-value store backends and the backend factory."""

import asyncio
import threading
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import FakeClock
from funnel.adapters.store.factory import create_key_value_store
from funnel.adapters.store.in_memory import InMemoryTTLStore
from funnel.adapters.store.redis_store import RedisKeyValueStore
from funnel.core.config import StoreSettings
from funnel.core.errors import StoreAppError, ValidationAppError


def test_put_and_get_updates_hit_miss_counters(backend: InMemoryTTLStore) -> None:
    assert asyncio.run(backend.get("missing")) is None

    asyncio.run(backend.put("key", "value", ttl_seconds=10))
    assert asyncio.run(backend.get("key")) == "value"

    stats = backend.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["entries"] == 1


def test_entry_expires_after_ttl(backend: InMemoryTTLStore, clock: FakeClock) -> None:
    asyncio.run(backend.put("key", "value", ttl_seconds=5))

    clock.advance(4)
    assert asyncio.run(backend.get("key")) == "value"

    clock.advance(1)
    assert asyncio.run(backend.get("key")) is None
    assert backend.stats()["evictions"] == 1


def test_rewrite_refreshes_ttl(backend: InMemoryTTLStore, clock: FakeClock) -> None:
    asyncio.run(backend.put("key", "v1", ttl_seconds=5))
    clock.advance(4)
    asyncio.run(backend.put("key", "v2", ttl_seconds=5))
    clock.advance(4)

    assert asyncio.run(backend.get("key")) == "v2"


def test_lru_eviction_prefers_expired_then_least_recent(clock: FakeClock) -> None:
    store = InMemoryTTLStore(max_entries=2, clock=clock)
    asyncio.run(store.put("short", "s", ttl_seconds=1))
    asyncio.run(store.put("a", "1", ttl_seconds=100))
    clock.advance(2)

    asyncio.run(store.put("b", "2", ttl_seconds=100))
    assert asyncio.run(store.get("a")) == "1"

    # "a" was touched, so "b" is least recently used
    asyncio.run(store.put("c", "3", ttl_seconds=100))
    assert asyncio.run(store.get("a")) == "1"
    assert asyncio.run(store.get("c")) == "3"
    assert asyncio.run(store.get("b")) is None


def test_clear_resets_state(backend: InMemoryTTLStore) -> None:
    asyncio.run(backend.put("a", "1", ttl_seconds=10))
    asyncio.run(backend.get("a"))

    backend.clear()

    assert backend.stats() == {
        "max_entries": None,
        "entries": 0,
        "hits": 0,
        "misses": 0,
        "evictions": 0,
    }


def test_invalid_arguments(backend: InMemoryTTLStore) -> None:
    with pytest.raises(ValueError):
        InMemoryTTLStore(max_entries=0)

    with pytest.raises(ValueError):
        asyncio.run(backend.put("k", "v", ttl_seconds=0))


def test_thread_safety_under_concurrent_puts() -> None:
    store = InMemoryTTLStore()
    total_keys = 50

    def _writer(idx: int) -> None:
        asyncio.run(store.put(f"k-{idx}", str(idx), ttl_seconds=30))

    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(total_keys)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.stats()["entries"] == total_keys
    assert asyncio.run(store.get("k-25")) == "25"


def test_redis_store_uses_get_and_set_with_expiry() -> None:
    client = AsyncMock()
    client.get.return_value = b'{"requestTimestamps": [1]}'
    store = RedisKeyValueStore(client)

    assert asyncio.run(store.get("k")) == b'{"requestTimestamps": [1]}'
    asyncio.run(store.put("k", "{}", ttl_seconds=259260))

    client.get.assert_awaited_once_with("k")
    client.set.assert_awaited_once_with("k", "{}", ex=259260)


def test_redis_store_wraps_backend_errors() -> None:
    client = AsyncMock()
    client.get.side_effect = RedisConnectionError("down")
    client.set.side_effect = TimeoutError("slow")
    store = RedisKeyValueStore(client)

    with pytest.raises(StoreAppError) as read_exc:
        asyncio.run(store.get("k"))
    assert read_exc.value.code == "store_read_failed"

    with pytest.raises(StoreAppError) as write_exc:
        asyncio.run(store.put("k", "{}", ttl_seconds=10))
    assert write_exc.value.code == "store_write_failed"


def test_factory_builds_memory_backend() -> None:
    store = create_key_value_store(StoreSettings(backend="memory", memory_max_entries=10))

    assert isinstance(store, InMemoryTTLStore)
    assert store.max_entries == 10


def test_factory_builds_redis_backend() -> None:
    store = create_key_value_store(
        StoreSettings(backend="redis", redis_url="redis://localhost:6379/0")
    )

    assert isinstance(store, RedisKeyValueStore)


def test_factory_requires_redis_url() -> None:
    with pytest.raises(ValidationAppError) as exc:
        create_key_value_store(StoreSettings(backend="redis", redis_url=None))

    assert exc.value.code == "store_missing_redis_url"


def test_factory_rejects_unknown_backend() -> None:
    with pytest.raises(ValidationAppError) as exc:
        create_key_value_store(StoreSettings(backend="memcached"))

    assert exc.value.code == "store_unknown_backend"
