"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before anything imports funnel.core.config so
the settings object is built from them rather than from a local .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("UPSTREAM_BASE_URL", "http://upstream.test")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("APP_RATE_LIMIT_DEBUG_HEADERS", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from funnel.adapters.store.base import AbstractKeyValueStore  # noqa: E402
from funnel.adapters.store.in_memory import InMemoryTTLStore  # noqa: E402
from funnel.core.errors import StoreAppError  # noqa: E402
from funnel.services.rate_limiter import RateLimiterEngine  # noqa: E402
from funnel.services.record_store import RateRecordStore  # noqa: E402


class FakeClock:
    """Deterministic clock for TTL and window tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FailingStore(AbstractKeyValueStore):
    """Backend whose reads and/or writes always fail."""

    backend_name = "failing"

    def __init__(self, *, fail_get: bool = True, fail_put: bool = True) -> None:
        self.fail_get = fail_get
        self.fail_put = fail_put
        self.inner = InMemoryTTLStore()
        self.put_calls = 0

    async def get(self, key: str):
        if self.fail_get:
            raise StoreAppError(code="store_read_failed", message="boom")
        return await self.inner.get(key)

    async def put(self, key: str, value: str, *, ttl_seconds: int) -> None:
        self.put_calls += 1
        if self.fail_put:
            raise StoreAppError(code="store_write_failed", message="boom")
        await self.inner.put(key, value, ttl_seconds=ttl_seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(clock: FakeClock) -> InMemoryTTLStore:
    return InMemoryTTLStore(clock=clock)


@pytest.fixture
def record_store(backend: InMemoryTTLStore) -> RateRecordStore:
    return RateRecordStore(backend)


@pytest.fixture
def engine(record_store: RateRecordStore, clock: FakeClock) -> RateLimiterEngine:
    return RateLimiterEngine(record_store, clock=clock)
