"""In-memory TTL key-value store.

Notes:
- Per-process only: with several workers each one keeps its own records,
  so every worker enforces the limits independently.
- Thread-safe: a lock guards the shared dict. The lock is never held across
  an await.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from funnel.adapters.store.base import AbstractKeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: str
    expires_at: float


class InMemoryTTLStore(AbstractKeyValueStore):
    """Dict-backed store with per-entry expiry and optional LRU bound.

    Attributes:
        max_entries: Maximum number of stored keys (None for unlimited).
    """

    backend_name = "memory"

    def __init__(
        self,
        *,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            max_entries: Capacity before least-recently-used keys are evicted.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If max_entries is not positive.
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryTTLStore(max_entries={self.max_entries}, size={len(self._entries)}, "
            f"hits={self._hits}, misses={self._misses}, evictions={self._evictions})"
        )

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self._clock() >= entry.expires_at:
                self._evict_single(key)
                self._misses += 1
                logger.debug("store.expired", extra={"backend": self.backend_name})
                return None

            self._hits += 1
            self._entries.move_to_end(key)
            return entry.value

    async def put(self, key: str, value: str, *, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)
            self._entries.move_to_end(key)
            self._evict_if_over_capacity_locked()

    def clear(self) -> None:
        """Remove all entries and reset counters."""

        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | None]:
        """Return lightweight store metrics without exposing keys or values."""

        with self._lock:
            return {
                "max_entries": self.max_entries,
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired = [k for k, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self.max_entries is None or len(self._entries) <= self.max_entries:
            return

        # Expired entries go first so live records are not pushed out early
        self._evict_expired_locked()
        while len(self._entries) > self.max_entries:
            # popitem(last=False) removes the least recently used entry
            self._entries.popitem(last=False)
            self._evictions += 1
