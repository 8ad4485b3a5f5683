"""Key-value store interface.

The State Store Adapter (funnel.services.record_store) depends on this
abstraction only, so the backend can be swapped without touching the Engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractKeyValueStore(ABC):
    """Opaque blob storage with per-key expiry."""

    backend_name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> bytes | str | None:
        """Fetch the blob stored under key.

        Args:
            key: Store key.

        Returns:
            The stored blob, or None on miss/expiry.

        Raises:
            StoreAppError: If the backend cannot be read.
        """
        raise NotImplementedError

    @abstractmethod
    async def put(self, key: str, value: str, *, ttl_seconds: int) -> None:
        """Store value under key, expiring after ttl_seconds.

        Raises:
            StoreAppError: If the backend rejects or cannot perform the write.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources (connections, pools)."""
        return None
