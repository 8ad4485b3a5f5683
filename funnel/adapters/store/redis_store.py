"""Redis-backed key-value store.

Lets several proxy processes share rate records. Each record is one plain
string key written with ``SET key value EX ttl``; there is no transaction or
compare-and-set, so concurrent writers for the same client may overwrite each
other's update.
"""

from __future__ import annotations

from redis.asyncio import Redis
from redis.exceptions import RedisError

from funnel.adapters.store.base import AbstractKeyValueStore
from funnel.core.errors import StoreAppError


class RedisKeyValueStore(AbstractKeyValueStore):
    """Store records in Redis using GET / SET EX."""

    backend_name = "redis"

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, socket_timeout_seconds: float = 1.0) -> "RedisKeyValueStore":
        """Build a store from a redis:// URL.

        Args:
            url: Redis connection URL.
            socket_timeout_seconds: Connect and read timeout.
        """
        client = Redis.from_url(
            url,
            socket_timeout=socket_timeout_seconds,
            socket_connect_timeout=socket_timeout_seconds,
        )
        return cls(client)

    async def get(self, key: str) -> bytes | None:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as exc:
            raise StoreAppError(
                code="store_read_failed",
                message="Failed to read from Redis",
                details={
                    "backend": self.backend_name,
                    "operation": "get",
                    "error_type": type(exc).__name__,
                },
            ) from exc

    async def put(self, key: str, value: str, *, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as exc:
            raise StoreAppError(
                code="store_write_failed",
                message="Failed to write to Redis",
                details={
                    "backend": self.backend_name,
                    "operation": "set",
                    "error_type": type(exc).__name__,
                },
            ) from exc

    async def close(self) -> None:
        await self._client.aclose()
