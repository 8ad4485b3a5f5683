"""Factory for the configured key-value store backend."""

import logging

from funnel.adapters.store.base import AbstractKeyValueStore
from funnel.adapters.store.in_memory import InMemoryTTLStore
from funnel.adapters.store.redis_store import RedisKeyValueStore
from funnel.core.config import StoreSettings, settings
from funnel.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def create_key_value_store(store_settings: StoreSettings | None = None) -> AbstractKeyValueStore:
    """Instantiate the store backend named by STORE_BACKEND.

    Args:
        store_settings: Optional override; defaults to global settings.

    Returns:
        AbstractKeyValueStore: Configured backend.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        logger.info(
            "store.configured",
            extra={"backend": backend, "max_entries": cfg.memory_max_entries},
        )
        return InMemoryTTLStore(max_entries=cfg.memory_max_entries)

    if backend == "redis":
        if not cfg.redis_url:
            raise ValidationAppError(
                code="store_missing_redis_url",
                message="Redis store backend requires STORE_REDIS_URL environment variable",
            )
        logger.info("store.configured", extra={"backend": backend})
        return RedisKeyValueStore.from_url(
            cfg.redis_url,
            socket_timeout_seconds=cfg.socket_timeout_seconds,
        )

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: memory, redis",
    )
