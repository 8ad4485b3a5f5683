"""Typed load/save of ClientRateRecord over the key-value store.

Failures never reach the caller:
- a miss, an unreadable blob, or a store read error loads the zero-value
  record (the client is treated as new);
- a store write error is logged and dropped, without retry.

The admission decision therefore always completes, at the cost of
permissive accounting while the store is unhealthy.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from funnel.adapters.store.base import AbstractKeyValueStore
from funnel.core.errors import StoreAppError
from funnel.core.logging import hash_identifier
from funnel.schemas.record import ClientRateRecord

logger = logging.getLogger(__name__)


class RateRecordStore:
    """Load and persist per-client rate records.

    Attributes:
        backend: Underlying key-value store.
    """

    def __init__(self, backend: AbstractKeyValueStore) -> None:
        self.backend = backend

    async def load(self, key: str) -> ClientRateRecord:
        """Fetch the record stored under key.

        Args:
            key: Store key derived from the client identifier.

        Returns:
            ClientRateRecord: Stored record, or the zero-value record on miss,
                decode failure or store error.
        """
        try:
            blob = await self.backend.get(key)
        except StoreAppError as exc:
            logger.warning(
                "record_store.load_failed",
                extra={
                    "key_hash": hash_identifier(key),
                    "backend": self.backend.backend_name,
                    "error_code": exc.code,
                },
            )
            return ClientRateRecord.empty()
        except Exception as exc:
            # Unwrapped backend faults fail open the same way
            logger.warning(
                "record_store.load_failed",
                extra={
                    "key_hash": hash_identifier(key),
                    "backend": self.backend.backend_name,
                    "error_type": type(exc).__name__,
                },
            )
            return ClientRateRecord.empty()

        if not blob:
            return ClientRateRecord.empty()

        try:
            return ClientRateRecord.from_json(blob)
        except ValidationError as exc:
            logger.warning(
                "record_store.decode_failed",
                extra={
                    "key_hash": hash_identifier(key),
                    "backend": self.backend.backend_name,
                    "error_count": exc.error_count(),
                },
            )
            return ClientRateRecord.empty()

    async def save(self, key: str, record: ClientRateRecord, ttl: int) -> None:
        """Write record under key with a TTL in seconds; errors are dropped."""
        try:
            await self.backend.put(key, record.to_json(), ttl_seconds=ttl)
        except StoreAppError as exc:
            logger.warning(
                "record_store.save_failed",
                extra={
                    "key_hash": hash_identifier(key),
                    "backend": self.backend.backend_name,
                    "error_code": exc.code,
                    "ttl_s": ttl,
                },
            )
        except Exception as exc:
            logger.warning(
                "record_store.save_failed",
                extra={
                    "key_hash": hash_identifier(key),
                    "backend": self.backend.backend_name,
                    "error_type": type(exc).__name__,
                    "ttl_s": ttl,
                },
            )
