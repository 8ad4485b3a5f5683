"""Persisted per-client rate-limit record.

Stored as a JSON object under the client's store key:

    {
        "requestTimestamps": [1717756800, 1717756801],
        "blockedTimestamps": [1717756800],
        "blockedUntil": 1717757100,
        "blockedDuration": 300
    }

All timestamps are integer unix seconds. Decoding is tolerant per field: a
missing or wrong-shaped field falls back to its zero value without
invalidating the rest of the record.
"""

from __future__ import annotations

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
)


class ClientRateRecord(BaseModel):
    """Recent admitted requests and ban history for one client identity."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    request_timestamps: list[StrictInt] = Field(
        default_factory=list,
        alias="requestTimestamps",
        description="Admitted request times, ascending by insertion",
    )
    blocked_timestamps: list[StrictInt] = Field(
        default_factory=list,
        alias="blockedTimestamps",
        description="One entry per ban event in the tracking window (most recent last)",
    )
    blocked_until: StrictInt | None = Field(
        None,
        alias="blockedUntil",
        description="Ban end; the client is banned while now < blocked_until",
    )
    blocked_duration: StrictInt | None = Field(
        None,
        alias="blockedDuration",
        description="Length of the most recent ban in seconds (diagnostic only)",
    )

    @field_validator("request_timestamps", "blocked_timestamps", mode="wrap")
    @classmethod
    def _timestamps_or_empty(
        cls, value: Any, handler: ValidatorFunctionWrapHandler
    ) -> list[int]:
        try:
            return handler(value)
        except ValidationError:
            return []

    @field_validator("blocked_until", "blocked_duration", mode="wrap")
    @classmethod
    def _positive_int_or_none(
        cls, value: Any, handler: ValidatorFunctionWrapHandler
    ) -> int | None:
        try:
            result = handler(value)
        except ValidationError:
            return None
        # 0 carries no ban information
        return result or None

    @classmethod
    def empty(cls) -> "ClientRateRecord":
        """Zero-value record used for new clients and unreadable state."""
        return cls()

    def is_empty(self) -> bool:
        return (
            not self.request_timestamps
            and not self.blocked_timestamps
            and self.blocked_until is None
            and self.blocked_duration is None
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, payload: str | bytes) -> "ClientRateRecord":
        """Decode a stored blob.

        Raises:
            ValidationError: If the payload is not a JSON object at all.
        """
        return cls.model_validate_json(payload)
