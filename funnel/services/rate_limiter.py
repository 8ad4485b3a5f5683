"""Sliding-window admission with escalating temporary bans.

For each request the engine loads the client's record, refuses it outright
while a ban is active, then checks the request history against several
rolling windows. Tripping any window bans the client; repeated bans within
three days get longer, up to one day.

The engine keeps no per-client state between calls. Everything it knows
about a client comes from the store, so restarts and extra processes do not
change its answers (beyond the store's own consistency).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Final, Literal

from funnel.core.logging import hash_identifier
from funnel.schemas.record import ClientRateRecord
from funnel.services.record_store import RateRecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    """At most `limit` admitted requests in any trailing `window_seconds`."""

    window_seconds: int
    limit: int


# Ascending window size; allowed rate narrows from 1 req/s to ~0.33 req/s.
REQUEST_LIMIT_RULES: Final[tuple[RateLimitRule, ...]] = (
    RateLimitRule(window_seconds=120, limit=120),
    RateLimitRule(window_seconds=300, limit=180),
    RateLimitRule(window_seconds=600, limit=255),
    RateLimitRule(window_seconds=900, limit=293),
)

# Ban length by number of bans in the tracking window (last entry repeats).
BLOCK_DURATIONS: Final[tuple[int, ...]] = (300, 600, 1800, 3600, 86400)

BLOCK_TIMESTAMPS_WINDOW: Final[int] = 3 * 24 * 60 * 60
RECORD_TTL_SECONDS: Final[int] = BLOCK_TIMESTAMPS_WINDOW + 60

DenyReason = Literal["banned", "rate_exceeded"]


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of one admission check.

    Attributes:
        allowed: Whether the request may be forwarded upstream.
        reason: Why it was denied (None when allowed).
        record: Record state after the decision (as loaded when banned).
        rule: Rule that tripped, for rate_exceeded denials.
    """

    allowed: bool
    record: ClientRateRecord
    reason: DenyReason | None = None
    rule: RateLimitRule | None = None

    @property
    def blocked_until(self) -> int | None:
        return None if self.allowed else self.record.blocked_until

    @property
    def blocked_duration(self) -> int | None:
        return None if self.allowed else self.record.blocked_duration

    def retry_after_seconds(self, now: int) -> int | None:
        """Seconds until the ban ends, or None when allowed."""
        if self.blocked_until is None:
            return None
        return max(0, self.blocked_until - now)


def prune(timestamps: list[int], window_seconds: int, now: int) -> list[int]:
    """Keep timestamps inside the trailing window [now - window_seconds, ...]."""
    cutoff = now - window_seconds
    return [ts for ts in timestamps if ts >= cutoff]


def block_duration_for(block_count: int, durations: tuple[int, ...] = BLOCK_DURATIONS) -> int:
    """Ban length for the block_count-th ban in the tracking window.

    Args:
        block_count: Number of ban events including the current one (>= 1).
        durations: Escalation table; counts beyond its length use the last entry.
    """
    if block_count < 1:
        raise ValueError("block_count must be >= 1")
    return durations[min(block_count, len(durations)) - 1]


def make_rate_limit_key(client_id: str, *, prefix: str = "ratelimit:", suffix: str = ":v7") -> str:
    return f"{prefix}{client_id}{suffix}"


class RateLimiterEngine:
    """Admission decision over store-backed per-client records.

    Safe to share between concurrent requests: instances hold configuration
    and collaborators only. Two requests from the same client racing on the
    store may lose one update; the limits are best-effort under such races.
    """

    def __init__(
        self,
        store: RateRecordStore,
        *,
        rules: tuple[RateLimitRule, ...] = REQUEST_LIMIT_RULES,
        block_durations: tuple[int, ...] = BLOCK_DURATIONS,
        key_prefix: str = "ratelimit:",
        key_suffix: str = ":v7",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Record persistence.
            rules: Window rules, checked in order; first trip wins.
            block_durations: Escalation table in seconds.
            key_prefix: Store key namespace.
            key_suffix: Store key version tag.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If rules or block_durations are empty.
        """
        if not rules:
            raise ValueError("rules must not be empty")
        if not block_durations:
            raise ValueError("block_durations must not be empty")

        self.store = store
        self.rules = rules
        self.block_durations = block_durations
        self.key_prefix = key_prefix
        self.key_suffix = key_suffix
        self._clock = clock
        self._history_window = max(rule.window_seconds for rule in rules)

    def key_for(self, client_id: str) -> str:
        return make_rate_limit_key(client_id, prefix=self.key_prefix, suffix=self.key_suffix)

    def now(self) -> int:
        return int(self._clock())

    async def decide(self, client_id: str, now: int | None = None) -> AdmissionDecision:
        """Decide whether to admit one request from client_id.

        Args:
            client_id: Client identity (address or fallback sentinel).
            now: Current UNIX time in seconds; read from the clock when omitted.

        Returns:
            AdmissionDecision: allowed, or denied with reason "banned" /
                "rate_exceeded".
        """
        if now is None:
            now = self.now()

        key = self.key_for(client_id)
        record = await self.store.load(key)

        # Half-open: the ban is over at exactly blocked_until.
        if record.blocked_until and now < record.blocked_until:
            logger.info(
                "rate_limit.banned",
                extra={
                    "client_hash": hash_identifier(client_id),
                    "blocked_until": record.blocked_until,
                    "retry_after_s": record.blocked_until - now,
                },
            )
            return AdmissionDecision(allowed=False, reason="banned", record=record)

        timestamps = prune(record.request_timestamps, self._history_window, now)

        for rule in self.rules:
            # Count before adding the current request.
            if len(prune(timestamps, rule.window_seconds, now)) >= rule.limit:
                return await self._ban(key, client_id, record, timestamps, rule, now)

        timestamps.append(now)
        updated = record.model_copy(update={"request_timestamps": timestamps})
        await self.store.save(key, updated, RECORD_TTL_SECONDS)

        logger.debug(
            "rate_limit.allowed",
            extra={
                "client_hash": hash_identifier(client_id),
                "recent_requests": len(timestamps),
            },
        )
        return AdmissionDecision(allowed=True, record=updated)

    async def _ban(
        self,
        key: str,
        client_id: str,
        record: ClientRateRecord,
        timestamps: list[int],
        rule: RateLimitRule,
        now: int,
    ) -> AdmissionDecision:
        blocked = prune(record.blocked_timestamps, BLOCK_TIMESTAMPS_WINDOW, now)
        blocked.append(now)
        blocked = blocked[-len(self.block_durations):]

        duration = block_duration_for(len(blocked), self.block_durations)
        updated = ClientRateRecord(
            request_timestamps=timestamps,
            blocked_timestamps=blocked,
            blocked_until=now + duration,
            blocked_duration=duration,
        )
        await self.store.save(key, updated, RECORD_TTL_SECONDS)

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "client_hash": hash_identifier(client_id),
                "window_s": rule.window_seconds,
                "limit": rule.limit,
                "block_count": len(blocked),
                "block_duration_s": duration,
                "blocked_until": updated.blocked_until,
            },
        )
        return AdmissionDecision(allowed=False, reason="rate_exceeded", rule=rule, record=updated)
