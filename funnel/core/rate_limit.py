"""Rate limiting wiring for the HTTP layer.

This module connects the admission engine to FastAPI:
- client identity from proxy headers
- process-wide engine and store construction
- the bare 429 response and the optional X-Rate-Limiter-* diagnostics

Client identity: the trusted edge header, else the generic forwarded-for
header, else the literal "unknown-ip". Every request without either header
shares the "unknown-ip" bucket.
"""

from __future__ import annotations

import json
import logging

from fastapi import Request, Response, status

from funnel.adapters.store.base import AbstractKeyValueStore
from funnel.adapters.store.factory import create_key_value_store
from funnel.core.config import settings
from funnel.services.rate_limiter import AdmissionDecision, RateLimiterEngine
from funnel.services.record_store import RateRecordStore

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT_ID = "unknown-ip"

_store: AbstractKeyValueStore | None = None
_limiter: RateLimiterEngine | None = None
_limiter_config: tuple[str, str] | None = None


def get_client_id(request: Request) -> str:
    """Derive the rate-limit identity for a request.

    Args:
        request: Incoming request.

    Returns:
        str: Header value used verbatim, or UNKNOWN_CLIENT_ID.
    """

    for header in (settings.app.trusted_ip_header, settings.app.forwarded_for_header):
        value = request.headers.get(header)
        if value:
            return value
    return UNKNOWN_CLIENT_ID


def get_key_value_store() -> AbstractKeyValueStore:
    """Return the process-wide store backend, creating it on first use."""

    global _store

    if _store is None:
        _store = create_key_value_store()
    return _store


def get_rate_limiter() -> RateLimiterEngine:
    """Return the process-wide admission engine.

    The engine holds no client state, so caching it only saves rebuilding the
    store connection. If the key format settings change (primarily in tests),
    the engine is rebuilt over the same store.

    Returns:
        RateLimiterEngine: Configured engine.
    """

    global _limiter, _limiter_config

    config = (settings.app.rate_limit_key_prefix, settings.app.rate_limit_key_suffix)

    if _limiter is None or _limiter_config != config:
        _limiter = RateLimiterEngine(
            RateRecordStore(get_key_value_store()),
            key_prefix=settings.app.rate_limit_key_prefix,
            key_suffix=settings.app.rate_limit_key_suffix,
        )
        _limiter_config = config

    return _limiter


async def close_rate_limiter() -> None:
    """Close the store backend and drop cached instances (app shutdown)."""

    global _store, _limiter, _limiter_config

    if _store is not None:
        await _store.close()
    _store = None
    _limiter = None
    _limiter_config = None


def denied_headers(decision: AdmissionDecision) -> dict[str, str]:
    """Diagnostic headers for a 429 response (empty unless enabled)."""

    if not settings.app.rate_limit_debug_headers:
        return {}

    record = decision.record
    return {
        "X-Rate-Limiter-Until": str(record.blocked_until) if record.blocked_until else "null",
        "X-Rate-Limiter-Duration": (
            str(record.blocked_duration) if record.blocked_duration else "null"
        ),
        "X-Rate-Limiter-Debug-Count": str(len(record.request_timestamps)),
        "X-Rate-Limiter-Debug-BlockedTimestamps": json.dumps(record.blocked_timestamps),
        "X-Rate-Limiter-Debug-RequestTimestamps": json.dumps(record.request_timestamps),
    }


def allowed_headers(decision: AdmissionDecision) -> dict[str, str]:
    """Diagnostic headers appended to a forwarded response (empty unless enabled)."""

    if not settings.app.rate_limit_debug_headers:
        return {}

    record = decision.record
    return {
        "X-Rate-Limiter-Count": str(len(record.request_timestamps)),
        "X-Rate-Limiter-Debug-BlockedTimestamps": json.dumps(record.blocked_timestamps),
        "X-Rate-Limiter-Debug-RequestTimestamps": json.dumps(record.request_timestamps),
        "X-Rate-Limiter-Debug-BlockedUntil": (
            str(record.blocked_until) if record.blocked_until else "null"
        ),
        "X-Rate-Limiter-Debug-BlockedDuration": (
            str(record.blocked_duration) if record.blocked_duration else "null"
        ),
    }


def build_denied_response(decision: AdmissionDecision) -> Response:
    """429 with an empty body; no headers beyond the diagnostics switch."""

    return Response(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        headers=denied_headers(decision) or None,
    )
