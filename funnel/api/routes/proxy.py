"""Catch-all route: admission check, then forward to the upstream origin."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from funnel.adapters.upstream.base import AbstractUpstreamClient, UpstreamRequest
from funnel.adapters.upstream.factory import create_upstream_client
from funnel.core.config import settings
from funnel.core.logging import get_request_id
from funnel.core.rate_limit import (
    allowed_headers,
    build_denied_response,
    get_client_id,
    get_rate_limiter,
)
from funnel.services.rate_limiter import RateLimiterEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Proxy"])

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

_upstream: AbstractUpstreamClient | None = None


def get_upstream_client() -> AbstractUpstreamClient:
    global _upstream

    if _upstream is None:
        _upstream = create_upstream_client()
    return _upstream


async def close_upstream_client() -> None:
    global _upstream

    if _upstream is not None:
        await _upstream.close()
    _upstream = None


def _raw_path(request: Request) -> str:
    raw = request.scope.get("raw_path")
    if raw:
        return raw.decode("latin-1")
    return request.url.path


async def _to_upstream_request(request: Request) -> UpstreamRequest:
    headers = list(request.headers.items())
    request_id = get_request_id()
    header_name = settings.log.request_id_header
    if request_id and header_name.lower() not in request.headers:
        headers.append((header_name, request_id))

    return UpstreamRequest(
        method=request.method,
        path=_raw_path(request),
        query=request.url.query,
        headers=headers,
        body=await request.body(),
    )


@router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy(
    request: Request,
    limiter: RateLimiterEngine = Depends(get_rate_limiter),
    upstream: AbstractUpstreamClient = Depends(get_upstream_client),
) -> Response:
    """Admit or reject the request, forwarding admitted ones verbatim.

    Returns:
        Response: Bare 429 when denied; otherwise the upstream's status,
            end-to-end headers and body.

    Raises:
        UpstreamAppError: If the origin is unreachable (rendered as 502).
    """
    extra_headers: dict[str, str] = {}

    if settings.app.rate_limit_enabled:
        decision = await limiter.decide(get_client_id(request))
        if not decision.allowed:
            request.state.verbatim_response = True
            return build_denied_response(decision)
        extra_headers = allowed_headers(decision)

    upstream_response = await upstream.forward(await _to_upstream_request(request))
    # Relayed and 429 responses carry no headers of our own
    request.state.verbatim_response = True

    response = Response(content=upstream_response.body, status_code=upstream_response.status_code)
    # Origin headers are relayed as sent, duplicates included
    if any(name.lower() == "content-length" for name, _ in upstream_response.headers):
        del response.headers["content-length"]
    for name, value in upstream_response.headers:
        response.headers.append(name, value)
    for name, value in extra_headers.items():
        response.headers.append(name, value)
    return response
