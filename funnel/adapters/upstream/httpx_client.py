"""httpx-based upstream client."""

import logging

import httpx

from funnel.adapters.upstream.base import (
    AbstractUpstreamClient,
    UpstreamRequest,
    UpstreamResponse,
    end_to_end_headers,
)
from funnel.core.errors import UpstreamAppError

logger = logging.getLogger(__name__)


class HttpxUpstreamClient(AbstractUpstreamClient):
    """Forward requests to a single origin with a shared connection pool.

    Redirects are not followed and content is not decoded, so the client
    receives exactly what the origin sent.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the pooled async client.

        Args:
            base_url: Origin base URL, e.g. "http://origin:8080".
            timeout_seconds: Timeout for connect/read/write in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_seconds,
            follow_redirects=False,
            transport=transport,
        )

    async def forward(self, request: UpstreamRequest) -> UpstreamResponse:
        url = httpx.URL(request.path or "/")
        if request.query:
            url = url.copy_with(query=request.query.encode())
        # Host belongs to the origin; httpx sets it from base_url.
        headers = [
            (name, value)
            for name, value in end_to_end_headers(request.headers)
            if name.lower() not in {"host", "content-length"}
        ]
        outgoing = self.client.build_request(
            request.method,
            url,
            headers=headers,
            content=request.body or None,
        )

        try:
            upstream = await self.client.send(outgoing, stream=True)
            try:
                # Raw bytes: the Content-Encoding header is relayed as-is.
                body = b"".join([chunk async for chunk in upstream.aiter_raw()])
            finally:
                await upstream.aclose()
        except httpx.TimeoutException as exc:
            raise UpstreamAppError(
                code="upstream_timeout",
                message="Upstream service timed out",
                details={
                    "timeout_seconds": self.timeout_seconds,
                    "error_type": type(exc).__name__,
                },
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamAppError(
                code="upstream_unavailable",
                message="Upstream service is unavailable",
                details={"error_type": type(exc).__name__},
            ) from exc

        logger.debug(
            "upstream.response",
            extra={
                "method": request.method,
                "status_code": upstream.status_code,
                "body_bytes": len(body),
            },
        )
        return UpstreamResponse(
            status_code=upstream.status_code,
            headers=end_to_end_headers(list(upstream.headers.multi_items())),
            body=body,
        )

    async def close(self) -> None:
        await self.client.aclose()
