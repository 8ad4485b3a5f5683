from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


# Connection-scoped headers (RFC 9110 section 7.6.1); never relayed by a proxy.
HOP_BY_HOP_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)


def end_to_end_headers(headers: list[tuple[str, str]]) -> list[tuple[str, str]]:
    """Drop hop-by-hop headers, and any listed in the Connection header."""
    listed = {
        token.strip().lower()
        for name, value in headers
        if name.lower() == "connection"
        for token in value.split(",")
    }
    return [
        (name, value)
        for name, value in headers
        if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() not in listed
    ]


@dataclass(frozen=True)
class UpstreamRequest:
    method: str
    path: str
    query: str = ""
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""


class AbstractUpstreamClient(ABC):
    """Interface for forwarding admitted requests to the origin."""

    @abstractmethod
    async def forward(self, request: UpstreamRequest) -> UpstreamResponse:
        """Send request to the origin and return its response unchanged.

        Args:
            request: Method, path, query, end-to-end headers and body to send.

        Returns:
            UpstreamResponse: Status, headers and body as returned by the origin.

        Raises:
            UpstreamAppError: If the origin cannot be reached or times out.
        """
        ...

    async def close(self) -> None:
        return None
