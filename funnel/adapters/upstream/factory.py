"""Factory for the upstream client."""

from funnel.adapters.upstream.base import AbstractUpstreamClient
from funnel.adapters.upstream.httpx_client import HttpxUpstreamClient
from funnel.core.config import UpstreamSettings, settings
from funnel.core.errors import ValidationAppError


def create_upstream_client(upstream_settings: UpstreamSettings | None = None) -> AbstractUpstreamClient:
    """Build the upstream client from UPSTREAM_* settings.

    Raises:
        ValidationAppError: If the base URL is not an http(s) URL.
    """
    cfg = upstream_settings or settings.upstream

    if not cfg.base_url.startswith(("http://", "https://")):
        raise ValidationAppError(
            code="upstream_invalid_base_url",
            message="UPSTREAM_BASE_URL must start with http:// or https://",
        )

    return HttpxUpstreamClient(
        base_url=cfg.base_url,
        timeout_seconds=cfg.timeout_seconds,
    )
