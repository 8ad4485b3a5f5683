from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build fresh instances.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from funnel.api.routes import health_router, proxy_router
from funnel.api.routes.proxy import close_upstream_client
from funnel.core.config import settings
from funnel.core.exception_handlers import setup_exception_handlers
from funnel.core.logging import configure_logging
from funnel.core.middleware import request_id_middleware
from funnel.core.rate_limit import close_rate_limiter


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_upstream_client()
    await close_rate_limiter()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Rate Funnel",
        description=(
            "Admission filter in front of an upstream service: per-client "
            "sliding-window limits with escalating temporary bans. Admitted "
            "requests are forwarded verbatim; rejected ones get an empty 429."
        ),
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    # Health must be registered before the catch-all proxy route
    app.include_router(health_router)
    app.include_router(proxy_router)

    return app
