from __future__ import annotations

from funnel.api.routes.health import router as health_router
from funnel.api.routes.proxy import router as proxy_router

__all__ = ["health_router", "proxy_router"]
