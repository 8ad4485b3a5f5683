"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a correlation id so admission decisions
and upstream failures can be matched in the logs:
- Accepts the incoming request id header or generates a UUID
- Stores it in contextvars for the lifetime of the request
- Echoes it back on the response, together with the handling duration,
  except on responses the proxy relays as-is (request.state.verbatim_response)

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from funnel.core.config import settings
from funnel.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Generate or propagate the request id and time the request.

    The header name is configurable via LOG_REQUEST_ID_HEADER. The same id is
    also forwarded upstream (see funnel.api.routes.proxy), so the origin's logs
    can be joined with ours.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with X-Request-ID and
            X-Request-Duration-ms headers added, unless the route marked it
            verbatim. A request id header already present is kept.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    if getattr(request.state, "verbatim_response", False):
        return response

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers.setdefault(header_name, request_id)
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
