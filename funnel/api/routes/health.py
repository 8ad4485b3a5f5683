from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe for the proxy itself.

    Served locally and never rate limited or forwarded upstream.

    Returns:
        dict: {"status": "ok"}.
    """

    return {"status": "ok"}
