"""
Health and readiness endpoints.

Lightweight probes for operational monitoring; no secrets in responses.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from everday.core.errors import AppError
from everday.features.store.service import get_store

logger = logging.getLogger("everday")

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness check: the authoritative store answers a count on profiles."""
    store = get_store()
    try:
        store.count("profiles")
    except AppError as exc:
        logger.error("[readyz] readiness check failed", extra={"error_code": exc.code})
        return JSONResponse(status_code=503, content={"status": "error", "detail": "store unreachable"})
    return {"status": "ok", "store": type(store).__name__}
