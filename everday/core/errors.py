"""Error normalization and handlers."""

import logging
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from everday.core.logging import get_session_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, session_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.session_id = session_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class StoreError(AppError):
    """Raised when the authoritative store rejects or fails a request."""
    code = "store_error"
    status_code = 502


class MigrationError(AppError):
    """Raised when guest data could not be merged into an account."""
    code = "migration_failed"
    status_code = 502

    def __init__(self, message: str, *, domain: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.domain = domain


class StorageQuotaExceededError(AppError):
    code = "storage_quota_exceeded"
    status_code = 507


def _extract_session_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        request.headers.get("x-session-id")
        or get_session_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, session_id: str) -> dict:
    return {
        "error": {"code": code, "message": message, "session_id": session_id},
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    sid = exc.session_id or _extract_session_id(request)
    payload = _error_payload(exc.code, exc.message, sid)
    logger = logging.getLogger("everday")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"session_id": sid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-session-id"] = sid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    sid = _extract_session_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, sid)
    logger = logging.getLogger("everday")
    logger.warning("http.error", extra={"session_id": sid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-session-id"] = sid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    sid = _extract_session_id(request)
    logger = logging.getLogger("everday")
    logger.error("unhandled.exception", exc_info=True, extra={"session_id": sid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", sid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-session-id"] = sid
    return response
