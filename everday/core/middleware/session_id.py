import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from everday.core.logging import session_id_ctx_var


class SessionIdMiddleware(BaseHTTPMiddleware):
    """Bind the caller's session id (or a fresh one) to each request and log completion."""

    def __init__(self, app, header_name: str = "x-session-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        sid = request.headers.get(self.header_name) or str(uuid4())
        request.state.session_id = sid
        token = session_id_ctx_var.set(sid)
        try:
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000
        finally:
            session_id_ctx_var.reset(token)

        response.headers[self.header_name] = sid
        logging.getLogger("everday").info(
            "request.complete",
            extra={
                "session_id": sid,
                "path": request.url.path,
                "method": request.method,
                "status": getattr(response, "status_code", None),
                "duration_ms": round(duration_ms, 1),
            },
        )
        return response
