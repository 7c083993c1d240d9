"""
Structured logging with session ID support.

Features:
- JSON logs in production, pretty logs in development.
- Context-bound session_id for correlating a guest session with its merge.
- log_event helper for consistent structured logs with safe truncation.
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Mapping, Optional

session_id_ctx_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)


def get_session_id(default: Optional[str] = None) -> Optional[str]:
    """Fetch the current session_id from context (if any)."""
    sid = session_id_ctx_var.get()
    return sid if sid is not None else default


@contextmanager
def bind_session_id(session_id: Optional[str]) -> Iterator[None]:
    token = session_id_ctx_var.set(session_id)
    try:
        yield
    finally:
        session_id_ctx_var.reset(token)


# Attributes every LogRecord carries; anything else was passed as a field
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

TRUNCATE_AT = 500


def _format_timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace('+00:00', 'Z')


class SessionIdFilter(logging.Filter):
    """Inject session_id into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "session_id", None) is None:
            record.session_id = get_session_id()
        return True


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and v is not None}


class JsonFormatter(logging.Formatter):
    """One JSON object per line: the fixed envelope plus every structured field."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _format_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_fields(record))
        payload.setdefault("session_id", None)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        sid = getattr(record, "session_id", None)
        sid_part = f" [sid={sid}]" if sid else ""
        scope = " ".join(
            f"{key}={getattr(record, key)}" for key in ("user_id", "domain") if getattr(record, key, None)
        )
        scope_part = f" ({scope})" if scope else ""
        ts = _format_timestamp(record)
        return f"{ts} {record.levelname} [everday]{sid_part} {record.getMessage()}{scope_part}"


def configure_logging(env: str = "development") -> None:
    """Pretty logs for development, JSON lines in production."""
    logger = logging.getLogger("everday")
    logger.setLevel(logging.INFO)

    formatter: logging.Formatter
    if env.lower() == "production":
        formatter = JsonFormatter()
    else:
        formatter = PrettyFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(SessionIdFilter())

    logger.handlers = [handler]
    logger.propagate = True

    # Reduce noise from uvicorn loggers but keep error output
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.error").propagate = False


def _truncate(text: str, limit: int = TRUNCATE_AT) -> str:
    return text if len(text) <= limit else text[:limit] + "...<truncated>"


def _loggable(value: Any) -> Any:
    """
    Shrink a field for a log record.

    Scalars pass through and strings are truncated. Collections of records
    are logged by size only, so guest content (journal text, notes) never
    ends up in the logs.
    """
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, Mapping):
        return {
            str(k): f"<{len(v)} records>" if isinstance(v, (Mapping, list, tuple)) else _loggable(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        if all(isinstance(v, (str, int, float)) for v in value):
            return _truncate(", ".join(str(v) for v in value))
        return f"<{len(value)} records>"
    try:
        return _truncate(str(value))
    except Exception:
        return "<unserializable>"


def log_event(
    level: str,
    msg: str,
    *,
    session_id: Optional[str] = None,
    user_id: Optional[str] = None,
    domain: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Mapping[str, Any]] = None,
):
    """Log a guest/merge event on the everday logger, correlated by session."""

    logger = logging.getLogger("everday")
    if not logger.handlers:
        # Ensure logging configured in edge cases (tests)
        configure_logging(os.getenv("ENV", "development"))

    payload: Dict[str, Any] = {
        "session_id": session_id or get_session_id(),
        "user_id": user_id,
        "domain": domain,
        "event_type": event_type,
        "error_code": error_code,
    }
    for key, value in (extra or {}).items():
        if key in _RECORD_ATTRS:
            key = f"field_{key}"
        payload[key] = _loggable(value)

    log_fn = getattr(logger, level, logger.info)
    log_fn(msg, extra=payload)
