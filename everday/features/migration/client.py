"""
everday/features/migration/client.py

HTTP client for POST /migrate/guest-to-user.
"""

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from everday.core.config import settings
from everday.core.errors import MigrationError
from everday.core.logging import get_session_id


logger = logging.getLogger(__name__)

MIGRATE_PATH = "/migrate/guest-to-user"


class MigrationApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
        access_token: Optional[str] = None,
    ):
        self._client = client or httpx.Client(
            base_url=base_url or settings.BACKEND_URL,
            timeout=timeout or settings.STORE_TIMEOUT_SECONDS,
        )
        self._access_token = access_token

    def migrate(self, user_id: str, guest_data: Mapping[str, Any]) -> Dict[str, Any]:
        """Send the ledger snapshot; any non-2xx or transport error is a MigrationError."""
        headers = {}
        sid = get_session_id()
        if sid:
            headers["x-session-id"] = sid
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        try:
            response = self._client.post(
                MIGRATE_PATH,
                json={"user_id": user_id, "guestData": dict(guest_data)},
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            logger.error("[migration] server rejected guest data", extra={"status": exc.response.status_code})
            raise MigrationError(detail or f"Migration failed with HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("[migration] request failed", extra={"error": exc.__class__.__name__})
            raise MigrationError(f"Migration request failed: {exc.__class__.__name__}") from exc
        try:
            return response.json()
        except ValueError as exc:
            logger.error("[migration] unreadable response", extra={"status": response.status_code})
            raise MigrationError("Migration response was not JSON") from exc

    def close(self) -> None:
        self._client.close()


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("detail") or (body.get("error") or {}).get("message")
    return None
