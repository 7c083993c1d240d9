"""
everday/features/store/supabase.py

Authoritative store over Supabase's PostgREST API.

Talks HTTP with httpx so the service role key never needs a direct database
connection. Upserts use `on_conflict` + `resolution=merge-duplicates`.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from everday.core.config import settings
from everday.core.errors import ConflictError, StoreError
from everday.features.store.base import Filters, is_multi, plain_rows, to_plain


logger = logging.getLogger(__name__)


def _filter_value(value: Any) -> str:
    plain = to_plain(value)
    if isinstance(plain, bool):
        return "true" if plain else "false"
    if plain is None:
        return "null"
    return str(plain)


def _filter_params(filters: Optional[Filters]) -> List[Tuple[str, str]]:
    params = []
    for column, expected in (filters or {}).items():
        if is_multi(expected):
            joined = ",".join(f'"{_filter_value(v)}"' for v in expected)
            params.append((column, f"in.({joined})"))
        elif expected is None:
            params.append((column, "is.null"))
        else:
            params.append((column, f"eq.{_filter_value(expected)}"))
    return params


def _content_range_total(header: Optional[str]) -> int:
    # content-range looks like "0-24/25" or "*/0"
    if not header or "/" not in header:
        return 0
    total = header.rsplit("/", 1)[-1]
    return int(total) if total.isdigit() else 0


class SupabaseRecordStore:
    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        *,
        client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
    ):
        url = (url or settings.SUPABASE_URL or "").rstrip("/")
        key = key or settings.SUPABASE_SERVICE_ROLE_KEY or ""
        if not url or not key:
            raise StoreError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
        self._client = client or httpx.Client(
            base_url=f"{url}/rest/v1",
            timeout=timeout or settings.STORE_TIMEOUT_SECONDS,
        )
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    def select(self, table: str, filters: Optional[Filters] = None, *, order_by: Optional[str] = None) -> List[Dict[str, Any]]:
        params = [("select", "*")] + _filter_params(filters)
        if order_by:
            params.append(("order", f"{order_by}.asc"))
        resp = self._request("GET", table, "select", params=params)
        return resp.json()

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        params = [("select", "id")] + _filter_params(filters)
        resp = self._request("HEAD", table, "count", params=params, prefer="count=exact")
        return _content_range_total(resp.headers.get("content-range"))

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        resp = self._request("POST", table, "insert", json=to_plain(dict(row)), prefer="return=representation")
        result = resp.json()
        return result[0] if isinstance(result, list) and result else {}

    def update(self, table: str, match: Filters, values: Mapping[str, Any]) -> int:
        resp = self._request(
            "PATCH",
            table,
            "update",
            params=_filter_params(match),
            json=to_plain(dict(values)),
            prefer="return=representation",
        )
        return len(resp.json() or [])

    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]], *, on_conflict: Tuple[str, ...] = ("id",)) -> int:
        if not rows:
            return 0
        self._request(
            "POST",
            table,
            "upsert",
            params=[("on_conflict", ",".join(on_conflict))],
            json=plain_rows(rows),
            prefer="resolution=merge-duplicates,return=minimal",
        )
        return len(rows)

    def delete(self, table: str, match: Filters) -> int:
        resp = self._request("DELETE", table, "delete", params=_filter_params(match), prefer="return=representation")
        return len(resp.json() or [])

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, table: str, operation: str, *, params=None, json=None, prefer: Optional[str] = None) -> httpx.Response:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            resp = self._client.request(method, f"/{table}", params=params, json=json, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error(
                "[store] supabase request rejected",
                extra={"table": table, "operation": operation, "status": status},
            )
            if status == 409:
                raise ConflictError(f"{operation} on {table} conflicted") from exc
            raise StoreError(f"{operation} on {table} failed with HTTP {status}") from exc
        except httpx.HTTPError as exc:
            logger.error(
                "[store] supabase request failed",
                extra={"table": table, "operation": operation, "error": exc.__class__.__name__},
            )
            raise StoreError(f"{operation} on {table} failed: {exc.__class__.__name__}") from exc
        return resp
