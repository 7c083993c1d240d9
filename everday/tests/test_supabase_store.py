import json

import httpx
import pytest

from everday.core.errors import ConflictError, StoreError
from everday.features.store.supabase import SupabaseRecordStore


def _store(handler):
    client = httpx.Client(base_url="https://proj.supabase.co/rest/v1", transport=httpx.MockTransport(handler))
    return SupabaseRecordStore("https://proj.supabase.co", "service-key", client=client)


def test_select_sends_auth_headers_and_filters():
    seen = {}

    def handler(request: httpx.Request):
        seen["request"] = request
        return httpx.Response(200, json=[{"id": "h1"}])

    rows = _store(handler).select("habits", {"user_id": "u1", "id": ["h1", "h2"], "is_deleted": False}, order_by="created_at")

    request = seen["request"]
    assert rows == [{"id": "h1"}]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/habits"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["authorization"] == "Bearer service-key"
    params = request.url.params
    assert params["user_id"] == "eq.u1"
    assert params["id"] == 'in.("h1","h2")'
    assert params["is_deleted"] == "eq.false"
    assert params["order"] == "created_at.asc"


def test_count_reads_content_range():
    def handler(request: httpx.Request):
        assert request.method == "HEAD"
        assert request.headers["prefer"] == "count=exact"
        return httpx.Response(200, headers={"content-range": "0-6/7"})

    assert _store(handler).count("habits", {"user_id": "u1"}) == 7


def test_count_empty_table():
    assert _store(lambda request: httpx.Response(200, headers={"content-range": "*/0"})).count("notes") == 0


def test_upsert_merges_duplicates_on_conflict_key():
    seen = {}

    def handler(request: httpx.Request):
        seen["request"] = request
        return httpx.Response(201)

    rows = [{"id": "l1", "habit_id": "h1", "log_date": "2024-01-02", "status": "completed"}]
    assert _store(handler).upsert("habit_logs", rows, on_conflict=("habit_id", "log_date")) == 1

    request = seen["request"]
    assert request.method == "POST"
    assert request.url.params["on_conflict"] == "habit_id,log_date"
    assert "resolution=merge-duplicates" in request.headers["prefer"]
    assert json.loads(request.content) == rows


def test_update_counts_returned_rows():
    def handler(request: httpx.Request):
        assert request.method == "PATCH"
        assert json.loads(request.content) == {"best_streak": 4}
        return httpx.Response(200, json=[{"id": "h1", "best_streak": 4}])

    assert _store(handler).update("habits", {"id": "h1"}, {"best_streak": 4}) == 1


def test_http_errors_become_store_errors():
    with pytest.raises(StoreError):
        _store(lambda request: httpx.Response(500, json={"message": "boom"})).select("habits")


def test_conflict_status_becomes_conflict_error():
    with pytest.raises(ConflictError):
        _store(lambda request: httpx.Response(409, json={"message": "duplicate"})).insert("habits", {"id": "h1"})


def test_transport_errors_become_store_errors():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(StoreError):
        _store(handler).upsert("notes", [{"id": "n1"}])


def test_missing_credentials_rejected(monkeypatch):
    monkeypatch.setattr("everday.features.store.supabase.settings.SUPABASE_URL", None)
    monkeypatch.setattr("everday.features.store.supabase.settings.SUPABASE_SERVICE_ROLE_KEY", None)
    with pytest.raises(StoreError):
        SupabaseRecordStore()
