from fastapi.testclient import TestClient

import everday.api.health as health_api
from everday.core.errors import StoreError
from everday.main import app

client = TestClient(app)


def test_healthz_always_ok():
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"


def test_readyz_ok_with_memory_store():
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "store": "InMemoryRecordStore"}


def test_readyz_handles_store_down(monkeypatch):
    class DownStore:
        def count(self, table, filters=None):
            raise StoreError("down")

    monkeypatch.setattr(health_api, "get_store", lambda: DownStore())

    resp = client.get("/readyz")
    assert resp.status_code == 503
    assert resp.json()["status"] == "error"


def test_session_id_is_echoed():
    resp = client.get("/healthz", headers={"x-session-id": "sess-123"})
    assert resp.headers["x-session-id"] == "sess-123"


def test_profile_created_on_first_read_and_plan_status():
    resp = client.get("/v1/profile", params={"user_id": "u1", "email": "u1@example.com"})
    assert resp.status_code == 200
    assert resp.json()["profile"]["plan"] == "free"

    status = client.get("/v1/profile/plan-status", params={"user_id": "u1"}).json()
    assert status["plan_tier"] == "free"
    assert status["is_premium"] is False


def test_plan_status_for_unknown_user_is_404_payload():
    resp = client.get("/v1/profile/plan-status", params={"user_id": "ghost"})
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"]["code"] == "not_found"
    assert body["detail"]


def test_username_must_be_unique():
    client.get("/v1/profile", params={"user_id": "u1"})
    client.get("/v1/profile", params={"user_id": "u2"})
    assert client.patch("/v1/profile", json={"user_id": "u1", "username": "sam"}).status_code == 200

    resp = client.patch("/v1/profile", json={"user_id": "u2", "username": "sam"})
    assert resp.status_code == 409


def test_habit_endpoints_gate_and_log():
    created = []
    for i in range(7):
        body = client.post("/v1/habits", json={"user_id": "u1", "name": f"habit {i}"}).json()
        assert body["allowed"] is True
        created.append(body["habit"]["id"])

    denied = client.post("/v1/habits", json={"user_id": "u1", "name": "eighth"}).json()
    assert denied["allowed"] is False
    assert denied["habit"] is None
    assert "Upgrade" in denied["message"]

    today = client.get("/v1/habits/board", params={"user_id": "u1"}).json()["today"]
    logged = client.post("/v1/habits/log", json={"user_id": "u1", "habit_id": created[0], "log_date": today, "status": "completed"}).json()
    assert logged["changed"] is True

    board = client.get("/v1/habits/board", params={"user_id": "u1", "today": today}).json()
    assert board["limit_reached"] is True
    assert board["show_streak"] is False
    first = next(h for h in board["habits"] if h["id"] == created[0])
    assert first["statuses"][today] == "completed"
    assert "current_streak" not in first


def test_item_endpoints_return_denials_as_values():
    for i in range(5):
        resp = client.post("/v1/items/todos", json={"user_id": "u1", "item": {"title": f"t{i}", "type": "monthly"}})
        assert resp.json()["allowed"] is True

    resp = client.post("/v1/items/todos", json={"user_id": "u1", "item": {"title": "t6", "type": "monthly"}})
    assert resp.status_code == 200
    assert resp.json()["allowed"] is False

    item_id = client.post("/v1/items/notes", json={"user_id": "u1", "item": {"title": "n"}}).json()["item"]["id"]
    recolor = client.post(f"/v1/items/notes/{item_id}/color", json={"user_id": "u1", "color": "#fff"}).json()
    assert recolor["allowed"] is False


def test_invalid_item_is_400():
    resp = client.post("/v1/items/notes", json={"user_id": "u1", "item": {"title": ""}})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_item_create_and_edit_respect_premium_fields():
    resp = client.post("/v1/items/notes", json={"user_id": "u1", "item": {"title": "n", "color": "#ff0000"}})
    assert resp.status_code == 200
    assert resp.json()["allowed"] is False
    assert resp.json()["capability"] == "card_color"

    item_id = client.post("/v1/items/sourceDumps", json={"user_id": "u1", "item": {"title": "s"}}).json()["item"]["id"]
    edited = client.patch(f"/v1/items/sourceDumps/{item_id}", json={"user_id": "u1", "changes": {"title": "renamed"}}).json()
    assert edited["allowed"] is True
    assert edited["item"]["title"] == "renamed"

    denied = client.patch(f"/v1/items/sourceDumps/{item_id}", json={"user_id": "u1", "changes": {"screenshots": ["a.png"]}}).json()
    assert denied["allowed"] is False
    assert denied["item"]["screenshots"] == []
