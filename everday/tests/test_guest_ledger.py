import json
from datetime import date

import pytest

from everday.core.errors import NotFoundError, ValidationError
from everday.features.ledger.domains import HABIT_LOGS, HABITS, MOVIE_ITEMS, NOTES, READING_LIST, TODOS
from everday.features.ledger.service import GuestLedger
from everday.features.ledger.storage import InMemorySessionStorage
from everday.models.habit import HabitLogStatus, HabitRecord


def test_read_unwritten_domain_is_empty(ledger):
    assert ledger.read(NOTES) == []
    assert ledger.read(HABIT_LOGS) == {}
    assert ledger.has_data() is False


def test_unknown_domain_rejected(ledger):
    with pytest.raises(ValidationError):
        ledger.read("pomodoroSessions")


def test_write_survives_reload(session_storage):
    ledger = GuestLedger(session_storage)
    note = ledger.add_record(NOTES, {"title": "Groceries", "content": "eggs"})
    habit = ledger.add_record(HABITS, {"name": "Read"})
    ledger.set_habit_log(habit["id"], date(2024, 1, 2), HabitLogStatus.COMPLETED)

    reloaded = GuestLedger(session_storage)

    assert reloaded.read(NOTES) == [note]
    assert reloaded.read(HABITS) == [habit]
    assert reloaded.logs_for(habit["id"])["2024-01-02"]["status"] == "completed"
    assert reloaded.snapshot() == ledger.snapshot()


def test_mirror_is_utf8_json_under_storage_key(session_storage):
    ledger = GuestLedger(session_storage)
    ledger.add_record(NOTES, {"title": "Café ☕"})

    stored = session_storage.get_item("everday_guest_data")
    assert json.loads(stored)[NOTES][0]["title"] == "Café ☕"


def test_read_returns_a_copy(ledger):
    ledger.add_record(NOTES, {"title": "one"})
    items = ledger.read(NOTES)
    items.clear()
    assert len(ledger.read(NOTES)) == 1


def test_write_rejects_invalid_record(ledger):
    with pytest.raises(ValidationError):
        ledger.write(NOTES, lambda items: items + [{"title": "", "content": "  "}])
    assert ledger.read(NOTES) == []


def test_write_rejects_duplicate_ids(ledger):
    note = ledger.add_record(NOTES, {"title": "a"})
    with pytest.raises(ValidationError):
        ledger.write(NOTES, lambda items: items + [dict(note)])


def test_quota_exceeded_keeps_memory_authoritative(caplog):
    storage = InMemorySessionStorage(quota_bytes=64)
    ledger = GuestLedger(storage)

    added = ledger.add_record(NOTES, {"title": "x" * 200})

    assert ledger.read(NOTES) == [added]
    assert storage.get_item("everday_guest_data") is None
    assert any("failed to mirror" in r.getMessage() for r in caplog.records)


def test_unreadable_storage_payload_starts_empty():
    storage = InMemorySessionStorage()
    storage.set_item("everday_guest_data", "{not json")
    assert GuestLedger(storage).snapshot() == {}


def test_rehydrate_drops_invalid_domain_but_keeps_valid_ones():
    storage = InMemorySessionStorage()
    habit = HabitRecord(name="Run").model_dump(mode="json")
    storage.set_item(
        "everday_guest_data",
        json.dumps({HABITS: [habit], NOTES: [{"id": "n1"}], "legacy": [1, 2]}),
    )

    ledger = GuestLedger(storage)

    assert ledger.read(HABITS) == [habit]
    assert ledger.read(NOTES) == []
    assert "legacy" not in ledger.snapshot()


def test_clear_removes_memory_and_mirror(ledger, session_storage):
    ledger.add_record(NOTES, {"title": "a"})
    ledger.clear()
    assert ledger.has_data() is False
    assert session_storage.get_item("everday_guest_data") is None


def test_notes_and_movies_are_prepended_todos_appended(ledger):
    first = ledger.add_record(NOTES, {"title": "first"})
    second = ledger.add_record(NOTES, {"title": "second"})
    assert [n["id"] for n in ledger.read(NOTES)] == [second["id"], first["id"]]

    m1 = ledger.add_record(MOVIE_ITEMS, {"title": "Alien"})
    m2 = ledger.add_record(MOVIE_ITEMS, {"title": "Heat"})
    assert [m["id"] for m in ledger.read(MOVIE_ITEMS)] == [m2["id"], m1["id"]]

    t1 = ledger.add_record(TODOS, {"title": "one"})
    t2 = ledger.add_record(TODOS, {"title": "two"})
    assert [t["id"] for t in ledger.read(TODOS)] == [t1["id"], t2["id"]]


def test_set_habit_log_keeps_log_id_when_toggled(ledger):
    habit = ledger.add_record(HABITS, {"name": "Stretch"})
    first = ledger.set_habit_log(habit["id"], date(2024, 3, 1), HabitLogStatus.COMPLETED)
    second = ledger.set_habit_log(habit["id"], date(2024, 3, 1), HabitLogStatus.FAILED)

    assert second["id"] == first["id"]
    assert second["status"] == "failed"
    assert len(ledger.logs_for(habit["id"])) == 1


def test_set_habit_log_requires_existing_habit(ledger):
    with pytest.raises(NotFoundError):
        ledger.set_habit_log("missing", date(2024, 3, 1), HabitLogStatus.COMPLETED)


def test_removing_habit_drops_its_logs(ledger):
    habit = ledger.add_record(HABITS, {"name": "Stretch"})
    ledger.set_habit_log(habit["id"], date(2024, 3, 1), HabitLogStatus.COMPLETED)

    ledger.remove_record(HABITS, habit["id"])

    assert ledger.read(HABITS) == []
    assert ledger.read(HABIT_LOGS) == {}


def test_update_record_stamps_updated_at(ledger):
    note = ledger.add_record(NOTES, {"title": "draft"})
    updated = ledger.update_record(NOTES, note["id"], content="final")
    assert updated["content"] == "final"
    assert updated["updated_at"] is not None


def test_count_in_bucket(ledger):
    ledger.add_record(READING_LIST, {"title": "Dune"})
    ledger.add_record(READING_LIST, {"title": "Emma", "status": "reading"})
    habit = ledger.add_record(HABITS, {"name": "Walk"})
    ledger.add_record(HABITS, {"name": "Swim"})
    ledger.update_record(HABITS, habit["id"], is_deleted=True)

    assert ledger.count_in_bucket(READING_LIST, "want_to_read") == 1
    assert ledger.count_in_bucket(READING_LIST, "reading") == 1
    assert ledger.count_in_bucket(READING_LIST, "finished") == 0
    assert ledger.count_in_bucket(HABITS, "all") == 1


def test_habit_logs_key_must_match_contents(ledger):
    habit = ledger.add_record(HABITS, {"name": "Walk"})
    bad = {habit["id"]: {"2024-01-02": {"habit_id": habit["id"], "log_date": "2024-01-03", "status": "completed"}}}
    with pytest.raises(ValidationError):
        ledger.write(HABIT_LOGS, lambda _: bad)
