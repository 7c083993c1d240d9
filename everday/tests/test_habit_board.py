from datetime import date

import pytest

from everday.core.errors import NotFoundError
from everday.features.habits.service import HabitBoardService
from everday.models.habit import HabitLogStatus
from everday.models.plan import PlanTier
from everday.models.streak import DayStatus


def _seed_habit(store, habit_id="h1", user_id="user_1", created="2024-01-01T09:00:00Z", **extra):
    row = {
        "id": habit_id,
        "user_id": user_id,
        "name": f"habit {habit_id}",
        "best_streak": 0,
        "is_deleted": False,
        "created_at": created,
    }
    row.update(extra)
    store.insert("habits", row)


def _log(store, habit_id, day, status):
    store.insert("habit_logs", {"id": f"{habit_id}-{day}", "habit_id": habit_id, "log_date": day, "status": status})


@pytest.fixture
def service(memory_store):
    svc = HabitBoardService(memory_store)
    yield svc
    svc.writer.shutdown()


def test_load_decorates_habits_and_writes_back_best_streak(service, memory_store):
    _seed_habit(memory_store)
    for day in ("2024-01-01", "2024-01-02", "2024-01-04", "2024-01-05"):
        _log(memory_store, "h1", day, "completed")
    _log(memory_store, "h1", "2024-01-03", "failed")

    board = service.load("user_1", today=date(2024, 1, 5))

    assert board.dates[0] == date(2024, 1, 1)
    assert board.dates[-1] == date(2024, 1, 5)
    view = board.habits[0]
    assert view.streak.current_streak == 2
    assert view.best_streak == 2
    assert view.streak.status_by_date[date(2024, 1, 3)] is DayStatus.FAILED
    for future in board.pending_writes:
        future.result(timeout=5)
    assert memory_store.select("habits", {"id": "h1"})[0]["best_streak"] == 2


def test_load_never_lowers_stored_best(service, memory_store):
    _seed_habit(memory_store, best_streak=12)
    _log(memory_store, "h1", "2024-01-01", "completed")

    board = service.load("user_1", today=date(2024, 1, 1))

    assert board.habits[0].best_streak == 12
    assert board.pending_writes == []


def test_stale_best_streak_write_does_not_lower_stored_value(service, memory_store):
    _seed_habit(memory_store, best_streak=3)
    # Another worker already raised it to 9 after this one read 3
    memory_store.update("habits", {"id": "h1"}, {"best_streak": 9})

    assert service._persist_best_streak("h1", 5) is False
    assert memory_store.select("habits", {"id": "h1"})[0]["best_streak"] == 9

    assert service._persist_best_streak("h1", 10) is True
    assert memory_store.select("habits", {"id": "h1"})[0]["best_streak"] == 10


def test_best_streak_write_is_conditional_on_sql(sql_store):
    svc = HabitBoardService(sql_store)
    try:
        _seed_habit(sql_store, best_streak=4)
        assert svc._persist_best_streak("h1", 2) is False
        assert svc._persist_best_streak("h1", 6) is True
    finally:
        svc.writer.shutdown()
    assert sql_store.select("habits", {"id": "h1"})[0]["best_streak"] == 6


def test_load_splits_history_and_flags_free_limit(service, memory_store):
    for i in range(7):
        _seed_habit(memory_store, f"h{i}")
    _seed_habit(memory_store, "gone", is_deleted=True)

    board = service.load("user_1", today=date(2024, 1, 2))

    assert len(board.habits) == 7
    assert [h.id for h in board.history] == ["gone"]
    assert board.plan_tier is PlanTier.FREE
    assert board.limit_reached is True
    assert board.show_streak is False


def test_premium_board_shows_streak_and_has_no_limit(service, memory_store, premium_user):
    for i in range(9):
        _seed_habit(memory_store, f"h{i}", user_id=premium_user)

    board = service.load(premium_user, today=date(2024, 1, 2))

    assert board.is_premium is True
    assert board.limit_reached is False
    assert board.show_streak is True


def test_empty_board_has_no_dates(service):
    board = service.load("nobody", today=date(2024, 1, 2))
    assert board.dates == []
    assert board.habits == []


def test_toggle_creates_then_flips(service, memory_store):
    _seed_habit(memory_store)

    created = service.toggle_status("user_1", "h1", date(2024, 1, 2))
    flipped = service.toggle_status("user_1", "h1", date(2024, 1, 2))

    assert created["status"] == "completed"
    assert flipped["status"] == "failed"
    assert flipped["id"] == created["id"]
    assert memory_store.count("habit_logs", {"habit_id": "h1"}) == 1


def test_toggle_with_desired_status_already_set_is_noop(service, memory_store):
    _seed_habit(memory_store)
    _log(memory_store, "h1", "2024-01-02", "completed")

    assert service.toggle_status("user_1", "h1", date(2024, 1, 2), HabitLogStatus.COMPLETED) is None
    assert service.toggle_status("user_1", "h1", date(2024, 1, 2), HabitLogStatus.FAILED)["status"] == "failed"


def test_toggle_before_creation_is_noop(service, memory_store):
    _seed_habit(memory_store, created="2024-01-05T00:00:00Z")
    assert service.toggle_status("user_1", "h1", date(2024, 1, 4)) is None
    assert memory_store.count("habit_logs") == 0


def test_add_habit_is_gated_on_active_count(service, memory_store):
    for i in range(7):
        _seed_habit(memory_store, f"h{i}")

    decision, habit = service.add_habit("user_1", {"name": "One more"})

    assert decision.allowed is False
    assert habit is None
    assert "7-habit limit" in decision.message


def test_soft_delete_frees_a_slot_and_restore_is_gated(service, memory_store):
    for i in range(7):
        _seed_habit(memory_store, f"h{i}")
    service.soft_delete("user_1", "h0")

    decision, habit = service.add_habit("user_1", {"name": "  Journal  "})
    assert decision.allowed is True
    assert habit.name == "Journal"

    restore = service.restore("user_1", "h0")
    assert restore.allowed is False
    assert memory_store.select("habits", {"id": "h0"})[0]["is_deleted"] is True


def test_rename_and_destroy(service, memory_store):
    _seed_habit(memory_store)
    _log(memory_store, "h1", "2024-01-02", "completed")

    assert service.rename_habit("user_1", "h1", {"name": "Read 10 pages", "icon_key": "book"}).icon_key == "book"

    service.destroy("user_1", "h1")
    assert memory_store.count("habits") == 0
    assert memory_store.count("habit_logs") == 0


def test_other_users_habits_are_not_found(service, memory_store):
    _seed_habit(memory_store, user_id="someone_else")
    with pytest.raises(NotFoundError):
        service.toggle_status("user_1", "h1", date(2024, 1, 2))
