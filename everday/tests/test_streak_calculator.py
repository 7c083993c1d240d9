import threading
from datetime import date, timedelta

from everday.features.streaks.service import (
    build_date_range,
    compute_current_streak,
    evaluate_habit,
    normalize_logs,
)
from everday.features.streaks.writeback import BestStreakWriter
from everday.models.habit import HabitLogStatus
from everday.models.streak import DayStatus

COMPLETED = HabitLogStatus.COMPLETED
FAILED = HabitLogStatus.FAILED


def _days(start: date, count: int):
    return [start + timedelta(days=i) for i in range(count)]


def test_fixture_five_days_two_current():
    created = date(2024, 1, 1)
    today = date(2024, 1, 6)
    logs = {
        "2024-01-01": "completed",
        "2024-01-02": "completed",
        "2024-01-03": "failed",
        "2024-01-04": "completed",
        "2024-01-05": "completed",
    }
    dates = build_date_range(date(2023, 12, 31), today)

    result = evaluate_habit(created, logs, dates, today=date(2024, 1, 5))
    assert result.current_streak == 2
    assert result.best_streak >= 2

    result = evaluate_habit(created, logs, dates, today=today)
    assert result.status_by_date[date(2023, 12, 31)] is DayStatus.NOT_APPLICABLE
    assert result.status_by_date[date(2024, 1, 3)] is DayStatus.FAILED
    assert result.status_by_date[date(2024, 1, 6)] is DayStatus.PENDING


def test_unlogged_today_ends_the_walk():
    created = date(2024, 1, 1)
    today = date(2024, 1, 3)
    logs = {date(2024, 1, 1): COMPLETED, date(2024, 1, 2): COMPLETED}
    dates = build_date_range(created, today)

    assert compute_current_streak(normalize_logs(logs), dates, created=created, today=today) == 0


def test_today_logged_completed_counts():
    created = date(2024, 1, 1)
    today = date(2024, 1, 3)
    logs = {date(2024, 1, 1): COMPLETED, date(2024, 1, 2): COMPLETED, date(2024, 1, 3): COMPLETED}

    assert evaluate_habit(created, logs, today=today).current_streak == 3


def test_unlogged_past_day_is_inferred_failure_and_breaks():
    created = date(2024, 1, 1)
    today = date(2024, 1, 4)
    logs = {date(2024, 1, 1): COMPLETED, date(2024, 1, 3): COMPLETED, date(2024, 1, 4): COMPLETED}

    result = evaluate_habit(created, logs, today=today)

    assert result.status_by_date[date(2024, 1, 2)] is DayStatus.FAILED
    assert result.current_streak == 2


def test_walk_stops_at_creation():
    created = date(2024, 1, 3)
    today = date(2024, 1, 4)
    logs = {date(2024, 1, 2): COMPLETED, date(2024, 1, 3): COMPLETED, date(2024, 1, 4): COMPLETED}
    dates = build_date_range(date(2024, 1, 1), today)

    result = evaluate_habit(created, logs, dates, today=today)

    assert result.current_streak == 2
    assert result.status_by_date[date(2024, 1, 2)] is DayStatus.NOT_APPLICABLE


def test_best_streak_never_below_stored_value():
    created = date(2024, 1, 1)
    today = date(2024, 1, 2)
    result = evaluate_habit(created, {date(2024, 1, 2): FAILED}, today=today, stored_best=9)

    assert result.current_streak == 0
    assert result.best_streak == 9
    assert result.best_streak_raised is False


def test_best_streak_non_regression_across_log_sequences():
    created = date(2024, 1, 1)
    logs = {}
    stored = 0
    pattern = [COMPLETED, COMPLETED, COMPLETED, FAILED, COMPLETED, None, COMPLETED, COMPLETED]
    for offset, status in enumerate(pattern):
        today = created + timedelta(days=offset)
        if status is not None:
            logs[today] = status
        result = evaluate_habit(created, logs, today=today, stored_best=stored)
        assert result.best_streak >= stored
        stored = result.best_streak
    assert stored == 3


def test_creation_after_today_yields_empty_range():
    today = date(2024, 1, 1)
    assert build_date_range(date(2024, 2, 1), today) == []
    assert build_date_range(None, today) == []

    result = evaluate_habit(date(2024, 2, 1), {}, today=today)
    assert result.status_by_date == {}
    assert result.current_streak == 0


def test_logs_outside_range_are_ignored():
    created = date(2024, 1, 1)
    today = date(2024, 1, 2)
    logs = {date(2023, 6, 1): COMPLETED, date(2024, 1, 2): COMPLETED, date(2024, 5, 1): COMPLETED}

    result = evaluate_habit(created, logs, today=today)

    assert set(result.status_by_date) == {date(2024, 1, 1), date(2024, 1, 2)}
    assert result.current_streak == 1
    assert result.last_completed == date(2024, 1, 2)


def test_normalize_logs_accepts_records_and_dicts():
    logs = normalize_logs(
        {
            "2024-01-01": {"status": "completed"},
            date(2024, 1, 2): "failed",
            "2024-01-03T00:00:00Z": None,
        }
    )
    assert logs == {date(2024, 1, 1): COMPLETED, date(2024, 1, 2): FAILED}


class _StoredBest:
    """Stand-in persist target that only ever raises the stored value."""

    def __init__(self):
        self.values = {}
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, habit_id, best):
        with self._lock:
            self.calls.append(best)
            if best <= self.values.get(habit_id, 0):
                return False
            self.values[habit_id] = best
            return True


def test_writer_skips_values_already_queued():
    stored = _StoredBest()
    writer = BestStreakWriter(stored, max_workers=1)
    try:
        assert writer.submit("h1", 3).result(timeout=5) is True
        assert writer.submit("h1", 2).result(timeout=5) is False
        assert writer.submit("h1", 5).result(timeout=5) is True
    finally:
        writer.shutdown()

    assert stored.values == {"h1": 5}
    assert writer.queued("h1") == 0


def test_writer_forgets_habits_once_written():
    gate = threading.Event()

    def slow(habit_id, best):
        gate.wait(timeout=5)
        return True

    writer = BestStreakWriter(slow, max_workers=1)
    try:
        first = writer.submit("h1", 4)
        duplicate = writer.submit("h1", 4)
        assert duplicate.result(timeout=5) is False
        assert writer.queued("h1") == 4
        gate.set()
        assert first.result(timeout=5) is True
    finally:
        writer.shutdown()

    assert writer.queued("h1") == 0


def test_writer_failure_is_logged_not_raised_on_submit(caplog):
    def boom(habit_id, best):
        raise RuntimeError("store down")

    writer = BestStreakWriter(boom, max_workers=1)
    try:
        future = writer.submit("h1", 4)
        assert isinstance(future.exception(timeout=5), RuntimeError)
    finally:
        writer.shutdown()

    assert writer.queued("h1") == 0
    assert any("best streak update failed" in r.getMessage() for r in caplog.records)


def test_writer_out_of_order_completion_keeps_highest():
    gate = threading.Event()
    stored = _StoredBest()

    def slow_persist(habit_id, best):
        if best == 2:
            gate.wait(timeout=5)
        return stored(habit_id, best)

    writer = BestStreakWriter(slow_persist, max_workers=2)
    try:
        low = writer.submit("h1", 2)
        high = writer.submit("h1", 6)
        assert high.result(timeout=5) is True
        gate.set()
        assert low.result(timeout=5) is False
    finally:
        writer.shutdown()

    assert stored.values == {"h1": 6}
