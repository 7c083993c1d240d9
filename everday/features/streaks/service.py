from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from everday.models.habit import HabitLogStatus
from everday.models.streak import DayStatus, StreakResult


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def build_date_range(start: Optional[date], today: date) -> List[date]:
    """Every day from start through today inclusive; empty when start is after today."""
    if start is None or start > today:
        return []
    return [start + timedelta(days=offset) for offset in range((today - start).days + 1)]


def _coerce_day(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def normalize_logs(logs: Optional[Mapping[Any, Any]]) -> Dict[date, HabitLogStatus]:
    """
    Accept logs keyed by date or ISO string, valued by a status, a log dict,
    or a log record, and return date -> status.
    """
    normalized: Dict[date, HabitLogStatus] = {}
    for key, value in (logs or {}).items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            raw = value.get("status")
        else:
            raw = getattr(value, "status", value)
        if raw is None:
            continue
        normalized[_coerce_day(key)] = HabitLogStatus(raw)
    return normalized


def day_status(
    day: date,
    *,
    created: Optional[date],
    logs: Mapping[date, HabitLogStatus],
    today: date,
) -> DayStatus:
    if created is not None and day < created:
        return DayStatus.NOT_APPLICABLE
    logged = logs.get(day)
    if logged is HabitLogStatus.COMPLETED:
        return DayStatus.COMPLETED
    if logged is HabitLogStatus.FAILED:
        return DayStatus.FAILED
    if day < today:
        # Display-time inference only; no log is created
        return DayStatus.FAILED
    return DayStatus.PENDING


def compute_current_streak(
    logs: Mapping[date, HabitLogStatus],
    dates: Sequence[date],
    *,
    created: Optional[date],
    today: date,
) -> int:
    """
    Walk backward from the end of the range counting real completed logs.

    An unlogged today ends the walk without counting. Only explicit logs
    count; an inferred failure on a past day ends the walk.
    """
    current = 0
    for day in reversed(dates):
        if created is not None and day < created:
            break
        logged = logs.get(day)
        if day == today and logged is None:
            break
        if logged is HabitLogStatus.COMPLETED:
            current += 1
        elif logged is HabitLogStatus.FAILED or (logged is None and day < today):
            break
    return current


def evaluate_habit(
    created: Optional[date],
    logs: Optional[Mapping[Any, Any]],
    dates: Optional[Sequence[date]] = None,
    *,
    today: Optional[date] = None,
    stored_best: int = 0,
) -> StreakResult:
    """
    Per-day statuses plus current and best streak for one habit.

    today is read once here so a call straddling midnight stays consistent.
    """
    today = today or utc_today()
    by_day = normalize_logs(logs)
    if dates is None:
        dates = build_date_range(created, today)

    status_by_date: Dict[date, DayStatus] = {}
    last_completed: Optional[date] = None
    for day in dates:
        status = day_status(day, created=created, logs=by_day, today=today)
        status_by_date[day] = status
        if status is DayStatus.COMPLETED:
            last_completed = day

    current = compute_current_streak(by_day, dates, created=created, today=today)
    previous_best = max(0, int(stored_best or 0))
    return StreakResult(
        today=today,
        current_streak=current,
        best_streak=max(previous_best, current),
        previous_best=previous_best,
        last_completed=last_completed,
        status_by_date=status_by_date,
    )
