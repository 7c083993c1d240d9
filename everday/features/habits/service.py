"""
everday/features/habits/service.py

Habit board for signed-in users.

Handles:
- Loading active and soft-deleted habits with their logs
- Decorating each habit with per-day statuses and streaks
- Scheduling best-streak write-backs without blocking the read
- Logging a day, adding, renaming, soft-deleting, restoring and destroying habits
"""

import logging
from collections import defaultdict
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple

from everday.core.errors import NotFoundError
from everday.features.entitlements.service import (
    Capability,
    GateDecision,
    can_create,
    can_use_capability,
    check_create,
)
from everday.features.ledger.domains import ALL_BUCKET, HABIT_LOGS, HABITS, validate_record
from everday.features.plans.service import get_user_plan_tier
from everday.features.store.base import RecordStore
from everday.features.streaks.service import build_date_range, evaluate_habit, utc_today
from everday.features.streaks.writeback import BestStreakWriter
from everday.models.habit import HabitLogStatus, HabitRecord
from everday.models.plan import PlanTier
from everday.models.streak import StreakResult


logger = logging.getLogger(__name__)

HABITS_TABLE = "habits"
HABIT_LOGS_TABLE = "habit_logs"
BEST_STREAK_WRITE_ATTEMPTS = 3


@dataclass(frozen=True)
class HabitView:
    habit: HabitRecord
    streak: StreakResult
    logs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def best_streak(self) -> int:
        return self.streak.best_streak


@dataclass(frozen=True)
class HabitBoard:
    today: date
    dates: List[date]
    habits: List[HabitView]
    history: List[HabitRecord]
    plan_tier: PlanTier
    limit_reached: bool
    show_streak: bool
    pending_writes: List[Future] = field(default_factory=list)

    @property
    def is_premium(self) -> bool:
        return self.plan_tier > PlanTier.FREE


class HabitBoardService:
    def __init__(self, store: RecordStore, writer: Optional[BestStreakWriter] = None):
        self.store = store
        self.writer = writer or BestStreakWriter(self._persist_best_streak)

    def load(self, user_id: str, today: Optional[date] = None) -> HabitBoard:
        today = today or utc_today()
        tier = get_user_plan_tier(self.store, user_id)
        rows = self.store.select(HABITS_TABLE, {"user_id": user_id}, order_by="created_at")
        habits = [HabitRecord.model_validate(row) for row in rows]
        active = [h for h in habits if not h.is_deleted]
        history = [h for h in habits if h.is_deleted]

        dates: List[date] = []
        if active:
            dates = build_date_range(min(min(h.created_day for h in active), today), today)
        logs = self._logs_by_habit([h.id for h in active], dates[0] if dates else today)

        views = []
        pending: List[Future] = []
        for habit in active:
            habit_logs = logs.get(habit.id, {})
            result = evaluate_habit(
                habit.created_day,
                habit_logs,
                dates,
                today=today,
                stored_best=habit.best_streak,
            )
            if result.best_streak_raised:
                pending.append(self.writer.submit(habit.id, result.best_streak))
            views.append(HabitView(habit=habit, streak=result, logs=habit_logs))

        return HabitBoard(
            today=today,
            dates=dates,
            habits=views,
            history=history,
            plan_tier=tier,
            limit_reached=not can_create(HABITS, ALL_BUCKET, len(active), tier),
            show_streak=can_use_capability(Capability.STREAK_DISPLAY, tier),
            pending_writes=pending,
        )

    def toggle_status(
        self,
        user_id: str,
        habit_id: str,
        day: date,
        desired: Optional[HabitLogStatus] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Log a day for a habit.

        With no desired status the day flips completed <-> failed (an unlogged
        day becomes completed). Returns None when nothing was written: the day
        is before the habit existed, or it already holds the desired status.
        """
        habit = self._get_habit(user_id, habit_id)
        if day < habit.created_day:
            return None
        iso = day.isoformat()
        existing = self.store.select(HABIT_LOGS_TABLE, {"habit_id": habit_id, "log_date": iso})
        current = existing[0] if existing else None
        if desired is not None:
            desired = HabitLogStatus(desired)
            if current and current.get("status") == desired.value:
                return None
            next_status = desired
        elif current and current.get("status") == HabitLogStatus.COMPLETED.value:
            next_status = HabitLogStatus.FAILED
        else:
            next_status = HabitLogStatus.COMPLETED

        if current:
            self.store.update(HABIT_LOGS_TABLE, {"id": current["id"]}, {"status": next_status.value})
            return {**current, "status": next_status.value}
        row = validate_record(HABIT_LOGS, {"habit_id": habit_id, "log_date": iso, "status": next_status})
        self.store.upsert(HABIT_LOGS_TABLE, [row], on_conflict=("habit_id", "log_date"))
        return row

    def add_habit(self, user_id: str, payload: Mapping[str, Any]) -> Tuple[GateDecision, Optional[HabitRecord]]:
        tier = get_user_plan_tier(self.store, user_id)
        decision = check_create(HABITS, ALL_BUCKET, self._active_count(user_id), tier)
        if not decision.allowed:
            return decision, None
        row = validate_record(HABITS, {**_habit_values(payload), "user_id": user_id})
        self.store.insert(HABITS_TABLE, row)
        return decision, HabitRecord.model_validate(row)

    def rename_habit(self, user_id: str, habit_id: str, payload: Mapping[str, Any]) -> HabitRecord:
        values = _habit_values(payload)
        current = self._get_habit(user_id, habit_id)
        validate_record(HABITS, {**current.model_dump(), **values})
        self.store.update(HABITS_TABLE, {"id": habit_id, "user_id": user_id}, values)
        return self._get_habit(user_id, habit_id)

    def soft_delete(self, user_id: str, habit_id: str) -> None:
        self._get_habit(user_id, habit_id)
        self.store.update(HABITS_TABLE, {"id": habit_id, "user_id": user_id}, {"is_deleted": True})

    def restore(self, user_id: str, habit_id: str) -> GateDecision:
        """Bring a habit back from history; restoring counts against the ceiling."""
        self._get_habit(user_id, habit_id)
        decision = check_create(HABITS, ALL_BUCKET, self._active_count(user_id), get_user_plan_tier(self.store, user_id))
        if decision.allowed:
            self.store.update(HABITS_TABLE, {"id": habit_id, "user_id": user_id}, {"is_deleted": False})
        return decision

    def destroy(self, user_id: str, habit_id: str) -> None:
        """Delete a habit and its whole history."""
        self._get_habit(user_id, habit_id)
        self.store.delete(HABIT_LOGS_TABLE, {"habit_id": habit_id})
        self.store.delete(HABITS_TABLE, {"id": habit_id, "user_id": user_id})
        logger.info("[habits] habit destroyed", extra={"habit_id": habit_id})

    # Internal helpers ---------------------------------------------------
    def _get_habit(self, user_id: str, habit_id: str) -> HabitRecord:
        rows = self.store.select(HABITS_TABLE, {"id": habit_id, "user_id": user_id})
        if not rows:
            raise NotFoundError(f"Habit {habit_id} not found")
        return HabitRecord.model_validate(rows[0])

    def _active_count(self, user_id: str) -> int:
        return self.store.count(HABITS_TABLE, {"user_id": user_id, "is_deleted": False})

    def _logs_by_habit(self, habit_ids: List[str], since: date) -> Dict[str, Dict[str, Dict[str, Any]]]:
        if not habit_ids:
            return {}
        grouped: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        since_iso = since.isoformat()
        for row in self.store.select(HABIT_LOGS_TABLE, {"habit_id": habit_ids}):
            log_date = str(row["log_date"])[:10]
            if log_date >= since_iso:
                grouped[row["habit_id"]][log_date] = row
        return dict(grouped)

    def _persist_best_streak(self, habit_id: str, best_streak: int) -> bool:
        """
        Compare-and-set on the stored value: the update only matches the row
        while it still holds the value just read, so a slower worker with a
        smaller streak can never lower it.
        """
        for _ in range(BEST_STREAK_WRITE_ATTEMPTS):
            rows = self.store.select(HABITS_TABLE, {"id": habit_id})
            if not rows:
                return False
            stored = int(rows[0].get("best_streak") or 0)
            if stored >= best_streak:
                return False
            if self.store.update(HABITS_TABLE, {"id": habit_id, "best_streak": stored}, {"best_streak": best_streak}):
                return True
        logger.warning("[habits] best streak kept changing underneath", extra={"habit_id": habit_id})
        return False


def _habit_values(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {"name": str(payload.get("name") or "").strip(), "icon_key": payload.get("icon_key") or None}
