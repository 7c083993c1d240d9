from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from everday.features.entitlements.service import GateDecision
from everday.features.habits.service import HabitBoard, HabitBoardService, HabitView
from everday.features.store.service import get_store
from everday.models.habit import HabitLogStatus

router = APIRouter(prefix="/v1/habits", tags=["habits"])

_service: Optional[HabitBoardService] = None


def get_habit_service() -> HabitBoardService:
    """One board service (and write-back pool) per store instance."""
    global _service
    store = get_store()
    if _service is None or _service.store is not store:
        if _service is not None:
            _service.writer.shutdown(wait=False)
        _service = HabitBoardService(store)
    return _service


class HabitPayload(BaseModel):
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    icon_key: Optional[str] = None


class HabitLogPayload(BaseModel):
    user_id: str = Field(..., min_length=1)
    habit_id: str = Field(..., min_length=1)
    log_date: date
    status: Optional[HabitLogStatus] = None


@router.get("/board")
def get_board(
    user_id: str = Query(..., min_length=1),
    today: Optional[date] = Query(None),
    service: HabitBoardService = Depends(get_habit_service),
):
    """Habits with per-day statuses, streaks and gate flags."""
    return _board_payload(service.load(user_id, today=today))


@router.post("")
def create_habit(payload: HabitPayload, service: HabitBoardService = Depends(get_habit_service)):
    decision, habit = service.add_habit(payload.user_id, payload.model_dump())
    return {
        **_decision_payload(decision),
        "habit": habit.model_dump(mode="json") if habit else None,
    }


@router.patch("/{habit_id}")
def rename_habit(habit_id: str, payload: HabitPayload, service: HabitBoardService = Depends(get_habit_service)):
    habit = service.rename_habit(payload.user_id, habit_id, payload.model_dump())
    return {"habit": habit.model_dump(mode="json")}


@router.post("/log")
def log_day(payload: HabitLogPayload, service: HabitBoardService = Depends(get_habit_service)):
    log = service.toggle_status(payload.user_id, payload.habit_id, payload.log_date, payload.status)
    return {"changed": log is not None, "log": log}


@router.post("/{habit_id}/delete")
def soft_delete_habit(habit_id: str, user_id: str = Query(..., min_length=1), service: HabitBoardService = Depends(get_habit_service)):
    service.soft_delete(user_id, habit_id)
    return {"ok": True}


@router.post("/{habit_id}/restore")
def restore_habit(habit_id: str, user_id: str = Query(..., min_length=1), service: HabitBoardService = Depends(get_habit_service)):
    return _decision_payload(service.restore(user_id, habit_id))


@router.delete("/{habit_id}")
def destroy_habit(habit_id: str, user_id: str = Query(..., min_length=1), service: HabitBoardService = Depends(get_habit_service)):
    service.destroy(user_id, habit_id)
    return {"ok": True}


def _decision_payload(decision: GateDecision) -> Dict[str, Any]:
    return {
        "allowed": decision.allowed,
        "plan_tier": decision.plan_tier.name.lower(),
        "current_count": decision.current_count,
        "ceiling": decision.ceiling,
        "message": decision.message,
    }


def _habit_payload(view: HabitView, show_streak: bool) -> Dict[str, Any]:
    payload = view.habit.model_dump(mode="json")
    payload["statuses"] = {day.isoformat(): status.value for day, status in view.streak.status_by_date.items()}
    payload["logs"] = view.logs
    if show_streak:
        payload["current_streak"] = view.streak.current_streak
        payload["best_streak"] = view.best_streak
        payload["last_completed"] = view.streak.last_completed.isoformat() if view.streak.last_completed else None
    else:
        payload.pop("best_streak", None)
    return payload


def _board_payload(board: HabitBoard) -> Dict[str, Any]:
    return {
        "today": board.today.isoformat(),
        "dates": [day.isoformat() for day in board.dates],
        "habits": [_habit_payload(view, board.show_streak) for view in board.habits],
        "history": [habit.model_dump(mode="json") for habit in board.history],
        "plan_tier": board.plan_tier.name.lower(),
        "is_premium": board.is_premium,
        "limit_reached": board.limit_reached,
        "show_streak": board.show_streak,
    }
