"""
everday/models/habit.py

Habit and habit log records.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from everday.models.base import GuestRecord, new_record_id, utc_day


class HabitLogStatus(str, Enum):
    """Stored log outcomes. "No log yet" is the absence of a record."""
    COMPLETED = "completed"
    FAILED = "failed"


class HabitRecord(GuestRecord):
    """
    A tracked habit.

    best_streak only ever grows; see features/streaks.
    """

    name: str = Field(..., min_length=1)
    icon_key: Optional[str] = None
    best_streak: int = Field(default=0, ge=0)
    is_deleted: bool = False

    @property
    def created_day(self) -> date:
        return utc_day(self.created_at)


class HabitLogRecord(BaseModel):
    """One explicit outcome for one habit on one calendar day."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_record_id, min_length=1)
    habit_id: str = Field(..., min_length=1)
    log_date: date
    status: HabitLogStatus
