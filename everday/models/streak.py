from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Optional


class DayStatus(str, Enum):
    """What a habit cell shows for one day."""

    NOT_APPLICABLE = "na"  # before the habit existed, never clickable
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"  # today, nothing logged yet: offer both actions


@dataclass(frozen=True)
class StreakResult:
    """
    Derived streak state for one habit. Day-level, UTC only, no direct DB concerns.
    """

    today: date
    current_streak: int
    best_streak: int
    previous_best: int = 0
    last_completed: Optional[date] = None
    status_by_date: Dict[date, DayStatus] = field(default_factory=dict)

    @property
    def best_streak_raised(self) -> bool:
        return self.best_streak > self.previous_best
