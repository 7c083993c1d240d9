"""
everday/models/todo.py

To-do items. The type doubles as the plan-gate bucket.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from everday.models.base import GuestRecord


class TodoType(str, Enum):
    TASK = "task"
    YEARLY = "yearly"
    MONTHLY = "monthly"


class TodoRecord(GuestRecord):
    type: TodoType = TodoType.TASK
    title: str = Field(..., min_length=1)
    is_completed: bool = False
    background_color: Optional[str] = None
    updated_at: Optional[datetime] = None
