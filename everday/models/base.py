"""
everday/models/base.py

Shared base for records a guest can create before signing up.
"""

from datetime import date, datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def new_record_id() -> str:
    """Locally generated id; doubles as the upsert key when a guest signs up."""
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_day(moment: datetime) -> date:
    """Calendar day of a timestamp in UTC (naive timestamps are taken as UTC)."""
    aware = moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
    return aware.astimezone(timezone.utc).date()


class GuestRecord(BaseModel):
    """
    A row owned by an account, or by nobody yet while the user is a guest.

    Records are immutable; edits produce a new record with model_copy().
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_record_id, min_length=1)
    user_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


def has_text(*values: Optional[str]) -> bool:
    return any((value or "").strip() for value in values)
