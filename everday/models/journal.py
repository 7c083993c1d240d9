"""
everday/models/journal.py
"""

from datetime import date, datetime
from typing import Optional

from everday.models.base import GuestRecord


class JournalEntry(GuestRecord):
    """One entry per calendar day."""

    entry_date: date
    thoughts: Optional[str] = None
    good_things: Optional[str] = None
    bad_things: Optional[str] = None
    lessons: Optional[str] = None
    dreams: Optional[str] = None
    mood: Optional[str] = None
    updated_at: Optional[datetime] = None
