"""
everday/models/reading.py

Reading list and watch list items. Both are organised in status columns,
and each column is its own plan-gate bucket.
"""

from enum import Enum
from typing import Optional

from pydantic import model_validator

from everday.models.base import GuestRecord, has_text


class ReadingStatus(str, Enum):
    WANT_TO_READ = "want_to_read"
    READING = "reading"
    FINISHED = "finished"


class WatchStatus(str, Enum):
    TO_WATCH = "to_watch"
    WATCHING = "watching"
    WATCHED = "watched"


class ReadingListItem(GuestRecord):
    title: Optional[str] = None
    author: Optional[str] = None
    notes: Optional[str] = None
    status: ReadingStatus = ReadingStatus.WANT_TO_READ
    background_color: Optional[str] = None

    @model_validator(mode="after")
    def _require_content(self):
        if not has_text(self.title, self.author, self.notes):
            raise ValueError("Add a title, author, or notes.")
        return self


class MovieItem(GuestRecord):
    title: Optional[str] = None
    actor_actress: Optional[str] = None
    director: Optional[str] = None
    notes: Optional[str] = None
    status: WatchStatus = WatchStatus.TO_WATCH
    card_color: Optional[str] = None

    @model_validator(mode="after")
    def _require_content(self):
        if not has_text(self.title, self.actor_actress, self.director, self.notes):
            raise ValueError("Add a title, cast, director, or notes.")
        return self
