"""
everday/models/note.py
"""

from datetime import datetime
from typing import Optional

from pydantic import model_validator

from everday.models.base import GuestRecord, has_text


class NoteRecord(GuestRecord):
    title: Optional[str] = None
    content: Optional[str] = None
    color: Optional[str] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _require_title_or_content(self):
        if not has_text(self.title, self.content):
            raise ValueError("Title or content is required.")
        return self
