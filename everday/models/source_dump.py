"""
everday/models/source_dump.py

Scrapbook cards of links, pasted text and (premium) screenshots.
"""

from typing import List, Optional

from pydantic import Field, field_validator

from everday.models.base import GuestRecord


class SourceDump(GuestRecord):
    title: str = Field(..., min_length=1)
    links: Optional[str] = None
    text_content: Optional[str] = None
    screenshots: List[str] = Field(default_factory=list)
    background_color: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Title is required.")
        return value
