"""
Guest-to-account migration endpoint.

POST /migrate/guest-to-user with {"user_id": ..., "guestData": {...}}.
Safe to retry: every row is upserted on its conflict key.
"""

from typing import Any, Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from everday.features.migration.service import migrate_guest_data
from everday.features.store.service import get_store

router = APIRouter(tags=["migration"])


class GuestMigrationRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    guestData: Dict[str, Any] = Field(default_factory=dict)


@router.post("/migrate/guest-to-user")
def migrate_guest_to_user(payload: GuestMigrationRequest, request: Request):
    report = migrate_guest_data(
        get_store(),
        payload.user_id,
        payload.guestData,
        session_id=getattr(request.state, "session_id", None),
    )
    return {"ok": True, **report.to_dict()}
