"""
Profile and plan status API

GET   /v1/profile?user_id=...              (creates a free profile on first call)
GET   /v1/profile/plan-status?user_id=...
PATCH /v1/profile
"""

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from everday.features.plans import service as plans_service
from everday.features.store.service import get_store

router = APIRouter(prefix="/v1/profile", tags=["profile"])


class ProfileUpdate(BaseModel):
    user_id: str = Field(..., min_length=1)
    full_name: Optional[str] = None
    username: Optional[str] = None


@router.get("")
def get_profile(
    user_id: str = Query(..., min_length=1),
    email: Optional[str] = Query(None),
):
    profile = plans_service.get_or_create_profile(get_store(), user_id, email=email)
    return {"profile": profile.model_dump(mode="json")}


@router.get("/plan-status")
def get_plan_status(user_id: str = Query(..., min_length=1)):
    return plans_service.get_plan_status(get_store(), user_id)


@router.patch("")
def update_profile(payload: ProfileUpdate):
    changes = payload.model_dump(exclude={"user_id"}, exclude_none=True)
    profile = plans_service.update_profile(get_store(), payload.user_id, changes)
    return {"profile": profile.model_dump(mode="json")}
