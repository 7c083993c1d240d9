"""
Plan-gated item operations for signed-in users.

POST  /v1/items/{domain}                     create
PATCH /v1/items/{domain}/{item_id}           edit content
POST  /v1/items/{domain}/{item_id}/move      move to another column/section
POST  /v1/items/{domain}/{item_id}/color     set the card colour (premium)

Denials come back as 200 responses with allowed=false and an upgrade message.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from everday.features.plans.service import get_user_plan_tier
from everday.features.store.service import get_store
from everday.features.workspace.service import (
    AccountWorkspace,
    create_item,
    move_item,
    recolor_item,
    update_item,
)

router = APIRouter(prefix="/v1/items", tags=["items"])


class CreateItemRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    item: Dict[str, Any] = Field(default_factory=dict)


class UpdateItemRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    changes: Dict[str, Any] = Field(default_factory=dict)


class MoveItemRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)


class RecolorItemRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    color: Optional[str] = None


def _workspace(user_id: str) -> AccountWorkspace:
    store = get_store()
    return AccountWorkspace(store, user_id, get_user_plan_tier(store, user_id))


def _decision_payload(decision, record) -> Dict[str, Any]:
    return {
        "allowed": decision.allowed,
        "message": decision.message,
        "ceiling": getattr(decision, "ceiling", None),
        "capability": getattr(decision, "capability", None),
        "item": record,
    }


@router.post("/{domain}")
def create(domain: str, payload: CreateItemRequest):
    decision, record = create_item(_workspace(payload.user_id), domain, payload.item)
    return _decision_payload(decision, record)


@router.patch("/{domain}/{item_id}")
def update(domain: str, item_id: str, payload: UpdateItemRequest):
    denial, record = update_item(_workspace(payload.user_id), domain, item_id, payload.changes)
    if denial is not None:
        return _decision_payload(denial, record)
    return {"allowed": True, "message": None, "ceiling": None, "capability": None, "item": record}


@router.post("/{domain}/{item_id}/move")
def move(domain: str, item_id: str, payload: MoveItemRequest):
    decision, record = move_item(_workspace(payload.user_id), domain, item_id, payload.destination)
    return _decision_payload(decision, record)


@router.post("/{domain}/{item_id}/color")
def recolor(domain: str, item_id: str, payload: RecolorItemRequest):
    decision, record = recolor_item(_workspace(payload.user_id), domain, item_id, payload.color)
    return _decision_payload(decision, record)
