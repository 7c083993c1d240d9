"""
everday/features/workspace/service.py

Guest and account workspaces behind one interface, and the gated feature
operations built on them.

Every mutation asks the plan gate first, against the count the workspace
holds at that moment. A guest workspace is always on the free plan.
"""

from typing import Any, Dict, Mapping, Optional, Protocol, Tuple, Union

from everday.core.errors import NotFoundError, ValidationError
from everday.features.entitlements.service import (
    Capability,
    CapabilityDecision,
    GateDecision,
    check_capability,
    check_create,
    check_move,
    ceiling_for,
)
from everday.features.ledger.domains import (
    HABIT_LOGS,
    HABITS,
    MOVIE_ITEMS,
    NOTES,
    READING_LIST,
    SOURCE_DUMPS,
    TODOS,
    bucket_of,
    get_domain,
    validate_record,
)
from everday.features.ledger.service import GuestLedger
from everday.features.store.base import RecordStore
from everday.models.base import utc_now
from everday.models.plan import PlanTier

# Field holding the card colour, per domain
COLOR_FIELDS: Dict[str, str] = {
    NOTES: "color",
    TODOS: "background_color",
    READING_LIST: "background_color",
    MOVIE_ITEMS: "card_color",
    SOURCE_DUMPS: "background_color",
}
SCREENSHOTS_FIELD = "screenshots"
IMMUTABLE_FIELDS = ("id", "user_id", "created_at")

Decision = Union[GateDecision, CapabilityDecision]


class Workspace(Protocol):
    plan_tier: PlanTier

    def count(self, domain: str, bucket: str) -> int: ...

    def get(self, domain: str, item_id: str) -> Dict[str, Any]: ...

    def add(self, domain: str, payload: Mapping[str, Any]) -> Dict[str, Any]: ...

    def update(self, domain: str, item_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]: ...


class GuestWorkspace:
    plan_tier = PlanTier.FREE

    def __init__(self, ledger: GuestLedger):
        self.ledger = ledger

    def count(self, domain: str, bucket: str) -> int:
        return self.ledger.count_in_bucket(domain, bucket)

    def get(self, domain: str, item_id: str) -> Dict[str, Any]:
        return self.ledger.get_record(domain, item_id)

    def add(self, domain: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self.ledger.add_record(domain, dict(payload))

    def update(self, domain: str, item_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        return self.ledger.update_record(domain, item_id, **changes)


class AccountWorkspace:
    """Signed-in workspace reading and writing the authoritative store."""

    def __init__(self, store: RecordStore, user_id: str, plan_tier: PlanTier = PlanTier.FREE):
        self.store = store
        self.user_id = user_id
        self.plan_tier = PlanTier(plan_tier)

    def count(self, domain: str, bucket: str) -> int:
        meta = get_domain(domain)
        filters: Dict[str, Any] = {"user_id": self.user_id}
        if meta.bucket_field:
            filters[meta.bucket_field] = bucket
        if domain == HABITS:
            filters["is_deleted"] = False
        return self.store.count(meta.table, filters)

    def get(self, domain: str, item_id: str) -> Dict[str, Any]:
        meta = get_domain(domain)
        rows = self.store.select(meta.table, {"id": item_id, "user_id": self.user_id})
        if not rows:
            raise NotFoundError(f"{domain} record {item_id} not found")
        return rows[0]

    def add(self, domain: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        record = validate_record(domain, {**payload, "user_id": self.user_id})
        return self.store.insert(get_domain(domain).table, record)

    def update(self, domain: str, item_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        meta = get_domain(domain)
        current = self.get(domain, item_id)
        values = dict(changes)
        if "updated_at" in meta.model.model_fields:
            values.setdefault("updated_at", utc_now())
        # Validate the merged row before writing any of it
        validate_record(domain, {**current, **values})
        self.store.update(meta.table, {"id": item_id, "user_id": self.user_id}, values)
        return self.get(domain, item_id)


def _list_domain(domain: str):
    if domain == HABIT_LOGS:
        raise ValidationError("Habit logs are written through the habit board")
    return get_domain(domain)


def premium_field_denial(workspace: Workspace, domain: str, values: Mapping[str, Any]) -> Optional[CapabilityDecision]:
    """
    Denial for premium-only fields set below premium, or None.

    Card colours and source-dump screenshots are premium; clearing either
    is always allowed.
    """
    color_field = COLOR_FIELDS.get(domain)
    if color_field and values.get(color_field):
        decision = check_capability(Capability.CARD_COLOR, workspace.plan_tier)
        if not decision.allowed:
            return decision
    if domain == SOURCE_DUMPS and values.get(SCREENSHOTS_FIELD):
        decision = check_capability(Capability.SCREENSHOT_ATTACHMENTS, workspace.plan_tier)
        if not decision.allowed:
            return decision
    return None


def create_item(workspace: Workspace, domain: str, payload: Mapping[str, Any]) -> Tuple[Decision, Optional[Dict[str, Any]]]:
    """Create a record if the plan allows one more in its bucket and every field it sets."""
    meta = _list_domain(domain)
    denial = premium_field_denial(workspace, domain, payload)
    if denial is not None:
        return denial, None
    bucket = bucket_of(meta, payload)
    decision = check_create(domain, bucket, workspace.count(domain, bucket), workspace.plan_tier)
    if not decision.allowed:
        return decision, None
    return decision, workspace.add(domain, payload)


def update_item(
    workspace: Workspace,
    domain: str,
    item_id: str,
    changes: Mapping[str, Any],
) -> Tuple[Optional[CapabilityDecision], Dict[str, Any]]:
    """
    Edit a record's content.

    Returns (denial, record): a premium denial comes back with the unchanged
    record, otherwise denial is None. Column changes go through move_item.
    """
    meta = _list_domain(domain)
    values = {k: v for k, v in changes.items() if k not in IMMUTABLE_FIELDS}
    current = workspace.get(domain, item_id)
    if meta.bucket_field and meta.bucket_field in values and values[meta.bucket_field] != current.get(meta.bucket_field):
        raise ValidationError(f"Use move to change {meta.bucket_field}")
    denial = premium_field_denial(workspace, domain, values)
    if denial is not None:
        return denial, current
    return None, workspace.update(domain, item_id, values)


def move_item(workspace: Workspace, domain: str, item_id: str, destination: str) -> Tuple[GateDecision, Dict[str, Any]]:
    """
    Move a record to another column/section.

    Blocked moves return the unchanged record with the denial.
    """
    meta = _list_domain(domain)
    if not meta.bucket_field:
        raise ValidationError(f"{domain} records cannot be moved")
    ceiling_for(domain, destination)
    current = workspace.get(domain, item_id)
    source = bucket_of(meta, current)
    decision = check_move(domain, source, destination, workspace.count(domain, destination), workspace.plan_tier)
    if not decision.allowed or source == destination:
        return decision, current
    return decision, workspace.update(domain, item_id, {meta.bucket_field: destination})


def recolor_item(workspace: Workspace, domain: str, item_id: str, color: Optional[str]) -> Tuple[CapabilityDecision, Dict[str, Any]]:
    """Set a card colour; free plans get the denial and the unchanged record."""
    field = COLOR_FIELDS.get(domain)
    if field is None:
        raise ValidationError(f"{domain} records have no card colour")
    current = workspace.get(domain, item_id)
    decision = check_capability(Capability.CARD_COLOR, workspace.plan_tier)
    if not decision.allowed:
        return decision, current
    return decision, workspace.update(domain, item_id, {field: color})
