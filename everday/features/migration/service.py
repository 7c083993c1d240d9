"""
everday/features/migration/service.py

Server side of the guest-to-account merge.

Handles:
- Stamping owned rows with the account id while keeping the guest ids
- Upserting each domain on its conflict key, parents before children
- Refusing rows whose id already belongs to another account

Upserts make a retried merge a no-op for rows already written. Plan
ceilings are not re-checked here: a guest who filled the free ceiling
keeps everything they made, and further creates are gated as usual.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from everday.core.errors import ConflictError, MigrationError, StoreError, ValidationError
from everday.core.logging import log_event
from everday.features.ledger.domains import (
    DOMAIN_NAMES,
    HABIT_LOGS,
    HABITS,
    MIGRATION_ORDER,
    flatten_habit_logs,
    get_domain,
    normalize_value,
)
from everday.features.store.base import RecordStore


@dataclass(frozen=True)
class MigrationReport:
    user_id: str
    counts: Dict[str, int] = field(default_factory=dict)
    skipped_logs: int = 0

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "counts": dict(self.counts),
            "total": self.total,
            "skipped_logs": self.skipped_logs,
        }


def _rows_for(name: str, value: Any, user_id: str) -> List[Dict[str, Any]]:
    normalized = normalize_value(name, value)
    if name == HABIT_LOGS:
        return flatten_habit_logs(normalized)
    return [{**row, "user_id": user_id} for row in normalized]


def _check_ownership(store: RecordStore, table: str, rows: List[Dict[str, Any]], user_id: str) -> None:
    ids = [row["id"] for row in rows]
    for existing in store.select(table, {"id": ids}):
        if existing.get("user_id") not in (None, user_id):
            raise ConflictError(f"{table} row {existing['id']} belongs to another account")


def migrate_guest_data(
    store: RecordStore,
    user_id: str,
    guest_data: Mapping[str, Any],
    *,
    session_id: Optional[str] = None,
) -> MigrationReport:
    """
    Merge a guest ledger snapshot into the account `user_id`.

    Raises MigrationError naming the failing domain when the store rejects a
    write; domains before it stay written and are overwritten by the retry.
    """
    if not user_id:
        raise ValidationError("user_id is required")
    if not isinstance(guest_data, Mapping):
        raise ValidationError("guestData must be an object keyed by domain")
    unknown = sorted(set(guest_data) - set(DOMAIN_NAMES))
    if unknown:
        log_event("info", "migration.unknown_domains_ignored", session_id=session_id, user_id=user_id, extra={"domains": unknown})

    prepared: Dict[str, List[Dict[str, Any]]] = {}
    for name in MIGRATION_ORDER:
        value = guest_data.get(name)
        prepared[name] = _rows_for(name, value, user_id) if value else []

    # Logs for habits that are not part of this snapshot would be orphans
    habit_ids = {row["id"] for row in prepared[HABITS]}
    logs = prepared[HABIT_LOGS]
    prepared[HABIT_LOGS] = [log for log in logs if log["habit_id"] in habit_ids]
    skipped = len(logs) - len(prepared[HABIT_LOGS])

    counts: Dict[str, int] = {}
    for name in MIGRATION_ORDER:
        rows = prepared[name]
        domain = get_domain(name)
        if not rows:
            counts[name] = 0
            continue
        try:
            if domain.owned:
                _check_ownership(store, domain.table, rows, user_id)
            counts[name] = store.upsert(domain.table, rows, on_conflict=domain.conflict_key)
        except StoreError as exc:
            log_event(
                "error",
                "migration.domain_failed",
                session_id=session_id,
                user_id=user_id,
                domain=name,
                error_code=exc.code,
                extra={"error": exc.message, "rows": len(rows)},
            )
            raise MigrationError(f"Could not migrate {name}", domain=name, session_id=session_id) from exc

    report = MigrationReport(user_id=user_id, counts=counts, skipped_logs=skipped)
    log_event(
        "info",
        "migration.completed",
        session_id=session_id,
        user_id=user_id,
        event_type="guest_migrated",
        extra={"counts": counts, "skipped_logs": skipped},
    )
    return report
