"""
everday/features/ledger/service.py

Guest ledger: the stand-in for the authoritative store while nobody is signed in.

Handles:
- Per-domain read / write with validation at the boundary
- Mirroring the whole ledger to session storage after every write
- Rehydration on page load
- Record-level helpers used by feature pages (add, update, remove, log a day)
"""

import copy
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from everday.core.config import settings
from everday.core.errors import NotFoundError, ValidationError
from everday.features.ledger.domains import (
    DOMAIN_NAMES,
    HABITS,
    HABIT_LOGS,
    bucket_of,
    empty_value,
    flatten_habit_logs,
    get_domain,
    normalize_value,
)
from everday.features.ledger.storage import SessionStorage
from everday.models.habit import HabitLogStatus


logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class GuestLedger:
    """
    In-memory guest data, mirrored to session storage.

    The in-memory copy is authoritative: a failed mirror write is logged and
    ignored for the rest of the session.
    """

    def __init__(self, storage: SessionStorage, *, storage_key: Optional[str] = None):
        self._storage = storage
        self._key = storage_key or settings.GUEST_STORAGE_KEY
        self._data: Dict[str, Any] = self._rehydrate()

    # Core API -----------------------------------------------------------
    def read(self, domain: str):
        """Current value for a domain (a copy); empty when never written."""
        get_domain(domain)
        return copy.deepcopy(self._data.get(domain, empty_value(domain)))

    def write(self, domain: str, updater: Callable[[Any], Any]):
        """Apply a pure transformation to one domain and persist the ledger."""
        current = self.read(domain)
        normalized = normalize_value(domain, updater(current))
        self._data[domain] = normalized
        self._persist()
        return copy.deepcopy(normalized)

    def snapshot(self) -> Dict[str, Any]:
        """Every touched domain, as plain data."""
        return copy.deepcopy(self._data)

    def has_data(self) -> bool:
        return any(self._data.get(name) for name in DOMAIN_NAMES)

    def clear(self) -> None:
        self._data = {}
        try:
            self._storage.remove_item(self._key)
        except Exception:
            logger.warning("[ledger] failed to remove persisted guest data", exc_info=True)

    def records(self, domain: str, model: Optional[Type[M]] = None) -> List[M]:
        """Typed view of a list domain."""
        record_type = model or get_domain(domain).model
        if domain == HABIT_LOGS:
            return [record_type.model_validate(r) for r in flatten_habit_logs(self.read(domain))]
        return [record_type.model_validate(r) for r in self.read(domain)]

    # Record helpers -----------------------------------------------------
    def add_record(self, domain: str, record: Any) -> Dict[str, Any]:
        meta = get_domain(domain)
        added = normalize_value(domain, [record])[0]

        def _add(items):
            return [added, *items] if meta.prepend else [*items, added]

        self.write(domain, _add)
        return added

    def get_record(self, domain: str, record_id: str) -> Dict[str, Any]:
        for item in self.read(domain):
            if item["id"] == record_id:
                return item
        raise NotFoundError(f"{domain} record {record_id} not found")

    def update_record(self, domain: str, record_id: str, **changes: Any) -> Dict[str, Any]:
        if domain == HABIT_LOGS:
            raise ValidationError("Use set_habit_log to change habit logs")
        self.get_record(domain, record_id)
        if _tracks_updates(domain):
            changes.setdefault("updated_at", datetime.now(timezone.utc))

        def _update(items):
            return [{**item, **changes} if item["id"] == record_id else item for item in items]

        items = self.write(domain, _update)
        return next(item for item in items if item["id"] == record_id)

    def remove_record(self, domain: str, record_id: str) -> None:
        self.get_record(domain, record_id)
        self.write(domain, lambda items: [item for item in items if item["id"] != record_id])
        if domain == HABITS:
            self.write(HABIT_LOGS, lambda logs: {k: v for k, v in logs.items() if k != record_id})

    def set_habit_log(self, habit_id: str, day: date, status: HabitLogStatus) -> Dict[str, Any]:
        """Upsert the log for (habit, day), keeping the existing log id."""
        self.get_record(HABITS, habit_id)
        iso = day.isoformat()

        def _upsert(logs):
            by_date = dict(logs.get(habit_id, {}))
            existing = by_date.get(iso)
            log = {"habit_id": habit_id, "log_date": iso, "status": HabitLogStatus(status).value}
            if existing:
                log["id"] = existing["id"]
            by_date[iso] = log
            return {**logs, habit_id: by_date}

        logs = self.write(HABIT_LOGS, _upsert)
        return logs[habit_id][iso]

    def logs_for(self, habit_id: str) -> Dict[str, Dict[str, Any]]:
        return self.read(HABIT_LOGS).get(habit_id, {})

    def count_in_bucket(self, domain: str, bucket: str) -> int:
        meta = get_domain(domain)
        items = self.read(domain)
        if domain == HABITS:
            items = [item for item in items if not item.get("is_deleted")]
        return sum(1 for item in items if bucket_of(meta, item) == bucket)

    def flush(self) -> None:
        """Force a mirror write (used right before navigating to sign-up)."""
        self._persist()

    # Internal helpers ---------------------------------------------------
    def _persist(self) -> None:
        try:
            payload = json.dumps(self._data, ensure_ascii=False)
            self._storage.set_item(self._key, payload)
        except Exception as exc:
            # In-memory state stays authoritative for the rest of the session
            logger.warning(
                "[ledger] failed to mirror guest data to session storage",
                extra={"error": str(exc), "domains": sorted(self._data)},
            )

    def _rehydrate(self) -> Dict[str, Any]:
        try:
            stored = self._storage.get_item(self._key)
        except Exception:
            logger.warning("[ledger] session storage unreadable, starting empty", exc_info=True)
            return {}
        if not stored:
            return {}
        try:
            raw = json.loads(stored)
        except (TypeError, ValueError):
            logger.warning("[ledger] persisted guest data is not valid JSON, starting empty")
            return {}
        if not isinstance(raw, dict):
            return {}

        data: Dict[str, Any] = {}
        for name, value in raw.items():
            if name not in DOMAIN_NAMES:
                logger.info("[ledger] dropping unknown domain from session storage", extra={"domain": name})
                continue
            try:
                data[name] = normalize_value(name, value)
            except ValueError:
                logger.warning("[ledger] dropping invalid persisted domain", extra={"domain": name})
        return data


def _tracks_updates(domain: str) -> bool:
    return "updated_at" in get_domain(domain).model.model_fields
