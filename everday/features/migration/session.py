"""
everday/features/migration/session.py

Client side of the guest-to-account merge.

A GuestSession owns the ledger for one browser session. The coordinator
runs the merge once identity shows up and only clears the ledger after the
server confirms it; a failed merge leaves everything in place for a retry.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from everday.core.errors import AppError
from everday.core.logging import bind_session_id, log_event
from everday.features.ledger.service import GuestLedger
from everday.models.base import new_record_id


MigrateFn = Callable[[str, Mapping[str, Any]], Any]

RETRY_MESSAGE = "We couldn't move your guest data into your account. It's still here; we'll try again."


class MigrationStatus(str, Enum):
    SKIPPED_NO_IDENTITY = "skipped_no_identity"
    SKIPPED_EMPTY = "skipped_empty"
    SKIPPED_ALREADY_MIGRATED = "skipped_already_migrated"
    IN_FLIGHT = "in_flight"
    MIGRATED = "migrated"
    FAILED = "failed"


@dataclass(frozen=True)
class MigrationOutcome:
    status: MigrationStatus
    user_id: Optional[str] = None
    message: Optional[str] = None
    retryable: bool = False
    report: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status is MigrationStatus.MIGRATED


class GuestSession:
    """Per-browser-session state around the guest ledger."""

    def __init__(self, ledger: GuestLedger, *, session_id: Optional[str] = None):
        self.ledger = ledger
        self.session_id = session_id or new_record_id()
        self.user_id: Optional[str] = None
        self.migrated = False
        self.suppress_leave_warning = False

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    def should_warn_on_leave(self) -> bool:
        """Warn before unload while unsaved guest data exists."""
        return self.is_guest and not self.suppress_leave_warning and self.ledger.has_data()

    def prepare_signup(self) -> None:
        """Flush the ledger and silence the leave prompt before going to sign-up."""
        self.ledger.flush()
        self.suppress_leave_warning = True


class ReconciliationCoordinator:
    """
    Runs the merge at most once per session.

    on_identity_change() is safe to call on every auth state change: it
    skips without identity, with an empty ledger, once migrated, and while a
    merge is already running.
    """

    def __init__(self, session: GuestSession, migrate: MigrateFn):
        self.session = session
        self._migrate = migrate
        self._in_flight = threading.Lock()

    def on_identity_change(self, user_id: Optional[str]) -> MigrationOutcome:
        session = self.session
        session.user_id = user_id
        if not user_id:
            return MigrationOutcome(MigrationStatus.SKIPPED_NO_IDENTITY)
        if session.migrated:
            return MigrationOutcome(MigrationStatus.SKIPPED_ALREADY_MIGRATED, user_id=user_id)
        if not session.ledger.has_data():
            return MigrationOutcome(MigrationStatus.SKIPPED_EMPTY, user_id=user_id)
        if not self._in_flight.acquire(blocking=False):
            return MigrationOutcome(MigrationStatus.IN_FLIGHT, user_id=user_id)
        try:
            with bind_session_id(session.session_id):
                return self._run(user_id)
        finally:
            self._in_flight.release()

    def _run(self, user_id: str) -> MigrationOutcome:
        session = self.session
        snapshot = session.ledger.snapshot()
        try:
            result = self._migrate(user_id, snapshot)
        except AppError as exc:
            log_event(
                "error",
                "migration.failed",
                user_id=user_id,
                domain=getattr(exc, "domain", None),
                error_code=exc.code,
                extra={"error": exc.message},
            )
            return MigrationOutcome(MigrationStatus.FAILED, user_id=user_id, message=RETRY_MESSAGE, retryable=True)
        except Exception as exc:
            log_event(
                "error",
                "migration.failed",
                user_id=user_id,
                error_code="unexpected_error",
                extra={"error": f"{exc.__class__.__name__}: {exc}"},
            )
            return MigrationOutcome(MigrationStatus.FAILED, user_id=user_id, message=RETRY_MESSAGE, retryable=True)

        # Confirmed: only now is the guest copy redundant
        session.ledger.clear()
        session.migrated = True
        log_event("info", "migration.ledger_cleared", user_id=user_id, event_type="guest_migrated")
        report = result.to_dict() if hasattr(result, "to_dict") else result
        return MigrationOutcome(MigrationStatus.MIGRATED, user_id=user_id, report=report)
