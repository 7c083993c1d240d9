"""
everday/features/store/service.py

Backend selection for the authoritative store.

- Supabase PostgREST when SUPABASE_URL and the service role key are set
- SQLAlchemy when a database URL is configured and reachable
- In-memory otherwise (development, tests)

Callers use get_store(); the choice is made once per process.
"""

import logging
import os

from everday.core.config import settings
from everday.core.errors import StoreError
from everday.features.store.base import RecordStore
from everday.features.store.memory import InMemoryRecordStore


logger = logging.getLogger(__name__)


def get_record_store() -> RecordStore:
    supabase_url = os.getenv("SUPABASE_URL") or settings.SUPABASE_URL
    service_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or settings.SUPABASE_SERVICE_ROLE_KEY
    if supabase_url and service_key:
        from everday.features.store.supabase import SupabaseRecordStore

        return SupabaseRecordStore(supabase_url, service_key)

    from everday.core.database import check_connection, create_all_tables, get_database_url

    if get_database_url():
        try:
            if check_connection():
                from everday.features.store.sql import SqlRecordStore

                create_all_tables()
                return SqlRecordStore()
            logger.warning("[store] database unavailable, falling back to in-memory")
        except (StoreError, ValueError) as exc:
            logger.warning("[store] failed to initialize SQL store, falling back to in-memory", extra={"error": str(exc)})

    return InMemoryRecordStore()


# Global store instance (lazy initialization)
_store_instance = None


def get_store() -> RecordStore:
    """Singleton store; the primary API consumers should use."""
    global _store_instance
    if _store_instance is None:
        _store_instance = get_record_store()
    return _store_instance


def set_store(store: RecordStore) -> None:
    """Install a specific backend (tests, scripts)."""
    global _store_instance
    _store_instance = store


def reset_store() -> None:
    """
    Reset the store instance.

    FOR TESTING ONLY - forces re-initialization on next get_store() call.
    """
    global _store_instance
    _store_instance = None
