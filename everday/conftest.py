# everday/conftest.py
import pytest

from everday.core.database import build_engine, create_all_tables
from everday.features.ledger.service import GuestLedger
from everday.features.ledger.storage import InMemorySessionStorage
from everday.features.store.memory import InMemoryRecordStore
from everday.features.store.service import reset_store, set_store
from everday.features.store.sql import SqlRecordStore


@pytest.fixture(scope="function", autouse=True)
def memory_store():
    """
    Every test gets a fresh in-memory authoritative store installed as the
    process-wide store, whatever DATABASE_URL says.
    """
    store = InMemoryRecordStore()
    set_store(store)
    yield store
    reset_store()


@pytest.fixture
def session_storage():
    return InMemorySessionStorage()


@pytest.fixture
def ledger(session_storage):
    return GuestLedger(session_storage)


@pytest.fixture
def sqlite_engine():
    engine = build_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(sqlite_engine):
    return SqlRecordStore(sqlite_engine)


@pytest.fixture
def premium_user(memory_store):
    memory_store.insert("profiles", {"id": "user_plus", "plan": "plus", "is_premium": False})
    return "user_plus"
