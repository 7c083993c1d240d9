"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine management
- Connection pooling with sane defaults
- Test database support
- Table definitions for every account-owned domain
"""
from typing import Optional
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Date, Boolean, JSON, Text, Index, UniqueConstraint
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.sql import func
import logging
import os

from everday.core.config import settings


logger = logging.getLogger("everday")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine
_engine = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL") or settings.TEST_DATABASE_URL
    if test_url:
        return test_url

    url = os.getenv("DATABASE_URL") or settings.DATABASE_URL
    if url and url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def build_engine(url: str):
    """Create an engine; SQLite URLs share one connection so in-memory data survives."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        echo=False,  # Set to True for SQL query logging
    )


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    _engine = build_engine(url)

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def reset_engine() -> None:
    """Dispose the global engine. FOR TESTING ONLY."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def create_all_tables(engine=None):
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    metadata.create_all(bind=engine or get_engine())


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


# Profiles (plan tier lives here)
profiles = Table(
    'profiles',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('email', Text, nullable=True),
    Column('username', String(100), nullable=True, unique=True),
    Column('full_name', Text, nullable=True),
    Column('plan', String(20), nullable=False, server_default='free'),
    Column('is_premium', Boolean, nullable=False, server_default='0'),
    Column('plan_expires_at', DateTime(timezone=True), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

habits = Table(
    'habits',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('user_id', String(64), nullable=False, index=True),
    Column('name', Text, nullable=False),
    Column('icon_key', String(50), nullable=True),
    Column('best_streak', Integer, nullable=False, server_default='0'),
    Column('is_deleted', Boolean, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Index('idx_habits_user_created', 'user_id', 'created_at'),
)

# One log per (habit, day); the pair is the upsert key
habit_logs = Table(
    'habit_logs',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('habit_id', String(64), nullable=False, index=True),
    Column('log_date', Date, nullable=False),
    Column('status', String(20), nullable=False),
    UniqueConstraint('habit_id', 'log_date', name='uq_habit_logs_habit_date'),
)

notes = Table(
    'notes',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('user_id', String(64), nullable=False, index=True),
    Column('title', Text, nullable=True),
    Column('content', Text, nullable=True),
    Column('color', String(20), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=True),
)

todos = Table(
    'todos',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('user_id', String(64), nullable=False, index=True),
    Column('type', String(20), nullable=False),
    Column('title', Text, nullable=False),
    Column('is_completed', Boolean, nullable=False, server_default='0'),
    Column('background_color', String(20), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=True),
    Index('idx_todos_user_type', 'user_id', 'type'),
)

reading_list_items = Table(
    'reading_list_items',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('user_id', String(64), nullable=False, index=True),
    Column('title', Text, nullable=True),
    Column('author', Text, nullable=True),
    Column('notes', Text, nullable=True),
    Column('status', String(20), nullable=False),
    Column('background_color', String(20), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Index('idx_reading_user_status', 'user_id', 'status'),
)

movie_items = Table(
    'movie_items',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('user_id', String(64), nullable=False, index=True),
    Column('title', Text, nullable=True),
    Column('actor_actress', Text, nullable=True),
    Column('director', Text, nullable=True),
    Column('notes', Text, nullable=True),
    Column('status', String(20), nullable=False),
    Column('card_color', String(20), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Index('idx_movies_user_status', 'user_id', 'status'),
)

journal_entries = Table(
    'journal_entries',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('user_id', String(64), nullable=False, index=True),
    Column('entry_date', Date, nullable=False),
    Column('thoughts', Text, nullable=True),
    Column('good_things', Text, nullable=True),
    Column('bad_things', Text, nullable=True),
    Column('lessons', Text, nullable=True),
    Column('dreams', Text, nullable=True),
    Column('mood', String(20), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=True),
)

source_dumps = Table(
    'source_dumps',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('user_id', String(64), nullable=False, index=True),
    Column('title', Text, nullable=False),
    Column('links', Text, nullable=True),
    Column('text_content', Text, nullable=True),
    Column('screenshots', JSON, nullable=False, default=list),
    Column('background_color', String(20), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
)
