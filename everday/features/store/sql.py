"""
everday/features/store/sql.py

SQLAlchemy-backed authoritative store.

Upserts use the dialect's INSERT ... ON CONFLICT DO UPDATE so a retried
merge updates the rows it already wrote instead of duplicating them.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import Date, DateTime, Table, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from everday.core.database import get_engine, metadata
from everday.core.errors import ConflictError, StoreError, ValidationError
from everday.features.store.base import Filters, is_multi, to_plain


logger = logging.getLogger(__name__)


class SqlRecordStore:
    def __init__(self, engine=None):
        self._engine = engine or get_engine()

    def select(self, table: str, filters: Optional[Filters] = None, *, order_by: Optional[str] = None) -> List[Dict[str, Any]]:
        tbl = _table(table)
        stmt = select(tbl).where(*_conditions(tbl, filters))
        if order_by:
            stmt = stmt.order_by(tbl.c[order_by].asc())
        with _guard(table, "select"):
            with self._engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        return [to_plain(dict(row)) for row in rows]

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        tbl = _table(table)
        stmt = select(func.count()).select_from(tbl).where(*_conditions(tbl, filters))
        with _guard(table, "count"):
            with self._engine.connect() as conn:
                return int(conn.execute(stmt).scalar() or 0)

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        tbl = _table(table)
        values = _coerce_row(tbl, row)
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(tbl).values(**values))
        except IntegrityError as exc:
            raise ConflictError(f"Row already exists in {table}") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"insert into {table} failed: {exc.__class__.__name__}") from exc
        return to_plain(values)

    def update(self, table: str, match: Filters, values: Mapping[str, Any]) -> int:
        tbl = _table(table)
        stmt = update(tbl).where(*_conditions(tbl, match)).values(**_coerce_row(tbl, values))
        with _guard(table, "update"):
            with self._engine.begin() as conn:
                return conn.execute(stmt).rowcount

    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]], *, on_conflict: Tuple[str, ...] = ("id",)) -> int:
        tbl = _table(table)
        dialect_insert = self._dialect_insert()
        with _guard(table, "upsert"):
            with self._engine.begin() as conn:
                for row in rows:
                    values = _coerce_row(tbl, row)
                    stmt = dialect_insert(tbl).values(**values)
                    # Never rewrite a primary key that is not the conflict target
                    changed = [c for c in values if c not in on_conflict and c != "id"]
                    if changed:
                        stmt = stmt.on_conflict_do_update(
                            index_elements=list(on_conflict),
                            set_={c: stmt.excluded[c] for c in changed},
                        )
                    else:
                        stmt = stmt.on_conflict_do_nothing(index_elements=list(on_conflict))
                    conn.execute(stmt)
        return len(rows)

    def delete(self, table: str, match: Filters) -> int:
        tbl = _table(table)
        stmt = delete(tbl).where(*_conditions(tbl, match))
        with _guard(table, "delete"):
            with self._engine.begin() as conn:
                return conn.execute(stmt).rowcount

    # Internal helpers ---------------------------------------------------
    def _dialect_insert(self):
        name = self._engine.dialect.name
        if name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as pg_insert
            return pg_insert
        if name == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as sqlite_insert
            return sqlite_insert
        raise StoreError(f"Upsert is not supported on {name}")


@contextmanager
def _guard(table: str, operation: str):
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "[store] sql operation failed",
            extra={"table": table, "operation": operation, "error": exc.__class__.__name__},
        )
        raise StoreError(f"{operation} on {table} failed: {exc.__class__.__name__}") from exc


def _table(name: str) -> Table:
    try:
        return metadata.tables[name]
    except KeyError:
        raise ValidationError(f"Unknown table: {name}") from None


def _coerce_value(column, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(column.type, DateTime):
        if isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if isinstance(value, datetime):
            aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
            return aware.astimezone(timezone.utc)
        return value
    if isinstance(column.type, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            return date.fromisoformat(value[:10])
        return value
    return to_plain(value)


def _coerce_row(tbl: Table, row: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep known columns only, converting ISO strings for date columns."""
    return {k: _coerce_value(tbl.c[k], v) for k, v in row.items() if k in tbl.c}


def _conditions(tbl: Table, filters: Optional[Filters]):
    conditions = []
    for column, expected in (filters or {}).items():
        if column not in tbl.c:
            raise ValidationError(f"Unknown column {column} on {tbl.name}")
        col = tbl.c[column]
        if is_multi(expected):
            conditions.append(col.in_([_coerce_value(col, v) for v in expected]))
        else:
            conditions.append(col == _coerce_value(col, expected))
    return conditions
