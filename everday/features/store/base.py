"""
everday/features/store/base.py

Contract every authoritative store backend implements.

Rows go in and come out as plain dicts. Filters are equality matches;
a list/tuple/set value means "column IN values".
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple


Filters = Mapping[str, Any]


class RecordStore(Protocol):
    def select(self, table: str, filters: Optional[Filters] = None, *, order_by: Optional[str] = None) -> List[Dict[str, Any]]: ...

    def count(self, table: str, filters: Optional[Filters] = None) -> int: ...

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]: ...

    def update(self, table: str, match: Filters, values: Mapping[str, Any]) -> int: ...

    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]], *, on_conflict: Tuple[str, ...] = ("id",)) -> int: ...

    def delete(self, table: str, match: Filters) -> int: ...


def to_plain(value: Any) -> Any:
    """Convert dates, enums and nested containers to JSON-safe values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return aware.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain(v) for v in value]
    return value


def is_multi(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def plain_rows(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [to_plain(dict(row)) for row in rows]
