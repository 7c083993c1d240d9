"""
everday/features/store/memory.py

In-memory authoritative store. Used when no database is configured and in tests.
"""

import copy
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from everday.core.errors import ConflictError
from everday.features.store.base import Filters, is_multi, to_plain


class InMemoryRecordStore:
    """
    Dict-of-lists store with the same upsert semantics as the database
    backends: rows are matched on the conflict columns and updated in place.
    """

    def __init__(self):
        self._tables: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def select(self, table: str, filters: Optional[Filters] = None, *, order_by: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._tables.get(table, []) if _matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ""))
        return rows

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        with self._lock:
            return sum(1 for r in self._tables.get(table, []) if _matches(r, filters))

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        plain = to_plain(dict(row))
        with self._lock:
            rows = self._tables.setdefault(table, [])
            if "id" in plain and any(r.get("id") == plain["id"] for r in rows):
                raise ConflictError(f"Duplicate id {plain['id']} in {table}")
            rows.append(plain)
            return copy.deepcopy(plain)

    def update(self, table: str, match: Filters, values: Mapping[str, Any]) -> int:
        changes = to_plain(dict(values))
        updated = 0
        with self._lock:
            for row in self._tables.get(table, []):
                if _matches(row, match):
                    row.update(changes)
                    updated += 1
        return updated

    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]], *, on_conflict: Tuple[str, ...] = ("id",)) -> int:
        with self._lock:
            existing = self._tables.setdefault(table, [])
            for row in rows:
                plain = to_plain(dict(row))
                key = {col: plain.get(col) for col in on_conflict}
                current = next((r for r in existing if _matches(r, key)), None)
                if current is None:
                    existing.append(plain)
                else:
                    # The stored primary key wins over the incoming one
                    current.update({k: v for k, v in plain.items() if k != "id" or "id" in on_conflict})
            return len(rows)

    def delete(self, table: str, match: Filters) -> int:
        with self._lock:
            rows = self._tables.get(table, [])
            kept = [r for r in rows if not _matches(r, match)]
            self._tables[table] = kept
            return len(rows) - len(kept)

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        with self._lock:
            self._tables.clear()


def _matches(row: Mapping[str, Any], filters: Optional[Filters]) -> bool:
    for column, expected in (filters or {}).items():
        actual = row.get(column)
        if is_multi(expected):
            if actual not in [to_plain(v) for v in expected]:
                return False
        elif actual != to_plain(expected):
            return False
    return True
