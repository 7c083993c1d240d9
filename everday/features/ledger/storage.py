"""
everday/features/ledger/storage.py

Session-scoped key/value storage the guest ledger mirrors itself into.
"""

from typing import Dict, Optional, Protocol

from everday.core.errors import StorageQuotaExceededError


class SessionStorage(Protocol):
    """String key/value store that lives as long as one browser session."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemorySessionStorage:
    """
    Dict-backed session storage.

    quota_bytes caps the UTF-8 size of all stored values together, mimicking
    the browser raising when a tab's storage is full.
    """

    def __init__(self, quota_bytes: Optional[int] = None):
        self._items: Dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._quota_bytes is not None:
            others = sum(len(v.encode("utf-8")) for k, v in self._items.items() if k != key)
            if others + len(value.encode("utf-8")) > self._quota_bytes:
                raise StorageQuotaExceededError(f"Session storage quota of {self._quota_bytes} bytes exceeded")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)
