"""Shared key/value storage used as the cross-context signalling channel.

Mirrors the browser ``localStorage`` + ``storage`` event contract: a write
notifies every listening context except the one that wrote it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageChange:
    key: str
    old_value: Optional[str]
    new_value: Optional[str]
    writer: Optional[str] = None


StorageListener = Callable[[StorageChange], None]


class SharedStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str, *, writer: Optional[str] = None) -> None: ...

    def remove_item(self, key: str, *, writer: Optional[str] = None) -> None: ...

    def add_listener(self, listener: StorageListener, *, context: Optional[str] = None) -> Callable[[], None]: ...


class InMemorySharedStorage:
    """Process-local storage shared by several bus contexts."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}
        self._listeners: List[Tuple[Optional[str], StorageListener]] = []

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def keys(self) -> List[str]:
        return list(self._items)

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str, *, writer: Optional[str] = None) -> None:
        old_value = self._items.get(key)
        self._items[key] = value
        self._notify(StorageChange(key=key, old_value=old_value, new_value=value, writer=writer))

    def remove_item(self, key: str, *, writer: Optional[str] = None) -> None:
        if key not in self._items:
            return
        old_value = self._items.pop(key)
        self._notify(StorageChange(key=key, old_value=old_value, new_value=None, writer=writer))

    def add_listener(self, listener: StorageListener, *, context: Optional[str] = None) -> Callable[[], None]:
        entry = (context, listener)
        self._listeners.append(entry)

        def remove() -> None:
            try:
                self._listeners.remove(entry)
            except ValueError:
                pass

        return remove

    def _notify(self, change: StorageChange) -> None:
        for context, listener in list(self._listeners):
            if change.writer is not None and context == change.writer:
                continue
            try:
                listener(change)
            except Exception:
                logger.exception("Storage listener failed for key %s", change.key)


__all__ = [
    "InMemorySharedStorage",
    "SharedStorage",
    "StorageChange",
    "StorageListener",
]
