"""In-memory activity log shown next to the admin screens.

Keeps the most recent entries for display and mirrors each one to the
standard ``dashsync.activity`` logger.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger("dashsync.activity")


class EntryType(str, Enum):
    API = "api"
    ERROR = "error"
    SUCCESS = "success"
    WARNING = "warning"
    INFO = "info"


_LEVELS = {
    EntryType.API: logging.DEBUG,
    EntryType.ERROR: logging.ERROR,
    EntryType.SUCCESS: logging.INFO,
    EntryType.WARNING: logging.WARNING,
    EntryType.INFO: logging.INFO,
}


class ActivityEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: EntryType
    message: str
    data: Optional[Any] = None
    title: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[List[ActivityEntry]], Any]


class ActivityLog:
    def __init__(self, max_entries: int = 1000) -> None:
        self._entries: Deque[ActivityEntry] = deque(maxlen=max_entries)
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = list(self._entries)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Activity log listener failed")

    def add(self, type: EntryType | str, message: str, data: Any = None, title: Optional[str] = None) -> ActivityEntry:
        entry = ActivityEntry(type=EntryType(type), message=message, data=data, title=title)
        self._entries.append(entry)
        logger.log(_LEVELS[entry.type], message, extra={"data": {"type": entry.type.value, "title": title}})
        self._notify()
        return entry

    def log_api(self, method: str, endpoint: str, payload: Any = None) -> ActivityEntry:
        return self.add(
            EntryType.API,
            f"{method} {endpoint}",
            {"method": method, "endpoint": endpoint, "payload": payload},
            f"API Request: {method} {endpoint}",
        )

    def log_api_response(self, endpoint: str, response: Any, status: Optional[int] = None) -> ActivityEntry:
        return self.add(
            EntryType.API,
            f"Response from {endpoint}",
            {"endpoint": endpoint, "response": response, "status": status},
            f"API Response: {endpoint}",
        )

    def log_api_error(self, endpoint: str, error: Any, payload: Any = None) -> ActivityEntry:
        return self.add(
            EntryType.ERROR,
            f"API Error: {endpoint} - {error}",
            {"endpoint": endpoint, "error": str(error), "payload": payload},
            f"API Error: {endpoint}",
        )

    def success(self, message: str, data: Any = None) -> ActivityEntry:
        return self.add(EntryType.SUCCESS, message, data, "Success")

    def error(self, message: str, data: Any = None) -> ActivityEntry:
        return self.add(EntryType.ERROR, message, data, "Error")

    def warning(self, message: str, data: Any = None) -> ActivityEntry:
        return self.add(EntryType.WARNING, message, data, "Warning")

    def info(self, message: str, data: Any = None) -> ActivityEntry:
        return self.add(EntryType.INFO, message, data, "Info")

    def log_data_fetch(self, data_type: str, result: Any = None, count: Optional[int] = None) -> ActivityEntry:
        message = f"Fetched {count} {data_type}" if count is not None else f"Fetched {data_type}"
        return self.add(
            EntryType.INFO,
            message,
            {"data_type": data_type, "result": result, "count": count},
            f"Data Fetch: {data_type}",
        )

    def log_data_mapping(self, source: str, target: str, count: Optional[int] = None) -> ActivityEntry:
        suffix = f" ({count} items)" if count else ""
        return self.add(
            EntryType.INFO,
            f"Mapped {source} to {target}{suffix}",
            {"source": source, "target": target, "count": count},
            "Data Mapping",
        )

    def log_missing_data(self, field: str, context: Optional[str] = None) -> ActivityEntry:
        suffix = f" in {context}" if context else ""
        return self.add(
            EntryType.WARNING,
            f"Missing data: {field}{suffix}",
            {"field": field, "context": context},
            "Missing Data",
        )

    def clear(self) -> None:
        self._entries.clear()
        self._notify()

    def entries(self) -> List[ActivityEntry]:
        return list(self._entries)

    def by_type(self, type: EntryType | str) -> List[ActivityEntry]:
        wanted = EntryType(type)
        return [entry for entry in self._entries if entry.type is wanted]

    def counts(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for entry in self._entries:
            totals[entry.type.value] = totals.get(entry.type.value, 0) + 1
        return totals


__all__ = ["ActivityEntry", "ActivityLog", "EntryType"]
