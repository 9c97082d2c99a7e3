from __future__ import annotations

from typing import Any
from uuid import uuid4


def new_trace_id() -> str:
    return uuid4().hex


class TrackedError(Exception):
    """Failure that carries a trace id into logs and CLI output."""

    error_type = "dashsync"

    def __init__(self, message: str, *, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or new_trace_id()
        super().__init__(message)

    def with_trace(self) -> str:
        return f"{self.args[0]} (trace_id={self.trace_id})"

    def log_data(self) -> dict[str, Any]:
        return {"error_type": self.error_type, "trace_id": self.trace_id}


class UpdateEventDecodeError(TrackedError):
    error_type = "update_event_decode"


class RelayError(TrackedError):
    error_type = "relay"

    def __init__(self, message: str, *, status_code: int | None = None, trace_id: str | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, trace_id=trace_id)

    def log_data(self) -> dict[str, Any]:
        data = super().log_data()
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data


class UnknownResourceError(KeyError):
    def __init__(self, name: str, *, available: list[str]) -> None:
        self.name = name
        self.available = list(available)
        super().__init__(f"Unknown resource '{name}' (available: {', '.join(self.available)})")


__all__ = [
    "new_trace_id",
    "TrackedError",
    "UpdateEventDecodeError",
    "RelayError",
    "UnknownResourceError",
]
