from __future__ import annotations

import copy
import json
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import UpdateEventDecodeError
from .types import UPDATE_ORIGIN, UpdateKind


def now_millis() -> int:
    return time.time_ns() // 1_000_000


class UpdateEvent(BaseModel):
    """A "something changed" notice shared between dashboard contexts.

    The wire form keeps the field names the browser dashboards write into
    storage (``type``, ``data``, ``timestamp``, ``source``) so both can share
    one channel.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: UpdateKind = Field(alias="type")
    payload: Dict[str, Any] = Field(default_factory=dict, alias="data")
    emitted_at_millis: int = Field(default_factory=now_millis, alias="timestamp")
    origin: str = Field(default=UPDATE_ORIGIN, alias="source")
    context_id: Optional[str] = Field(default=None, alias="context")

    @field_validator("payload", mode="before")
    @classmethod
    def validate_payload(cls, value: Any) -> Dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("payload must be an object")
        return copy.deepcopy(dict(value))

    def detached(self) -> "UpdateEvent":
        """Copy whose payload shares no containers with this event."""
        return self.model_copy(update={"payload": copy.deepcopy(self.payload)})

    @property
    def is_update(self) -> bool:
        return self.origin == UPDATE_ORIGIN

    def to_storage_value(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_storage_value(cls, value: Optional[str]) -> "UpdateEvent":
        """Decode a storage value, rejecting anything that is not an update event."""
        if not value:
            raise UpdateEventDecodeError("empty storage value")
        try:
            raw = json.loads(value)
        except (TypeError, json.JSONDecodeError) as exc:
            raise UpdateEventDecodeError(f"storage value is not JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise UpdateEventDecodeError("storage value is not an object")
        if raw.get("source", raw.get("origin")) != UPDATE_ORIGIN:
            raise UpdateEventDecodeError("storage value has a foreign origin")
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise UpdateEventDecodeError(f"invalid update event: {exc.error_count()} error(s)") from exc

    def to_sse(self) -> str:
        """Convert event to SSE format."""
        return f"data: {json.dumps(self.model_dump(mode='json', by_alias=True), ensure_ascii=False)}\n\n"
