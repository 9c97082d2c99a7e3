"""Locate the payload list inside inconsistently wrapped backend responses.

The PHP endpoints answer list requests in several shapes: a bare array,
``{"data": [...]}``, ``{"success": true, "data": [...]}``,
``{"data": {"success": true, "data": [...]}}``, ``{"data": {"categories": [...]}}``
or an object whose first list-valued property is the payload. ``normalize``
tries those shapes in a fixed order and never raises.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Request failed"

DEFAULT_ID_ALIASES: tuple[str, ...] = (
    "id",
    "ID",
    "category_id",
    "kitchen_id",
    "hall_id",
    "table_id",
    "branch_id",
    "dish_id",
    "user_id",
    "order_id",
    "bill_id",
    "customer_id",
    "expense_id",
    "printer_id",
)


class EmptyPolicy(str, Enum):
    """What to do with an explicit success that carries zero items."""

    SILENT = "silent"
    WARN = "warn"


class NormalizedResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: list[Any] = Field(default_factory=list)
    matched_path: Optional[str] = None
    is_error_shape: bool = False
    error_message: Optional[str] = None
    dropped: int = 0
    empty_warning: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.items


def js_truthy(value: Any) -> bool:
    """Truthiness as the dashboard pages evaluated it (empty containers are truthy)."""
    if value is None or value is False:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, (int, float)):
        return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
    if isinstance(value, str):
        return value != ""
    return True


def is_usable(value: Any) -> bool:
    return value is not None and value != ""


def pick(record: Any, *aliases: str, default: Any = None) -> Any:
    """Return the first alias bound to a usable value in ``record``."""
    if not isinstance(record, Mapping):
        return default
    for alias in aliases:
        value = record.get(alias)
        if is_usable(value):
            return value
    return default


def has_identifier(record: Any, id_aliases: Iterable[str]) -> bool:
    if not isinstance(record, Mapping):
        return False
    return any(is_usable(record.get(alias)) for alias in id_aliases)


def _as_key_order(candidate_keys: Iterable[str] | str | None) -> tuple[str, ...]:
    if candidate_keys is None:
        return ()
    if isinstance(candidate_keys, str):
        return (candidate_keys,)
    return tuple(key for key in candidate_keys if isinstance(key, str))


def _locate(raw: Any, candidate_keys: tuple[str, ...]) -> tuple[Optional[list[Any]], Optional[str], Optional[str]]:
    """Return ``(items, matched_path, error_message)``; items is None when nothing matched."""
    if isinstance(raw, list):
        return raw, "$", None
    if not isinstance(raw, Mapping):
        return None, None, None

    data = raw.get("data")
    if isinstance(data, list):
        return data, "$.data", None
    if not isinstance(data, Mapping):
        return None, None, None

    nested = data.get("data")
    if js_truthy(data.get("success")) and isinstance(nested, list):
        return nested, "$.data.data", None

    for key in candidate_keys:
        value = data.get(key)
        if isinstance(value, list):
            return value, f"$.data.{key}", None

    for key, value in data.items():
        if isinstance(value, list):
            logger.debug("Matched first list-valued property '%s' in response data", key)
            return value, f"$.data.{key}", None

    if data.get("success") is False:
        message = pick(data, "message", "error", default=DEFAULT_ERROR_MESSAGE)
        return None, "$.data.success", str(message)

    return None, None, None


def _explicit_success(raw: Any) -> bool:
    if not isinstance(raw, Mapping):
        return False
    if raw.get("success") is True:
        return True
    data = raw.get("data")
    return isinstance(data, Mapping) and js_truthy(data.get("success"))


def normalize(
    raw: Any,
    candidate_keys: Iterable[str] | str | None = (),
    *,
    id_aliases: Iterable[str] | None = DEFAULT_ID_ALIASES,
    empty_policy: EmptyPolicy | str = EmptyPolicy.SILENT,
) -> NormalizedResult:
    """Extract the payload records from a backend response of unknown shape.

    Shapes are tried in order and the first match wins: bare list, ``data``
    list, ``data.data`` list behind a truthy ``data.success``, a list under
    one of ``candidate_keys``, the first list-valued property of ``data``,
    and finally ``data.success is False`` as an explicit error.

    Records without any of ``id_aliases`` are dropped; pass ``None`` to keep
    every record.
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    try:
        policy = EmptyPolicy(empty_policy)
    except ValueError:
        logger.warning("Unknown empty policy %r; using silent", empty_policy)
        policy = EmptyPolicy.SILENT

    try:
        located, matched_path, error_message = _locate(raw, _as_key_order(candidate_keys))
    except Exception:
        logger.exception("Response normalization failed; treating as empty")
        return NormalizedResult()

    if error_message is not None:
        logger.debug("Backend reported failure: %s", error_message)
        return NormalizedResult(
            matched_path=matched_path,
            is_error_shape=True,
            error_message=error_message,
        )
    if located is None:
        logger.debug("No payload list found in response of type %s", type(raw).__name__)
        return NormalizedResult()

    if id_aliases is None:
        items = list(located)
    else:
        aliases = tuple(id_aliases)
        items = [record for record in located if has_identifier(record, aliases)]
    dropped = len(located) - len(items)
    if dropped:
        logger.debug("Dropped %s record(s) without an identifier at %s", dropped, matched_path)

    empty_warning = False
    if not located and policy is EmptyPolicy.WARN and _explicit_success(raw):
        empty_warning = True
        logger.warning("Backend reported success with no records at %s", matched_path)

    return NormalizedResult(
        items=items,
        matched_path=matched_path,
        dropped=dropped,
        empty_warning=empty_warning,
    )


__all__ = [
    "DEFAULT_ERROR_MESSAGE",
    "DEFAULT_ID_ALIASES",
    "EmptyPolicy",
    "NormalizedResult",
    "has_identifier",
    "is_usable",
    "js_truthy",
    "normalize",
    "pick",
]
