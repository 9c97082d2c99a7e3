from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import get_settings

ROLE_DASHBOARDS: dict[str, str] = {
    "super_admin": "/dashboard/super-admin",
    "branch_admin": "/dashboard/branch-admin",
    "accountant": "/dashboard/accountant",
    "order_taker": "/dashboard/order-taker",
    "kitchen": "/dashboard/kitchen",
}

_BOOLEAN_STRINGS = {"true", "false"}


def _clean_text(value: Any) -> Optional[str]:
    """Drop absent and boolean-looking values the backend sometimes sends."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text or text.lower() in _BOOLEAN_STRINGS:
        return None
    return text


def _clean_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _login_sources(payload: dict[str, Any]) -> list[dict[str, Any]]:
    sources = [payload]
    data = payload.get("data")
    if isinstance(data, dict):
        sources.append(data)
    for holder in list(sources):
        for nested in ("user", "branch"):
            value = holder.get(nested)
            if isinstance(value, dict):
                sources.append(value)
    return sources


def _first(sources: list[dict[str, Any]], *keys: str) -> Any:
    for source in sources:
        for key in keys:
            value = source.get(key)
            if value is not None and value != "":
                return value
    return None


@dataclass
class ApiSession:
    """Client-held identity attached to every backend call."""

    token: Optional[str] = None
    role: Optional[str] = None
    branch_id: Optional[int] = None
    branch_name: Optional[str] = None
    terminal: int = field(default_factory=lambda: get_settings().terminal)
    fullname: Optional[str] = None
    username: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def dashboard_path(self) -> str:
        if self.role and self.role in ROLE_DASHBOARDS:
            return ROLE_DASHBOARDS[self.role]
        return "/login"

    def auth_headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def apply_login(self, payload: Any) -> bool:
        """Store identity from a login response body.

        Login responses put the token, role and branch at the top level, under
        ``data``, under ``user`` or under ``data.user``; the first usable value
        wins. Returns False (leaving the session untouched) when no token or no
        valid role came back.
        """
        if not isinstance(payload, dict):
            return False
        sources = _login_sources(payload)
        token = _clean_text(_first(sources, "token"))
        role = _clean_text(_first(sources, "role"))
        if token is None or role is None:
            return False
        self.token = token
        self.role = role
        branch_id = _clean_int(_first(sources, "branch_id"))
        if branch_id is not None:
            self.branch_id = branch_id
        self.branch_name = _clean_text(_first(sources, "branch_name")) or self.branch_name
        self.fullname = _clean_text(_first(sources, "fullname", "full_name", "name")) or self.fullname
        self.username = _clean_text(_first(sources, "username")) or self.username
        return True

    def clear(self) -> None:
        self.token = None
        self.role = None
        self.branch_id = None
        self.branch_name = None
        self.fullname = None
        self.username = None


__all__ = ["ApiSession", "ROLE_DASHBOARDS"]
