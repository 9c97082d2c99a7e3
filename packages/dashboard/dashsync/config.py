from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any

from dotenv import find_dotenv, load_dotenv


def _load_env() -> None:
    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path, override=False)


_load_env()


def _get_env(key: str, default: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value


def _get_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_optional_float(key: str) -> float | None:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def _get_list(key: str, default: list[str]) -> list[str]:
    value = os.getenv(key)
    if value is None:
        return list(default)
    items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


@dataclass
class Settings:
    api_base_url: str = field(
        default_factory=lambda: _get_env("DASHSYNC_API_BASE_URL")
        or _get_env("NEXT_PUBLIC_API_BASE_URL", "http://localhost/restuarent/api")
    )
    request_timeout_seconds: float = field(default_factory=lambda: _get_float("DASHSYNC_TIMEOUT_SECONDS", 30.0))
    terminal: int = field(default_factory=lambda: _get_int("DASHSYNC_TERMINAL", 1))

    storage_key_prefix: str = field(
        default_factory=lambda: _get_env("DASHSYNC_STORAGE_PREFIX", "dashboard_update_") or "dashboard_update_"
    )
    transient_ttl_ms: int = field(default_factory=lambda: _get_int("DASHSYNC_TRANSIENT_TTL_MS", 100))
    poll_interval_seconds: float | None = field(
        default_factory=lambda: _get_optional_float("DASHSYNC_POLL_INTERVAL_SECONDS")
    )
    empty_policy: str = field(default_factory=lambda: _get_env("DASHSYNC_EMPTY_POLICY", "silent") or "silent")

    relay_url: str | None = field(default_factory=lambda: _get_env("DASHSYNC_RELAY_URL"))
    relay_queue_size: int = field(default_factory=lambda: _get_int("DASHSYNC_RELAY_QUEUE_SIZE", 256))
    cors_allow_origins: list[str] = field(default_factory=lambda: _get_list("CORS_ALLOW_ORIGINS", ["*"]))

    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO") or "INFO")
    log_dir: str | None = field(default_factory=lambda: _get_env("LOG_DIR"))


_settings: Settings | None = None
_runtime_overrides: dict[str, Any] = {}


def _apply_runtime_overrides(settings: Settings) -> None:
    if not _runtime_overrides:
        return
    for key, value in _runtime_overrides.items():
        if value is None:
            continue
        if hasattr(settings, key):
            setattr(settings, key, value)


def update_runtime_overrides(overrides: dict[str, Any]) -> None:
    if not overrides:
        return
    for key, value in overrides.items():
        if value is None:
            continue
        _runtime_overrides[key] = value
    if _settings is not None:
        _apply_runtime_overrides(_settings)


def clear_runtime_overrides() -> None:
    _runtime_overrides.clear()


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    _apply_runtime_overrides(_settings)
    return _settings


def refresh_settings() -> Settings:
    """Rebuild settings from environment variables."""
    global _settings
    _settings = Settings()
    _apply_runtime_overrides(_settings)
    return _settings


__all__ = [
    "Settings",
    "get_settings",
    "refresh_settings",
    "update_runtime_overrides",
    "clear_runtime_overrides",
]
