"""Structured JSON logging for dashsync.

Backend calls, bus traffic and relay activity are logged as single-line
JSON so several dashboard processes can be tailed side by side.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

from .config import get_settings
from .exceptions import TrackedError

LOG_FILE_NAME = "dashsync.jsonl"


class JSONFormatter(logging.Formatter):
    """One JSON object per line; ``extra={"data": ...}`` lands under ``data``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        data = getattr(record, "data", None)
        if data is not None:
            entry["data"] = data
        error = record.exc_info[1] if record.exc_info else None
        if error is not None:
            entry["error"] = str(error)
            if isinstance(error, TrackedError):
                entry.update(error.log_data())
        return json.dumps(entry, ensure_ascii=False, default=str)


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setFormatter(JSONFormatter())
    handler.setLevel(level)
    return handler


def setup_logging(
    log_dir: Path | None = None,
    level: int | str | None = None,
) -> logging.Logger:
    """Configure the ``dashsync`` logger once per process.

    Args:
        log_dir: Directory for ``dashsync.jsonl``. Falls back to ``LOG_DIR``;
            without either, only warnings reach stderr.
        level: Logging level. Falls back to ``LOG_LEVEL``.

    Returns:
        The ``dashsync`` logger.
    """
    settings = get_settings()
    if level is None:
        level = settings.log_level
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    if log_dir is None and settings.log_dir:
        log_dir = Path(settings.log_dir)

    logger = logging.getLogger("dashsync")
    logger.setLevel(level)
    if logger.handlers:
        return logger

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_handler(logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8"), level))
    # stderr only carries warnings and errors
    logger.addHandler(_handler(logging.StreamHandler(), logging.WARNING))
    return logger


class ApiCallLogger:
    """Context manager for logging a single backend request."""

    def __init__(self, method: str, endpoint: str):
        self.method = method
        self.endpoint = endpoint
        self.start_time = 0.0
        self._logger = logging.getLogger("dashsync.api")

    def __enter__(self) -> ApiCallLogger:
        self.start_time = time.monotonic()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        pass

    def success(self, status: int, ok: bool):
        elapsed = time.monotonic() - self.start_time
        self._logger.info(
            "api_call",
            extra={"data": {
                "method": self.method,
                "endpoint": self.endpoint,
                "status": status,
                "ok": ok,
                "elapsed_s": round(elapsed, 3),
            }},
        )

    def error(self, error: str):
        elapsed = time.monotonic() - self.start_time
        self._logger.warning(
            "api_call_error",
            extra={"data": {
                "method": self.method,
                "endpoint": self.endpoint,
                "elapsed_s": round(elapsed, 3),
                "error": error,
            }},
        )


def log_broadcast(kind: str, payload: dict[str, Any], subscribers: int):
    """Log a published update event."""
    logger = logging.getLogger("dashsync.bus")
    logger.info(
        "broadcast",
        extra={"data": {
            "kind": kind,
            "payload": payload,
            "subscribers": subscribers,
        }},
    )
