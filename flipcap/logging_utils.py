from __future__ import annotations

import logging
import os
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, TextIO

import orjson

DEFAULT_FORMAT = "%(asctime)sZ [%(levelname)s] %(name)s:%(lineno)d | %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_HANDLER_SENTINEL = "_flipcap_stream_handler"

_warn_once_lock = threading.Lock()
_warn_once_last_emit: dict[str, float] = {}


class _UTCFormatter(logging.Formatter):
    """Formatter that renders timestamps in UTC."""

    converter = time.gmtime


_LOG_RECORD_RESERVED = set(logging.LogRecord(None, 0, "", 0, "", (), None).__dict__.keys())


class JsonFormatter(logging.Formatter):
    """Structured logging formatter producing JSON payloads."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - short summary sufficient
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .replace(tzinfo=None)
            .isoformat(timespec="milliseconds")
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "line": record.lineno,
            "msg": record.getMessage(),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in payload or key.startswith("_") or key in _LOG_RECORD_RESERVED:
                continue
            payload[key] = value

        return orjson.dumps(payload, default=str).decode()


def _parse_log_level(value: str | int | None) -> int:
    if value is None or value == "":
        return logging.INFO
    if isinstance(value, int):
        return value
    level = value.strip().upper()
    if level.isdigit():
        return int(level)
    return getattr(logging, level, logging.INFO)


def configure_logging(
    *,
    level: str | int | None = None,
    json_logs: bool | None = None,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Install a single stream handler on the root logger.

    ``LOG_LEVEL`` and ``LOG_JSON`` are consulted when the matching argument is
    omitted. Calling this twice replaces the handler rather than stacking one.
    """

    resolved_level = _parse_log_level(level if level is not None else os.getenv("LOG_LEVEL"))
    if json_logs is None:
        env_json = os.getenv("LOG_JSON")
        json_logs = bool(env_json) and env_json.strip().lower() in {"1", "true", "yes", "on"}

    root = logging.getLogger()
    root.setLevel(resolved_level)

    existing = getattr(root, _HANDLER_SENTINEL, None)
    if existing is not None:
        root.removeHandler(existing)
        existing.close()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(resolved_level)
    if json_logs:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(_UTCFormatter(DEFAULT_FORMAT, datefmt=DEFAULT_DATEFMT))
    root.addHandler(handler)
    setattr(root, _HANDLER_SENTINEL, handler)
    return handler


def warn_once_per(
    minutes: float,
    key: str,
    message: str,
    *args: Any,
    logger: logging.Logger | None = None,
    **kwargs: Any,
) -> bool:
    """Emit ``logger.warning`` for *message* at most once per *minutes* interval."""

    interval = max(0.0, minutes) * 60.0
    now = time.monotonic()

    with _warn_once_lock:
        last = _warn_once_last_emit.get(key)
        if last is not None and interval > 0 and now - last < interval:
            return False
        _warn_once_last_emit[key] = now

    target = logger or logging.getLogger()
    target.warning(message, *args, **kwargs)
    return True


def reset_warn_once_cache() -> None:
    """Clear cached emission timestamps for :func:`warn_once_per`."""

    with _warn_once_lock:
        _warn_once_last_emit.clear()


__all__ = [
    "JsonFormatter",
    "configure_logging",
    "warn_once_per",
    "reset_warn_once_cache",
]
