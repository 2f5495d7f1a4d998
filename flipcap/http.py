from __future__ import annotations

import asyncio
import logging
import os
import weakref
from typing import Any, Mapping

import aiohttp
import orjson

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "flipcap/1.0"

# Maintain a session per event loop to avoid cross-loop usage errors when
# tests spin up a fresh loop with ``asyncio.run``.
_SESSIONS: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, aiohttp.ClientSession]" = (
    weakref.WeakKeyDictionary()
)

CONNECTOR_LIMIT_PER_HOST = int(os.getenv("HTTP_CONNECTOR_LIMIT_PER_HOST", "4") or 4)


def loads(data: str | bytes) -> Any:
    """Deserialize JSON *data* with ``orjson``."""
    if isinstance(data, str):
        data = data.encode()
    return orjson.loads(data)


def retry_after_seconds(headers: Mapping[str, str] | None) -> float | None:
    """Parse a ``Retry-After`` header expressed in seconds."""

    if not headers:
        return None
    raw = headers.get("Retry-After") or headers.get("retry-after")
    if raw is None:
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        return None
    if value != value or value < 0:
        return None
    return value


async def get_session(*, user_agent: str | None = None) -> aiohttp.ClientSession:
    """Return an aiohttp session bound to the current event loop."""
    loop = asyncio.get_running_loop()
    sess = _SESSIONS.get(loop)
    if sess is None or sess.closed:
        ua = user_agent or os.getenv("HTTP_USER_AGENT") or DEFAULT_USER_AGENT
        connector = aiohttp.TCPConnector(limit_per_host=CONNECTOR_LIMIT_PER_HOST)
        sess = aiohttp.ClientSession(
            connector=connector,
            headers={"User-Agent": ua, "Accept": "application/json"},
        )
        _SESSIONS[loop] = sess
        logger.debug("Opened shared HTTP session for loop %s", id(loop))
    return sess


async def close_session() -> None:
    """Close the session bound to the running event loop, if any."""
    sess = _SESSIONS.pop(asyncio.get_running_loop(), None)
    if sess is not None and not sess.closed:
        await sess.close()


__all__ = ["loads", "retry_after_seconds", "get_session", "close_session"]
