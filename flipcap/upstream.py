"""Single paced HTTP call with classified failures."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import aiohttp

from .errors import (
    ExtractionError,
    HttpError,
    NetworkError,
    RateLimited,
    UpstreamError,
    UpstreamTimeoutError,
)
from .http import get_session, loads, retry_after_seconds
from .pacer import Pacer

logger = logging.getLogger(__name__)


async def _error_detail(resp: aiohttp.ClientResponse) -> str:
    # Message text only; the status alone selects the error class.
    raw = await resp.read()
    return raw.decode("utf-8", "replace")


class UpstreamClient:
    """Issue one JSON GET per call, gated by an optional :class:`Pacer`.

    Rate-limit responses are reported to the pacer before the failure is
    raised; any 2xx response clears pending back-off. No other shared state
    is touched.
    """

    def __init__(
        self,
        *,
        pacer: Pacer | None = None,
        session: aiohttp.ClientSession | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.pacer = pacer
        self._session = session
        self._user_agent = user_agent
        self.calls = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        return await get_session(user_agent=self._user_agent)

    async def get_json(
        self,
        url: str,
        *,
        timeout: float,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        if timeout <= 0:
            raise ValueError("timeout must be greater than zero")
        session = await self._get_session()
        if self.pacer is not None:
            await self.pacer.acquire()
        self.calls += 1
        try:
            async with session.get(
                url,
                params=dict(params) if params else None,
                headers=dict(headers) if headers else None,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                status = resp.status
                if status == 429:
                    retry_after = retry_after_seconds(resp.headers)
                    detail = await _error_detail(resp)
                    raise RateLimited(retry_after=retry_after, url=url, detail=detail)
                if status < 200 or status >= 300:
                    detail = await _error_detail(resp)
                    raise HttpError(
                        status,
                        retry_after=retry_after_seconds(resp.headers),
                        url=url,
                        detail=detail,
                    )
                raw = await resp.read()
        except RateLimited as exc:
            if self.pacer is not None:
                self.pacer.report_rate_limited(exc.retry_after)
            raise
        except UpstreamError:
            raise
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeoutError(f"{url} timed out after {timeout:.2f}s") from exc
        except aiohttp.ClientError as exc:
            raise NetworkError(f"{url}: {type(exc).__name__}: {exc}") from exc

        if self.pacer is not None:
            self.pacer.report_success()
        try:
            return loads(raw)
        except ValueError as exc:
            raise ExtractionError(f"{url} returned a non-JSON body") from exc


__all__ = ["UpstreamClient"]
