"""Refresh orchestration: the read path used by request handlers."""

from __future__ import annotations

import logging
from typing import Any, Dict

import aiohttp

from .cache import CacheEntry, MarketCapCache
from .chain import FallbackChain
from .config import Settings, load_settings
from .errors import FallbackExhausted, UpstreamError
from .http import close_session
from .logging_utils import warn_once_per
from .pacer import Pacer
from .providers import build_tiers
from .singleflight import SingleFlight
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)


class MarketCapService:
    """Serve the cached market cap, refreshing through one in-flight chain.

    :meth:`read` never raises for upstream problems: a failed refresh marks
    the entry unhealthy and the last good value keeps being served.
    """

    def __init__(
        self,
        chain: FallbackChain,
        cache: MarketCapCache,
        *,
        subject: str,
        budget: float,
        pacer: Pacer | None = None,
    ) -> None:
        subject = (subject or "").strip()
        if not subject:
            raise ValueError("subject must be a non-empty string")
        if budget <= 0:
            raise ValueError("budget must be greater than zero")
        self.subject = subject
        self.budget = float(budget)
        self.chain = chain
        self.cache = cache
        self.pacer = pacer
        self._flight: SingleFlight[CacheEntry] = SingleFlight()

    @property
    def refreshing(self) -> bool:
        return self._flight.in_flight

    async def read(self) -> CacheEntry:
        if self.cache.is_fresh():
            return self.cache.entry
        return await self._flight.do(self._refresh_once)

    async def refresh(self) -> CacheEntry:
        """Refresh regardless of freshness, joining a refresh already running."""
        return await self._flight.do(self._refresh_once)

    async def _refresh_once(self) -> CacheEntry:
        try:
            reading = await self.chain.attempt(self.subject, self.budget)
        except UpstreamError as exc:
            entry = self.cache.record_failure()
            last = exc.last if isinstance(exc, FallbackExhausted) else exc
            warn_once_per(
                1.0,
                f"mcap-refresh-failed:{type(last).__name__}",
                "Market cap refresh failed; serving last value %s (%s)",
                entry.value,
                exc,
                logger=logger,
            )
            return entry

        entry = self.cache.record_success(reading.value, reading.source)
        logger.debug(
            "Market cap refreshed: %s via %s in %.0fms (ath=%s)",
            entry.value,
            reading.source,
            reading.latency_ms,
            entry.all_time_max,
        )
        return entry

    def health(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "subject": self.subject,
            "cache": self.cache.snapshot(),
            "refreshing": self.refreshing,
            "pacer": self.pacer.snapshot() if self.pacer is not None else None,
            "providers": self.chain.provider_stats(),
        }


def build_service(
    settings: Settings | None = None,
    *,
    session: aiohttp.ClientSession | None = None,
) -> MarketCapService:
    """Wire pacer, client, providers and cache from *settings*."""

    if settings is None:
        settings = load_settings()
    pacer = Pacer(
        min_interval=settings.pacer_min_interval,
        default_backoff=settings.pacer_default_backoff,
        max_backoff=settings.pacer_max_backoff,
    )
    client = UpstreamClient(pacer=pacer, session=session, user_agent=settings.user_agent)
    chain = FallbackChain(build_tiers(settings), client)
    cache = MarketCapCache(
        ttl=settings.cache_ttl,
        ttl_wide=settings.cache_ttl_wide,
        unchanged_threshold=settings.unchanged_threshold,
    )
    logger.info(
        "Market cap service for %s: ttl=%.1fs providers=%s",
        settings.subject,
        settings.cache_ttl,
        ",".join(chain.sources) or "none",
    )
    return MarketCapService(
        chain,
        cache,
        subject=settings.subject,
        budget=settings.upstream_timeout,
        pacer=pacer,
    )


_SERVICE: MarketCapService | None = None


def get_service() -> MarketCapService:
    """Return the process-wide service, building it from the environment once."""

    global _SERVICE
    if _SERVICE is None:
        _SERVICE = build_service()
    return _SERVICE


async def read_market_cap() -> CacheEntry:
    return await get_service().read()


async def close_service() -> None:
    global _SERVICE
    _SERVICE = None
    await close_session()


__all__ = [
    "MarketCapService",
    "build_service",
    "get_service",
    "read_market_cap",
    "close_service",
]
