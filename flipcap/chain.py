"""Ordered provider fallback under a shared time budget."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, List, Sequence, Tuple

from .errors import FallbackExhausted, HttpError, UpstreamError, UpstreamTimeoutError
from .logging_utils import warn_once_per
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

TierFetch = Callable[..., Awaitable[int]]


@dataclass(frozen=True, slots=True)
class Tier:
    """One named provider endpoint.

    ``fetch`` is awaited as ``fetch(client, subject, timeout=seconds)`` and
    returns the rounded market cap.
    """

    source: str
    fetch: TierFetch


@dataclass(frozen=True, slots=True)
class MarketCapReading:
    value: int
    source: str
    latency_ms: float


@dataclass(slots=True)
class ProviderStats:
    name: str
    successes: int = 0
    failures: int = 0
    last_latency_ms: float | None = None
    last_status: int | None = None
    last_error: str | None = None

    def record_success(self, latency_ms: float) -> None:
        self.successes += 1
        self.last_latency_ms = latency_ms
        self.last_status = None
        self.last_error = None

    def record_failure(self, latency_ms: float, error: BaseException) -> None:
        self.failures += 1
        self.last_latency_ms = latency_ms
        self.last_status = error.status if isinstance(error, HttpError) else None
        self.last_error = f"{type(error).__name__}: {error}"[:500]


class FallbackChain:
    """Try tiers in order; the first success wins.

    All tiers share one budget. When it elapses the running tier is cancelled,
    later tiers are skipped and the chain fails with an
    :class:`~flipcap.errors.UpstreamTimeoutError` as its last error.
    """

    def __init__(
        self,
        tiers: Sequence[Tier],
        client: UpstreamClient,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._tiers: Tuple[Tier, ...] = tuple(tiers)
        self._client = client
        self._clock = clock
        self._stats: Dict[str, ProviderStats] = {
            tier.source: ProviderStats(name=tier.source) for tier in self._tiers
        }
        self.executions = 0

    @property
    def sources(self) -> List[str]:
        return [tier.source for tier in self._tiers]

    def provider_stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: asdict(stats) for name, stats in self._stats.items()}

    async def attempt(self, subject: str, budget: float) -> MarketCapReading:
        subject = (subject or "").strip()
        if not subject:
            raise ValueError("subject must be a non-empty string")
        if budget <= 0:
            raise ValueError("budget must be greater than zero")

        self.executions += 1
        errors: List[Tuple[str, BaseException]] = []
        progress: Dict[str, Any] = {"source": None, "started": self._clock()}
        try:
            return await asyncio.wait_for(
                self._run(subject, budget, errors, progress), timeout=budget
            )
        except asyncio.TimeoutError:
            source = progress["source"] or "chain"
            exc = UpstreamTimeoutError(f"refresh budget of {budget:.2f}s elapsed during {source}")
            errors.append((source, exc))
            stats = self._stats.get(source)
            if stats is not None:
                stats.record_failure(self._elapsed_ms(progress["started"]), exc)
            warn_once_per(
                1.0,
                f"mcap-timeout:{source}",
                "Market cap: %s abandoned, budget of %.2fs elapsed",
                source,
                budget,
                logger=logger,
            )
            raise FallbackExhausted(errors) from None

    def _elapsed_ms(self, started: float) -> float:
        return (self._clock() - started) * 1000.0

    async def _run(
        self,
        subject: str,
        budget: float,
        errors: List[Tuple[str, BaseException]],
        progress: Dict[str, Any],
    ) -> MarketCapReading:
        chain_started = self._clock()
        for tier in self._tiers:
            remaining = budget - (self._clock() - chain_started)
            progress["source"] = tier.source
            progress["started"] = self._clock()
            stats = self._stats[tier.source]
            try:
                value = await tier.fetch(self._client, subject, timeout=max(remaining, 0.001))
            except UpstreamError as exc:
                latency_ms = self._elapsed_ms(progress["started"])
                stats.record_failure(latency_ms, exc)
                errors.append((tier.source, exc))
                warn_once_per(
                    1.0,
                    f"mcap-tier:{tier.source}:{type(exc).__name__}",
                    "Market cap: %s failed (%s); trying next provider",
                    tier.source,
                    exc,
                    logger=logger,
                )
                continue
            except Exception as exc:  # noqa: BLE001
                latency_ms = self._elapsed_ms(progress["started"])
                logger.exception("Market cap: %s raised unexpectedly", tier.source)
                wrapped = UpstreamError(f"{tier.source}: {type(exc).__name__}: {exc}")
                wrapped.__cause__ = exc
                stats.record_failure(latency_ms, wrapped)
                errors.append((tier.source, wrapped))
                continue

            latency_ms = self._elapsed_ms(progress["started"])
            stats.record_success(latency_ms)
            if errors:
                logger.info(
                    "Market cap: served by %s after %d failed tier(s)", tier.source, len(errors)
                )
            return MarketCapReading(value=int(value), source=tier.source, latency_ms=latency_ms)

        raise FallbackExhausted(errors)


__all__ = ["Tier", "MarketCapReading", "ProviderStats", "FallbackChain"]
