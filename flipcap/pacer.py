"""Process-wide pacing for upstream requests."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class Pacer:
    """Space upstream calls and honor provider back-off hints.

    Every upstream request must be preceded by :meth:`acquire`. A call is
    only released at or after ``max(last_attempt_at + min_interval,
    next_allowed_at)``; the very first call only waits on ``next_allowed_at``.
    Back-off requested through :meth:`report_rate_limited` is clamped to
    ``max_backoff`` so a misbehaving provider cannot stall refreshes.

    The pacer is local to one process and one event loop.
    """

    def __init__(
        self,
        *,
        min_interval: float = 1.0,
        default_backoff: float = 1.0,
        max_backoff: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        if default_backoff <= 0 or max_backoff <= 0:
            raise ValueError("backoff values must be positive")
        self.min_interval = float(min_interval)
        self.default_backoff = float(default_backoff)
        self.max_backoff = float(max_backoff)
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_attempt_at: float | None = None
        self._next_allowed_at: float = clock()

    @property
    def last_attempt_at(self) -> float | None:
        return self._last_attempt_at

    @property
    def next_allowed_at(self) -> float:
        return self._next_allowed_at

    def earliest_start(self) -> float:
        """Return the clock value at which the next call may be issued."""

        earliest = self._next_allowed_at
        if self._last_attempt_at is not None:
            earliest = max(earliest, self._last_attempt_at + self.min_interval)
        return earliest

    async def acquire(self) -> float:
        """Wait for the next permitted slot and claim it.

        Waiters are served one at a time. The slot is recorded before the
        caller issues its request, so a request that is later cancelled still
        counts towards the spacing.
        """

        async with self._lock:
            while True:
                # Re-evaluated after each sleep: a 429 reported meanwhile
                # pushes ``next_allowed_at`` further out.
                wait = self.earliest_start() - self._clock()
                if wait <= 0:
                    break
                logger.debug("Pacer: waiting %.3fs before next upstream call", wait)
                await self._sleep(wait)
            now = self._clock()
            self._last_attempt_at = now
            return now

    def report_success(self) -> None:
        self._next_allowed_at = self._clock()

    def report_rate_limited(self, retry_after: float | None = None) -> float:
        """Push back the next permitted call; returns the applied delay."""

        requested = self.default_backoff if retry_after is None else max(0.0, float(retry_after))
        delay = min(requested, self.max_backoff)
        self._next_allowed_at = self._clock() + delay
        if requested > delay:
            logger.warning(
                "Pacer: provider asked for %.1fs back-off; capped at %.1fs",
                requested,
                delay,
            )
        else:
            logger.info("Pacer: backing off for %.1fs after rate limit", delay)
        return delay

    def snapshot(self) -> Dict[str, Any]:
        now = self._clock()
        return {
            "last_attempt_at": self._last_attempt_at,
            "next_allowed_at": self._next_allowed_at,
            "wait_seconds": max(0.0, self.earliest_start() - now),
            "min_interval": self.min_interval,
            "default_backoff": self.default_backoff,
            "max_backoff": self.max_backoff,
        }


__all__ = ["Pacer"]
