"""Process-wide market cap cache with stale-serving semantics."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Immutable snapshot handed to readers.

    ``last_updated`` is the wall-clock time (epoch seconds) of the latest
    refresh *attempt*, successful or not.
    """

    value: int | None = None
    all_time_max: int = 0
    last_updated: float = 0.0
    healthy: bool = False
    source: str | None = None

    @property
    def last_updated_ms(self) -> int:
        return int(self.last_updated * 1000)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "allTimeMax": self.all_time_max,
            "lastUpdatedAt": self.last_updated_ms,
            "healthy": self.healthy,
            "source": self.source,
        }


class MarketCapCache:
    """Own the single :class:`CacheEntry` and the freshness policy.

    Writers replace the entry in one assignment, so a reader on the same
    event loop never observes a partially updated snapshot. After
    ``unchanged_threshold`` identical readings in a row the TTL widens to
    ``ttl_wide``; a changed reading or a failure restores ``ttl``. A threshold
    of ``0`` keeps the TTL fixed.
    """

    def __init__(
        self,
        *,
        ttl: float = 12.0,
        ttl_wide: float | None = None,
        unchanged_threshold: int = 0,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be greater than zero")
        ttl_wide = ttl if ttl_wide is None else ttl_wide
        if ttl_wide < ttl:
            raise ValueError("ttl_wide must be >= ttl")
        if unchanged_threshold < 0:
            raise ValueError("unchanged_threshold must not be negative")
        self.ttl = float(ttl)
        self.ttl_wide = float(ttl_wide)
        self.unchanged_threshold = int(unchanged_threshold)
        self._clock = clock
        self._wall_clock = wall_clock
        self._entry = CacheEntry()
        self._attempted_at: float | None = None
        self._unchanged_streak = 0
        self._effective_ttl = self.ttl

    @property
    def entry(self) -> CacheEntry:
        return self._entry

    @property
    def effective_ttl(self) -> float:
        return self._effective_ttl

    @property
    def unchanged_streak(self) -> int:
        return self._unchanged_streak

    def age(self) -> float | None:
        if self._attempted_at is None:
            return None
        return self._clock() - self._attempted_at

    def is_fresh(self) -> bool:
        if self._entry.value is None:
            return False
        age = self.age()
        return age is not None and age < self._effective_ttl

    def record_success(self, value: int, source: str | None = None) -> CacheEntry:
        previous = self._entry
        if previous.value is not None and previous.healthy and value == previous.value:
            self._unchanged_streak += 1
        else:
            self._unchanged_streak = 1
        if self.unchanged_threshold and self._unchanged_streak >= self.unchanged_threshold:
            self._effective_ttl = self.ttl_wide
        else:
            self._effective_ttl = self.ttl

        self._attempted_at = self._clock()
        self._entry = CacheEntry(
            value=int(value),
            all_time_max=max(previous.all_time_max, int(value)),
            last_updated=self._wall_clock(),
            healthy=True,
            source=source,
        )
        return self._entry

    def record_failure(self) -> CacheEntry:
        self._unchanged_streak = 0
        self._effective_ttl = self.ttl
        self._attempted_at = self._clock()
        self._entry = replace(self._entry, last_updated=self._wall_clock(), healthy=False)
        return self._entry

    def snapshot(self) -> Dict[str, Any]:
        return {
            **self._entry.as_dict(),
            "ageSeconds": self.age(),
            "effectiveTtl": self._effective_ttl,
            "unchangedStreak": self._unchanged_streak,
        }


__all__ = ["CacheEntry", "MarketCapCache"]
