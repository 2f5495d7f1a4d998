"""Failure taxonomy for upstream market-cap fetches."""

from __future__ import annotations

from typing import List, Sequence, Tuple


class UpstreamError(Exception):
    """Base class for every failure raised while talking to a provider."""


class NetworkError(UpstreamError):
    """Transport-level failure (DNS, connection reset, TLS, ...)."""


class UpstreamTimeoutError(UpstreamError, TimeoutError):
    """The time budget for an upstream call elapsed."""


class ExtractionError(UpstreamError):
    """The provider answered but no market cap could be derived."""


class HttpError(UpstreamError):
    """Raised when an HTTP request returns a non-success status code."""

    def __init__(
        self,
        status: int,
        *,
        retry_after: float | None = None,
        url: str | None = None,
        detail: str = "",
    ) -> None:
        self.status = int(status)
        self.retry_after = retry_after
        self.url = url
        self.detail = detail
        message = f"HTTP {self.status}"
        if url:
            message = f"{url} -> {message}"
        if detail:
            message = f"{message}: {detail[:200]}"
        super().__init__(message)


class RateLimited(HttpError):
    """HTTP 429 from a provider; ``retry_after`` is in seconds when known."""

    def __init__(
        self,
        *,
        retry_after: float | None = None,
        url: str | None = None,
        detail: str = "",
    ) -> None:
        super().__init__(429, retry_after=retry_after, url=url, detail=detail)


class FallbackExhausted(UpstreamError):
    """Every tier of a fallback chain failed.

    ``errors`` keeps the ordered ``(source, error)`` pairs for every attempted
    tier; ``last`` is the final one and is what callers normally inspect.
    """

    def __init__(self, errors: Sequence[Tuple[str, BaseException]]) -> None:
        self.errors: List[Tuple[str, BaseException]] = list(errors)
        if self.errors:
            summary = "; ".join(
                f"{source}: {type(exc).__name__}: {exc}" for source, exc in self.errors
            )
        else:
            summary = "no providers available"
        super().__init__(f"all providers failed ({summary})")

    @property
    def last(self) -> BaseException | None:
        return self.errors[-1][1] if self.errors else None

    @property
    def last_source(self) -> str | None:
        return self.errors[-1][0] if self.errors else None


__all__ = [
    "UpstreamError",
    "NetworkError",
    "UpstreamTimeoutError",
    "ExtractionError",
    "HttpError",
    "RateLimited",
    "FallbackExhausted",
]
