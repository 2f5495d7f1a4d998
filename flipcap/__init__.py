"""Shared, rate-limit aware market cap cache for a single token."""

from .cache import CacheEntry, MarketCapCache
from .chain import FallbackChain, MarketCapReading, Tier
from .config import Settings, load_settings
from .errors import (
    ExtractionError,
    FallbackExhausted,
    HttpError,
    NetworkError,
    RateLimited,
    UpstreamError,
    UpstreamTimeoutError,
)
from .pacer import Pacer
from .service import (
    MarketCapService,
    build_service,
    close_service,
    get_service,
    read_market_cap,
)
from .singleflight import SingleFlight
from .upstream import UpstreamClient

__all__ = [
    "CacheEntry",
    "MarketCapCache",
    "FallbackChain",
    "MarketCapReading",
    "Tier",
    "Settings",
    "load_settings",
    "ExtractionError",
    "FallbackExhausted",
    "HttpError",
    "NetworkError",
    "RateLimited",
    "UpstreamError",
    "UpstreamTimeoutError",
    "Pacer",
    "MarketCapService",
    "build_service",
    "close_service",
    "get_service",
    "read_market_cap",
    "SingleFlight",
    "UpstreamClient",
]
