"""Environment driven settings for the market-cap cache."""

from __future__ import annotations

import logging
import math
import os
from typing import List, Mapping

from pydantic import BaseModel, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_MINT = "FdqJXzo2TE3BL3mh3gUJx8fEsjHCJj9mYsYdShDHpump"
DEFAULT_BIRDEYE_BASE_URL = "https://public-api.birdeye.so"
DEFAULT_DEXSCREENER_BASE_URL = "https://api.dexscreener.com"

_PLACEHOLDER_MARKERS = {"your_", "example", "change_me"}


def _env_ms(env: Mapping[str, str], name: str, default_ms: float) -> float:
    """Read a millisecond value from *env* and return it in seconds."""

    raw = env.get(name)
    if raw is None or str(raw).strip() == "":
        return float(default_ms) / 1000.0
    try:
        return float(raw) / 1000.0
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric %s=%r; using %sms", name, raw, default_ms)
        return float(default_ms) / 1000.0


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


def _env_str(env: Mapping[str, str], name: str, default: str = "") -> str:
    return (env.get(name) or default).strip()


def _clean_api_key(value: str | None) -> str | None:
    candidate = (value or "").strip()
    if not candidate:
        return None
    lowered = candidate.lower()
    if any(marker in lowered for marker in _PLACEHOLDER_MARKERS):
        return None
    return candidate


def parse_provider_roster(raw: str | None) -> List[str]:
    """Split a ``MCAP_PROVIDERS`` style value into lower-case names."""

    if not raw:
        return []
    tokens = [token.strip().lower() for token in raw.replace(";", ",").split(",")]
    resolved: List[str] = []
    for token in tokens:
        if token and token not in resolved:
            resolved.append(token)
    return resolved


class Settings(BaseModel):
    """Validated runtime configuration. Durations are in seconds."""

    subject: str = DEFAULT_MINT
    cache_ttl: float = 12.0
    cache_ttl_wide: float = 60.0
    unchanged_threshold: int = 3
    upstream_timeout: float = 8.0
    pacer_min_interval: float = 1.0
    pacer_default_backoff: float = 1.0
    pacer_max_backoff: float = 2.0
    birdeye_api_key: str | None = None
    birdeye_base_url: str = DEFAULT_BIRDEYE_BASE_URL
    birdeye_chain: str = "solana"
    dexscreener_base_url: str = DEFAULT_DEXSCREENER_BASE_URL
    providers: List[str] = []
    user_agent: str = "flipcap/1.0"

    @field_validator("subject")
    @classmethod
    def _subject_non_empty(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("subject must be a non-empty string")
        return value

    @field_validator(
        "cache_ttl",
        "cache_ttl_wide",
        "upstream_timeout",
        "pacer_default_backoff",
        "pacer_max_backoff",
    )
    @classmethod
    def _positive(cls, value: float) -> float:
        if not math.isfinite(value) or value <= 0:
            raise ValueError("must be a finite number greater than zero")
        return value

    @field_validator("pacer_min_interval")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if not math.isfinite(value) or value < 0:
            raise ValueError("must be a finite, non-negative number")
        return value

    @field_validator("unchanged_threshold")
    @classmethod
    def _threshold_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("birdeye_base_url", "dexscreener_base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _wide_ttl_not_tighter(self) -> "Settings":
        if self.cache_ttl_wide < self.cache_ttl:
            raise ValueError("cache_ttl_wide must be >= cache_ttl")
        return self


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from environment variables.

    ``env`` defaults to :data:`os.environ`; tests pass a plain dict.
    """

    if env is None:
        env = os.environ
    return Settings(
        subject=_env_str(env, "FLIP_MINT", DEFAULT_MINT),
        cache_ttl=_env_ms(env, "CACHE_TTL_MS", 12000),
        cache_ttl_wide=_env_ms(env, "CACHE_TTL_WIDE_MS", 60000),
        unchanged_threshold=_env_int(env, "CACHE_UNCHANGED_THRESHOLD", 3),
        upstream_timeout=_env_ms(env, "UPSTREAM_TIMEOUT_MS", 8000),
        pacer_min_interval=_env_ms(env, "PACER_MIN_INTERVAL_MS", 1000),
        pacer_default_backoff=_env_ms(env, "PACER_DEFAULT_BACKOFF_MS", 1000),
        pacer_max_backoff=_env_ms(env, "PACER_MAX_BACKOFF_MS", 2000),
        birdeye_api_key=_clean_api_key(env.get("BIRDEYE_API_KEY")),
        birdeye_base_url=_env_str(env, "BIRDEYE_BASE_URL", DEFAULT_BIRDEYE_BASE_URL),
        birdeye_chain=_env_str(env, "BIRDEYE_CHAIN", "solana"),
        dexscreener_base_url=_env_str(
            env, "DEXSCREENER_BASE_URL", DEFAULT_DEXSCREENER_BASE_URL
        ),
        providers=parse_provider_roster(env.get("MCAP_PROVIDERS")),
        user_agent=_env_str(env, "HTTP_USER_AGENT", "flipcap/1.0"),
    )


__all__ = ["Settings", "load_settings", "parse_provider_roster", "DEFAULT_MINT"]
