"""Dexscreener adapter: the last-resort market cap source."""

from __future__ import annotations

import time
from typing import Any, Mapping, MutableMapping, Sequence
from urllib.parse import quote

from ..errors import ExtractionError
from ..extract import coerce_finite, round_market_cap
from ..upstream import UpstreamClient

_DEFAULT_BASE_URL = "https://api.dexscreener.com"


def _parse_timestamp(value: Any) -> int | None:
    ts = coerce_finite(value)
    if ts is None or ts <= 0:
        return None
    if ts < 1e12:
        ts *= 1000.0
    return int(ts)


def _extract_pairs(payload: Any) -> Sequence[MutableMapping[str, Any]]:
    if isinstance(payload, Mapping):
        for key in ("pairs", "data", "results"):
            pairs = payload.get(key)
            if isinstance(pairs, Sequence) and not isinstance(pairs, (str, bytes)):
                return [pair for pair in pairs if isinstance(pair, MutableMapping)]
        return []
    if isinstance(payload, Sequence) and not isinstance(payload, (str, bytes)):
        return [pair for pair in payload if isinstance(pair, MutableMapping)]
    return []


def _token_from_pair(pair: Mapping[str, Any], role: str) -> str:
    token = pair.get(f"{role}Token") or pair.get(f"{role}_token")
    if isinstance(token, Mapping):
        value = token.get("address") or token.get("id") or token.get("mint")
        if isinstance(value, str):
            return value
    if isinstance(token, str):
        return token
    return ""


def _pair_liquidity(pair: Mapping[str, Any]) -> float:
    liquidity = pair.get("liquidity")
    if isinstance(liquidity, Mapping):
        return coerce_finite(liquidity.get("usd")) or 0.0
    return coerce_finite(liquidity) or 0.0


def _pair_timestamp(pair: Mapping[str, Any]) -> int:
    for field in ("updatedAt", "lastTradeUnixTime", "pairCreatedAt"):
        ts = _parse_timestamp(pair.get(field))
        if ts is not None:
            return ts
    return int(time.time() * 1000)


def select_pairs(
    pairs: Sequence[MutableMapping[str, Any]],
    token: str,
) -> list[MutableMapping[str, Any]]:
    """Rank *pairs* by USD liquidity, preferring pairs whose base is *token*."""

    token_lower = token.lower()
    matching = [
        pair for pair in pairs if _token_from_pair(pair, "base").lower() == token_lower
    ]
    return sorted(
        matching or list(pairs),
        key=lambda item: (-_pair_liquidity(item), -_pair_timestamp(item)),
    )


def pair_market_cap(pair: Mapping[str, Any]) -> float | None:
    for field in ("marketCap", "fdv"):
        value = coerce_finite(pair.get(field))
        if value is not None and value >= 0:
            return value
    return None


class DexscreenerProvider:
    def __init__(self, *, base_url: str = _DEFAULT_BASE_URL) -> None:
        self.base_url = base_url.rstrip("/")

    async def market_cap(self, client: UpstreamClient, subject: str, *, timeout: float) -> int:
        url = f"{self.base_url}/latest/dex/tokens/{quote(subject, safe='')}"
        payload = await client.get_json(url, timeout=timeout)
        ranked = select_pairs(_extract_pairs(payload), subject)
        if not ranked:
            raise ExtractionError("dexscreener: no pairs listed yet")
        value = pair_market_cap(ranked[0])
        if value is None:
            raise ExtractionError("dexscreener: best pair has no marketCap/fdv number")
        return round_market_cap(value)


__all__ = ["DexscreenerProvider", "select_pairs", "pair_market_cap"]
