"""Derive a market cap from loosely shaped provider payloads.

Each logical quantity has an ordered tuple of accepted field names. Lookup is
always "first present and numeric candidate wins", searching a nested
``data`` object before the top level of the payload.
"""

from __future__ import annotations

import math
from typing import Any, Iterator, Mapping, Tuple

from .errors import ExtractionError

MARKET_CAP_FIELDS: Tuple[str, ...] = ("marketCap", "market_cap", "mc", "marketcap", "mcap")
PRICE_FIELDS: Tuple[str, ...] = ("price", "priceUsd", "price_usd", "value")
CIRCULATING_SUPPLY_FIELDS: Tuple[str, ...] = (
    "circulatingSupply",
    "circulating_supply",
    "circSupply",
)
TOTAL_SUPPLY_FIELDS: Tuple[str, ...] = ("totalSupply", "total_supply", "supply")


def coerce_finite(value: Any) -> float | None:
    """Return *value* as a finite float, or ``None``."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def round_market_cap(value: float) -> int:
    # Halves round up, matching how the figure is displayed downstream.
    return int(math.floor(value + 0.5))


def _search_spaces(payload: Any) -> Iterator[Mapping[str, Any]]:
    if not isinstance(payload, Mapping):
        return
    data = payload.get("data")
    if isinstance(data, Mapping):
        yield data
    yield payload


def first_numeric(payload: Any, fields: Tuple[str, ...], *, minimum: float | None = None) -> float | None:
    """Find the first finite value among *fields*, ``data`` before top level."""

    for source in _search_spaces(payload):
        for field in fields:
            if field not in source:
                continue
            number = coerce_finite(source[field])
            if number is None:
                continue
            if minimum is not None and number < minimum:
                continue
            return number
    return None


def find_supply(payload: Any) -> float | None:
    supply = first_numeric(payload, CIRCULATING_SUPPLY_FIELDS, minimum=0.0)
    if supply is None:
        supply = first_numeric(payload, TOTAL_SUPPLY_FIELDS, minimum=0.0)
    return supply


def market_cap_from_parts(price: float, supply: float) -> int:
    product = price * supply
    if not math.isfinite(product):
        raise ExtractionError(f"price x supply is not finite ({price!r} x {supply!r})")
    return round_market_cap(product)


def extract_market_cap(payload: Any) -> int:
    """Return the rounded market cap described by *payload*.

    Direct market-cap fields win; otherwise price times supply is used,
    preferring circulating over total supply. Raises
    :class:`~flipcap.errors.ExtractionError` when neither route yields a
    finite number.
    """

    if not isinstance(payload, Mapping):
        raise ExtractionError(f"unexpected payload type {type(payload).__name__}")
    direct = first_numeric(payload, MARKET_CAP_FIELDS, minimum=0.0)
    if direct is not None:
        return round_market_cap(direct)
    price = first_numeric(payload, PRICE_FIELDS, minimum=0.0)
    supply = find_supply(payload)
    if price is None or supply is None:
        missing = "price" if price is None else "supply"
        raise ExtractionError(f"no market cap field and no {missing} in payload")
    return market_cap_from_parts(price, supply)


def extract_price(payload: Any) -> float:
    price = first_numeric(payload, PRICE_FIELDS, minimum=0.0)
    if price is None:
        raise ExtractionError("no price in payload")
    return price


def extract_supply(payload: Any) -> float:
    supply = find_supply(payload)
    if supply is None:
        raise ExtractionError("no supply in payload")
    return supply


__all__ = [
    "MARKET_CAP_FIELDS",
    "PRICE_FIELDS",
    "CIRCULATING_SUPPLY_FIELDS",
    "TOTAL_SUPPLY_FIELDS",
    "coerce_finite",
    "round_market_cap",
    "first_numeric",
    "find_supply",
    "market_cap_from_parts",
    "extract_market_cap",
    "extract_price",
    "extract_supply",
]
