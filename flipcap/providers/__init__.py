"""Provider roster: which fallback tiers run, and in which order."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

from ..chain import Tier
from ..config import Settings
from .birdeye import BirdeyeProvider
from .dexscreener import DexscreenerProvider

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_ORDER: List[str] = [
    "birdeye_market_data",
    "birdeye_overview",
    "birdeye_price",
    "dexscreener",
]


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    label: str
    requires_birdeye_key: bool = False


_ALL_PROVIDER_CONFIGS: Dict[str, ProviderConfig] = {
    "birdeye_market_data": ProviderConfig(
        name="birdeye_market_data", label="Birdeye market-data", requires_birdeye_key=True
    ),
    "birdeye_overview": ProviderConfig(
        name="birdeye_overview", label="Birdeye overview", requires_birdeye_key=True
    ),
    "birdeye_price": ProviderConfig(
        name="birdeye_price", label="Birdeye price x supply", requires_birdeye_key=True
    ),
    "dexscreener": ProviderConfig(name="dexscreener", label="Dexscreener"),
}


def resolve_provider_order(requested: List[str] | None) -> List[str]:
    if not requested:
        return list(DEFAULT_PROVIDER_ORDER)
    resolved: List[str] = []
    for name in requested:
        if name not in _ALL_PROVIDER_CONFIGS:
            logger.warning("Unknown market cap provider '%s' ignored", name)
            continue
        if name not in resolved:
            resolved.append(name)
    return resolved or list(DEFAULT_PROVIDER_ORDER)


def build_tiers(settings: Settings) -> List[Tier]:
    """Instantiate the fallback tiers described by *settings*."""

    birdeye = (
        BirdeyeProvider(
            settings.birdeye_api_key,
            base_url=settings.birdeye_base_url,
            chain=settings.birdeye_chain,
        )
        if settings.birdeye_api_key
        else None
    )
    dexscreener = DexscreenerProvider(base_url=settings.dexscreener_base_url)

    fetchers: Dict[str, Callable] = {"dexscreener": dexscreener.market_cap}
    if birdeye is not None:
        fetchers["birdeye_market_data"] = birdeye.market_data
        fetchers["birdeye_overview"] = birdeye.overview
        fetchers["birdeye_price"] = birdeye.price_with_supply

    tiers: List[Tier] = []
    for name in resolve_provider_order(settings.providers):
        config = _ALL_PROVIDER_CONFIGS[name]
        fetch = fetchers.get(name)
        if fetch is None:
            logger.debug("Market cap: skipping %s provider due to missing key", config.label)
            continue
        tiers.append(Tier(source=name, fetch=fetch))
    if not tiers:
        logger.warning("Market cap: no providers enabled; every refresh will fail")
    return tiers


__all__ = [
    "DEFAULT_PROVIDER_ORDER",
    "BirdeyeProvider",
    "DexscreenerProvider",
    "build_tiers",
    "resolve_provider_order",
]
