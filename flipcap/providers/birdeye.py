"""Birdeye endpoints used as the first fallback tiers."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from ..errors import ExtractionError
from ..extract import extract_market_cap, extract_price, extract_supply, market_cap_from_parts
from ..upstream import UpstreamClient

logger = logging.getLogger(__name__)

MARKET_DATA_PATH = "/defi/v3/token/market-data"
OVERVIEW_PATH = "/defi/token_overview"
PRICE_PATH = "/defi/price"
SECURITY_PATH = "/defi/token_security"


def _check_success(payload: Any, path: str) -> Any:
    # Birdeye reports some failures as ``200 {"success": false}``.
    if isinstance(payload, Mapping) and payload.get("success") is False:
        message = payload.get("message") or "success=false"
        raise ExtractionError(f"birdeye {path}: {message}")
    return payload


class BirdeyeProvider:
    """Market cap lookups against the Birdeye public API."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://public-api.birdeye.so",
        chain: str = "solana",
    ) -> None:
        if not api_key:
            raise ValueError("Birdeye requires an API key")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.chain = chain

    def _headers(self) -> Dict[str, str]:
        return {
            "X-API-KEY": self.api_key,
            "x-chain": self.chain,
            "accept": "application/json",
        }

    async def _get(
        self, client: UpstreamClient, path: str, subject: str, *, timeout: float
    ) -> Any:
        payload = await client.get_json(
            f"{self.base_url}{path}",
            params={"address": subject},
            headers=self._headers(),
            timeout=timeout,
        )
        return _check_success(payload, path)

    async def market_data(self, client: UpstreamClient, subject: str, *, timeout: float) -> int:
        payload = await self._get(client, MARKET_DATA_PATH, subject, timeout=timeout)
        return extract_market_cap(payload)

    async def overview(self, client: UpstreamClient, subject: str, *, timeout: float) -> int:
        payload = await self._get(client, OVERVIEW_PATH, subject, timeout=timeout)
        return extract_market_cap(payload)

    async def price_with_supply(
        self, client: UpstreamClient, subject: str, *, timeout: float
    ) -> int:
        """Price from ``/defi/price`` times supply from the security endpoint.

        Both requests draw on the same ``timeout``; the surrounding chain
        enforces the overall budget.
        """

        price_payload = await self._get(client, PRICE_PATH, subject, timeout=timeout)
        price = extract_price(price_payload)
        supply_payload = await self._get(client, SECURITY_PATH, subject, timeout=timeout)
        supply = extract_supply(supply_payload)
        logger.debug("Birdeye price=%s supply=%s for %s", price, supply, subject)
        return market_cap_from_parts(price, supply)


__all__ = ["BirdeyeProvider"]
