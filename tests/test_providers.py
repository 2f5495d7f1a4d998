import asyncio

import pytest

from flipcap.chain import Tier
from flipcap.config import Settings
from flipcap.errors import ExtractionError
from flipcap.providers import (
    DEFAULT_PROVIDER_ORDER,
    BirdeyeProvider,
    DexscreenerProvider,
    build_tiers,
    resolve_provider_order,
)
from flipcap.providers.dexscreener import pair_market_cap, select_pairs

MINT = "FdqJXzo2TE3BL3mh3gUJx8fEsjHCJj9mYsYdShDHpump"


class _StubClient:
    """Answers ``get_json`` from a mapping of URL suffix to payload."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    async def get_json(self, url, *, timeout, params=None, headers=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        for suffix, payload in self.routes.items():
            if suffix in url:
                if isinstance(payload, Exception):
                    raise payload
                return payload
        raise AssertionError(f"unexpected url {url}")


def _birdeye():
    return BirdeyeProvider("secret", base_url="https://birdeye.test/", chain="solana")


def test_birdeye_market_data_sends_key_chain_and_address():
    client = _StubClient({"/defi/v3/token/market-data": {"success": True, "data": {"market_cap": 1234.4}}})

    value = asyncio.run(_birdeye().market_data(client, MINT, timeout=2.0))

    assert value == 1234
    call = client.calls[0]
    assert call["url"] == "https://birdeye.test/defi/v3/token/market-data"
    assert call["params"] == {"address": MINT}
    assert call["headers"]["X-API-KEY"] == "secret"
    assert call["headers"]["x-chain"] == "solana"
    assert call["timeout"] == 2.0


def test_birdeye_overview_falls_back_to_price_times_supply():
    client = _StubClient(
        {"/defi/token_overview": {"data": {"price": 0.5, "circulatingSupply": 1000, "totalSupply": 5000}}}
    )
    assert asyncio.run(_birdeye().overview(client, MINT, timeout=1.0)) == 500


def test_birdeye_success_false_is_extraction_error():
    client = _StubClient({"/defi/token_overview": {"success": False, "message": "Unauthorized"}})
    with pytest.raises(ExtractionError, match="Unauthorized"):
        asyncio.run(_birdeye().overview(client, MINT, timeout=1.0))


def test_birdeye_price_with_supply_uses_two_calls():
    client = _StubClient(
        {
            "/defi/price": {"success": True, "data": {"value": 0.002}},
            "/defi/token_security": {"success": True, "data": {"totalSupply": 1_000_000_000}},
        }
    )

    value = asyncio.run(_birdeye().price_with_supply(client, MINT, timeout=1.0))

    assert value == 2_000_000
    assert [call["url"].rsplit("/", 1)[-1] for call in client.calls] == ["price", "token_security"]


def test_birdeye_price_without_supply_fails():
    client = _StubClient(
        {
            "/defi/price": {"data": {"value": 0.002}},
            "/defi/token_security": {"data": {"owner": "x"}},
        }
    )
    with pytest.raises(ExtractionError):
        asyncio.run(_birdeye().price_with_supply(client, MINT, timeout=1.0))


def test_birdeye_requires_key():
    with pytest.raises(ValueError):
        BirdeyeProvider("")


def _pair(base, *, liquidity, market_cap=None, fdv=None, updated=None):
    pair = {"baseToken": {"address": base}, "liquidity": {"usd": liquidity}}
    if market_cap is not None:
        pair["marketCap"] = market_cap
    if fdv is not None:
        pair["fdv"] = fdv
    if updated is not None:
        pair["updatedAt"] = updated
    return pair


def test_dexscreener_picks_most_liquid_pair():
    payload = {
        "pairs": [
            _pair(MINT, liquidity=100, market_cap=1_000),
            _pair(MINT, liquidity=5_000, market_cap=2_000),
            _pair(MINT, liquidity="250", market_cap=3_000),
        ]
    }
    client = _StubClient({"/latest/dex/tokens/": payload})

    value = asyncio.run(DexscreenerProvider(base_url="https://dex.test").market_cap(client, MINT, timeout=1.0))

    assert value == 2_000
    assert client.calls[0]["url"] == f"https://dex.test/latest/dex/tokens/{MINT}"


def test_dexscreener_prefers_pairs_for_the_requested_base():
    pairs = [
        _pair("OtherMint", liquidity=1_000_000, market_cap=9),
        _pair(MINT, liquidity=10, market_cap=7),
    ]
    assert pair_market_cap(select_pairs(pairs, MINT)[0]) == 7


def test_dexscreener_liquidity_tie_broken_by_recency():
    pairs = [
        _pair(MINT, liquidity=10, market_cap=1, updated=1_700_000_000),
        _pair(MINT, liquidity=10, market_cap=2, updated=1_700_000_500),
    ]
    assert pair_market_cap(select_pairs(pairs, MINT)[0]) == 2


def test_dexscreener_uses_fdv_when_market_cap_missing():
    client = _StubClient({"/latest/dex/tokens/": {"pairs": [_pair(MINT, liquidity=1, fdv="4567.5")]}})
    assert asyncio.run(DexscreenerProvider().market_cap(client, MINT, timeout=1.0)) == 4568


def test_dexscreener_without_pairs_fails():
    client = _StubClient({"/latest/dex/tokens/": {"pairs": None}})
    with pytest.raises(ExtractionError, match="no pairs"):
        asyncio.run(DexscreenerProvider().market_cap(client, MINT, timeout=1.0))


def test_dexscreener_pair_without_numbers_fails():
    client = _StubClient({"/latest/dex/tokens/": {"pairs": [_pair(MINT, liquidity=1)]}})
    with pytest.raises(ExtractionError):
        asyncio.run(DexscreenerProvider().market_cap(client, MINT, timeout=1.0))


def test_build_tiers_default_order_with_key():
    tiers = build_tiers(Settings(birdeye_api_key="k"))
    assert [tier.source for tier in tiers] == DEFAULT_PROVIDER_ORDER
    assert all(isinstance(tier, Tier) for tier in tiers)


def test_build_tiers_skips_birdeye_without_key():
    tiers = build_tiers(Settings())
    assert [tier.source for tier in tiers] == ["dexscreener"]


def test_build_tiers_honours_roster():
    settings = Settings(birdeye_api_key="k", providers=["dexscreener", "birdeye_overview", "bogus"])
    assert [tier.source for tier in build_tiers(settings)] == ["dexscreener", "birdeye_overview"]


def test_build_tiers_can_be_empty(caplog):
    settings = Settings(providers=["birdeye_overview"])
    with caplog.at_level("WARNING"):
        assert build_tiers(settings) == []
    assert "no providers enabled" in caplog.text


def test_resolve_provider_order_falls_back_to_default():
    assert resolve_provider_order(["nope"]) == DEFAULT_PROVIDER_ORDER
    assert resolve_provider_order(None) == DEFAULT_PROVIDER_ORDER
