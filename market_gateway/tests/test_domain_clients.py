"""
Tests for the domain service clients.
"""

import json

import httpx
import pytest

from market_gateway.app.adapters import (
    MarketMetricsClient,
    NftClient,
    OnchainClient,
    ServiceClientConfig,
    TokenClient,
    WalletClient,
)


CONFIG = ServiceClientConfig(base_url="/api/proxy", api_key="k", origin="http://localhost:3000")


class RecordingCache:
    def __init__(self):
        self.calls = []

    async def get(self, key, compute, ttl_millis=None):
        self.calls.append((key, ttl_millis))
        return await compute()


def _make(client_cls, cache=None):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client_cls(CONFIG, http_client=http_client, cache=cache), requests


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "client_cls, call, expected",
    [
        (TokenClient, lambda c: c.get_market_cap("abc"), [("endpoint", "token/mcap"), ("unit", "abc")]),
        (
            TokenClient,
            lambda c: c.get_top_holders("abc", page=2),
            [("endpoint", "token/holders/top"), ("unit", "abc"), ("page", "2"), ("perPage", "20")],
        ),
        (
            TokenClient,
            lambda c: c.get_top_liquidity_tokens(),
            [("endpoint", "token/top/liquidity"), ("page", "1"), ("perPage", "10")],
        ),
        (
            TokenClient,
            lambda c: c.get_price_ohlcv("abc", "1h"),
            [("endpoint", "token/ohlcv"), ("unit", "abc"), ("interval", "1h")],
        ),
        (NftClient, lambda c: c.get_collection_stats("pol"), [("endpoint", "nft/collection/stats"), ("policy", "pol")]),
        (
            WalletClient,
            lambda c: c.get_token_trades("addr1"),
            [("endpoint", "wallet/trades/tokens"), ("address", "addr1"), ("page", "1"), ("perPage", "100")],
        ),
        (OnchainClient, lambda c: c.get_asset_supply("abc"), [("endpoint", "asset/supply"), ("unit", "abc")]),
        (MarketMetricsClient, lambda c: c.get_market_stats(), [("endpoint", "market/stats"), ("quote", "ADA")]),
        (MarketMetricsClient, lambda c: c.get_api_usage(), [("endpoint", "metrics")]),
    ],
)
async def test_clients_build_routed_requests(client_cls, call, expected):
    client, requests = _make(client_cls)

    assert await call(client) == {"ok": True}

    (request,) = requests
    assert request.url.params.multi_items() == expected
    assert request.url.path == "/api/proxy"


@pytest.mark.asyncio
async def test_token_prices_posts_units():
    client, requests = _make(TokenClient)

    await client.get_prices(["u1", "u2"])

    (request,) = requests
    assert request.method == "POST"
    assert json.loads(request.content) == ["u1", "u2"]


@pytest.mark.asyncio
async def test_clients_route_through_cache_with_ttls():
    cache = RecordingCache()
    token_client, _ = _make(TokenClient, cache=cache)
    onchain_client, _ = _make(OnchainClient, cache=cache)

    await token_client.get_market_cap("abc")
    await token_client.get_price_ohlcv("abc", "1d", num_intervals=30)
    await onchain_client.get_transaction_utxos("txhash")

    ttls = [ttl for _, ttl in cache.calls]
    assert ttls == [None, 300_000, 0]
    assert cache.calls[0][0] == "GET:token/mcap?unit=abc"
