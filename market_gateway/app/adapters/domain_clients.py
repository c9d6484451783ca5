"""
Domain service clients for the market data API.

Each client is a thin specialisation of `TypedRequestClient` bound to one
area of the upstream API. Responses are returned as decoded JSON.
"""

from typing import Any, Dict, List, Optional, Sequence

from ..domain.descriptor import RequestDescriptor
from .request_client import TypedRequestClient


class TokenClient(TypedRequestClient):
    """Fungible token market data."""

    async def get_market_cap(self, unit: str) -> Dict[str, Any]:
        return await self.fetch(RequestDescriptor("token/mcap", {"unit": unit}))

    async def get_holders(self, unit: str) -> Dict[str, Any]:
        return await self.fetch(RequestDescriptor("token/holders", {"unit": unit}))

    async def get_top_holders(self, unit: str, page: int = 1, per_page: int = 20) -> List[Dict[str, Any]]:
        return await self.fetch(
            RequestDescriptor("token/holders/top", {"unit": unit, "page": page, "perPage": per_page})
        )

    async def get_top_liquidity_tokens(self, page: int = 1, per_page: int = 10) -> List[Dict[str, Any]]:
        return await self.fetch(RequestDescriptor("token/top/liquidity", {"page": page, "perPage": per_page}))

    async def get_price_ohlcv(
        self,
        unit: str,
        interval: str,
        num_intervals: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = {"unit": unit, "interval": interval, "numIntervals": num_intervals}
        # Candles move with every interval; keep them fresh for five minutes.
        return await self.fetch(RequestDescriptor("token/ohlcv", params), ttl_millis=300_000)

    async def get_prices(self, units: Sequence[str]) -> Dict[str, float]:
        return await self.fetch(RequestDescriptor("token/prices", method="POST", body=list(units)))


class NftClient(TypedRequestClient):
    """NFT collection data."""

    async def get_collection_stats(self, policy: str) -> Dict[str, Any]:
        return await self.fetch(RequestDescriptor("nft/collection/stats", {"policy": policy}))

    async def get_collection_info(self, policy: str) -> Dict[str, Any]:
        return await self.fetch(RequestDescriptor("nft/collection/info", {"policy": policy}))

    async def get_top_volume_collections(self, timeframe: str = "24h", page: int = 1, per_page: int = 10) -> List[Dict[str, Any]]:
        return await self.fetch(
            RequestDescriptor("nft/top/volume", {"timeframe": timeframe, "page": page, "perPage": per_page})
        )


class WalletClient(TypedRequestClient):
    """Wallet portfolio and trade history."""

    async def get_portfolio_positions(self, address: str) -> Dict[str, Any]:
        return await self.fetch(RequestDescriptor("wallet/portfolio/positions", {"address": address}))

    async def get_token_trades(
        self,
        address: str,
        unit: Optional[str] = None,
        page: int = 1,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        params = {"address": address, "unit": unit, "page": page, "perPage": per_page}
        return await self.fetch(RequestDescriptor("wallet/trades/tokens", params))


class OnchainClient(TypedRequestClient):
    """Raw on-chain lookups."""

    async def get_asset_supply(self, unit: str) -> Dict[str, Any]:
        return await self.fetch(RequestDescriptor("asset/supply", {"unit": unit}))

    async def get_address_info(self, address: str) -> Dict[str, Any]:
        return await self.fetch(RequestDescriptor("address/info", {"address": address}))

    async def get_transaction_utxos(self, tx_hash: str) -> Dict[str, Any]:
        # Confirmed transactions never change.
        return await self.fetch(RequestDescriptor("transaction/utxos", {"hash": tx_hash}), ttl_millis=0)


class MarketMetricsClient(TypedRequestClient):
    """Aggregate market statistics."""

    async def get_market_stats(self, quote: str = "ADA") -> Dict[str, Any]:
        return await self.fetch(RequestDescriptor("market/stats", {"quote": quote}))

    async def get_api_usage(self) -> List[Dict[str, Any]]:
        return await self.request("metrics")
