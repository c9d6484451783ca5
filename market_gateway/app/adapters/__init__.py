"""
Adapters package for the Market Gateway.

HTTP clients for the upstream market data API. `TypedRequestClient`
encapsulates URL building, credential headers and response decoding; the
domain clients only describe which upstream resources they read.

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .domain_clients import MarketMetricsClient, NftClient, OnchainClient, TokenClient, WalletClient
from .request_client import API_KEY_HEADER, ServiceClientConfig, TypedRequestClient

__all__ = [
    "API_KEY_HEADER",
    "MarketMetricsClient",
    "NftClient",
    "OnchainClient",
    "ServiceClientConfig",
    "TokenClient",
    "TypedRequestClient",
    "WalletClient",
]
