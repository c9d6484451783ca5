"""
Proxy forwarding to the upstream market data API.
"""

from .forwarder import CORS_HEADERS, ForwardResult, ProxyForwarder

__all__ = ["CORS_HEADERS", "ForwardResult", "ProxyForwarder"]
