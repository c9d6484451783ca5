"""
Domain types shared across the gateway: request descriptors and the query
state contract consumed by UI-facing callers.
"""

from .api_state import ApiQuery, ApiState
from .descriptor import ROUTING_PARAM, RequestDescriptor, normalize_endpoint_path, query_items

__all__ = [
    "ApiQuery",
    "ApiState",
    "ROUTING_PARAM",
    "RequestDescriptor",
    "normalize_endpoint_path",
    "query_items",
]
