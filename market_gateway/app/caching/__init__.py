"""
Gateway caching package.

Read-through caching in front of the upstream market data API. The cache is
fail-open: a store outage only costs an extra upstream call. Stores are
injected so the entry point owns their lifecycle.
"""

from .cache_manager import CacheManager
from .store import CacheStore, RedisCacheStore

__all__ = ["CacheManager", "CacheStore", "RedisCacheStore"]
