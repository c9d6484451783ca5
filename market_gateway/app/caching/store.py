"""
Key-value stores backing the gateway cache.
"""

from typing import Optional, Protocol

import redis.asyncio as redis

from shared.logging import get_logger


class CacheStore(Protocol):
    """get/set/delete over string keys and string values."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_millis: Optional[int] = None) -> None:
        ...

    async def delete(self, key: str) -> bool:
        ...

    async def close(self) -> None:
        ...


class RedisCacheStore:
    """Redis-backed store; the connection is opened lazily on first use."""

    def __init__(self, redis_url: str, token: Optional[str] = None):
        self.redis_url = redis_url
        self.token = token
        self.logger = get_logger("gateway.cache_store")
        self._redis: Optional[redis.Redis] = None

    def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                password=self.token,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        return await self._get_redis().get(key)

    async def set(self, key: str, value: str, ttl_millis: Optional[int] = None) -> None:
        client = self._get_redis()
        if ttl_millis is not None and ttl_millis > 0:
            await client.set(key, value, px=ttl_millis)
        else:
            await client.set(key, value)

    async def delete(self, key: str) -> bool:
        removed = await self._get_redis().delete(key)
        return bool(removed)

    async def ping(self) -> bool:
        return bool(await self._get_redis().ping())

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Cache store connection closed")
