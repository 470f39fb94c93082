"""
Redis view cache.

Values are stored as JSON strings with SETEX. Redis errors are logged and
treated as misses.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from orderdesk.services.cache.base import BaseViewCache

logger = logging.getLogger(__name__)


class RedisViewCache(BaseViewCache):
    """
    Redis-backed view cache shared by all API workers.

    Example:
        cache = RedisViewCache("redis://localhost:6379/0", default_ttl=30)
        await cache.set("menu:burger-house", payload)
    """

    def __init__(
        self,
        redis_url: str,
        default_ttl: int = 30,
        key_prefix: str = "orderdesk:",
        socket_timeout: float = 2.0,
    ):
        super().__init__(default_ttl)
        self._key_prefix = key_prefix
        self._redis = aioredis.from_url(
            redis_url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )

    @property
    def provider_name(self) -> str:
        return "redis"

    def _full_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._redis.get(self._full_key(key))
        except RedisError as e:
            logger.warning(f"Redis GET error for key '{key}': {e}")
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        try:
            await self._redis.setex(self._full_key(key), ttl, json.dumps(value, default=str))
        except RedisError as e:
            logger.warning(f"Redis SET error for key '{key}': {e}")

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self._redis.delete(*(self._full_key(k) for k in keys))
        except RedisError as e:
            logger.warning(f"Redis DELETE error for keys {keys}: {e}")
            return 0

    async def health_check(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.error(f"Redis cache health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._redis.aclose()
