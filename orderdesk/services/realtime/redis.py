"""
Redis realtime relay.

PUBLISH/SUBSCRIBE over redis.asyncio. Every API process can publish;
any process holding a subscription (the SSE stream endpoint, an admin
dashboard relay) receives the event, so fan-out works across workers.
"""

import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from orderdesk.exceptions import ExternalServiceError
from orderdesk.services.realtime.base import (
    BaseRealtimeService,
    RealtimeMessage,
    Subscription,
)

logger = logging.getLogger(__name__)


class RedisSubscription(Subscription):
    def __init__(self, pubsub: PubSub, channel: str):
        super().__init__(channel)
        self._pubsub = pubsub

    async def get(self, timeout: Optional[float] = None) -> Optional[RealtimeMessage]:
        raw = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=timeout)
        if raw is None or raw.get("type") != "message":
            return None
        try:
            return RealtimeMessage.decode(self.channel, raw["data"])
        except (ValueError, KeyError) as e:
            logger.warning(f"Dropping malformed message on {self.channel}: {e}")
            return None

    async def close(self) -> None:
        await self._pubsub.unsubscribe(self.channel)
        await self._pubsub.aclose()


class RedisRealtimeService(BaseRealtimeService):
    """
    Redis-backed relay for multi-worker deployments.

    Example:
        realtime = RedisRealtimeService("redis://localhost:6379/0")
        await realtime.publish("order-7", "status-update", {...})
    """

    def __init__(self, redis_url: str, socket_timeout: float = 5.0):
        self.redis_url = redis_url
        self._redis = aioredis.from_url(
            redis_url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=False,
        )
        logger.info(f"RedisRealtimeService configured ({redis_url})")

    @property
    def provider_name(self) -> str:
        return "redis"

    async def publish(self, channel: str, event: str, data: Any) -> int:
        payload = RealtimeMessage(channel, event, data).encode()
        try:
            receivers = await self._redis.publish(channel, payload)
        except RedisError as e:
            raise ExternalServiceError(f"Publish to {channel} failed", provider="redis", detail=str(e))
        logger.debug(f"Published {event} on {channel} ({receivers} receiver(s))")
        return receivers

    async def subscribe(self, channel: str) -> RedisSubscription:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        return RedisSubscription(pubsub, channel)

    async def health_check(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._redis.aclose()
        logger.info("RedisRealtimeService closed")
