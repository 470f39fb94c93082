"""View cache and pub/sub relay backends."""

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from orderdesk.core.config import Settings
from orderdesk.exceptions import ExternalServiceError
from orderdesk.services.cache import (
    InMemoryViewCache,
    RedisViewCache,
    create_view_cache,
    customer_orders_key,
    menu_key,
)
from orderdesk.services.realtime import (
    InMemoryRealtimeService,
    RealtimeMessage,
    RedisRealtimeService,
    create_realtime_service,
)
from orderdesk.services.realtime.redis import RedisSubscription


@pytest.mark.unit
class TestKeys:
    def test_customer_orders_key_is_scoped_by_restaurant(self) -> None:
        assert customer_orders_key("burger-house", "52998224725") != customer_orders_key(
            "pizza-place", "52998224725"
        )

    def test_menu_key(self) -> None:
        assert menu_key("burger-house") == "menu:burger-house"


@pytest.mark.unit
class TestInMemoryViewCache:
    async def test_set_get_delete(self) -> None:
        cache = InMemoryViewCache(default_ttl=30)
        await cache.set("k", {"orders": [1]})

        assert await cache.get("k") == {"orders": [1]}
        assert await cache.delete("k", "missing") == 1
        assert await cache.get("k") is None

    async def test_values_are_copies(self) -> None:
        cache = InMemoryViewCache()
        value = {"orders": [1]}
        await cache.set("k", value)

        value["orders"].append(2)
        (await cache.get("k"))["orders"].append(3)

        assert await cache.get("k") == {"orders": [1]}

    async def test_expired_entry_is_a_miss(self) -> None:
        cache = InMemoryViewCache()
        await cache.set("k", "v", ttl=0)

        assert await cache.get("k") is None
        assert "k" not in cache

    async def test_writes_sweep_expired_entries(self) -> None:
        cache = InMemoryViewCache()
        await cache.set("abandoned", "v", ttl=0)
        await cache.set("fresh", "v")

        assert "abandoned" not in cache
        assert "fresh" in cache


@pytest.fixture
def redis_cache() -> RedisViewCache:
    cache = RedisViewCache("redis://localhost:6379/0", default_ttl=30)
    cache._redis = AsyncMock()
    return cache


@pytest.mark.unit
class TestRedisViewCache:
    async def test_set_uses_prefixed_key_and_ttl(self, redis_cache) -> None:
        await redis_cache.set("menu:burger-house", {"a": 1})

        redis_cache._redis.setex.assert_awaited_once_with("orderdesk:menu:burger-house", 30, '{"a": 1}')

    async def test_get_decodes_json(self, redis_cache) -> None:
        redis_cache._redis.get.return_value = json.dumps({"a": 1})
        assert await redis_cache.get("k") == {"a": 1}

        redis_cache._redis.get.return_value = None
        assert await redis_cache.get("k") is None

    async def test_errors_are_misses(self, redis_cache) -> None:
        redis_cache._redis.get.side_effect = RedisConnectionError("down")
        redis_cache._redis.setex.side_effect = RedisConnectionError("down")
        redis_cache._redis.delete.side_effect = RedisConnectionError("down")
        redis_cache._redis.ping.side_effect = RedisConnectionError("down")

        assert await redis_cache.get("k") is None
        await redis_cache.set("k", "v")
        assert await redis_cache.delete("k") == 0
        assert await redis_cache.health_check() is False

    async def test_delete_without_keys(self, redis_cache) -> None:
        assert await redis_cache.delete() == 0
        redis_cache._redis.delete.assert_not_awaited()


@pytest.mark.unit
class TestInMemoryRealtime:
    async def test_publish_reaches_subscribers(self) -> None:
        realtime = InMemoryRealtimeService()
        async with await realtime.subscribe("order-1") as subscription:
            receivers = await realtime.publish("order-1", "status-update", {"status": "FINISHED"})
            message = await subscription.get(timeout=1)

        assert receivers == 1
        assert message == RealtimeMessage("order-1", "status-update", {"status": "FINISHED"})

    async def test_get_times_out(self) -> None:
        realtime = InMemoryRealtimeService()
        subscription = await realtime.subscribe("order-1")
        assert await subscription.get(timeout=0.01) is None
        await subscription.close()

    async def test_no_subscribers(self) -> None:
        realtime = InMemoryRealtimeService()
        assert await realtime.publish("order-1", "status-update", {}) == 0
        assert realtime.events_for("order-1") == [("status-update", {})]


@pytest.mark.unit
class TestRedisRealtime:
    async def test_publish_sends_envelope(self) -> None:
        realtime = RedisRealtimeService("redis://localhost:6379/0")
        realtime._redis = AsyncMock()
        realtime._redis.publish.return_value = 2

        assert await realtime.publish("order-7", "status-update", {"orderId": 7}) == 2

        channel, payload = realtime._redis.publish.await_args.args
        assert channel == "order-7"
        assert json.loads(payload) == {"event": "status-update", "data": {"orderId": 7}}

    async def test_publish_failure_raises(self) -> None:
        realtime = RedisRealtimeService("redis://localhost:6379/0")
        realtime._redis = AsyncMock()
        realtime._redis.publish.side_effect = RedisConnectionError("down")

        with pytest.raises(ExternalServiceError):
            await realtime.publish("order-7", "status-update", {})

    async def test_subscription_decodes_messages(self) -> None:
        pubsub = AsyncMock()
        pubsub.get_message.side_effect = [
            {"type": "message", "data": b'{"event": "status-update", "data": {"status": "FINISHED"}}'},
            {"type": "message", "data": b"not json"},
            None,
        ]
        subscription = RedisSubscription(pubsub, "order-7")

        assert await subscription.get(timeout=1) == RealtimeMessage(
            "order-7", "status-update", {"status": "FINISHED"}
        )
        assert await subscription.get(timeout=1) is None
        assert await subscription.get(timeout=1) is None

        await subscription.close()
        pubsub.unsubscribe.assert_awaited_once_with("order-7")


@pytest.mark.unit
class TestFactories:
    def test_development_uses_in_process_backends(self) -> None:
        settings = Settings(env_mode="development")
        assert isinstance(create_view_cache(settings), InMemoryViewCache)
        assert isinstance(create_realtime_service(settings), InMemoryRealtimeService)

    def test_production_uses_redis(self) -> None:
        settings = Settings(env_mode="production", redis_url="redis://cache.internal:6379/1")
        assert isinstance(create_view_cache(settings), RedisViewCache)
        assert isinstance(create_realtime_service(settings), RedisRealtimeService)
