"""
Realtime relay factory.

    - ENV_MODE=development -> InMemoryRealtimeService
    - ENV_MODE=staging/production -> RedisRealtimeService
"""

import logging

from orderdesk.core.config import Settings
from orderdesk.services.realtime.base import (
    BaseRealtimeService,
    RealtimeMessage,
    Subscription,
    order_channel,
    restaurant_channel,
)
from orderdesk.services.realtime.memory import InMemoryRealtimeService
from orderdesk.services.realtime.redis import RedisRealtimeService

logger = logging.getLogger(__name__)


def create_realtime_service(settings: Settings) -> BaseRealtimeService:
    if settings.use_real_services:
        return RedisRealtimeService(settings.redis_url)
    logger.info("Realtime: Using InMemoryRealtimeService (development mode)")
    return InMemoryRealtimeService()


__all__ = [
    "create_realtime_service",
    "BaseRealtimeService",
    "RealtimeMessage",
    "Subscription",
    "InMemoryRealtimeService",
    "RedisRealtimeService",
    "order_channel",
    "restaurant_channel",
]
