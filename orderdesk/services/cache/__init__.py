"""
View cache factory.

    - ENV_MODE=development -> InMemoryViewCache
    - ENV_MODE=staging/production -> RedisViewCache
"""

from orderdesk.core.config import Settings
from orderdesk.services.cache.base import BaseViewCache, customer_orders_key, menu_key
from orderdesk.services.cache.memory import InMemoryViewCache
from orderdesk.services.cache.redis import RedisViewCache


def create_view_cache(settings: Settings) -> BaseViewCache:
    if settings.use_real_services:
        return RedisViewCache(settings.redis_url, default_ttl=settings.view_cache_ttl_seconds)
    return InMemoryViewCache(default_ttl=settings.view_cache_ttl_seconds)


__all__ = [
    "create_view_cache",
    "BaseViewCache",
    "InMemoryViewCache",
    "RedisViewCache",
    "customer_orders_key",
    "menu_key",
]
