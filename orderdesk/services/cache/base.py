"""
View cache interface.

Caches JSON-ready response payloads for read-heavy public views:
    orders:{slug}:{cpf}   a customer's order history
    menu:{slug}           the public menu

Cache failures never fail a request: backends log them and behave as a
miss.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


def customer_orders_key(slug: str, cpf: str) -> str:
    return f"orders:{slug}:{cpf}"


def menu_key(slug: str) -> str:
    return f"menu:{slug}"


class BaseViewCache(ABC):
    """Abstract base class for view caches."""

    def __init__(self, default_ttl: int = 30):
        self.default_ttl = default_ttl

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Backend name ("memory", "redis")."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Cached value, or None on a miss."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a JSON-serializable value."""

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Remove keys; returns how many existed."""

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        """Release connections."""
