"""
Realtime Relay Abstract Base Class

A relay carries named events on named channels:
    restaurant-{slug}  new-order, update-order
    order-{id}         status-update

Messages travel as a JSON envelope {"event": ..., "data": ...}.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional


@dataclass
class RealtimeMessage:
    """One event received from a channel."""
    channel: str
    event: str
    data: Any

    def encode(self) -> str:
        return json.dumps({"event": self.event, "data": self.data}, default=str)

    @classmethod
    def decode(cls, channel: str, raw: Any) -> "RealtimeMessage":
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        envelope = json.loads(raw)
        return cls(channel=channel, event=envelope["event"], data=envelope.get("data"))


def restaurant_channel(slug: str) -> str:
    return f"restaurant-{slug}"


def order_channel(order_id: int) -> str:
    return f"order-{order_id}"


class Subscription(ABC):
    """
    Live subscription to one channel.

    Usable as an async context manager and as an async iterator:

        async with realtime.subscribe("order-7") as sub:
            async for message in sub:
                ...
    """

    def __init__(self, channel: str):
        self.channel = channel

    @abstractmethod
    async def get(self, timeout: Optional[float] = None) -> Optional[RealtimeMessage]:
        """Next message, or None when timeout elapses first."""

    @abstractmethod
    async def close(self) -> None:
        """Stop receiving messages."""

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def __aiter__(self) -> AsyncIterator[RealtimeMessage]:
        while True:
            message = await self.get()
            if message is not None:
                yield message


class BaseRealtimeService(ABC):
    """Abstract base class for pub/sub relays."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Relay name ("memory", "redis")."""

    @abstractmethod
    async def publish(self, channel: str, event: str, data: Any) -> int:
        """
        Publish one event.

        Returns:
            Number of subscribers that received it (as reported by the relay)
        """

    @abstractmethod
    async def subscribe(self, channel: str) -> Subscription:
        """Open a subscription on a channel."""

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        """Release connections."""
