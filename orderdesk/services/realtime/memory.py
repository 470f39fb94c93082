"""
In-memory realtime relay backed by asyncio queues.

Used in development mode and by the test suite. Only delivers within the
current process.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Optional

from orderdesk.services.realtime.base import (
    BaseRealtimeService,
    RealtimeMessage,
    Subscription,
)

logger = logging.getLogger(__name__)


class InMemorySubscription(Subscription):
    def __init__(self, service: "InMemoryRealtimeService", channel: str):
        super().__init__(channel)
        self._service = service
        self.queue: asyncio.Queue[RealtimeMessage] = asyncio.Queue()

    async def get(self, timeout: Optional[float] = None) -> Optional[RealtimeMessage]:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def close(self) -> None:
        self._service._subscribers[self.channel].discard(self)


class InMemoryRealtimeService(BaseRealtimeService):
    """
    Process-local relay.

    Attributes:
        published: Every (channel, event, data) ever published, in order
    """

    def __init__(self):
        self._subscribers: dict[str, set[InMemorySubscription]] = defaultdict(set)
        self.published: list[tuple[str, str, Any]] = []

    @property
    def provider_name(self) -> str:
        return "memory"

    async def publish(self, channel: str, event: str, data: Any) -> int:
        # Round-trip through the envelope so subscribers see exactly what Redis would deliver
        message = RealtimeMessage.decode(channel, RealtimeMessage(channel, event, data).encode())
        self.published.append((channel, event, message.data))

        subscribers = list(self._subscribers.get(channel, ()))
        for sub in subscribers:
            sub.queue.put_nowait(message)

        logger.debug(f"Published {event} on {channel} to {len(subscribers)} subscriber(s)")
        return len(subscribers)

    async def subscribe(self, channel: str) -> InMemorySubscription:
        sub = InMemorySubscription(self, channel)
        self._subscribers[channel].add(sub)
        return sub

    def events_for(self, channel: str) -> list[tuple[str, Any]]:
        """(event, data) pairs published on a channel."""
        return [(event, data) for ch, event, data in self.published if ch == channel]
