"""
Order Status Subscriber

Listens on a realtime channel and feeds the shared OrderStateReconciler:

    new-order, update-order  {"order": {...}}                      -> apply()
    status-update            {"orderId", "status", "timestamp"}    -> apply_status()
"""

import asyncio
import logging
from typing import Optional

from orderdesk.consumers.reconciler import OrderStateReconciler
from orderdesk.services.realtime import BaseRealtimeService, RealtimeMessage

logger = logging.getLogger(__name__)


class OrderStatusSubscriber:
    def __init__(self, realtime: BaseRealtimeService, channel: str, reconciler: OrderStateReconciler):
        self.realtime = realtime
        self.channel = channel
        self.reconciler = reconciler
        self._task: Optional[asyncio.Task] = None
        self._ready = asyncio.Event()

    def handle(self, message: RealtimeMessage) -> bool:
        """Apply one message; returns True if the store changed."""
        data = message.data or {}

        if message.event in ("new-order", "update-order"):
            order = data.get("order")
            if not isinstance(order, dict):
                logger.warning(f"{message.event} on {message.channel} without an order payload")
                return False
            return self.reconciler.apply(order)

        if message.event == "status-update":
            try:
                return self.reconciler.apply_status(data["orderId"], data["status"], data["timestamp"])
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Malformed status-update on {message.channel}: {e}")
                return False

        logger.debug(f"Ignoring {message.event} on {message.channel}")
        return False

    async def run(self) -> None:
        async with await self.realtime.subscribe(self.channel) as subscription:
            self._ready.set()
            logger.info(f"Subscribed to {self.channel}")
            async for message in subscription:
                self.handle(message)

    async def start(self) -> None:
        """Run in the background; returns once the subscription is live."""
        self._task = asyncio.create_task(self.run())
        await self._ready.wait()

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
