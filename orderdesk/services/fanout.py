"""
Order Status Fan-out

Broadcasts order changes to the realtime relay:

    intake         restaurant-{slug}  new-order      {"order": {...}}
    status change  restaurant-{slug}  update-order   {"order": {...}}
                   order-{id}         status-update  {"orderId", "status", "timestamp"}

The status-update timestamp is the order's updatedAt, so consumers order it
against polled snapshots by commit time rather than by publish time.

Publishing happens after the database commit and is best-effort: a relay
failure is logged and never undoes or fails the write that triggered it.
"""

import logging
from typing import Any

from orderdesk.schemas import OrderResponse
from orderdesk.services.realtime import BaseRealtimeService, order_channel, restaurant_channel

logger = logging.getLogger(__name__)

NEW_ORDER_EVENT = "new-order"
UPDATE_ORDER_EVENT = "update-order"
STATUS_UPDATE_EVENT = "status-update"


class StatusFanout:
    """Publishes order events on the restaurant and per-order channels."""

    def __init__(self, realtime: BaseRealtimeService):
        self.realtime = realtime

    async def _publish(self, channel: str, event: str, data: Any, order_id: int) -> bool:
        try:
            await self.realtime.publish(channel, event, data)
            return True
        except Exception as e:
            logger.error(
                f"Fan-out failed for order #{order_id} ({event} on {channel}): {e}",
                exc_info=True,
            )
            return False

    async def order_created(self, slug: str, order: OrderResponse) -> bool:
        payload = {"order": order.model_dump(mode="json", by_alias=True)}
        return await self._publish(restaurant_channel(slug), NEW_ORDER_EVENT, payload, order.id)

    async def status_changed(self, slug: str, order: OrderResponse) -> bool:
        """
        Publish a status change on both channels.

        Returns:
            True only if every publish succeeded
        """
        order_payload = order.model_dump(mode="json", by_alias=True)
        status_payload = {
            "orderId": order.id,
            "status": order.status.value,
            "timestamp": order_payload["updatedAt"],
        }

        logger.info(f"Broadcasting order #{order.id} -> {order.status.value}")

        restaurant_ok = await self._publish(
            restaurant_channel(slug), UPDATE_ORDER_EVENT, {"order": order_payload}, order.id
        )
        order_ok = await self._publish(
            order_channel(order.id), STATUS_UPDATE_EVENT, status_payload, order.id
        )
        return restaurant_ok and order_ok
