"""
Stripe webhook handling.

Handles payment events from Stripe (signature already verified):
- checkout.session.completed: PENDING -> PAYMENT_CONFIRMED
- charge.failed: PENDING -> PAYMENT_FAILED

Both read the order id from data.object.metadata.orderId. Anything that
cannot be applied (missing or unknown order, duplicate delivery, an event
arriving after the order left PENDING) is logged and acknowledged, so
Stripe stops retrying.
"""

import enum
import logging
from typing import Any, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from orderdesk.exceptions import InvalidTransitionError, OrderDeskError
from orderdesk.models import OrderStatus
from orderdesk.services.orders import PAYMENT_TRANSITIONS, OrderService

logger = logging.getLogger(__name__)


class WebhookOutcome(str, enum.Enum):
    """What handling an event did."""
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    ORDER_NOT_FOUND = "order_not_found"
    UNHANDLED = "unhandled"


def _extract_order_id(obj: Mapping[str, Any]) -> Optional[int]:
    metadata = obj.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        return None

    raw = metadata.get("orderId")
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


class WebhookService:
    """Applies verified payment events to orders."""

    def __init__(self, orders: OrderService):
        self.orders = orders

    async def handle_event(self, event: Mapping[str, Any]) -> WebhookOutcome:
        event_type = event["type"]
        logger.info(f"Received Stripe event: {event_type}")

        match event_type:
            case "checkout.session.completed":
                target = OrderStatus.PAYMENT_CONFIRMED
            case "charge.failed":
                target = OrderStatus.PAYMENT_FAILED
            case _:
                logger.debug(f"Ignoring unhandled Stripe event: {event_type}")
                return WebhookOutcome.UNHANDLED

        obj = event["data"].get("object") or {}
        order_id = _extract_order_id(obj)
        if order_id is None:
            logger.warning(f"{event_type} without a usable orderId in metadata: {obj.get('id')}")
            return WebhookOutcome.ORDER_NOT_FOUND

        return await self._apply(order_id, target, event_type)

    async def _apply(self, order_id: int, target: OrderStatus, event_type: str) -> WebhookOutcome:
        if await self.orders.find_order(order_id) is None:
            logger.error(f"Order not found for {event_type}: order_id={order_id}")
            return WebhookOutcome.ORDER_NOT_FOUND

        try:
            _, changed = await self.orders.transition(order_id, target, PAYMENT_TRANSITIONS)
        except InvalidTransitionError as e:
            # e.g. charge.failed after the session already completed
            logger.warning(f"Ignoring {event_type} for order #{order_id}: {e.message}")
            return WebhookOutcome.REJECTED
        except (OrderDeskError, SQLAlchemyError) as e:
            logger.error(f"Failed to apply {event_type} to order #{order_id}: {e}")
            raise

        if not changed:
            logger.info(f"Order already processed, skipping: order_id={order_id} event={event_type}")
            return WebhookOutcome.DUPLICATE

        logger.info(f"Order #{order_id} updated via {event_type} -> {target.value}")
        return WebhookOutcome.APPLIED
