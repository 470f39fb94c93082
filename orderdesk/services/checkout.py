"""
Checkout Session Creation

Turns a PENDING order into a hosted payment session. Amounts always come
from the order's line snapshots in the database; names and images sent by
the storefront are display hints that are never used for pricing.

The order id travels as metadata {"orderId": "<id>"} on both the session
and its payment intent, so checkout.session.completed and charge.failed
webhooks can both be correlated back to the order.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orderdesk.core.config import Settings
from orderdesk.exceptions import NotFoundError, PaymentConfigurationError, ValidationError
from orderdesk.models import Order, OrderProduct, OrderStatus, Restaurant
from orderdesk.schemas import CheckoutCreate, CheckoutResponse
from orderdesk.services.payment import BasePaymentService, CheckoutLineItem

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """12.35 -> 1235"""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CheckoutService:
    def __init__(self, session: AsyncSession, payment: BasePaymentService, settings: Settings):
        self.session = session
        self.payment = payment
        self.settings = settings

    def absolute_url(self, path: Optional[str]) -> Optional[str]:
        if not path:
            return None
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.settings.public_base_url.rstrip('/')}/{path.lstrip('/')}"

    def return_url(self, data: CheckoutCreate) -> str:
        query = urlencode({"consumptionMethod": data.consumption_method.value, "cpf": data.cpf})
        base = self.settings.public_base_url.rstrip("/")
        return f"{base}/{data.slug}/order-status/{data.order_id}?{query}"

    async def create_checkout(self, data: CheckoutCreate) -> CheckoutResponse:
        """
        Create a checkout session for an order.

        Raises:
            ValidationError: Empty cart, missing field, product not in order,
                or order no longer awaiting payment
            PaymentConfigurationError: Payment provider not configured
            NotFoundError: Unknown restaurant, or order not in that restaurant
            ExternalServiceError: Provider rejected the session
        """
        if not data.products:
            raise ValidationError("No products to check out")
        if not data.slug or not data.cpf:
            raise ValidationError("Missing required checkout parameters")
        if not self.payment.is_configured:
            raise PaymentConfigurationError(
                "Payment provider is not configured", provider=self.payment.provider_name
            )

        result = await self.session.execute(
            select(Order)
            .join(Restaurant, Order.restaurant_id == Restaurant.id)
            .where(Order.id == data.order_id, Restaurant.slug == data.slug)
            .options(selectinload(Order.order_products).selectinload(OrderProduct.product))
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order #{data.order_id} not found for '{data.slug}'")
        if order.status != OrderStatus.PENDING:
            raise ValidationError(f"Order #{order.id} is not awaiting payment ({order.status.value})")

        lines_by_product = {line.product_id: line for line in order.order_products}
        missing = [p.id for p in data.products if p.id not in lines_by_product]
        if missing:
            raise ValidationError("Products not found", detail=", ".join(missing))

        line_items = [
            CheckoutLineItem(
                name=line.product.name,
                unit_amount=to_minor_units(line.price),
                quantity=line.quantity,
                image_url=self.absolute_url(line.product.image_url),
            )
            for line in order.order_products
        ]

        metadata = {"orderId": str(order.id)}
        url = self.return_url(data)
        session = await self.payment.create_checkout_session(
            line_items=line_items,
            metadata=metadata,
            success_url=url,
            cancel_url=url,
        )

        logger.info(f"Checkout session {session.session_id} created for order #{order.id}")
        return CheckoutResponse(session_id=session.session_id)
