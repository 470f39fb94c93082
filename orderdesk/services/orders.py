"""
Order Service

Order intake, the order status state machine, and order queries.

State machine:

    PENDING --(payment success)--> PAYMENT_CONFIRMED --(staff)--> IN_PREPARATION --(staff)--> FINISHED
    PENDING --(payment failure)--> PAYMENT_FAILED

FINISHED and PAYMENT_FAILED are terminal. Every status write is a
conditional UPDATE restricted to the allowed source statuses, so two
concurrent writers can never move an order backwards or out of a terminal
state. Among valid writers the last commit wins.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orderdesk.core.security import TokenClaims, authorize
from orderdesk.cpf import is_valid_cpf, remove_cpf_punctuation
from orderdesk.exceptions import (
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from orderdesk.models import Order, OrderProduct, OrderStatus, Product, Restaurant, utcnow
from orderdesk.schemas import (
    CustomerOrdersResponse,
    OrderCounts,
    OrderCreate,
    OrderResponse,
)
from orderdesk.services.cache import BaseViewCache, customer_orders_key
from orderdesk.services.fanout import StatusFanout

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# target status -> statuses it may be reached from
PAYMENT_TRANSITIONS: Mapping[OrderStatus, frozenset] = {
    OrderStatus.PAYMENT_CONFIRMED: frozenset({OrderStatus.PENDING}),
    OrderStatus.PAYMENT_FAILED: frozenset({OrderStatus.PENDING}),
}

STAFF_TRANSITIONS: Mapping[OrderStatus, frozenset] = {
    OrderStatus.IN_PREPARATION: frozenset({OrderStatus.PAYMENT_CONFIRMED}),
    OrderStatus.FINISHED: frozenset({OrderStatus.IN_PREPARATION}),
}

TERMINAL_STATUSES = frozenset({OrderStatus.FINISHED, OrderStatus.PAYMENT_FAILED})
ACTIVE_STATUSES = frozenset({OrderStatus.PAYMENT_CONFIRMED, OrderStatus.IN_PREPARATION})

ADMIN_LIST_LIMIT = 50


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _order_query():
    return select(Order).options(
        selectinload(Order.order_products).selectinload(OrderProduct.product),
        selectinload(Order.restaurant),
    )


class OrderService:
    """
    Order operations bound to one database session.

    Args:
        session: Request-scoped AsyncSession
        fanout: Realtime broadcaster (best-effort, after commit)
        cache: View cache holding customer order histories
    """

    def __init__(self, session: AsyncSession, fanout: StatusFanout, cache: BaseViewCache):
        self.session = session
        self.fanout = fanout
        self.cache = cache

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_restaurant_by_slug(self, slug: str) -> Restaurant:
        result = await self.session.execute(select(Restaurant).where(Restaurant.slug == slug))
        restaurant = result.scalar_one_or_none()
        if restaurant is None or not restaurant.is_active:
            raise NotFoundError(f"Restaurant '{slug}' not found")
        return restaurant

    async def find_order(self, order_id: int) -> Optional[Order]:
        result = await self.session.execute(
            _order_query()
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_order(self, order_id: int) -> Order:
        order = await self.find_order(order_id)
        if order is None:
            raise NotFoundError(f"Order #{order_id} not found")
        return order

    async def get_orders(self, order_ids: Iterable[int]) -> list[Order]:
        """Orders among order_ids that exist, newest first."""
        ids = list(dict.fromkeys(order_ids))
        result = await self.session.execute(
            _order_query()
            .where(Order.id.in_(ids))
            .order_by(Order.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # =========================================================================
    # INTAKE
    # =========================================================================

    async def create_order(self, data: OrderCreate) -> OrderResponse:
        """
        Create a PENDING order with price snapshots.

        Prices are read from the database at this moment and copied onto each
        line; the total is computed from those snapshots and stored once.

        Raises:
            NotFoundError: Unknown or inactive restaurant
            ValidationError: Store closed, or a product missing/inactive
        """
        restaurant = await self.get_restaurant_by_slug(data.slug)
        if not restaurant.is_open:
            raise ValidationError(f"Restaurant '{restaurant.name}' is closed")

        requested_ids = list(dict.fromkeys(line.id for line in data.products))
        result = await self.session.execute(
            select(Product).where(
                Product.id.in_(requested_ids),
                Product.restaurant_id == restaurant.id,
                Product.is_active.is_(True),
            )
        )
        products = {p.id: p for p in result.scalars().all()}

        missing = [pid for pid in requested_ids if pid not in products]
        if missing:
            raise ValidationError("Products not found", detail=", ".join(missing))

        lines = []
        total = Decimal("0")
        for line in data.products:
            price = quantize_money(Decimal(products[line.id].price))
            total += price * line.quantity
            lines.append((line.id, line.quantity, price))

        try:
            order = Order(
                customer_name=data.customer_name,
                customer_cpf=data.customer_cpf,
                customer_phone=data.customer_phone,
                delivery_address=data.delivery_address,
                delivery_reference=data.delivery_reference,
                consumption_method=data.consumption_method,
                total=quantize_money(total),
                status=OrderStatus.PENDING,
                restaurant_id=restaurant.id,
            )
            self.session.add(order)
            await self.session.flush()

            for product_id, quantity, price in lines:
                self.session.add(
                    OrderProduct(
                        order_id=order.id,
                        product_id=product_id,
                        quantity=quantity,
                        price=price,
                    )
                )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception(f"Error creating order for {restaurant.slug}: {e}")
            raise InternalError("Could not create order")

        created = OrderResponse.model_validate(await self.get_order(order.id))
        logger.info(
            f"Order #{created.id} created for {restaurant.slug} - "
            f"{len(lines)} line(s), total {created.total}"
        )

        await self.cache.delete(customer_orders_key(restaurant.slug, created.customer_cpf))
        await self.fanout.order_created(restaurant.slug, created)
        return created

    # =========================================================================
    # STATUS TRANSITIONS
    # =========================================================================

    async def transition(
        self,
        order_id: int,
        target: OrderStatus,
        allowed: Mapping[OrderStatus, frozenset],
    ) -> tuple[Order, bool]:
        """
        Move an order to target if its current status allows it.

        Args:
            order_id: Order to update
            target: Requested status
            allowed: Transition table for the caller (payment or staff)

        Returns:
            (order, changed). changed is False when the order already had
            the target status (idempotent re-delivery).

        Raises:
            NotFoundError: Unknown order
            InvalidTransitionError: Backwards move, terminal source, or a
                target this caller may not set
        """
        sources = allowed.get(target, frozenset())

        if sources:
            result = await self.session.execute(
                update(Order)
                .where(Order.id == order_id, Order.status.in_(sources))
                .values(status=target, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()

            if result.rowcount:
                order = await self.get_order(order_id)
                logger.info(f"Order #{order_id} -> {target.value}")
                await self._after_status_change(order)
                return order, True

        order = await self.get_order(order_id)
        if order.status == target:
            logger.debug(f"Order #{order_id} already {target.value}, nothing to do")
            return order, False

        raise InvalidTransitionError(order_id, order.status.value, target.value)

    async def update_status(
        self,
        order_id: int,
        status: OrderStatus,
        claims: TokenClaims,
    ) -> tuple[OrderResponse, bool]:
        """Staff status change, authorized against the order's restaurant."""
        order = await self.get_order(order_id)
        authorize(claims, restaurant_id=order.restaurant_id)

        order, changed = await self.transition(order_id, status, STAFF_TRANSITIONS)
        return OrderResponse.model_validate(order), changed

    async def _after_status_change(self, order: Order) -> None:
        slug = order.restaurant.slug
        await self.cache.delete(customer_orders_key(slug, order.customer_cpf))
        await self.fanout.status_changed(slug, OrderResponse.model_validate(order))

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def list_restaurant_orders(
        self,
        slug: str,
        claims: TokenClaims,
        since: Optional[datetime] = None,
    ) -> tuple[list[OrderResponse], OrderCounts]:
        """
        Orders for the admin dashboard.

        With since: every order created or updated at/after it. Without: the
        latest orders, capped at ADMIN_LIST_LIMIT.
        """
        restaurant = await self.get_restaurant_by_slug(slug)
        authorize(claims, restaurant_id=restaurant.id)

        query = _order_query().where(Order.restaurant_id == restaurant.id)
        if since is not None:
            query = query.where(or_(Order.created_at >= since, Order.updated_at >= since))
            query = query.order_by(Order.updated_at.desc())
        else:
            query = query.order_by(Order.created_at.desc()).limit(ADMIN_LIST_LIMIT)

        result = await self.session.execute(query.execution_options(populate_existing=True))
        orders = [OrderResponse.model_validate(o) for o in result.scalars().all()]

        return orders, await self.count_orders(restaurant.id)

    async def count_orders(self, restaurant_id: str) -> OrderCounts:
        result = await self.session.execute(
            select(Order.status, func.count(Order.id))
            .where(Order.restaurant_id == restaurant_id)
            .group_by(Order.status)
        )
        by_status = {status: count for status, count in result.all()}

        return OrderCounts(
            total=sum(by_status.values()),
            pending=by_status.get(OrderStatus.PENDING, 0),
            confirmed=by_status.get(OrderStatus.PAYMENT_CONFIRMED, 0),
            preparing=by_status.get(OrderStatus.IN_PREPARATION, 0),
            finished=by_status.get(OrderStatus.FINISHED, 0),
            failed=by_status.get(OrderStatus.PAYMENT_FAILED, 0),
            last_update=utcnow(),
        )

    async def get_admin_order(self, order_id: int, claims: TokenClaims) -> OrderResponse:
        order = await self.get_order(order_id)
        authorize(claims, restaurant_id=order.restaurant_id)
        return OrderResponse.model_validate(order)

    async def list_customer_orders(self, slug: str, cpf: str) -> CustomerOrdersResponse:
        """A customer's orders at one restaurant, newest first, via the view cache."""
        if not is_valid_cpf(cpf):
            raise ValidationError("Invalid CPF")
        cpf = remove_cpf_punctuation(cpf)

        key = customer_orders_key(slug, cpf)
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return CustomerOrdersResponse.model_validate(cached)

        restaurant = await self.get_restaurant_by_slug(slug)
        result = await self.session.execute(
            _order_query()
            .where(Order.restaurant_id == restaurant.id, Order.customer_cpf == cpf)
            .order_by(Order.created_at.desc())
        )
        response = CustomerOrdersResponse(
            orders=[OrderResponse.model_validate(o) for o in result.scalars().all()]
        )

        await self.cache.set(key, response.model_dump(mode="json", by_alias=True))
        return response
