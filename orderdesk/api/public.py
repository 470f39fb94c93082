"""
Public storefront endpoints.

    GET  /api/public/{slug}/menu
    POST /api/orders
    POST /api/checkout
    GET  /api/orders/status?id=
    POST /api/orders/status-check
    GET  /api/orders/{order_id}/stream
    GET  /api/{slug}/orders?cpf=
"""

import asyncio
import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import StreamingResponse

from orderdesk.api.dependencies import (
    NO_CACHE_HEADERS,
    get_checkout_service,
    get_menu_service,
    get_order_service,
    get_realtime,
    no_cache,
)
from orderdesk.models import utcnow
from orderdesk.schemas import (
    CheckoutCreate,
    CheckoutResponse,
    CustomerOrdersResponse,
    ErrorResponse,
    MenuResponse,
    OrderCreate,
    OrderResponse,
    OrderSnapshotResponse,
    StatusCheckRequest,
    StatusCheckResponse,
)
from orderdesk.services.checkout import CheckoutService
from orderdesk.services.menu import MenuService
from orderdesk.services.orders import OrderService
from orderdesk.services.realtime import BaseRealtimeService, order_channel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

SSE_KEEPALIVE_SECONDS = 15.0


# =============================================================================
# MENU
# =============================================================================

@router.get(
    "/public/{slug}/menu",
    response_model=MenuResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Menu"],
)
async def public_menu(slug: str, menu: MenuService = Depends(get_menu_service)) -> MenuResponse:
    """Active categories and products of an active restaurant."""
    return await menu.public_menu(slug)


# =============================================================================
# ORDER INTAKE & CHECKOUT
# =============================================================================

@router.post(
    "/orders",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Create Order",
)
async def create_order(
    order_data: OrderCreate,
    orders: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """
    Create a PENDING order.

    Prices are taken from the database and snapshotted onto each line;
    anything price-like in the request body is ignored.
    """
    logger.info(f"Creating order for: {order_data.customer_name} at {order_data.slug}")
    return await orders.create_order(order_data)


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    tags=["Checkout"],
)
async def create_checkout(
    data: CheckoutCreate,
    checkout: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    return await checkout.create_checkout(data)


# =============================================================================
# ORDER STATUS
# =============================================================================

@router.get("/orders/status", response_model=OrderSnapshotResponse, tags=["Order Status"])
async def order_status(
    response: Response,
    order_id: int = Query(..., alias="id"),
    orders: OrderService = Depends(get_order_service),
) -> OrderSnapshotResponse:
    """Current snapshot of one order (never cached)."""
    no_cache(response)
    order = await orders.get_order(order_id)
    return OrderSnapshotResponse(order=OrderResponse.model_validate(order))


@router.post("/orders/status-check", response_model=StatusCheckResponse, tags=["Order Status"])
async def status_check(
    data: StatusCheckRequest,
    response: Response,
    orders: OrderService = Depends(get_order_service),
) -> StatusCheckResponse:
    """Snapshots for several orders at once; unknown ids are left out."""
    no_cache(response)
    found = [OrderResponse.model_validate(o) for o in await orders.get_orders(data.order_ids)]
    return StatusCheckResponse(data=found, timestamp=utcnow(), count=len(found))


@router.get("/orders/{order_id}/stream", tags=["Order Status"])
async def order_stream(
    order_id: int,
    request: Request,
    orders: OrderService = Depends(get_order_service),
    realtime: BaseRealtimeService = Depends(get_realtime),
) -> StreamingResponse:
    """
    Server-sent events for one order.

    Sends the current status first, then every status-update published on
    order-{id}, with a keep-alive comment when the channel is quiet.
    """
    order = await orders.get_order(order_id)
    initial = {
        "orderId": order.id,
        "status": order.status.value,
        "timestamp": order.updated_at.isoformat(),
    }
    subscription = await realtime.subscribe(order_channel(order_id))

    async def events() -> AsyncIterator[str]:
        try:
            yield f"event: status-update\ndata: {json.dumps(initial)}\n\n"
            while not await request.is_disconnected():
                message = await subscription.get(timeout=SSE_KEEPALIVE_SECONDS)
                if message is None:
                    yield ": keep-alive\n\n"
                    continue
                yield f"event: {message.event}\ndata: {json.dumps(message.data, default=str)}\n\n"
        except asyncio.CancelledError:
            logger.debug(f"SSE stream for order #{order_id} cancelled")
            raise
        finally:
            await subscription.close()

    return StreamingResponse(events(), media_type="text/event-stream", headers=NO_CACHE_HEADERS)


# =============================================================================
# CUSTOMER HISTORY
# =============================================================================

@router.get("/{slug}/orders", response_model=CustomerOrdersResponse, tags=["Orders"])
async def customer_orders(
    slug: str,
    cpf: str = Query(..., min_length=11),
    orders: OrderService = Depends(get_order_service),
) -> CustomerOrdersResponse:
    """A customer's orders at one restaurant, newest first."""
    return await orders.list_customer_orders(slug, cpf)
