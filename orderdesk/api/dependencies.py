"""
FastAPI dependencies.

Process-wide collaborators live on app.state (set by create_app); services
are built per request around the request's database session.
"""

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.core.config import Settings
from orderdesk.database import get_db
from orderdesk.services.auth import AuthService
from orderdesk.services.cache import BaseViewCache
from orderdesk.services.checkout import CheckoutService
from orderdesk.services.fanout import StatusFanout
from orderdesk.services.menu import MenuService
from orderdesk.services.orders import OrderService
from orderdesk.services.payment import BasePaymentService
from orderdesk.services.realtime import BaseRealtimeService
from orderdesk.services.reports import ReportService
from orderdesk.services.webhooks import WebhookService

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def no_cache(response: Response) -> None:
    """Mark a response as never cacheable (polling endpoints)."""
    response.headers.update(NO_CACHE_HEADERS)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_payment_service(request: Request) -> BasePaymentService:
    return request.app.state.payment_service


def get_realtime(request: Request) -> BaseRealtimeService:
    return request.app.state.realtime


def get_cache(request: Request) -> BaseViewCache:
    return request.app.state.cache


def get_fanout(request: Request) -> StatusFanout:
    return request.app.state.fanout


def get_order_service(
    db: AsyncSession = Depends(get_db),
    fanout: StatusFanout = Depends(get_fanout),
    cache: BaseViewCache = Depends(get_cache),
) -> OrderService:
    return OrderService(db, fanout, cache)


def get_checkout_service(
    db: AsyncSession = Depends(get_db),
    payment: BasePaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_app_settings),
) -> CheckoutService:
    return CheckoutService(db, payment, settings)


def get_webhook_service(orders: OrderService = Depends(get_order_service)) -> WebhookService:
    return WebhookService(orders)


def get_menu_service(
    db: AsyncSession = Depends(get_db),
    cache: BaseViewCache = Depends(get_cache),
) -> MenuService:
    return MenuService(db, cache)


def get_report_service(db: AsyncSession = Depends(get_db)) -> ReportService:
    return ReportService(db)


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthService:
    return AuthService(db, settings)
