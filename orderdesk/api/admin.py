"""
Restaurant staff endpoints.

Every route requires a valid session; tenant and role checks happen in the
services via authorize().
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from orderdesk.api.dependencies import (
    get_menu_service,
    get_order_service,
    get_report_service,
    no_cache,
)
from orderdesk.core.security import TokenClaims, get_current_claims
from orderdesk.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    DeletedResponse,
    ErrorResponse,
    OrderListResponse,
    OrderResponse,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    SalesReportResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
    StoreToggleRequest,
    StoreToggleResponse,
    ToggleActiveRequest,
)
from orderdesk.services.excel_manager import XLSX_MEDIA_TYPE
from orderdesk.services.menu import MenuService
from orderdesk.services.orders import OrderService
from orderdesk.services.reports import ReportService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)


# =============================================================================
# ORDERS
# =============================================================================

@router.get("/orders", response_model=OrderListResponse, tags=["Admin Orders"])
async def list_orders(
    response: Response,
    slug: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None),
    claims: TokenClaims = Depends(get_current_claims),
    orders: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """
    Orders of the caller's restaurant.

    Pass `since` for an incremental poll; otherwise the latest orders are
    returned.
    """
    no_cache(response)
    found, counts = await orders.list_restaurant_orders(slug or claims.restaurant_slug, claims, since)
    return OrderListResponse(orders=found, metadata=counts, since=since)


@router.get("/orders/{order_id}", response_model=OrderResponse, tags=["Admin Orders"])
async def get_order(
    order_id: int,
    response: Response,
    claims: TokenClaims = Depends(get_current_claims),
    orders: OrderService = Depends(get_order_service),
) -> OrderResponse:
    no_cache(response)
    return await orders.get_admin_order(order_id, claims)


@router.post(
    "/orders/update",
    response_model=StatusUpdateResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Admin Orders"],
)
async def update_order_status(
    data: StatusUpdateRequest,
    claims: TokenClaims = Depends(get_current_claims),
    orders: OrderService = Depends(get_order_service),
) -> StatusUpdateResponse:
    """Move an order forward: IN_PREPARATION or FINISHED."""
    logger.info(f"{claims.email} requested order #{data.order_id} -> {data.status.value}")
    order, changed = await orders.update_status(data.order_id, data.status, claims)
    return StatusUpdateResponse(changed=changed, order=order)


# =============================================================================
# MENU: CATEGORIES
# =============================================================================

@router.post(
    "/categories",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Admin Menu"],
)
async def create_category(
    data: CategoryCreate,
    claims: TokenClaims = Depends(get_current_claims),
    menu: MenuService = Depends(get_menu_service),
) -> CategoryResponse:
    return await menu.create_category(data, claims)


@router.put("/categories/{category_id}", response_model=CategoryResponse, tags=["Admin Menu"])
async def update_category(
    category_id: str,
    data: CategoryUpdate,
    claims: TokenClaims = Depends(get_current_claims),
    menu: MenuService = Depends(get_menu_service),
) -> CategoryResponse:
    return await menu.update_category(category_id, data, claims)


@router.put("/categories/{category_id}/toggle", response_model=CategoryResponse, tags=["Admin Menu"])
async def toggle_category(
    category_id: str,
    data: ToggleActiveRequest,
    claims: TokenClaims = Depends(get_current_claims),
    menu: MenuService = Depends(get_menu_service),
) -> CategoryResponse:
    """Deactivating a category also deactivates all of its products."""
    return await menu.toggle_category(category_id, data.is_active, claims)


@router.delete("/categories/{category_id}", response_model=DeletedResponse, tags=["Admin Menu"])
async def delete_category(
    category_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    menu: MenuService = Depends(get_menu_service),
) -> DeletedResponse:
    return await menu.delete_category(category_id, claims)


# =============================================================================
# MENU: PRODUCTS
# =============================================================================

@router.post(
    "/products",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Admin Menu"],
)
async def create_product(
    data: ProductCreate,
    claims: TokenClaims = Depends(get_current_claims),
    menu: MenuService = Depends(get_menu_service),
) -> ProductResponse:
    return await menu.create_product(data, claims)


@router.put("/products/{product_id}", response_model=ProductResponse, tags=["Admin Menu"])
async def update_product(
    product_id: str,
    data: ProductUpdate,
    claims: TokenClaims = Depends(get_current_claims),
    menu: MenuService = Depends(get_menu_service),
) -> ProductResponse:
    return await menu.update_product(product_id, data, claims)


@router.put("/products/{product_id}/toggle", response_model=ProductResponse, tags=["Admin Menu"])
async def toggle_product(
    product_id: str,
    data: ToggleActiveRequest,
    claims: TokenClaims = Depends(get_current_claims),
    menu: MenuService = Depends(get_menu_service),
) -> ProductResponse:
    return await menu.toggle_product(product_id, data.is_active, claims)


@router.delete("/products/{product_id}", response_model=DeletedResponse, tags=["Admin Menu"])
async def delete_product(
    product_id: str,
    claims: TokenClaims = Depends(get_current_claims),
    menu: MenuService = Depends(get_menu_service),
) -> DeletedResponse:
    return await menu.delete_product(product_id, claims)


# =============================================================================
# STORE
# =============================================================================

@router.put("/restaurants/{slug}/toggle", response_model=StoreToggleResponse, tags=["Admin Store"])
async def toggle_store(
    slug: str,
    data: StoreToggleRequest,
    claims: TokenClaims = Depends(get_current_claims),
    menu: MenuService = Depends(get_menu_service),
) -> StoreToggleResponse:
    """Open or close the store for new orders."""
    is_open = await menu.toggle_store(slug, data.is_open, claims)
    return StoreToggleResponse(is_open=is_open)


# =============================================================================
# REPORTS
# =============================================================================

@router.get("/reports/sales", response_model=SalesReportResponse, tags=["Admin Reports"])
async def sales_report(
    period: str = Query("monthly"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    claims: TokenClaims = Depends(get_current_claims),
    reports: ReportService = Depends(get_report_service),
) -> SalesReportResponse:
    return await reports.sales_report(claims, period, start_date, end_date)


@router.get("/reports/sales/excel", tags=["Admin Reports"])
async def sales_report_excel(
    period: str = Query("monthly"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    claims: TokenClaims = Depends(get_current_claims),
    reports: ReportService = Depends(get_report_service),
) -> Response:
    """Same window as /reports/sales, as an .xlsx download."""
    filename, content = await reports.sales_workbook(claims, period, start_date, end_date)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
