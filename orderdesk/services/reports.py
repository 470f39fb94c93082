"""
Sales Reports

Aggregates paid orders (PAYMENT_CONFIRMED, IN_PREPARATION, FINISHED) for
the back-office dashboard and the Excel export. All money figures come from
the order totals and line snapshots, never from current product prices.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orderdesk.core.security import MANAGER_ROLES, TokenClaims, authorize
from orderdesk.exceptions import ValidationError
from orderdesk.models import Order, OrderProduct, OrderStatus, Product, utcnow
from orderdesk.schemas import (
    CategorySales,
    KpiData,
    ReportMetadata,
    SalesBucket,
    SalesReportResponse,
    TopProduct,
)
from orderdesk.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)

REVENUE_STATUSES = frozenset(
    {OrderStatus.PAYMENT_CONFIRMED, OrderStatus.IN_PREPARATION, OrderStatus.FINISHED}
)
PERIODS = ("daily", "weekly", "monthly", "quarterly", "yearly")
TOP_PRODUCTS_LIMIT = 10


def period_key(moment: datetime, period: str) -> str:
    """Bucket label for a timestamp; unknown periods group monthly."""
    if period == "daily":
        return moment.strftime("%Y-%m-%d")
    if period == "weekly":
        iso = moment.isocalendar()
        return f"{iso[0]}-W{iso[1]:02d}"
    if period == "quarterly":
        return f"{moment.year}-Q{(moment.month - 1) // 3 + 1}"
    if period == "yearly":
        return f"{moment.year}"
    return moment.strftime("%Y-%m")


def default_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """First day of the month eleven months back through the end of this month."""
    now = now or utcnow()
    year, month = now.year, now.month - 11
    if month <= 0:
        month += 12
        year -= 1
    start = datetime(year, month, 1, tzinfo=timezone.utc)

    next_year, next_month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
    end = datetime(next_year, next_month, 1, tzinfo=timezone.utc) - timedelta(microseconds=1)
    return start, end


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class ReportService:
    def __init__(self, session: AsyncSession):
        self.session = session

    def _resolve_window(
        self, start: Optional[datetime], end: Optional[datetime]
    ) -> tuple[datetime, datetime]:
        default_start, default_end = default_window()
        start = _as_utc(start or default_start)
        end = _as_utc(end or default_end)
        if start > end:
            raise ValidationError("startDate must not be after endDate")
        return start, end

    async def paid_orders(self, restaurant_id: str, start: datetime, end: datetime) -> list[Order]:
        result = await self.session.execute(
            select(Order)
            .where(
                Order.restaurant_id == restaurant_id,
                Order.status.in_(REVENUE_STATUSES),
                Order.created_at >= start,
                Order.created_at <= end,
            )
            .options(
                selectinload(Order.order_products)
                .selectinload(OrderProduct.product)
                .selectinload(Product.menu_category)
            )
            .order_by(Order.created_at)
        )
        return list(result.scalars().all())

    async def sales_report(
        self,
        claims: TokenClaims,
        period: str = "monthly",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> SalesReportResponse:
        """
        Sales figures for the caller's restaurant.

        Args:
            claims: Caller (ADMIN or MANAGER)
            period: daily, weekly, monthly, quarterly or yearly
            start: Window start (defaults to eleven months back)
            end: Window end (defaults to the end of the current month)
        """
        authorize(claims, roles=MANAGER_ROLES)
        period = period if period in PERIODS else "monthly"
        start, end = self._resolve_window(start, end)
        orders = await self.paid_orders(claims.restaurant_id, start, end)

        buckets: dict[str, dict] = defaultdict(lambda: {"sales": Decimal("0"), "orders": 0, "customers": set()})
        products: dict[str, dict] = {}
        categories: dict[str, dict] = defaultdict(lambda: {"quantity": 0, "revenue": Decimal("0")})
        customers: set[str] = set()
        revenue = Decimal("0")

        for order in orders:
            bucket = buckets[period_key(order.created_at, period)]
            bucket["sales"] += order.total
            bucket["orders"] += 1
            bucket["customers"].add(order.customer_cpf)
            customers.add(order.customer_cpf)
            revenue += order.total

            for line in order.order_products:
                line_revenue = line.price * line.quantity
                entry = products.setdefault(
                    line.product_id,
                    {"name": line.product.name, "quantity": 0, "revenue": Decimal("0")},
                )
                entry["quantity"] += line.quantity
                entry["revenue"] += line_revenue

                category = categories[line.product.menu_category.name]
                category["quantity"] += line.quantity
                category["revenue"] += line_revenue

        sales_data = [
            SalesBucket(
                period=key,
                sales=value["sales"],
                orders=value["orders"],
                customers=len(value["customers"]),
            )
            for key, value in sorted(buckets.items())
        ]
        top_products = [
            TopProduct(product_id=pid, name=v["name"], quantity=v["quantity"], revenue=v["revenue"])
            for pid, v in sorted(products.items(), key=lambda kv: kv[1]["revenue"], reverse=True)
        ][:TOP_PRODUCTS_LIMIT]
        category_data = [
            CategorySales(category=name, quantity=v["quantity"], revenue=v["revenue"])
            for name, v in sorted(categories.items(), key=lambda kv: kv[1]["revenue"], reverse=True)
        ]

        average = (revenue / len(orders)).quantize(Decimal("0.01")) if orders else Decimal("0")

        logger.info(f"Sales report for {claims.restaurant_slug}: {len(orders)} order(s), period={period}")

        return SalesReportResponse(
            sales_data=sales_data,
            kpi_data=KpiData(
                total_revenue=revenue,
                total_orders=len(orders),
                average_ticket=average,
                unique_customers=len(customers),
            ),
            top_products=top_products,
            category_data=category_data,
            metadata=ReportMetadata(
                restaurant=claims.restaurant_name,
                period=period,
                start_date=start,
                end_date=end,
                total_orders=len(orders),
                timestamp=utcnow(),
            ),
        )

    async def sales_workbook(
        self,
        claims: TokenClaims,
        period: str = "monthly",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> tuple[str, bytes]:
        """
        Excel export of the same window.

        Returns:
            (filename, xlsx bytes)
        """
        authorize(claims, roles=MANAGER_ROLES)
        period = period if period in PERIODS else "monthly"
        start, end = self._resolve_window(start, end)
        orders = await self.paid_orders(claims.restaurant_id, start, end)

        content = await asyncio.to_thread(ExcelManager.build_sales_workbook, orders, period, start, end)
        filename = f"sales-{claims.restaurant_slug}-{start:%Y%m%d}-{end:%Y%m%d}.xlsx"
        return filename, content
