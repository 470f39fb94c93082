"""
Excel Sales Export

Builds the downloadable sales workbook:

    Period | monthly
    Start  | 2026-01-01
    End    | 2026-12-31
    (blank)
    ID | Customer | Products | Total Quantity | Total | Date
    ...one row per paid order...

The workbook is produced in memory; callers run it in a worker thread
because pandas and openpyxl are synchronous.
"""

import io
import logging
from datetime import datetime
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ExcelManager:
    """In-memory Excel writer for sales reports."""

    SHEET_NAME = "Sales"

    ORDER_COLUMNS = [
        "ID",
        "Customer",
        "Products",
        "Total Quantity",
        "Total",
        "Date",
    ]

    @classmethod
    def order_row(cls, order: Any) -> dict[str, Any]:
        """Flatten an Order (with loaded lines) into one sheet row."""
        lines = order.order_products
        return {
            "ID": order.id,
            "Customer": order.customer_name,
            "Products": ", ".join(f"{line.quantity}x {line.product.name}" for line in lines),
            "Total Quantity": sum(line.quantity for line in lines),
            "Total": float(order.total),
            "Date": order.created_at.strftime("%d/%m/%Y %H:%M"),
        }

    @classmethod
    def build_sales_workbook(
        cls,
        orders: list[Any],
        period: str,
        start: datetime,
        end: datetime,
    ) -> bytes:
        """
        Render the sales workbook.

        Args:
            orders: Orders with order_products and products loaded
            period: Report grouping label
            start: Window start
            end: Window end

        Returns:
            xlsx file contents
        """
        header = pd.DataFrame(
            [
                ["Period", period],
                ["Start", start.strftime("%Y-%m-%d")],
                ["End", end.strftime("%Y-%m-%d")],
            ]
        )
        table = pd.DataFrame([cls.order_row(o) for o in orders], columns=cls.ORDER_COLUMNS)

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            header.to_excel(writer, sheet_name=cls.SHEET_NAME, index=False, header=False)
            table.to_excel(writer, sheet_name=cls.SHEET_NAME, index=False, startrow=len(header) + 1)

        logger.info(f"Sales workbook built: {len(orders)} order(s), period={period}")
        return buffer.getvalue()
