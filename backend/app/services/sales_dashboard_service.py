"""
Sales Dashboard Service

Headline sales numbers for a date range: revenue, order count, average
ticket, distinct customers and the top products by revenue. Only orders
enriched with line items count; listing summaries without items are left
out until a sync fetches their details.

Author: TM3
Date: 2026-02-10
"""
import logging
from datetime import date

import pandas as pd

from app.domain.order import SalesDashboard, TopProduct
from app.repositories.order_repository import OrderRepository

logger = logging.getLogger(__name__)

TOP_PRODUCTS_LIMIT = 10
UNNAMED_PRODUCT = "Produto sem nome"


class SalesDashboardService:

    def __init__(self, orders: OrderRepository):
        self.orders = orders

    async def summary(self, date_from: date, date_to: date) -> SalesDashboard:
        """
        Aggregate active, enriched orders issued in [date_from, date_to]

        Raises:
            ValueError: date_from after date_to
        """
        if date_from > date_to:
            raise ValueError("date_from must be on or before date_to")

        orders = [o for o in await self.orders.find_in_range(date_from, date_to) if o.has_details]
        dashboard = SalesDashboard(date_from=date_from, date_to=date_to)
        if not orders:
            logger.info(f"No enriched orders between {date_from} and {date_to}")
            return dashboard

        dashboard.total_sales = len(orders)
        dashboard.total_revenue = round(sum(order.total or 0 for order in orders), 2)
        dashboard.average_ticket = round(dashboard.total_revenue / dashboard.total_sales, 2)
        dashboard.unique_customers = len({
            order.customer.id for order in orders
            if order.customer and order.customer.id is not None
        })

        lines = pd.DataFrame([
            {
                "name": item.description or UNNAMED_PRODUCT,
                "quantity": item.quantity,
                "revenue": item.quantity * item.unit_price,
            }
            for order in orders
            for item in order.items
        ])
        if not lines.empty:
            ranked = (
                lines.groupby("name", sort=False)
                .agg(total=("quantity", "sum"), revenue=("revenue", "sum"))
                .sort_values("revenue", ascending=False, kind="stable")
                .head(TOP_PRODUCTS_LIMIT)
                .reset_index()
            )
            dashboard.top_products = [
                TopProduct(name=row["name"], total=float(row["total"]), revenue=round(float(row["revenue"]), 2))
                for row in ranked.to_dict("records")
            ]

        logger.info(
            f"📈 Dashboard {date_from} → {date_to}: {dashboard.total_sales} sales, "
            f"R$ {dashboard.total_revenue:.2f}"
        )
        return dashboard
