"""
Production Demand Service

Aggregates invoiced, active orders into per-SKU demand and joins it with the
stock snapshot and production thresholds. Pure read: recomputed on every call.

Rules:
- Orders count only when active, invoiced (notaFiscal.id set) and issued
  within the inclusive date range
- weekly_average = total_quantity_sold / max(1, days_in_range / 7)
- needs_production = stock < min AND stock <= max

Author: TM3
Date: 2026-02-10
"""
import logging
from datetime import date
from typing import List

import pandas as pd

from app.domain.stock import DemandRow
from app.repositories.order_repository import OrderRepository
from app.repositories.stock_repository import StockRepository
from app.services.stock_service import StockService

logger = logging.getLogger(__name__)


def weeks_in_range(date_from: date, date_to: date) -> float:
    days = (date_to - date_from).days + 1
    return max(1.0, days / 7)


class ProductionDemandService:

    def __init__(self, orders: OrderRepository, stock: StockService, thresholds: StockRepository):
        self.orders = orders
        self.stock = stock
        self.thresholds = thresholds

    async def compute_demand(self, date_from: date, date_to: date) -> List[DemandRow]:
        """
        Per-SKU demand for invoiced orders in [date_from, date_to]

        Returns:
            DemandRows sorted by total quantity sold, highest first
        """
        if date_from > date_to:
            raise ValueError("date_from must be on or before date_to")

        orders = await self.orders.find_in_range(date_from, date_to)
        lines = [
            {
                "order_id": order.id,
                "sku": item.sku,
                "description": item.description or "",
                "quantity": item.quantity,
            }
            for order in orders
            if order.has_invoice
            for item in order.items
            if item.sku
        ]
        if not lines:
            logger.info(f"No invoiced order lines between {date_from} and {date_to}")
            return []

        df = pd.DataFrame(lines)
        df["quantity"] = pd.to_numeric(df["quantity"], errors="coerce").fillna(0)
        grouped = (
            df.groupby("sku", sort=False)
            .agg(
                description=("description", "first"),
                order_count=("order_id", "nunique"),
                total_quantity_sold=("quantity", "sum"),
            )
            .reset_index()
        )
        grouped["weekly_average"] = grouped["total_quantity_sold"] / weeks_in_range(date_from, date_to)

        stock_view = await self.stock.get_stock_view()
        thresholds = await self.thresholds.list_thresholds()

        rows = []
        for record in grouped.to_dict("records"):
            sku = record["sku"]
            snapshot = stock_view.get(sku)
            threshold = thresholds.get(sku)
            rows.append(DemandRow(
                sku=sku,
                description=record["description"],
                order_count=int(record["order_count"]),
                total_quantity_sold=float(record["total_quantity_sold"]),
                weekly_average=round(float(record["weekly_average"]), 2),
                stock_level=snapshot.current_stock if snapshot else None,
                stock_min=threshold.stock_min if threshold else None,
                stock_max=threshold.stock_max if threshold else None,
                stock_stale=snapshot.stale if snapshot else False,
            ))

        rows.sort(key=lambda row: row.total_quantity_sold, reverse=True)
        logger.info(f"📊 Demand computed for {len(rows)} SKUs from {len(orders)} orders")
        return rows

    async def production_queue(self, date_from: date, date_to: date) -> List[DemandRow]:
        return production_queue(await self.compute_demand(date_from, date_to))


def production_queue(rows: List[DemandRow]) -> List[DemandRow]:
    """
    Rows needing production, most urgent first

    Zero stock comes first (ties by quantity sold), then largest deficit
    below minimum, then quantity sold.
    """
    def _priority(row: DemandRow):
        if row.stock_level == 0:
            return (0, -row.total_quantity_sold, 0)
        return (1, -row.deficit, -row.total_quantity_sold)

    return sorted((row for row in rows if row.needs_production), key=_priority)
