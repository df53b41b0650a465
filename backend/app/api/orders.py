"""
Orders API Endpoints
Read access to synced Bling sales orders (soft-deleted orders are hidden)

Author: TM3
Date: 2026-02-10
"""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_order_repository, get_sales_dashboard_service
from app.repositories.order_repository import OrderRepository
from app.services.sales_dashboard_service import SalesDashboardService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/")
async def get_orders(
    from_date: Optional[date] = Query(None, description="Orders issued on or after this date"),
    to_date: Optional[date] = Query(None, description="Orders issued on or before this date"),
    limit: int = Query(50, ge=1, le=10000),
    offset: int = Query(0, ge=0),
    repo: OrderRepository = Depends(get_order_repository)
):
    """
    Get active orders with optional date filters, newest first
    """
    try:
        orders, total = await repo.find_all(from_date=from_date, to_date=to_date, limit=limit, offset=offset)
        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(orders),
            "data": [order.to_document() for order in orders]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


@router.get("/count")
async def count_orders(repo: OrderRepository = Depends(get_order_repository)):
    """Number of active imported orders"""
    try:
        return {"status": "success", "count": await repo.count_active()}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error counting orders: {str(e)}")


@router.get("/dashboard")
async def get_sales_dashboard(
    date_from: date = Query(..., description="Start date (inclusive)"),
    date_to: date = Query(..., description="End date (inclusive)"),
    service: SalesDashboardService = Depends(get_sales_dashboard_service)
):
    """
    Revenue, sale count, average ticket, unique customers and top products
    for enriched orders issued in the date range
    """
    try:
        dashboard = await service.summary(date_from, date_to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error building sales dashboard: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"status": "success", "data": dashboard.model_dump(mode="json")}


@router.get("/{order_id}")
async def get_order(order_id: int, repo: OrderRepository = Depends(get_order_repository)):
    """
    Get a single order by Bling ID
    """
    order = await repo.find_by_id(order_id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return {"status": "success", "data": order.to_document()}
