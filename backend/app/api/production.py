"""
Production API Endpoints
Demand per SKU from invoiced orders, the production queue, and stock thresholds

Author: TM3
Date: 2026-02-10
"""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, model_validator

from app.api.deps import get_demand_service, get_stock_repository, verify_sync_key
from app.domain.stock import StockThreshold
from app.repositories.stock_repository import StockRepository
from app.services.demand_service import ProductionDemandService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/production", tags=["Production"])


class ThresholdRequest(BaseModel):
    stock_min: Optional[float] = None
    stock_max: Optional[float] = None

    @model_validator(mode="after")
    def _min_not_above_max(self):
        if self.stock_min is not None and self.stock_max is not None and self.stock_min > self.stock_max:
            raise ValueError("stock_min must not exceed stock_max")
        return self


@router.get("/demand")
async def get_demand(
    date_from: date = Query(..., description="Start date (inclusive)"),
    date_to: date = Query(..., description="End date (inclusive)"),
    service: ProductionDemandService = Depends(get_demand_service)
):
    """
    Per-SKU demand for invoiced orders in the date range
    """
    try:
        rows = await service.compute_demand(date_from, date_to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error computing demand: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"status": "success", "count": len(rows), "data": [row.to_dict() for row in rows]}


@router.get("/queue")
async def get_production_queue(
    date_from: date = Query(..., description="Start date (inclusive)"),
    date_to: date = Query(..., description="End date (inclusive)"),
    service: ProductionDemandService = Depends(get_demand_service)
):
    """
    SKUs needing production, most urgent first
    """
    try:
        rows = await service.production_queue(date_from, date_to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error building production queue: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"status": "success", "count": len(rows), "data": [row.to_dict() for row in rows]}


@router.put("/thresholds/{sku}", dependencies=[Depends(verify_sync_key)])
async def set_threshold(
    sku: str,
    request: ThresholdRequest,
    repo: StockRepository = Depends(get_stock_repository)
):
    threshold = StockThreshold(sku=sku, stock_min=request.stock_min, stock_max=request.stock_max)
    await repo.save_threshold(threshold)
    return {"status": "success", "data": threshold.model_dump()}
