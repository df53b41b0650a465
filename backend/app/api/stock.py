"""
Stock API Endpoints
Stock snapshot reads and on-demand refresh from Bling

Author: TM3
Date: 2026-02-10
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_stock_service, verify_sync_key
from app.api.errors import to_http_exception
from app.services.stock_service import StockService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/stock", tags=["Stock"])


@router.get("")
async def get_stock_view(service: StockService = Depends(get_stock_service)):
    """All known stock snapshots by SKU (cached view)"""
    view = await service.get_stock_view()
    return {
        "status": "success",
        "count": len(view),
        "data": {sku: snapshot.to_document() for sku, snapshot in view.items()},
    }


@router.get("/{sku}")
async def get_stock_snapshot(sku: str, service: StockService = Depends(get_stock_service)):
    snapshot = await service.get_snapshot(sku)
    if not snapshot:
        raise HTTPException(status_code=404, detail=f"No stock snapshot for SKU {sku}")
    return {"status": "success", "data": snapshot.to_document()}


@router.post("/{sku}/refresh", dependencies=[Depends(verify_sync_key)])
async def refresh_sku_stock(sku: str, service: StockService = Depends(get_stock_service)):
    """
    Refresh one SKU from Bling (product lookup by code → stock balance)
    """
    try:
        snapshot = await service.update_single_sku_stock(sku)
        return {"status": "success", "data": snapshot.to_document()}
    except Exception as e:
        logger.error(f"Error refreshing stock for {sku}: {e}")
        raise to_http_exception(e)
