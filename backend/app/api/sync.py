"""
Sync API - Bling order synchronization endpoints
Called from the settings screen or a scheduler (cron-job.org or similar)

Endpoints:
- GET    /api/sync-progress       - Progress snapshot for polling (public, no-store)
- POST   /api/v1/sync/smart       - Incremental sync (requires API key)
- POST   /api/v1/sync/full        - Full re-verification of a date window (requires API key)
- DELETE /api/v1/sync/orders      - Delete every stored order (requires API key)

Security:
- POST/DELETE endpoints require X-Sync-Key header with valid SYNC_API_KEY
- The progress endpoint is public (read-only, no sensitive data)

Author: TM3
Date: 2026-02-10
"""
from datetime import date
from typing import Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel

from app.api.deps import get_progress_tracker, get_sync_service, verify_sync_key
from app.api.errors import to_http_exception
from app.services.sync_progress import SyncProgressTracker
from app.services.sync_service import OrderSyncService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sync", tags=["Sync"])
progress_router = APIRouter(prefix="/api", tags=["Sync"])

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
}


# ============================================================================
# Request / Response Models
# ============================================================================

class SyncRequest(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class SyncSummaryResponse(BaseModel):
    """Response model for a finished sync run"""
    success: bool
    run_id: str
    mode: str
    total: int
    new: int
    existing: int
    changed: int
    skipped: int
    created: int
    updated: int
    failed: int
    errors: List[str]
    date_range: Dict[str, Optional[str]]
    duration_seconds: float


def _summary_response(summary) -> SyncSummaryResponse:
    # Convert dataclass to Pydantic model
    return SyncSummaryResponse(success=True, **summary.to_dict())


# ============================================================================
# Endpoints
# ============================================================================

@progress_router.get("/sync-progress")
async def get_sync_progress(
    response: Response,
    run_id: Optional[str] = Query(None, description="Only return the snapshot of this run"),
    tracker: SyncProgressTracker = Depends(get_progress_tracker)
):
    """
    Current sync progress snapshot

    Returns {"progress": null} when no run has been recorded (or run_id does
    not match the latest run).
    """
    response.headers.update(NO_STORE_HEADERS)
    try:
        return {"progress": await tracker.snapshot(run_id)}
    except Exception as e:
        logger.error(f"Error reading sync progress: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/smart", response_model=SyncSummaryResponse, dependencies=[Depends(verify_sync_key)])
async def smart_sync(
    request: Optional[SyncRequest] = None,
    service: OrderSyncService = Depends(get_sync_service)
):
    """
    Incremental sync from Bling

    Logic:
    1. Start from the latest local order date (or the lookback window)
    2. List orders from Bling up to today
    3. Fetch details only for new or changed orders
    4. Upsert them into the order store
    """
    request = request or SyncRequest()
    try:
        logger.info(f"Starting smart sync (date_from={request.date_from}, date_to={request.date_to})")
        summary = await service.smart_sync(request.date_from, request.date_to)
        return _summary_response(summary)
    except Exception as e:
        logger.error(f"Error in smart sync: {e}")
        raise to_http_exception(e)


@router.post("/full", response_model=SyncSummaryResponse, dependencies=[Depends(verify_sync_key)])
async def full_sync(
    request: SyncRequest,
    service: OrderSyncService = Depends(get_sync_service)
):
    """
    Re-fetch and upsert every Bling order in an explicit date window

    Both date_from and date_to are required (400 otherwise).
    """
    try:
        logger.info(f"Starting full sync ({request.date_from} → {request.date_to})")
        summary = await service.full_sync(request.date_from, request.date_to)
        return _summary_response(summary)
    except Exception as e:
        logger.error(f"Error in full sync: {e}")
        raise to_http_exception(e)


@router.delete("/orders", dependencies=[Depends(verify_sync_key)])
async def delete_all_orders(service: OrderSyncService = Depends(get_sync_service)):
    """Delete every stored order (admin reset before a full re-import)"""
    try:
        result = await service.delete_all_orders()
        return {"success": True, **result}
    except Exception as e:
        logger.error(f"Error deleting orders: {e}")
        raise to_http_exception(e)
