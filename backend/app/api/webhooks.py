"""
Bling Webhook API

Endpoints:
- POST   /api/webhook/bling       - Receive order and stock events from Bling
- GET    /api/webhook/bling       - Health: supported events and last received status
- POST   /api/webhook/bling/test  - Simulate a stock event for one SKU (requires API key)
- DELETE /api/webhook/bling/test  - Clear all stock snapshots (requires API key)

Response policy for POST /api/webhook/bling:
- 401 invalid signature, 400 malformed/incomplete body
- 200 for everything else, including internal failures ({success: false}),
  so Bling does not retry into a storm

Author: TM3
Date: 2026-02-10
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.api.deps import get_webhook_service, verify_sync_key
from app.core.exceptions import MalformedPayloadError, SignatureError
from app.services.webhook_service import WebhookService, signature_from_headers

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/webhook", tags=["Webhooks"])


class TestStockEvent(BaseModel):
    sku: str = Field(..., min_length=1)
    quantidade: Optional[float] = 0
    nome: Optional[str] = ""


@router.post("/bling")
async def receive_bling_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    started = time.monotonic()
    raw_body = await request.body()
    signature = signature_from_headers(request.headers)

    try:
        return await service.process(raw_body, signature)
    except SignatureError as e:
        return JSONResponse(status_code=401, content={"error": str(e)})
    except MalformedPayloadError as e:
        logger.error(f"❌ Malformed webhook payload: {e}")
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.exception(f"❌ Error processing Bling webhook: {e}")
        return {
            "success": False,
            "error": str(e),
            "processedIn": f"{int((time.monotonic() - started) * 1000)}ms",
        }


@router.get("/bling")
async def bling_webhook_health(service: WebhookService = Depends(get_webhook_service)):
    return await service.health()


@router.post("/bling/test", dependencies=[Depends(verify_sync_key)])
async def simulate_stock_webhook(event: TestStockEvent, service: WebhookService = Depends(get_webhook_service)):
    """Simulate estoque.updated for one SKU"""
    try:
        return await service.simulate_stock_event(event.sku, event.quantidade or 0, event.nome or "")
    except Exception as e:
        logger.error(f"❌ Error simulating stock webhook: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/bling/test", dependencies=[Depends(verify_sync_key)])
async def clear_test_stock(service: WebhookService = Depends(get_webhook_service)):
    try:
        return await service.clear_test_stock()
    except Exception as e:
        logger.error(f"❌ Error clearing stock snapshots: {e}")
        raise HTTPException(status_code=500, detail=str(e))
