"""
Integrations API - Marketplace credentials management (settings screen)

Endpoints:
- GET    /api/v1/integrations/status                      - Masked credentials for every integration
- PUT    /api/v1/integrations/{integration}/credentials   - Save client id/secret
- DELETE /api/v1/integrations/{integration}/credentials   - Disconnect

Author: TM3
Date: 2026-02-10
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.api.deps import get_credentials, verify_sync_key
from app.domain.credentials import Integration
from app.services.credentials_service import CredentialsService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/integrations", tags=["Integrations"])


class ClientCredentialsRequest(BaseModel):
    client_id: str = Field(..., min_length=1)
    client_secret: Optional[str] = Field(None, description="Omit to keep the stored secret")


@router.get("/status")
async def get_integrations_status(service: CredentialsService = Depends(get_credentials)):
    try:
        return {"status": "success", "data": await service.get_credentials_status()}
    except Exception as e:
        logger.error(f"Error reading credentials status: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{integration}/credentials", dependencies=[Depends(verify_sync_key)])
async def save_client_credentials(
    integration: Integration,
    request: ClientCredentialsRequest,
    service: CredentialsService = Depends(get_credentials)
):
    try:
        credentials = await service.save_credentials(
            integration, client_id=request.client_id, client_secret=request.client_secret
        )
        return {"status": "success", "data": credentials.masked()}
    except Exception as e:
        logger.error(f"Error saving {integration.value} credentials: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{integration}/credentials", dependencies=[Depends(verify_sync_key)])
async def disconnect_integration(integration: Integration, service: CredentialsService = Depends(get_credentials)):
    try:
        await service.disconnect(integration)
        return {"status": "success", "message": f"{integration.value} disconnected"}
    except Exception as e:
        logger.error(f"Error disconnecting {integration.value}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
