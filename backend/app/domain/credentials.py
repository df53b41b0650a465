"""
Credentials Domain Model

One document per marketplace integration in appConfig.

Author: TM3
Date: 2026-02-10
"""
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, ConfigDict


class Integration(str, Enum):
    BLING = "bling"
    MERCADO_LIVRE = "mercadolivre"


# appConfig document id per integration
CREDENTIALS_DOC_IDS = {
    Integration.BLING: "blingCredentials",
    Integration.MERCADO_LIVRE: "mercadoLivreCredentials",
}


class Credentials(BaseModel):
    """
    OAuth credentials for one integration

    The access token is usable only while now < expires_at - skew.
    expires_at is epoch milliseconds.
    """

    integration: Integration = Field(..., description="Integration this document belongs to")
    client_id: Optional[str] = Field(None, alias="clientId")
    client_secret: Optional[str] = Field(None, alias="clientSecret")
    access_token: Optional[str] = Field(None, alias="accessToken")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")
    expires_at: Optional[int] = Field(None, alias="expiresAt", description="Epoch ms")
    user_id: Optional[str] = Field(None, alias="userId", description="Mercado Livre user ID")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def is_expired(self, now_ms: int, skew_ms: int = 60_000) -> bool:
        """Missing expiry counts as expired"""
        if not self.expires_at:
            return True
        return now_ms + skew_ms >= self.expires_at

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"integration"})

    def masked(self) -> Dict[str, Any]:
        """Presence-only view, safe for the settings screen"""
        return {
            "integration": self.integration.value,
            "clientId": self.client_id or "",
            "clientSecret": "********" if self.client_secret else "",
            "accessToken": "********" if self.access_token else "",
            "connected": bool(self.access_token),
            "expiresAt": self.expires_at,
            "userId": self.user_id,
        }
