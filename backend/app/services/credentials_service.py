"""
Credentials Service - Manages marketplace OAuth credentials in the document store

This service provides a centralized way to manage OAuth tokens for Bling and
Mercado Livre. Credentials live in appConfig (blingCredentials,
mercadoLivreCredentials) so they survive container restarts.

Features:
- Read credentials (client id/secret fall back to env vars for initial setup)
- Persist tokens after refresh or code exchange
- Track token expiration
- Masked status for the settings screen

Author: TM3
Date: 2026-02-10
"""
import logging
import time
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.document_store import APP_CONFIG, DocumentStore, get_document_store
from app.core.exceptions import ConfigError
from app.domain.credentials import CREDENTIALS_DOC_IDS, Credentials, Integration

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def _env_client(integration: Integration) -> Dict[str, str]:
    if integration == Integration.BLING:
        return {"clientId": settings.BLING_CLIENT_ID, "clientSecret": settings.BLING_CLIENT_SECRET}
    return {"clientId": settings.MERCADOLIVRE_APP_ID, "clientSecret": settings.MERCADOLIVRE_CLIENT_SECRET}


class CredentialsService:
    """Service for managing marketplace credentials with document store persistence"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def _load(self, integration: Integration) -> Credentials:
        data = await self.store.get(APP_CONFIG, CREDENTIALS_DOC_IDS[integration]) or {}
        env = _env_client(integration)
        merged = {
            **data,
            "clientId": data.get("clientId") or env["clientId"] or None,
            "clientSecret": data.get("clientSecret") or env["clientSecret"] or None,
        }
        return Credentials(integration=integration, **merged)

    async def get_credentials(self, integration: Integration) -> Credentials:
        """
        Get credentials for an integration

        Args:
            integration: Bling or Mercado Livre

        Returns:
            Credentials (tokens may be absent if the OAuth flow never ran)

        Raises:
            ConfigError: client id or secret not configured anywhere
        """
        credentials = await self._load(integration)
        if not credentials.client_id or not credentials.client_secret:
            raise ConfigError(f"{integration.value} client id/secret not configured")
        return credentials

    async def save_credentials(self, integration: Integration, **fields: Any) -> Credentials:
        """
        Merge fields into the stored credentials document

        Accepts model field names (access_token, expires_at, ...). None
        values are ignored so a refresh response without a new refresh
        token keeps the old one.
        """
        update = Credentials(integration=integration, **fields).to_document()
        await self.store.set(APP_CONFIG, CREDENTIALS_DOC_IDS[integration], update, merge=True)
        logger.info(f"{integration.value} credentials updated ({', '.join(sorted(update))})")
        return await self._load(integration)

    async def save_tokens(self, integration: Integration, token_data: Dict[str, Any]) -> Credentials:
        """
        Persist an OAuth token response

        expiresAt is computed as now + expires_in seconds (epoch ms).
        """
        expires_in = token_data.get("expires_in")
        fields = {
            "access_token": token_data.get("access_token"),
            "refresh_token": token_data.get("refresh_token"),
            "expires_at": now_ms() + int(expires_in) * 1000 if expires_in else None,
        }
        if token_data.get("user_id") is not None:
            fields["user_id"] = str(token_data["user_id"])
        return await self.save_credentials(integration, **fields)

    async def disconnect(self, integration: Integration) -> None:
        """
        Forget an integration's tokens

        Bling keeps its client id/secret so it can be reconnected from the
        settings screen; Mercado Livre clears the document entirely.
        """
        doc_id = CREDENTIALS_DOC_IDS[integration]
        if integration == Integration.BLING:
            def _clear_tokens(tx):
                current = tx.get(APP_CONFIG, doc_id) or {}
                kept = {k: v for k, v in current.items() if k in ("clientId", "clientSecret")}
                tx.set(APP_CONFIG, doc_id, kept)

            await self.store.run_transaction(_clear_tokens)
        else:
            await self.store.delete(APP_CONFIG, doc_id)
        logger.info(f"{integration.value} disconnected")

    def is_token_expired(self, credentials: Credentials, skew_seconds: Optional[int] = None) -> bool:
        """
        Check if the access token is expired or about to expire

        Returns:
            True if now + skew >= expiresAt, or expiresAt is missing
        """
        if skew_seconds is None:
            skew_seconds = settings.TOKEN_REFRESH_SKEW_SECONDS
        return credentials.is_expired(now_ms(), skew_seconds * 1000)

    async def get_credentials_status(self) -> Dict[str, Dict[str, Any]]:
        """
        Get status of all stored credentials (for admin/debugging)

        Returns:
            Dict of integration -> masked credentials plus is_expired
        """
        status = {}
        for integration in Integration:
            credentials = await self._load(integration)
            status[integration.value] = {
                **credentials.masked(),
                "isExpired": self.is_token_expired(credentials),
            }
        return status


# Singleton instance
_credentials_service: Optional[CredentialsService] = None


def get_credentials_service() -> CredentialsService:
    """Get or create the singleton CredentialsService instance"""
    global _credentials_service
    if _credentials_service is None:
        _credentials_service = CredentialsService(get_document_store())
    return _credentials_service
