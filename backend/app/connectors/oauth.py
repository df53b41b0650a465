"""
OAuth Token Refresher for marketplace integrations

Handles:
- refresh_token grants (Bling: HTTP Basic client auth; Mercado Livre: body client auth)
- authorization_code exchange for the OAuth callback
- Proactive refresh (ensure_fresh) before outbound calls

Author: TM3
Date: 2026-02-10
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import AuthError
from app.domain.credentials import Credentials, Integration
from app.services.credentials_service import CredentialsService

logger = logging.getLogger(__name__)

MERCADOLIVRE_TOKEN_URL = "https://api.mercadolibre.com/oauth/token"


@dataclass(frozen=True)
class ProviderConfig:
    token_url: str
    basic_auth: bool


def provider_config(integration: Integration) -> ProviderConfig:
    if integration == Integration.BLING:
        return ProviderConfig(token_url=f"{settings.BLING_OAUTH_URL}/token", basic_auth=True)
    return ProviderConfig(token_url=MERCADOLIVRE_TOKEN_URL, basic_auth=False)


def _error_description(response: httpx.Response) -> str:
    """Best human-readable error from a token endpoint response"""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("description"):
            return error["description"]
        for key in ("error_description", "message"):
            if body.get(key):
                return body[key]
        if isinstance(error, str):
            return error
    return f"HTTP {response.status_code}"


class TokenRefresher:
    """
    Obtains new access tokens and persists them through CredentialsService

    The HTTP client is injectable so tests can run against httpx.MockTransport.
    """

    def __init__(self, credentials_service: CredentialsService, client: Optional[httpx.AsyncClient] = None):
        self.credentials_service = credentials_service
        self._client = client

    async def _post_token(self, credentials: Credentials, form: Dict[str, Any]) -> Dict[str, Any]:
        config = provider_config(credentials.integration)
        headers = {"Accept": "application/json"}
        auth = None
        if config.basic_auth:
            auth = httpx.BasicAuth(credentials.client_id, credentials.client_secret)
        else:
            form = {**form, "client_id": credentials.client_id, "client_secret": credentials.client_secret}

        try:
            if self._client is not None:
                response = await self._client.post(config.token_url, data=form, headers=headers,
                                                   auth=auth, timeout=settings.HTTP_TIMEOUT_SECONDS)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(config.token_url, data=form, headers=headers,
                                                 auth=auth, timeout=settings.HTTP_TIMEOUT_SECONDS)
        except httpx.HTTPError as e:
            raise AuthError(f"{credentials.integration.value} token request failed: {e}") from e

        if response.status_code >= 400:
            description = _error_description(response)
            logger.error(f"❌ {credentials.integration.value} token request rejected ({response.status_code}): {description}")
            raise AuthError(description)

        token_data = response.json()
        if not token_data.get("access_token"):
            raise AuthError(f"{credentials.integration.value} token response without access_token")
        return token_data

    async def refresh(self, integration: Integration) -> Credentials:
        """
        Refresh the access token using the stored refresh token

        Returns:
            The updated credentials

        Raises:
            AuthError: no refresh token, or the provider rejected the request
        """
        credentials = await self.credentials_service.get_credentials(integration)
        if not credentials.refresh_token:
            raise AuthError(f"No refresh token available for {integration.value}")

        token_data = await self._post_token(credentials, {
            "grant_type": "refresh_token",
            "refresh_token": credentials.refresh_token,
        })
        updated = await self.credentials_service.save_tokens(integration, token_data)
        logger.info(f"🔑 {integration.value} access token refreshed")
        return updated

    async def ensure_fresh(self, integration: Integration) -> Credentials:
        """
        Proactive policy: refresh when the token is expired or about to expire

        A failed refresh is logged and the current credentials are returned;
        the reactive retry in AuthenticatedFetcher gets the final say.
        """
        credentials = await self.credentials_service.get_credentials(integration)
        if not self.credentials_service.is_token_expired(credentials):
            return credentials

        logger.info(f"{integration.value} token expired or expiring soon, refreshing")
        try:
            return await self.refresh(integration)
        except AuthError as e:
            logger.warning(f"⚠️ Proactive refresh failed for {integration.value}: {e}")
            return credentials

    async def exchange_code(self, integration: Integration, code: str,
                            redirect_uri: Optional[str] = None) -> Credentials:
        """
        Exchange an authorization code for tokens (OAuth callback)

        Mercado Livre also returns user_id, which is stored as userId.
        """
        credentials = await self.credentials_service.get_credentials(integration)
        form = {"grant_type": "authorization_code", "code": code}
        if redirect_uri:
            form["redirect_uri"] = redirect_uri

        token_data = await self._post_token(credentials, form)
        updated = await self.credentials_service.save_tokens(integration, token_data)
        logger.info(f"✅ {integration.value} connected via OAuth")
        return updated
