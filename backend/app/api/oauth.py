"""
OAuth API - Marketplace authorization flow

Endpoints:
- GET /api/oauth/{integration}/authorize  - Issue a single-use state and redirect to the provider
- GET /api/callback/{integration}         - Validate state, exchange code, show result page

integration is "bling" or "mercadolivre".

Author: TM3
Date: 2026-02-10
"""
import html
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.api.deps import get_credentials, get_store, get_token_refresher
from app.api.errors import to_http_exception
from app.connectors.oauth import TokenRefresher
from app.core.auth import consume_state, issue_state
from app.core.config import settings
from app.core.document_store import DocumentStore
from app.core.exceptions import SyncPlatformError
from app.domain.credentials import Integration
from app.services.credentials_service import CredentialsService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["OAuth"])

MERCADOLIVRE_AUTHORIZE_URL = "https://auth.mercadolivre.com.br/authorization"

PROVIDER_NAMES = {
    Integration.BLING: "Bling",
    Integration.MERCADO_LIVRE: "Mercado Livre",
}

_PAGE_STYLE = """
    body { font-family: sans-serif; display: flex; justify-content: center; align-items: center;
           height: 100vh; background-color: #f0f2f5; }
    .container { text-align: center; padding: 40px; border-radius: 8px; background-color: white;
                 box-shadow: 0 4px 6px rgba(0,0,0,0.1); }
    h1.ok { color: #1877f2; }
    h1.error { color: #d93025; }
    code { background-color: #eee; padding: 3px 6px; border-radius: 4px; }
"""


def _page(title: str, heading: str, body: str, css_class: str, status_code: int) -> HTMLResponse:
    content = f"""<html>
  <head>
    <title>{title}</title>
    <meta charset="UTF-8">
    <style>{_PAGE_STYLE}</style>
  </head>
  <body>
    <div class="container">
      <h1 class="{css_class}">{heading}</h1>
      {body}
      <p><a href="/">Voltar para o painel</a></p>
    </div>
  </body>
</html>"""
    return HTMLResponse(content=content, status_code=status_code)


def success_page(integration: Integration) -> HTMLResponse:
    name = PROVIDER_NAMES[integration]
    return _page(
        f"Conexão com {name}", "Sucesso!",
        f"<p>Sua conta {name} foi conectada.</p>", "ok", 200,
    )


def error_page(integration: Integration, message: str, status_code: int) -> HTMLResponse:
    name = PROVIDER_NAMES[integration]
    return _page(
        f"Erro na Conexão com {name}", "Erro na Conexão",
        f"<p>Não foi possível conectar sua conta {name}.</p>"
        f"<p>Detalhes: <code>{html.escape(message)}</code></p>",
        "error", status_code,
    )


def default_redirect_uri(request: Request, integration: Integration) -> str:
    if integration == Integration.MERCADO_LIVRE and settings.MERCADOLIVRE_REDIRECT_URI:
        return settings.MERCADOLIVRE_REDIRECT_URI
    return str(request.url_for("oauth_callback", integration=integration.value))


@router.get("/oauth/{integration}/authorize")
async def authorize(
    integration: Integration,
    request: Request,
    store: DocumentStore = Depends(get_store),
    credentials_service: CredentialsService = Depends(get_credentials)
):
    """Redirect the browser to the provider's consent screen"""
    try:
        credentials = await credentials_service.get_credentials(integration)
    except SyncPlatformError as e:
        raise to_http_exception(e)

    state = await issue_state(store, integration.value)
    if integration == Integration.BLING:
        params = {"response_type": "code", "client_id": credentials.client_id, "state": state}
        url = f"{settings.BLING_OAUTH_URL}/authorize?{urlencode(params)}"
    else:
        params = {
            "response_type": "code",
            "client_id": credentials.client_id,
            "redirect_uri": default_redirect_uri(request, integration),
            "state": state,
        }
        url = f"{MERCADOLIVRE_AUTHORIZE_URL}?{urlencode(params)}"

    logger.info(f"Redirecting to {integration.value} authorization")
    return RedirectResponse(url=url, status_code=302)


@router.get("/callback/{integration}", name="oauth_callback")
async def oauth_callback(
    integration: Integration,
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
    refresher: TokenRefresher = Depends(get_token_refresher)
):
    """
    Provider redirect target

    The state is validated (and burned) before the code is exchanged.
    """
    if error:
        logger.error(f"❌ {integration.value} authorization denied: {error} {error_description or ''}")
        return error_page(integration, error_description or error, 400)

    if not code:
        return error_page(integration, "Nenhum código de autorização recebido.", 400)

    try:
        await consume_state(store, state, integration.value)
        redirect_uri = default_redirect_uri(request, integration) if integration == Integration.MERCADO_LIVRE else None
        await refresher.exchange_code(integration, code, redirect_uri)
    except SyncPlatformError as e:
        logger.error(f"❌ {integration.value} OAuth callback failed: {e}")
        return error_page(integration, str(e), to_http_exception(e).status_code)

    return success_page(integration)
