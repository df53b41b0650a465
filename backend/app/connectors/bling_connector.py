"""
Bling ERP API Connector
Handles all interactions with the Bling v3 REST API

Author: TM3
Date: 2026-02-10
"""
import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import AuthError, UpstreamAuthError, UpstreamError
from app.domain.credentials import Integration
from app.connectors.oauth import TokenRefresher

logger = logging.getLogger(__name__)

# Bling answers some expired-token calls with 400 instead of 401
_TOKEN_ERROR_PATTERN = re.compile(r"invalid_token|token expir", re.IGNORECASE)

PAGE_LIMIT = 100


def is_auth_failure(response: httpx.Response) -> bool:
    if response.status_code == 401:
        return True
    return response.status_code == 400 and bool(_TOKEN_ERROR_PATTERN.search(response.text or ""))


def json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError(response.status_code, response.text, f"Invalid JSON from marketplace: {e}") from e


class AuthenticatedFetcher:
    """
    Bearer-authenticated GET with refresh-and-retry

    Policy:
    - Proactive: ensure_fresh() before the first attempt
    - Reactive: on 401 (or 400 mentioning an invalid/expired token) refresh
      once and retry once. A second auth failure raises UpstreamAuthError.
    """

    def __init__(self, refresher: TokenRefresher, integration: Integration = Integration.BLING,
                 client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        self.refresher = refresher
        self.integration = integration
        self._client = client
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.api_calls = 0

    async def _get(self, client: httpx.AsyncClient, url: str, params: Optional[Dict], token: str) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Cache-Control": "no-cache",
        }
        self.api_calls += 1
        return await client.get(url, params=params, headers=headers, timeout=self.timeout)

    async def fetch_response(self, url: str, params: Optional[Dict] = None) -> httpx.Response:
        """
        Authenticated GET returning the raw response (auth handled, status not checked)

        Raises:
            UpstreamAuthError: still unauthorized after one refresh-and-retry,
                or the refresh itself failed
            UpstreamError: transport failure (timeout, connection refused, ...)
        """
        try:
            if self._client is not None:
                return await self._fetch_with_retry(self._client, url, params)
            async with httpx.AsyncClient() as client:
                return await self._fetch_with_retry(client, url, params)
        except httpx.HTTPError as e:
            logger.error(f"❌ Request to {url} failed: {type(e).__name__}: {e}")
            raise UpstreamError(0, str(e), f"Marketplace request failed ({type(e).__name__}): {e}") from e

    async def _fetch_with_retry(self, client: httpx.AsyncClient, url: str, params: Optional[Dict]) -> httpx.Response:
        credentials = await self.refresher.ensure_fresh(self.integration)
        response = await self._get(client, url, params, credentials.access_token or "")

        if not is_auth_failure(response):
            return response

        logger.warning(f"Token rejected by {self.integration.value} ({response.status_code}), attempting refresh...")
        try:
            credentials = await self.refresher.refresh(self.integration)
        except AuthError as e:
            raise UpstreamAuthError(f"Token refresh failed: {e}") from e

        response = await self._get(client, url, params, credentials.access_token or "")
        if is_auth_failure(response):
            raise UpstreamAuthError(
                f"{self.integration.value} rejected the refreshed token ({response.status_code})"
            )
        return response

    async def fetch(self, url: str, params: Optional[Dict] = None) -> Dict[str, Any]:
        """
        Authenticated GET returning the JSON body

        Raises:
            UpstreamAuthError: auth still failing after refresh-and-retry
            UpstreamError: any other non-2xx response, a transport failure,
                or a body that is not JSON
        """
        response = await self.fetch_response(url, params)
        if response.status_code >= 400:
            logger.error(f"API request failed: {response.status_code} - {response.text[:300]}")
            raise UpstreamError(response.status_code, response.text)
        return json_body(response)


class BlingConnector:
    """
    Connector for Bling ERP REST API (v3)

    Handles:
    - Sales order listing (paginated) and detail retrieval
    - Product lookup by SKU
    - Stock balance per product
    """

    def __init__(self, fetcher: AuthenticatedFetcher, base_url: Optional[str] = None):
        self.fetcher = fetcher
        self.base_url = (base_url or settings.BLING_API_BASE).rstrip("/")

    async def list_orders(self, date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[Dict[str, Any]]:
        """
        List order summaries in a date range, following pagination

        Pages are requested with limite=100 until a page comes back short.

        Args:
            date_from: dataInicial (inclusive)
            date_to: dataFinal (inclusive)

        Returns:
            Order summaries as returned by Bling (no line items)
        """
        orders: List[Dict[str, Any]] = []
        page = 1

        while True:
            params: Dict[str, Any] = {"pagina": page, "limite": PAGE_LIMIT}
            if date_from:
                params["dataInicial"] = date_from.isoformat()
            if date_to:
                params["dataFinal"] = date_to.isoformat()

            data = await self.fetcher.fetch(f"{self.base_url}/pedidos/vendas", params)
            page_orders = data.get("data") or []
            orders.extend(page_orders)

            logger.debug(f"Bling orders page {page}: {len(page_orders)} orders")
            if len(page_orders) < PAGE_LIMIT:
                break
            page += 1

        logger.info(f"📋 Listed {len(orders)} orders from Bling ({date_from} → {date_to})")
        return orders

    async def get_order_details(self, order_id: Any) -> Optional[Dict[str, Any]]:
        """
        Full order payload, with items

        Returns:
            Order dict, or None if Bling answers 404
        """
        response = await self.fetcher.fetch_response(f"{self.base_url}/pedidos/vendas/{order_id}")
        if response.status_code == 404:
            logger.warning(f"Order {order_id} not found in Bling")
            return None
        if response.status_code >= 400:
            raise UpstreamError(response.status_code, response.text)
        return json_body(response).get("data")

    async def find_product_by_sku(self, sku: str) -> Optional[Dict[str, Any]]:
        """First product whose code matches the SKU, or None"""
        data = await self.fetcher.fetch(f"{self.base_url}/produtos", {"codigo": sku})
        products = data.get("data") or []
        for product in products:
            if product.get("codigo") == sku:
                return product
        return products[0] if products else None

    async def get_stock_balance(self, product_id: Any) -> Optional[Dict[str, Any]]:
        """
        Stock balance for one product across warehouses

        Returns:
            Dict with saldoFisicoTotal, saldoVirtualTotal and depositos, or None
        """
        data = await self.fetcher.fetch(f"{self.base_url}/estoques/saldos", {"idsProdutos[]": product_id})
        balances = data.get("data") or []
        return balances[0] if balances else None
