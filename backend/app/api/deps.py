"""
Service wiring for the routers

Each getter builds its service once per process. Tests replace them through
app.dependency_overrides.
"""
import logging
from functools import lru_cache

from fastapi import Header, HTTPException

from app.connectors.bling_connector import AuthenticatedFetcher, BlingConnector
from app.connectors.oauth import TokenRefresher
from app.core.config import settings
from app.core.document_store import DocumentStore, get_document_store
from app.domain.credentials import Integration
from app.repositories import AppConfigRepository, OrderRepository, StockRepository
from app.services.credentials_service import CredentialsService, get_credentials_service
from app.services.demand_service import ProductionDemandService
from app.services.fetch_policy import fetch_policy_for
from app.services.sales_dashboard_service import SalesDashboardService
from app.services.stock_service import StockService
from app.services.sync_progress import SyncProgressTracker
from app.services.sync_service import OrderSyncService
from app.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)


def get_store() -> DocumentStore:
    return get_document_store()


def get_credentials() -> CredentialsService:
    return get_credentials_service()


@lru_cache()
def get_token_refresher() -> TokenRefresher:
    return TokenRefresher(get_credentials_service())


@lru_cache()
def get_bling_connector() -> BlingConnector:
    fetcher = AuthenticatedFetcher(get_token_refresher(), Integration.BLING)
    return BlingConnector(fetcher)


@lru_cache()
def get_order_repository() -> OrderRepository:
    return OrderRepository(get_document_store())


@lru_cache()
def get_app_config_repository() -> AppConfigRepository:
    return AppConfigRepository(get_document_store())


@lru_cache()
def get_stock_repository() -> StockRepository:
    return StockRepository(get_document_store())


@lru_cache()
def get_stock_service() -> StockService:
    return StockService(get_stock_repository(), get_bling_connector())


@lru_cache()
def get_progress_tracker() -> SyncProgressTracker:
    return SyncProgressTracker(get_app_config_repository())


@lru_cache()
def get_sync_service() -> OrderSyncService:
    return OrderSyncService(
        get_bling_connector(),
        get_order_repository(),
        get_progress_tracker(),
        fetch_policy=fetch_policy_for(settings.SYNC_DETAIL_CONCURRENCY),
    )


@lru_cache()
def get_webhook_service() -> WebhookService:
    return WebhookService(
        get_order_repository(),
        get_stock_service(),
        get_app_config_repository(),
        connector=get_bling_connector(),
    )


@lru_cache()
def get_demand_service() -> ProductionDemandService:
    return ProductionDemandService(get_order_repository(), get_stock_service(), get_stock_repository())


@lru_cache()
def get_sales_dashboard_service() -> SalesDashboardService:
    return SalesDashboardService(get_order_repository())


# ============================================================================
# Security - API Key Verification
# ============================================================================

async def verify_sync_key(x_sync_key: str = Header(None, alias="X-Sync-Key")):
    """
    Verify the sync API key from X-Sync-Key header.

    If SYNC_API_KEY is not configured, allows all requests (development).
    If configured, requires matching key.
    """
    if not settings.SYNC_API_KEY:
        logger.warning("SYNC_API_KEY not configured - sync endpoints are unprotected!")
        return

    if not x_sync_key:
        logger.warning("Sync request without X-Sync-Key header")
        raise HTTPException(
            status_code=401,
            detail="Missing X-Sync-Key header. Authentication required."
        )

    if x_sync_key != settings.SYNC_API_KEY:
        logger.warning("Invalid sync key attempt")
        raise HTTPException(
            status_code=401,
            detail="Invalid API key"
        )
