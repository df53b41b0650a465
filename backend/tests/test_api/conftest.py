"""
Fixtures for router tests

Every service getter is overridden with an instance bound to the per-test
in-memory store; the Bling connector is an AsyncMock.
"""
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.core.config import settings
from app.main import app
from app.services.demand_service import ProductionDemandService
from app.services.sales_dashboard_service import SalesDashboardService
from app.services.stock_service import StockService
from app.services.sync_progress import SyncProgressTracker
from app.services.sync_service import OrderSyncService
from app.services.webhook_service import WebhookService

SYNC_KEY = "test-sync-key"
WEBHOOK_SECRET = "webhook-secret"


def _provide(instance):
    def _dependency():
        return instance
    return _dependency


@pytest.fixture
def bling():
    connector = AsyncMock()
    connector.list_orders.return_value = []
    return connector


@pytest.fixture
def refresher():
    return AsyncMock()


@pytest.fixture
def services(store, order_repo, stock_repo, app_config_repo, credentials_service, bling, refresher):
    stock_service = StockService(stock_repo, connector=bling, cache_ttl_seconds=0)
    tracker = SyncProgressTracker(app_config_repo)
    return {
        deps.get_store: store,
        deps.get_credentials: credentials_service,
        deps.get_token_refresher: refresher,
        deps.get_bling_connector: bling,
        deps.get_order_repository: order_repo,
        deps.get_app_config_repository: app_config_repo,
        deps.get_stock_repository: stock_repo,
        deps.get_stock_service: stock_service,
        deps.get_progress_tracker: tracker,
        deps.get_sync_service: OrderSyncService(bling, order_repo, tracker, lookback_days=30),
        deps.get_webhook_service: WebhookService(order_repo, stock_service, app_config_repo, connector=bling,
                                                 secret=WEBHOOK_SECRET, require_signature=False),
        deps.get_demand_service: ProductionDemandService(order_repo, stock_service, stock_repo),
        deps.get_sales_dashboard_service: SalesDashboardService(order_repo),
    }


@pytest.fixture
def client(services, monkeypatch):
    monkeypatch.setattr(settings, "SYNC_API_KEY", SYNC_KEY)
    for getter, instance in services.items():
        app.dependency_overrides[getter] = _provide(instance)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"X-Sync-Key": SYNC_KEY}
