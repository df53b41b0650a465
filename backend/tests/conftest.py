"""
Pytest fixtures and configuration for BR Steel Backend tests

This file provides shared fixtures that can be used across all test modules.
Everything runs against the in-memory document store; no database or
network access is needed.

Author: TM3
Date: 2026-02-10
"""
import os

# Must be set before app.core.config is imported
os.environ.setdefault("DOCUMENT_STORE", "memory")

import time
from datetime import datetime, timezone

import pytest

from app.core.document_store import APP_CONFIG, InMemoryDocumentStore
from app.repositories import AppConfigRepository, OrderRepository, StockRepository
from app.services.credentials_service import CredentialsService


FIXED_NOW = datetime(2024, 1, 20, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    """Fresh in-memory document store per test"""
    return InMemoryDocumentStore()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def order_repo(store, fixed_clock):
    return OrderRepository(store, clock=fixed_clock)


@pytest.fixture
def stock_repo(store):
    return StockRepository(store)


@pytest.fixture
def app_config_repo(store):
    return AppConfigRepository(store)


@pytest.fixture
def credentials_service(store):
    return CredentialsService(store)


@pytest.fixture
def bling_credentials(store):
    """
    Stores Bling credentials; pass expires_in_ms relative to now (negative = expired)
    """
    async def _store(access_token="access-1", refresh_token="refresh-1", expires_in_ms=3_600_000):
        document = {
            "clientId": "bling-client",
            "clientSecret": "bling-secret",
            "accessToken": access_token,
            "refreshToken": refresh_token,
        }
        if expires_in_ms is not None:
            document["expiresAt"] = int(time.time() * 1000) + expires_in_ms
        await store.set(APP_CONFIG, "blingCredentials", document)
        return document
    return _store


@pytest.fixture
def order_payload():
    """
    Factory for Bling order payloads

    With items=None the payload looks like a listing summary (no itens).
    """
    def _make(order_id, issue_date="2024-01-05", items=None, invoice_id=0,
              status_id=6, total=100.0):
        payload = {
            "id": order_id,
            "numero": order_id + 1000,
            "data": issue_date,
            "total": total,
            "situacao": {"id": status_id, "valor": 1},
            "notaFiscal": {"id": invoice_id},
        }
        if items is not None:
            payload["itens"] = [
                {"codigo": sku, "descricao": f"Produto {sku}", "quantidade": quantity, "valor": 10.0}
                for sku, quantity in items
            ]
        return payload
    return _make
