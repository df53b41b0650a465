"""
Unit tests for WebhookService

Author: TM3
Date: 2026-02-10
"""
import hashlib
import hmac
import json
from unittest.mock import AsyncMock

import pytest

from app.core.document_store import APP_CONFIG, SALES_ORDERS, STOCK_UPDATES
from app.core.exceptions import MalformedPayloadError, SignatureError
from app.domain.stock import StockRecord
from app.services.stock_service import StockService
from app.services.webhook_service import WebhookService, signature_from_headers, verify_signature

SECRET = "webhook-secret"


def sign(body: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def encode(payload) -> bytes:
    return json.dumps(payload).encode()


@pytest.fixture
def connector():
    return AsyncMock()


@pytest.fixture
def stock_service(stock_repo):
    return StockService(stock_repo, cache_ttl_seconds=300)


@pytest.fixture
def build_webhook_service(order_repo, stock_service, app_config_repo, connector):
    def _build(secret="", require_signature=False):
        return WebhookService(order_repo, stock_service, app_config_repo, connector=connector,
                              secret=secret, require_signature=require_signature)
    return _build


class TestVerifySignature:

    def test_valid_signature(self):
        body = b'{"event": "order.created"}'

        assert verify_signature(body, sign(body), SECRET) is True

    def test_prefixed_signature(self):
        body = b'{"event": "order.created"}'

        assert verify_signature(body, f"sha256={sign(body)}", SECRET) is True

    def test_tampered_body(self):
        body = b'{"event": "order.created"}'

        assert verify_signature(body + b" ", sign(body), SECRET) is False

    def test_missing_signature(self):
        assert verify_signature(b"{}", None, SECRET) is False

    def test_header_lookup_order(self):
        headers = {"X-Bling-Signature": "second", "X-Bling-Signature-256": "first"}

        assert signature_from_headers(headers) == "first"
        assert signature_from_headers({}) is None


class TestSignatureHandling:

    @pytest.mark.asyncio
    async def test_bad_signature_rejected_without_mutation(self, build_webhook_service, store):
        service = build_webhook_service(secret=SECRET)
        body = encode({"event": "pedido_venda.deleted", "data": {"id": 1}})

        with pytest.raises(SignatureError):
            await service.process(body, sign(b"something else"))

        assert await store.list(APP_CONFIG) == []

    @pytest.mark.asyncio
    async def test_valid_signature_accepted(self, build_webhook_service):
        service = build_webhook_service(secret=SECRET)
        body = encode({"event": "produto.created", "data": {"id": 1}})

        result = await service.process(body, sign(body))

        assert result["success"] is True

    @pytest.mark.asyncio
    async def test_missing_header_accepted_unless_required(self, build_webhook_service):
        body = encode({"event": "produto.created", "data": {"id": 1}})

        lenient = await build_webhook_service(secret=SECRET).process(body, None)
        assert lenient["success"] is True

        with pytest.raises(SignatureError):
            await build_webhook_service(secret=SECRET, require_signature=True).process(body, None)

    @pytest.mark.asyncio
    async def test_no_secret_skips_verification(self, build_webhook_service):
        body = encode({"event": "produto.created", "data": {"id": 1}})

        result = await build_webhook_service().process(body, "garbage")

        assert result["success"] is True


class TestMalformedPayloads:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        b"not json",
        b"[1, 2, 3]",
        b'{"data": {"id": 1}}',
    ])
    async def test_malformed_body(self, build_webhook_service, body):
        with pytest.raises(MalformedPayloadError):
            await build_webhook_service().process(body, None)

    @pytest.mark.asyncio
    async def test_order_event_without_id(self, build_webhook_service):
        body = encode({"event": "pedido_venda.created", "data": {}})

        with pytest.raises(MalformedPayloadError):
            await build_webhook_service().process(body, None)


class TestOrderEvents:

    @pytest.mark.asyncio
    async def test_deleted_event_soft_deletes(self, build_webhook_service, order_repo, order_payload, app_config_repo):
        # Arrange
        await order_repo.upsert_many([order_payload(1, items=[("SKU-A", 1)])])
        body = encode({"event": "pedido_venda.deleted", "data": {"id": 1}})

        # Act
        result = await build_webhook_service().process(body, None)

        # Assert
        assert result["success"] is True
        assert result["event"] == "pedido_venda.deleted"
        assert result["processedIn"].endswith("ms")
        assert await order_repo.find_by_id(1) is None
        status = await app_config_repo.get_status("webhookStatus")
        assert status["lastOrderId"] == 1
        assert status["totalReceived"] == 1

    @pytest.mark.asyncio
    async def test_deleted_event_for_unknown_order_is_noop(self, build_webhook_service, store):
        body = encode({"event": "pedido_venda.deleted", "data": {"id": 404}})

        result = await build_webhook_service().process(body, None)

        assert result["success"] is True
        assert await store.get(SALES_ORDERS, "404") is None

    @pytest.mark.asyncio
    async def test_created_event_fetches_and_upserts(self, build_webhook_service, connector, order_payload,
                                                     store, stock_repo, stock_service):
        # Arrange: SKU-A has a stock snapshot that the new order makes stale
        await stock_service.upsert_records([StockRecord(sku="SKU-A", quantity=10)], "estoque.updated")
        connector.get_order_details.return_value = order_payload(5, items=[("SKU-A", 2), ("SKU-Z", 1)])
        body = encode({"event": "pedido_venda.created", "data": {"id": 5}})

        # Act
        result = await build_webhook_service().process(body, None)

        # Assert
        assert result["success"] is True
        connector.get_order_details.assert_awaited_once_with(5)
        doc = await store.get(SALES_ORDERS, "5")
        assert doc["webhookSource"] is True
        assert "webhookReceivedAt" in doc
        assert len(doc["itens"]) == 2
        assert (await stock_repo.get_snapshot("SKU-A")).stale is True
        assert await stock_repo.get_snapshot("SKU-Z") is None

    @pytest.mark.asyncio
    async def test_order_missing_upstream_reports_failure(self, build_webhook_service, connector, store):
        connector.get_order_details.return_value = None
        body = encode({"event": "pedido_venda.updated", "data": {"id": 9}})

        result = await build_webhook_service().process(body, None)

        assert result["success"] is False
        assert await store.get(SALES_ORDERS, "9") is None

    @pytest.mark.asyncio
    async def test_unsupported_event_is_ignored(self, build_webhook_service, connector, store):
        body = encode({"event": "produto.updated", "data": {"id": 1}})

        result = await build_webhook_service().process(body, None)

        assert result["success"] is True
        assert result["message"] == "Evento não processado"
        connector.get_order_details.assert_not_awaited()
        assert await store.list(APP_CONFIG) == []


class TestStockEvents:

    @pytest.mark.asyncio
    async def test_stock_event_upserts_and_counts(self, build_webhook_service, stock_repo, app_config_repo):
        service = build_webhook_service()
        payload = {"event": "estoque.updated", "data": {"estoques": [
            {"codigo": "SKU-A", "estoqueAtual": 12},
            {"codigo": "SKU-B", "estoqueAtual": 3},
        ]}}

        first = await service.process(encode(payload), None)
        await service.process(encode(payload), None)

        assert first["processed"] == 2
        assert (await stock_repo.get_snapshot("SKU-A")).current_stock == 12
        status = await app_config_repo.get_status("stockWebhookStatus")
        assert status["totalReceived"] == 2
        assert status["lastProcessed"] == 2

    @pytest.mark.asyncio
    async def test_stock_event_with_unknown_shape_is_malformed(self, build_webhook_service):
        body = encode({"event": "estoque.updated", "data": {"nome": "?"}})

        with pytest.raises(MalformedPayloadError):
            await build_webhook_service().process(body, None)


class TestTestHelpers:

    @pytest.mark.asyncio
    async def test_simulate_and_clear(self, build_webhook_service, store):
        service = build_webhook_service()

        simulated = await service.simulate_stock_event("SKU-T", 4, "Teste")
        assert simulated["data"]["estoqueAtual"] == 4

        cleared = await service.clear_test_stock()
        assert cleared["deleted"] == 1
        assert await store.list(STOCK_UPDATES) == []

    @pytest.mark.asyncio
    async def test_health_reports_configuration(self, build_webhook_service):
        health = await build_webhook_service(secret=SECRET).health()

        assert health["status"] == "ok"
        assert health["signatureVerification"] is True
        assert health["lastWebhook"] is None
