"""
Router tests for the Bling webhook receiver

Author: TM3
Date: 2026-02-10
"""
import asyncio
import hashlib
import hmac
import json

WEBHOOK_SECRET = "webhook-secret"


def signed(payload):
    body = json.dumps(payload).encode()
    signature = hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()
    return body, {"X-Bling-Signature-256": f"sha256={signature}", "Content-Type": "application/json"}


class TestReceiveWebhook:

    def test_invalid_signature_is_401(self, client):
        body, _ = signed({"event": "pedido_venda.deleted", "data": {"id": 1}})

        response = client.post("/api/webhook/bling", content=body,
                               headers={"X-Bling-Signature-256": "sha256=deadbeef"})

        assert response.status_code == 401
        assert "error" in response.json()

    def test_malformed_body_is_400(self, client):
        body, headers = signed({"data": {"id": 1}})

        response = client.post("/api/webhook/bling", content=body, headers=headers)

        assert response.status_code == 400

    def test_order_deleted_event(self, client, order_repo, order_payload):
        asyncio.run(order_repo.upsert_many([order_payload(3)]))
        body, headers = signed({"event": "pedido_venda.deleted", "data": {"id": 3}})

        response = client.post("/api/webhook/bling", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get("/api/v1/orders/3").status_code == 404

    def test_internal_failure_is_200_with_success_false(self, client, bling):
        bling.get_order_details.side_effect = RuntimeError("connection reset")
        body, headers = signed({"event": "pedido_venda.created", "data": {"id": 8}})

        response = client.post("/api/webhook/bling", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert "connection reset" in response.json()["error"]

    def test_stock_event_updates_stock_view(self, client):
        body, headers = signed({"event": "estoque.updated", "data": {
            "produto": {"id": 1, "codigo": "SKU-A"}, "saldoFisicoTotal": 21,
        }})

        client.post("/api/webhook/bling", content=body, headers=headers)

        snapshot = client.get("/api/v1/stock/SKU-A").json()["data"]
        assert snapshot["estoqueAtual"] == 21
        health = client.get("/api/webhook/bling").json()
        assert health["lastStockWebhook"]["totalReceived"] == 1


class TestWebhookTestHelpers:

    def test_simulate_requires_sync_key(self, client):
        response = client.post("/api/webhook/bling/test", json={"sku": "SKU-T", "quantidade": 3})

        assert response.status_code == 401

    def test_simulate_and_clear(self, client, auth_headers):
        simulated = client.post("/api/webhook/bling/test", headers=auth_headers,
                                json={"sku": "SKU-T", "quantidade": 3, "nome": "Teste"})
        assert simulated.json()["data"]["estoqueAtual"] == 3

        cleared = client.delete("/api/webhook/bling/test", headers=auth_headers)

        assert cleared.json()["deleted"] == 1
        assert client.get("/api/v1/stock/SKU-T").status_code == 404
