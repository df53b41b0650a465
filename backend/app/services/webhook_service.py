"""
Webhook Service - Processes Bling webhook events

Flow per request: verify signature → parse payload → classify event → act.

- Order events (pedido_venda.*): deleted → soft delete; created/updated →
  fetch full detail from Bling and upsert with webhook provenance
- Stock events (estoque.*): normalize any known envelope into stock records
  and upsert them into the stock snapshot
- Anything else is acknowledged and ignored

Signature and payload problems raise SignatureError / MalformedPayloadError;
the router maps those to 401 / 400 and everything else to 200 success:false.

Author: TM3
Date: 2026-02-10
"""
import hashlib
import hmac
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError

from app.connectors.bling_connector import BlingConnector
from app.core.config import settings
from app.core.exceptions import ConfigError, MalformedPayloadError, SignatureError
from app.domain.stock import StockRecord
from app.domain.webhook import SUPPORTED_EVENTS, WebhookEnvelope, parse_stock_payload
from app.repositories.app_config_repository import (
    AppConfigRepository, STOCK_WEBHOOK_STATUS, WEBHOOK_STATUS
)
from app.repositories.order_repository import OrderRepository
from app.services.stock_service import StockService

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("X-Bling-Signature-256", "X-Bling-Signature", "X-Signature-256")
TEST_STOCK_EVENT = "estoque.updated (test)"


def verify_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """
    HMAC-SHA256 of the raw body, hex encoded; accepts an optional "sha256=" prefix
    """
    if not signature or not secret:
        return False
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature.strip().lower(), expected)


def _elapsed(started: float) -> str:
    return f"{int((time.monotonic() - started) * 1000)}ms"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class WebhookService:

    def __init__(
        self,
        orders: OrderRepository,
        stock: StockService,
        app_config: AppConfigRepository,
        connector: Optional[BlingConnector] = None,
        secret: Optional[str] = None,
        require_signature: Optional[bool] = None
    ):
        self.orders = orders
        self.stock = stock
        self.app_config = app_config
        self.connector = connector
        self.secret = settings.BLING_WEBHOOK_SECRET if secret is None else secret
        self.require_signature = (
            settings.BLING_WEBHOOK_REQUIRE_SIGNATURE if require_signature is None else require_signature
        )

    # ============================================
    # Entry point
    # ============================================

    async def process(self, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Process one webhook request

        Args:
            raw_body: Request body exactly as received
            signature: Value of the first signature header present, if any

        Returns:
            Response body ({success, message, event, processedIn, ...})

        Raises:
            SignatureError: secret configured and signature missing/invalid
            MalformedPayloadError: body is not JSON or lacks event/data/order id
        """
        started = time.monotonic()
        self._check_signature(raw_body, signature)

        try:
            payload = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedPayloadError("JSON inválido") from e
        if not isinstance(payload, dict):
            raise MalformedPayloadError("Payload incompleto")

        try:
            envelope = WebhookEnvelope.model_validate(payload)
        except ValidationError as e:
            raise MalformedPayloadError("Payload incompleto") from e

        logger.info(f"📨 Bling webhook received: {envelope.event}")

        if envelope.is_order_event:
            result = await self._handle_order_event(envelope)
        elif envelope.is_stock_event:
            result = await self._handle_stock_event(envelope, payload)
        else:
            logger.info(f"ℹ️ Event {envelope.event} not supported, ignoring")
            result = {"success": True, "message": "Evento não processado"}

        return {**result, "event": envelope.event, "processedIn": _elapsed(started)}

    def _check_signature(self, raw_body: bytes, signature: Optional[str]) -> None:
        if not self.secret:
            return
        if not signature:
            if self.require_signature:
                raise SignatureError("Assinatura ausente")
            logger.warning("Webhook without signature header, processing unverified")
            return
        if not verify_signature(raw_body, signature, self.secret):
            logger.error("❌ Invalid webhook signature")
            raise SignatureError("Assinatura inválida")

    # ============================================
    # Order events
    # ============================================

    async def _handle_order_event(self, envelope: WebhookEnvelope) -> Dict[str, Any]:
        order_id = envelope.data.get("id")
        if not order_id:
            raise MalformedPayloadError("ID do pedido não informado")

        if envelope.action == "deleted":
            existed = await self.orders.soft_delete(order_id)
            if not existed:
                logger.info(f"Deleted event for unknown order {order_id}, nothing to do")
            await self._record_order_event(order_id, envelope.event)
            return {
                "success": True,
                "message": f"Pedido {order_id} marcado como excluído",
                "orderId": order_id,
            }

        if self.connector is None:
            raise ConfigError("Bling connector not configured")

        detail = await self.connector.get_order_details(order_id)
        if not detail:
            logger.warning(f"⚠️ Order {order_id} not found in Bling")
            return {"success": False, "message": "Pedido não encontrado na API", "orderId": order_id}

        await self.orders.upsert_many([detail], metadata={
            "webhookSource": True,
            "webhookReceivedAt": _now(),
        })
        await self._record_order_event(order_id, envelope.event)

        skus = [item.get("codigo") for item in detail.get("itens") or [] if item.get("codigo")]
        await self.stock.invalidate_cache(skus)

        logger.info(f"✅ Order {detail.get('numero') or order_id} saved from webhook")
        return {
            "success": True,
            "message": f"Pedido {detail.get('numero') or order_id} processado",
            "orderId": order_id,
        }

    async def _record_order_event(self, order_id: Any, event: str) -> None:
        await self.app_config.record_webhook(WEBHOOK_STATUS, {
            "lastUpdate": _now(),
            "lastOrderId": order_id,
            "lastEvent": event,
        })

    # ============================================
    # Stock events
    # ============================================

    async def _handle_stock_event(self, envelope: WebhookEnvelope, payload: Dict[str, Any]) -> Dict[str, Any]:
        records = parse_stock_payload(payload)
        processed = await self.stock.upsert_records(records, envelope.event)
        await self._record_stock_event(envelope.event, processed)
        logger.info(f"✅ Stock processed: {processed} item(s)")
        return {
            "success": True,
            "message": f"Estoque processado: {processed} item(s)",
            "processed": processed,
        }

    async def _record_stock_event(self, event: str, processed: int) -> None:
        await self.app_config.record_webhook(STOCK_WEBHOOK_STATUS, {
            "lastUpdate": _now(),
            "lastEvent": event,
            "lastProcessed": processed,
        })

    # ============================================
    # Test / health helpers
    # ============================================

    async def simulate_stock_event(self, sku: str, quantity: float = 0, name: str = "") -> Dict[str, Any]:
        """Write a stock snapshot as if Bling had sent estoque.updated"""
        started = time.monotonic()
        record = StockRecord(sku=sku, quantity=quantity, name=name)
        await self.stock.upsert_records([record], TEST_STOCK_EVENT)
        await self._record_stock_event(TEST_STOCK_EVENT, 1)
        snapshot = await self.stock.get_snapshot(sku)
        return {
            "success": True,
            "message": f"Estoque de teste processado: {sku}",
            "data": snapshot.to_document() if snapshot else None,
            "processedIn": _elapsed(started),
        }

    async def clear_test_stock(self) -> Dict[str, Any]:
        started = time.monotonic()
        deleted = await self.stock.clear_stock_updates()
        return {
            "success": True,
            "message": f"Removidos {deleted} documentos de stockUpdates",
            "deleted": deleted,
            "processedIn": _elapsed(started),
        }

    async def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "signatureVerification": bool(self.secret),
            "supportedEvents": SUPPORTED_EVENTS,
            "lastWebhook": await self.app_config.get_status(WEBHOOK_STATUS),
            "lastStockWebhook": await self.app_config.get_status(STOCK_WEBHOOK_STATUS),
        }


def signature_from_headers(headers) -> Optional[str]:
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return None
