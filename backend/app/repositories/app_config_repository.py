"""
App Config Repository - singleton documents in the appConfig collection

- syncProgress: progress snapshot read by the polling endpoint
- webhookStatus / stockWebhookStatus: observability counters

Author: TM3
Date: 2026-02-10
"""
from typing import Any, Dict, Optional

from app.core.document_store import DocumentStore, APP_CONFIG

SYNC_PROGRESS = "syncProgress"
WEBHOOK_STATUS = "webhookStatus"
STOCK_WEBHOOK_STATUS = "stockWebhookStatus"


class AppConfigRepository:

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get_progress(self) -> Optional[Dict[str, Any]]:
        return await self.store.get(APP_CONFIG, SYNC_PROGRESS)

    async def save_progress(self, progress: Dict[str, Any]) -> None:
        await self.store.set(APP_CONFIG, SYNC_PROGRESS, progress)

    async def get_status(self, doc_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get(APP_CONFIG, doc_id)

    async def record_webhook(self, doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Atomically bump totalReceived and overwrite the last-event fields

        Args:
            doc_id: WEBHOOK_STATUS or STOCK_WEBHOOK_STATUS
            fields: lastUpdate, lastEvent, lastOrderId/lastProcessed

        Returns:
            The new status document
        """
        def _increment(tx):
            current = tx.get(APP_CONFIG, doc_id) or {}
            status = {**fields, "totalReceived": int(current.get("totalReceived", 0)) + 1}
            tx.set(APP_CONFIG, doc_id, status)
            return status

        return await self.store.run_transaction(_increment)
