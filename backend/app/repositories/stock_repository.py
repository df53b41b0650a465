"""
Stock Repository - Data access for stock snapshots and production thresholds

Handles:
- stockUpdates: last known remote stock per SKU
- stockThresholds: stockMin/stockMax per SKU

Author: TM3
Date: 2026-02-10
"""
from typing import Dict, Iterable, List, Optional

from app.core.document_store import DocumentStore, STOCK_UPDATES, STOCK_THRESHOLDS
from app.domain.stock import StockRecord, StockSnapshot, StockThreshold


class StockRepository:
    """Repository for stock snapshots and thresholds"""

    def __init__(self, store: DocumentStore):
        self.store = store

    # ============================================
    # Stock snapshots
    # ============================================

    async def get_snapshot(self, sku: str) -> Optional[StockSnapshot]:
        data = await self.store.get(STOCK_UPDATES, sku)
        return StockSnapshot.model_validate({"sku": sku, **data}) if data else None

    async def list_snapshots(self) -> Dict[str, StockSnapshot]:
        docs = await self.store.list(STOCK_UPDATES)
        return {
            doc_id: StockSnapshot.model_validate({"sku": doc_id, **data})
            for doc_id, data in docs
        }

    async def upsert_records(self, records: List[StockRecord], event: str, received_at: str) -> int:
        """
        Write normalized stock records as fresh snapshots

        Returns:
            Number of snapshots written
        """
        documents = {}
        for record in records:
            snapshot = StockSnapshot(
                sku=record.sku,
                name=record.name,
                current_stock=record.quantity,
                warehouses=record.warehouses,
                last_event=event,
                webhook_received_at=received_at,
                updated_at=received_at,
                stale=False,
            )
            documents[record.sku] = snapshot.to_document()

        await self.store.set_many(STOCK_UPDATES, documents, merge=True)
        return len(documents)

    async def save_snapshot(self, snapshot: StockSnapshot) -> None:
        await self.store.set(STOCK_UPDATES, snapshot.sku, snapshot.to_document(), merge=True)

    async def mark_stale(self, skus: Iterable[str]) -> int:
        """Flag existing snapshots as stale; unknown SKUs are left alone"""
        wanted = set(skus)
        if not wanted:
            return 0

        def _mark(tx):
            marked = 0
            for sku in wanted:
                if tx.get(STOCK_UPDATES, sku) is not None:
                    tx.set(STOCK_UPDATES, sku, {"stale": True}, merge=True)
                    marked += 1
            return marked

        return await self.store.run_transaction(_mark)

    async def clear_snapshots(self) -> int:
        return await self.store.delete_collection(STOCK_UPDATES)

    # ============================================
    # Thresholds
    # ============================================

    async def list_thresholds(self) -> Dict[str, StockThreshold]:
        docs = await self.store.list(STOCK_THRESHOLDS)
        return {
            doc_id: StockThreshold.model_validate({"sku": doc_id, **data})
            for doc_id, data in docs
        }

    async def save_threshold(self, threshold: StockThreshold) -> None:
        await self.store.set(STOCK_THRESHOLDS, threshold.sku, threshold.to_document(), merge=True)
