"""
Order Repository - Data Access Layer for Orders

Handles all document store access for the salesOrders collection and
returns SaleOrder domain models. Writes are upserts keyed by the Bling
order id, so the same payload applied twice yields one document.

Author: TM3
Date: 2026-02-10
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.core.document_store import DocumentStore, SALES_ORDERS
from app.domain.order import SaleOrder, is_active

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderRepository:
    """
    Repository for SaleOrder data access

    Every read that returns "orders" goes through is_active(); soft-deleted
    documents are only visible through find_by_id(include_deleted=True).
    """

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    async def _load_all(self) -> List[SaleOrder]:
        docs = await self.store.list(SALES_ORDERS)
        return [SaleOrder.model_validate(data) for _, data in docs]

    async def find_by_id(self, order_id: Any, include_deleted: bool = False) -> Optional[SaleOrder]:
        """
        Find order by Bling ID

        Args:
            order_id: Bling order ID
            include_deleted: Also return soft-deleted orders

        Returns:
            SaleOrder or None if not found (or deleted and not requested)
        """
        data = await self.store.get(SALES_ORDERS, str(order_id))
        if not data:
            return None
        order = SaleOrder.model_validate(data)
        if not include_deleted and not is_active(order):
            return None
        return order

    async def find_all(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[SaleOrder], int]:
        """
        Find active orders, newest first

        Args:
            from_date: Orders issued on or after this date
            to_date: Orders issued on or before this date
            limit: Maximum results to return
            offset: Number of results to skip

        Returns:
            Tuple of (list of orders, total count)
        """
        orders = [o for o in await self._load_all() if is_active(o)]

        if from_date or to_date:
            filtered = []
            for order in orders:
                order_date = order.order_date
                if order_date is None:
                    continue
                if from_date and order_date < from_date:
                    continue
                if to_date and order_date > to_date:
                    continue
                filtered.append(order)
            orders = filtered

        orders.sort(key=lambda o: (o.issue_date or "", o.id), reverse=True)
        return orders[offset:offset + limit], len(orders)

    async def find_in_range(self, from_date: date, to_date: date) -> List[SaleOrder]:
        """All active orders issued within [from_date, to_date]"""
        orders, _ = await self.find_all(from_date=from_date, to_date=to_date, limit=10**9)
        return orders

    async def count_active(self) -> int:
        return sum(1 for o in await self._load_all() if is_active(o))

    async def find_existing(self, order_ids: List[Any]) -> Dict[str, SaleOrder]:
        """
        Stored orders among the given ids (soft-deleted ones included)

        Returns:
            Dict of doc id -> SaleOrder for ids already in the store
        """
        wanted = {str(order_id) for order_id in order_ids}
        if not wanted:
            return {}
        docs = await self.store.list(SALES_ORDERS)
        return {
            doc_id: SaleOrder.model_validate(data)
            for doc_id, data in docs
            if doc_id in wanted
        }

    async def last_order_date(self) -> Optional[date]:
        """Issue date of the most recent active order, None when the store is empty"""
        dates = [o.order_date for o in await self._load_all() if is_active(o) and o.order_date]
        return max(dates) if dates else None

    async def upsert_many(
        self,
        payloads: List[Dict[str, Any]],
        metadata: Optional[Dict[str, Any]] = None
    ) -> Tuple[int, int]:
        """
        Upsert full Bling order payloads keyed by their id

        Writes merge into existing documents, so sync metadata such as the
        soft-delete flag survives a re-sync. importedAt is set on first insert.

        Args:
            payloads: Bling order detail dicts (must carry "id")
            metadata: Extra fields merged into every document (e.g. webhookSource)

        Returns:
            Tuple of (created, updated)
        """
        if not payloads:
            return 0, 0

        now = self.clock().isoformat()
        documents = {}
        for payload in payloads:
            order = SaleOrder.model_validate(payload)
            documents[order.doc_id] = {**payload, **(metadata or {}), "lastUpdated": now}

        def _upsert(tx):
            created = updated = 0
            for doc_id, document in documents.items():
                if tx.get(SALES_ORDERS, doc_id) is None:
                    created += 1
                    document = {**document, "importedAt": now}
                else:
                    updated += 1
                tx.set(SALES_ORDERS, doc_id, document, merge=True)
            return created, updated

        created, updated = await self.store.run_transaction(_upsert)
        logger.info(f"✅ {len(documents)} orders saved: {created} created, {updated} updated")
        return created, updated

    async def soft_delete(self, order_id: Any) -> bool:
        """
        Mark an order deleted without removing it

        Returns:
            True if the order existed and was flagged, False if unknown
        """
        doc_id = str(order_id)
        now = self.clock().isoformat()

        def _soft_delete(tx):
            if tx.get(SALES_ORDERS, doc_id) is None:
                return False
            tx.set(SALES_ORDERS, doc_id, {"deleted": True, "deletedAt": now}, merge=True)
            return True

        return await self.store.run_transaction(_soft_delete)

    async def delete_all(self) -> int:
        """Physically remove every order document"""
        deleted = await self.store.delete_collection(SALES_ORDERS)
        logger.warning(f"🗑️ Deleted {deleted} order documents")
        return deleted
