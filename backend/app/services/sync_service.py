"""
Order Sync Service - Reconciles Bling sales orders with the local store

Phases: listing → filtering (smart only) → fetching_details → saving → completed,
or error. Progress is published through SyncProgressTracker for polling clients.

Smart mode lists orders since the latest local order and only fetches
details for orders that are new or look changed. Full mode re-fetches and
upserts every order in an explicit date window.

Author: TM3
Date: 2026-02-10
"""
import logging
import time
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from app.connectors.bling_connector import BlingConnector
from app.core.config import settings
from app.core.exceptions import NotFoundError, UpstreamError
from app.domain.order import SaleOrder
from app.domain.sync import SyncMode, SyncPhase, SyncSummary
from app.repositories.order_repository import OrderRepository
from app.services.fetch_policy import SequentialFetchPolicy
from app.services.sync_progress import SyncProgressTracker

logger = logging.getLogger(__name__)


def needs_refresh(stored: SaleOrder, listed: SaleOrder) -> bool:
    """
    Whether a stored order should be re-fetched

    True when it was never enriched with line items, or the listing summary
    disagrees with the stored copy on status or total.
    """
    if not stored.has_details:
        return True
    stored_status = stored.status.id if stored.status else None
    listed_status = listed.status.id if listed.status else None
    if listed_status is not None and listed_status != stored_status:
        return True
    if listed.total is not None and listed.total != stored.total:
        return True
    return False


class OrderSyncService:
    """
    Service for synchronizing sales orders from Bling

    Only one run may be active at a time; a second request raises
    SyncAlreadyRunningError (via the tracker).
    """

    def __init__(
        self,
        connector: BlingConnector,
        orders: OrderRepository,
        progress: SyncProgressTracker,
        fetch_policy=None,
        today: Callable[[], date] = date.today,
        lookback_days: Optional[int] = None
    ):
        self.connector = connector
        self.orders = orders
        self.progress = progress
        self.fetch_policy = fetch_policy or SequentialFetchPolicy()
        self.today = today
        self.lookback_days = lookback_days if lookback_days is not None else settings.SYNC_DEFAULT_LOOKBACK_DAYS

    # =========================================================================
    # Public API
    # =========================================================================

    async def smart_sync(self, date_from: Optional[date] = None, date_to: Optional[date] = None) -> SyncSummary:
        """
        Incremental sync

        Args:
            date_from: Start date (default: latest local order date, or lookback window)
            date_to: End date (default: today)

        Returns:
            SyncSummary with classification and store mutation counts
        """
        run_id = await self.progress.start(SyncMode.SMART)
        started = time.monotonic()
        try:
            if date_from is None:
                last_date = await self.orders.last_order_date()
                date_from = last_date or self.today() - timedelta(days=self.lookback_days)
            date_to = date_to or self.today()
            summary = SyncSummary(run_id=run_id, mode=SyncMode.SMART.value,
                                  date_range={"from": date_from.isoformat(), "to": date_to.isoformat()})

            listed = await self._list(date_from, date_to, summary)

            await self.progress.update(SyncPhase.FILTERING, "Comparando com pedidos já importados...")
            stored = await self.orders.find_existing([o["id"] for o in listed])
            to_fetch = []
            for summary_payload in listed:
                stored_order = stored.get(str(summary_payload["id"]))
                if stored_order is None:
                    summary.new += 1
                    to_fetch.append(summary_payload)
                    continue
                summary.existing += 1
                if self._looks_changed(stored_order, summary_payload):
                    summary.changed += 1
                    to_fetch.append(summary_payload)
                else:
                    summary.skipped += 1

            logger.info(
                f"Smart sync {run_id}: {summary.new} new, {summary.changed} changed, "
                f"{summary.skipped} unchanged of {summary.total}"
            )
            return await self._fetch_and_save(to_fetch, summary, started)

        except Exception as e:
            await self.progress.fail(str(e))
            raise

    async def full_sync(self, date_from: Optional[date], date_to: Optional[date]) -> SyncSummary:
        """
        Exhaustive re-verification over an explicit window

        Every listed order counts as "new" and is re-fetched and upserted.

        Raises:
            ValueError: date range missing or inverted
        """
        if date_from is None or date_to is None:
            raise ValueError("Full sync requires both date_from and date_to")
        if date_from > date_to:
            raise ValueError("date_from must be on or before date_to")

        run_id = await self.progress.start(SyncMode.FULL)
        started = time.monotonic()
        try:
            summary = SyncSummary(run_id=run_id, mode=SyncMode.FULL.value,
                                  date_range={"from": date_from.isoformat(), "to": date_to.isoformat()})
            listed = await self._list(date_from, date_to, summary)
            summary.new = len(listed)
            return await self._fetch_and_save(listed, summary, started)

        except Exception as e:
            await self.progress.fail(str(e))
            raise

    async def delete_all_orders(self) -> Dict[str, int]:
        """Remove every stored order (admin reset)"""
        deleted = await self.orders.delete_all()
        return {"deleted_count": deleted}

    # =========================================================================
    # Phases
    # =========================================================================

    @staticmethod
    def _looks_changed(stored: SaleOrder, summary_payload: Dict[str, Any]) -> bool:
        try:
            listed = SaleOrder.model_validate(summary_payload)
        except ValidationError as e:
            # Unreadable summary: let the detail fetch decide
            logger.warning(f"⚠️ Order {summary_payload.get('id')} summary failed validation, refetching: {e}")
            return True
        return needs_refresh(stored, listed)

    async def _list(self,date_from: date, date_to: date, summary: SyncSummary) -> List[Dict[str, Any]]:
        await self.progress.update(SyncPhase.LISTING, f"Buscando pedidos de {date_from} a {date_to}...")
        listed = await self.connector.list_orders(date_from, date_to)
        summary.total = len(listed)
        await self.progress.update(SyncPhase.LISTING, f"{len(listed)} pedidos encontrados", total=len(listed))
        return listed

    async def _fetch_and_save(self, to_fetch: List[Dict[str, Any]], summary: SyncSummary,
                              started: float) -> SyncSummary:
        total = len(to_fetch)
        fetched_count = 0

        if total:
            await self.progress.update(SyncPhase.FETCHING_DETAILS,
                                       f"Buscando detalhes de {total} pedidos...", current=0, total=total)

        async def fetch_one(order_summary: Dict[str, Any]) -> Optional[Dict[str, Any]]:
            nonlocal fetched_count
            order_id = order_summary["id"]
            try:
                detail = await self.connector.get_order_details(order_id)
                if detail is None:
                    raise NotFoundError(f"Order {order_id} not found in Bling")
                SaleOrder.model_validate(detail)
                return detail
            except (UpstreamError, NotFoundError, httpx.HTTPError, ValidationError) as e:
                logger.warning(f"⚠️ Skipping order {order_id}: {e}")
                summary.failed += 1
                summary.errors.append(f"Order {order_id}: {e}")
                return None
            finally:
                fetched_count += 1
                await self.progress.update(
                    SyncPhase.FETCHING_DETAILS,
                    f"Pedido {fetched_count} de {total}",
                    current=fetched_count, total=total,
                )

        results = await self.fetch_policy.run(to_fetch, fetch_one)
        details = [detail for detail in results if detail]

        await self.progress.update(SyncPhase.SAVING, f"Salvando {len(details)} pedidos...")
        summary.created, summary.updated = await self.orders.upsert_many(details)

        summary.duration_seconds = round(time.monotonic() - started, 2)
        await self.progress.complete(
            f"Concluído: {summary.created} novos, {summary.updated} atualizados, {summary.failed} falhas"
        )
        return summary
