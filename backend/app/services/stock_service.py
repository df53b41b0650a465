"""
Stock Service - Business logic for the stock snapshot

Keeps the last known Bling stock per SKU (stockUpdates) and serves a cached
aggregate view for the production screens.

Features:
- Upsert normalized stock records from webhooks
- On-demand refresh of one SKU from Bling (product lookup → stock balance)
- Cached aggregate view with TTL, invalidated on every write
- Stale marking when orders for a SKU arrive after its last stock reading

Author: TM3
Date: 2026-02-10
"""
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from app.connectors.bling_connector import BlingConnector
from app.core.config import settings
from app.core.exceptions import ConfigError, NotFoundError
from app.domain.stock import StockRecord, StockSnapshot
from app.repositories.stock_repository import StockRepository

logger = logging.getLogger(__name__)

MANUAL_REFRESH_EVENT = "manual.refresh"


def _to_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class StockService:
    """Service for stock snapshots and the cached stock view"""

    def __init__(
        self,
        repository: StockRepository,
        connector: Optional[BlingConnector] = None,
        cache_ttl_seconds: Optional[int] = None,
        monotonic: Callable[[], float] = time.monotonic
    ):
        self.repository = repository
        self.connector = connector
        self.cache_ttl_seconds = cache_ttl_seconds if cache_ttl_seconds is not None else settings.STOCK_CACHE_TTL_SECONDS
        self._monotonic = monotonic
        self._view_cache: Optional[Dict[str, StockSnapshot]] = None
        self._view_cached_at = 0.0

    async def upsert_records(self, records: List[StockRecord], event: str) -> int:
        """
        Write stock records as fresh snapshots and drop the cached view

        Returns:
            Number of SKUs written
        """
        if not records:
            return 0
        received_at = datetime.now(timezone.utc).isoformat()
        written = await self.repository.upsert_records(records, event, received_at)
        self._view_cache = None
        logger.info(f"📦 {written} stock snapshots updated ({event})")
        return written

    async def get_snapshot(self, sku: str) -> Optional[StockSnapshot]:
        return await self.repository.get_snapshot(sku)

    async def get_stock_view(self) -> Dict[str, StockSnapshot]:
        """
        All snapshots by SKU, served from cache while younger than the TTL
        """
        now = self._monotonic()
        if self._view_cache is not None and now - self._view_cached_at < self.cache_ttl_seconds:
            return self._view_cache

        self._view_cache = await self.repository.list_snapshots()
        self._view_cached_at = now
        return self._view_cache

    async def invalidate_cache(self, skus: Optional[Iterable[str]] = None) -> int:
        """
        Drop the cached view; optionally mark the given SKUs stale

        Returns:
            Number of snapshots marked stale
        """
        self._view_cache = None
        if not skus:
            return 0
        marked = await self.repository.mark_stale(skus)
        if marked:
            logger.debug(f"Marked {marked} stock snapshots stale")
        return marked

    async def clear_stock_updates(self) -> int:
        deleted = await self.repository.clear_snapshots()
        self._view_cache = None
        logger.warning(f"🗑️ Cleared {deleted} stock snapshots")
        return deleted

    async def update_single_sku_stock(self, sku: str) -> StockSnapshot:
        """
        Refresh one SKU from Bling

        Args:
            sku: Product code in Bling

        Returns:
            The updated snapshot

        Raises:
            ConfigError: no Bling connector configured
            NotFoundError: SKU unknown to Bling
        """
        if self.connector is None:
            raise ConfigError("Bling connector not configured")

        product = await self.connector.find_product_by_sku(sku)
        if not product:
            raise NotFoundError(f"SKU {sku} not found in Bling")

        balance = await self.connector.get_stock_balance(product["id"]) or {}
        record = StockRecord(
            sku=sku,
            quantity=_to_float(balance.get("saldoFisicoTotal")),
            name=product.get("nome") or "",
            warehouses=balance.get("depositos") or [],
        )
        await self.upsert_records([record], MANUAL_REFRESH_EVENT)
        return await self.repository.get_snapshot(sku)
