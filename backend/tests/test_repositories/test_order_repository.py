"""
Unit tests for OrderRepository

Runs against the in-memory document store.

Author: TM3
Date: 2026-02-10
"""
from datetime import date

import pytest

from app.core.document_store import SALES_ORDERS


class TestOrderRepositoryUpsert:
    """Upserts are keyed by Bling id and report created vs updated"""

    @pytest.mark.asyncio
    async def test_upsert_same_payload_twice_yields_one_identical_document(self, order_repo, store, order_payload):
        # Arrange
        payload = order_payload(1, items=[("SKU-A", 2)])

        # Act
        first = await order_repo.upsert_many([payload])
        doc_after_first = await store.get(SALES_ORDERS, "1")
        second = await order_repo.upsert_many([payload])
        doc_after_second = await store.get(SALES_ORDERS, "1")

        # Assert
        assert first == (1, 0)
        assert second == (0, 1)
        assert len(await store.list(SALES_ORDERS)) == 1
        assert doc_after_first == doc_after_second

    @pytest.mark.asyncio
    async def test_upsert_sets_imported_at_and_metadata(self, order_repo, store, order_payload):
        await order_repo.upsert_many([order_payload(7)], metadata={"webhookSource": True})

        doc = await store.get(SALES_ORDERS, "7")
        assert doc["webhookSource"] is True
        assert doc["importedAt"] == doc["lastUpdated"]

    @pytest.mark.asyncio
    async def test_upsert_does_not_undelete(self, order_repo, store, order_payload):
        await order_repo.upsert_many([order_payload(1, items=[("SKU-A", 1)])])
        await order_repo.soft_delete(1)

        await order_repo.upsert_many([order_payload(1, items=[("SKU-A", 1)])])

        assert (await store.get(SALES_ORDERS, "1"))["deleted"] is True

    @pytest.mark.asyncio
    async def test_upsert_empty_list(self, order_repo):
        assert await order_repo.upsert_many([]) == (0, 0)


class TestOrderRepositoryReads:
    """Soft-deleted orders are excluded from every read path"""

    @pytest.mark.asyncio
    async def test_soft_delete_hides_order(self, order_repo, order_payload):
        # Arrange
        await order_repo.upsert_many([order_payload(1), order_payload(2)])

        # Act
        deleted = await order_repo.soft_delete(1)

        # Assert
        assert deleted is True
        assert await order_repo.find_by_id(1) is None
        assert (await order_repo.find_by_id(1, include_deleted=True)).deleted is True
        orders, total = await order_repo.find_all()
        assert [o.id for o in orders] == [2]
        assert total == 1
        assert await order_repo.count_active() == 1

    @pytest.mark.asyncio
    async def test_soft_delete_unknown_order(self, order_repo, store):
        assert await order_repo.soft_delete(404) is False
        assert await store.get(SALES_ORDERS, "404") is None

    @pytest.mark.asyncio
    async def test_find_all_filters_by_inclusive_date_range(self, order_repo, order_payload):
        await order_repo.upsert_many([
            order_payload(1, issue_date="2024-01-01"),
            order_payload(2, issue_date="2024-01-10"),
            order_payload(3, issue_date="2024-01-31"),
            order_payload(4, issue_date="2024-02-01"),
        ])

        orders, total = await order_repo.find_all(from_date=date(2024, 1, 10), to_date=date(2024, 1, 31))

        assert sorted(o.id for o in orders) == [2, 3]
        assert total == 2

    @pytest.mark.asyncio
    async def test_find_all_newest_first_with_paging(self, order_repo, order_payload):
        await order_repo.upsert_many([
            order_payload(1, issue_date="2024-01-01"),
            order_payload(2, issue_date="2024-01-03"),
            order_payload(3, issue_date="2024-01-02"),
        ])

        orders, total = await order_repo.find_all(limit=2, offset=0)

        assert [o.id for o in orders] == [2, 3]
        assert total == 3

    @pytest.mark.asyncio
    async def test_last_order_date_ignores_deleted(self, order_repo, order_payload):
        await order_repo.upsert_many([
            order_payload(1, issue_date="2024-01-05"),
            order_payload(2, issue_date="2024-01-15"),
        ])
        await order_repo.soft_delete(2)

        assert await order_repo.last_order_date() == date(2024, 1, 5)

    @pytest.mark.asyncio
    async def test_last_order_date_empty_store(self, order_repo):
        assert await order_repo.last_order_date() is None

    @pytest.mark.asyncio
    async def test_find_existing_returns_only_stored_ids(self, order_repo, order_payload):
        await order_repo.upsert_many([order_payload(1), order_payload(2)])

        existing = await order_repo.find_existing([1, 3])

        assert set(existing) == {"1"}

    @pytest.mark.asyncio
    async def test_delete_all(self, order_repo, order_payload):
        await order_repo.upsert_many([order_payload(1), order_payload(2)])

        assert await order_repo.delete_all() == 2
        assert await order_repo.count_active() == 0
