"""
Router tests for sync, progress polling and orders

Author: TM3
Date: 2026-02-10
"""
import asyncio

from app.core.exceptions import UpstreamAuthError


class TestSyncProgressEndpoint:

    def test_no_run_yet_returns_null_with_no_store_headers(self, client):
        response = client.get("/api/sync-progress")

        assert response.status_code == 200
        assert response.json() == {"progress": None}
        assert "no-store" in response.headers["Cache-Control"]
        assert response.headers["Pragma"] == "no-cache"

    def test_progress_after_run_and_run_id_filter(self, client, auth_headers):
        run_id = client.post("/api/v1/sync/smart", headers=auth_headers).json()["run_id"]

        progress = client.get("/api/sync-progress", params={"run_id": run_id}).json()["progress"]
        other = client.get("/api/sync-progress", params={"run_id": "not-this-run"}).json()

        assert progress["phase"] == "completed"
        assert progress["percentage"] == 100
        assert progress["isRunning"] is False
        assert other == {"progress": None}


class TestSyncEndpoints:

    def test_sync_key_required(self, client):
        assert client.post("/api/v1/sync/smart").status_code == 401
        assert client.post("/api/v1/sync/smart", headers={"X-Sync-Key": "wrong"}).status_code == 401

    def test_smart_sync_returns_summary(self, client, auth_headers, bling, order_payload):
        bling.list_orders.return_value = [order_payload(1), order_payload(2)]
        bling.get_order_details.side_effect = lambda order_id: order_payload(order_id, items=[("SKU-A", 1)])

        response = client.post("/api/v1/sync/smart", headers=auth_headers,
                               json={"date_from": "2024-01-01", "date_to": "2024-01-31"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert (body["total"], body["new"], body["created"]) == (2, 2, 2)
        assert body["date_range"] == {"from": "2024-01-01", "to": "2024-01-31"}

    def test_full_sync_without_dates_is_rejected(self, client, auth_headers, bling):
        response = client.post("/api/v1/sync/full", headers=auth_headers, json={"date_from": "2024-01-01"})

        assert response.status_code == 400
        bling.list_orders.assert_not_awaited()

    def test_upstream_failure_maps_to_502(self, client, auth_headers, bling):
        bling.list_orders.side_effect = UpstreamAuthError("token rejected")

        response = client.post("/api/v1/sync/full", headers=auth_headers,
                               json={"date_from": "2024-01-01", "date_to": "2024-01-31"})

        assert response.status_code == 502
        progress = client.get("/api/sync-progress").json()["progress"]
        assert progress["phase"] == "error"

    def test_delete_all_orders(self, client, auth_headers, order_repo, order_payload):
        asyncio.run(order_repo.upsert_many([order_payload(1), order_payload(2)]))

        response = client.delete("/api/v1/sync/orders", headers=auth_headers)

        assert response.json() == {"success": True, "deleted_count": 2}


class TestOrdersEndpoints:

    def test_list_count_and_detail(self, client, order_repo, order_payload):
        asyncio.run(order_repo.upsert_many([
            order_payload(1, issue_date="2024-01-05"),
            order_payload(2, issue_date="2024-01-10"),
        ]))
        asyncio.run(order_repo.soft_delete(2))

        listing = client.get("/api/v1/orders/").json()
        count = client.get("/api/v1/orders/count").json()

        assert [order["id"] for order in listing["data"]] == [1]
        assert count["count"] == 1
        assert client.get("/api/v1/orders/1").status_code == 200
        assert client.get("/api/v1/orders/2").status_code == 404

    def test_date_filters(self, client, order_repo, order_payload):
        asyncio.run(order_repo.upsert_many([
            order_payload(1, issue_date="2024-01-05"),
            order_payload(2, issue_date="2024-02-10"),
        ]))

        body = client.get("/api/v1/orders/", params={"from_date": "2024-02-01"}).json()

        assert body["total"] == 1

    def test_sales_dashboard(self, client, order_repo, order_payload):
        asyncio.run(order_repo.upsert_many([
            order_payload(1, issue_date="2024-01-05", items=[("SKU-A", 2)], total=80.0),
            order_payload(2, issue_date="2024-01-06", total=500.0),
        ]))

        response = client.get("/api/v1/orders/dashboard",
                              params={"date_from": "2024-01-01", "date_to": "2024-01-31"})

        data = response.json()["data"]
        assert response.status_code == 200
        assert (data["total_sales"], data["total_revenue"], data["average_ticket"]) == (1, 80.0, 80.0)
        assert data["top_products"] == [{"name": "Produto SKU-A", "total": 2.0, "revenue": 20.0}]
        assert data["date_from"] == "2024-01-01"

    def test_sales_dashboard_inverted_range_is_400(self, client):
        response = client.get("/api/v1/orders/dashboard",
                              params={"date_from": "2024-02-01", "date_to": "2024-01-01"})

        assert response.status_code == 400
        assert body["data"][0]["id"] == 2


class TestHealth:

    def test_health_in_memory(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["database"]["status"] == "in-memory"
