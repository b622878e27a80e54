# Overview: Pytest coverage for the HTTP API: status codes, error mapping and admin guard.

from conftest import auth_headers


class TestSystemRoutes:
    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["checks"]["database"]["status"] in {"healthy", "degraded"}


class TestStockRoutes:
    def test_get_all_pools(self, client, raw_stock):
        response = client.get("/api/stock")
        assert response.status_code == 200
        assert response.json["pools"]["rawMaterial"] == {"virgin": 100, "colored": 50}

    def test_unknown_pool_is_400(self, client, db_session):
        response = client.get("/api/stock/warehouse")
        assert response.status_code == 400

    def test_adjust_requires_admin(self, client, db_session):
        response = client.post("/api/stock/rawMaterial/adjust", json={"film_type": "virgin", "delta": 10})
        assert response.status_code == 401

        response = client.post(
            "/api/stock/rawMaterial/adjust",
            json={"film_type": "virgin", "delta": 10},
            headers=auth_headers("wrong-token"),
        )
        assert response.status_code == 403

    def test_adjust_as_admin(self, client, db_session):
        response = client.post(
            "/api/stock/rawMaterial/adjust",
            json={"film_type": "virgin", "delta": 10},
            headers=auth_headers(),
        )
        assert response.status_code == 200
        assert response.json["pool"]["virgin"] == 10

    def test_adjust_negative_is_400(self, client, db_session):
        response = client.post(
            "/api/stock/rawMaterial/adjust",
            json={"film_type": "virgin", "delta": -10},
            headers=auth_headers(),
        )
        assert response.status_code == 400

    def test_set_levels(self, client, raw_stock):
        response = client.put(
            "/api/stock/rawMaterial", json={"virgin": 3, "colored": 4}, headers=auth_headers(),
        )
        assert response.status_code == 200
        history = client.get("/api/stock/rawMaterial/history").json["items"]
        assert history[0]["kind"] == "update"

    def test_move_insufficient_is_409(self, client, raw_stock):
        response = client.post(
            "/api/stock/move",
            json={"from_pool": "rawMaterial", "to_pool": "inProcess", "film_type": "virgin", "amount": 500},
            headers=auth_headers(),
        )
        assert response.status_code == 409
        assert response.json["details"] == {
            "pool": "rawMaterial", "film_type": "virgin", "available": 100, "requested": 500,
        }

    def test_transactions(self, client, raw_stock):
        response = client.get("/api/transactions?film_type=colored")
        assert response.status_code == 200
        assert response.json["count"] == 1
        assert response.json["items"][0]["kind"] == "input"


class TestProcessRoutes:
    def test_start_and_complete(self, client, raw_stock):
        response = client.post("/api/processes", json={
            "film_type": "virgin", "input_quantity": 40, "start_date": "2025-03-01", "expected_days": 3,
        })
        assert response.status_code == 201
        process = response.json["process"]
        assert process["cycle_number"] == "RC-2025-001"
        assert process["expected_completion"] == "2025-03-04T00:00:00Z"

        response = client.post(f"/api/processes/{process['id']}/complete", json={"output_quantity": 38})
        assert response.status_code == 200
        assert response.json["process"]["status"] == "completed"

        response = client.post(f"/api/processes/{process['id']}/complete", json={"output_quantity": 38})
        assert response.status_code == 409

    def test_start_insufficient_is_409(self, client, raw_stock):
        response = client.post("/api/processes", json={"film_type": "virgin", "input_quantity": 400})
        assert response.status_code == 409
        assert response.json["details"]["available"] == 100

    def test_outsourced_without_partner_is_400(self, client, raw_stock):
        response = client.post("/api/processes", json={
            "film_type": "virgin", "input_quantity": 10, "outsourced": True,
        })
        assert response.status_code == 400

    def test_unknown_process_is_404(self, client, db_session):
        assert client.get("/api/processes/999").status_code == 404


class TestProductRoutes:
    def _make_lot(self, client):
        client.post("/api/processes", json={"film_type": "virgin", "input_quantity": 40, "start_date": "2025-03-01"})
        response = client.post("/api/products", json={
            "source": "inProcess", "film_type": "virgin", "input_quantity": 40,
        })
        assert response.status_code == 201
        return response.json["product"]

    def test_create_and_list(self, client, raw_stock):
        product = self._make_lot(client)
        assert product["price"] == 1500

        listing = client.get("/api/products").json
        assert listing["count"] == 1

        detail = client.get(f"/api/products/{product['id']}").json
        assert detail["product"]["quantity"] == 40
        assert detail["history"] == []

    def test_update_requires_admin(self, client, raw_stock):
        product = self._make_lot(client)
        assert client.put(f"/api/products/{product['id']}", json={"price": 1}).status_code == 401

        response = client.put(f"/api/products/{product['id']}", json={"price": 1600}, headers=auth_headers())
        assert response.status_code == 200
        assert response.json["product"]["price"] == 1600

    def test_update_rejects_unknown_fields(self, client, raw_stock):
        product = self._make_lot(client)
        response = client.put(f"/api/products/{product['id']}", json={"is_catalog": True}, headers=auth_headers())
        assert response.status_code == 400

    def test_delete_sold_lot_is_409(self, client, raw_stock, cash_ledger):
        product = self._make_lot(client)
        client.post("/api/sales", json={"quantity": 1, "product_id": product["id"]})

        response = client.delete(f"/api/products/{product['id']}", headers=auth_headers())
        assert response.status_code == 409

    def test_delete_unknown_is_404(self, client, db_session):
        assert client.delete("/api/products/999", headers=auth_headers()).status_code == 404


class TestSalesRoutes:
    def test_record_sale(self, client, finished_stock, cash_ledger):
        response = client.post("/api/sales", json={"quantity": 10, "film_type": "virgin", "date": "2025-03-05"})
        assert response.status_code == 201
        assert response.json["sale"]["total_amount"] == 15000
        assert response.json["notification"]["status"] == "SENT"

        sale_id = response.json["sale"]["id"]
        assert client.get(f"/api/sales/{sale_id}").json["sale"]["cash_inflow_id"] == "cash-1"
        assert client.get("/api/sales").json["count"] == 1

    def test_sale_succeeds_when_ledger_is_down(self, client, finished_stock, cash_ledger):
        cash_ledger.fail(503)
        response = client.post("/api/sales", json={"quantity": 10, "film_type": "virgin"})
        assert response.status_code == 201
        assert response.json["notification"]["status"] == "PENDING"

    def test_oversell_is_409(self, client, finished_stock, cash_ledger):
        response = client.post("/api/sales", json={"quantity": 61, "film_type": "virgin"})
        assert response.status_code == 409
        assert response.json["details"]["available"] == 60

    def test_both_product_and_variant_is_400(self, client, finished_stock):
        response = client.post("/api/sales", json={"quantity": 1, "film_type": "virgin", "product_id": 1})
        assert response.status_code == 400

    def test_unknown_product_is_404(self, client, finished_stock):
        response = client.post("/api/sales", json={"quantity": 1, "product_id": 999})
        assert response.status_code == 404


class TestPriceRoutes:
    def test_get_and_set(self, client, db_session):
        assert client.get("/api/prices").json["prices"]["virgin"]["price"] == 1500

        assert client.put("/api/prices/virgin", json={"price": 1600}).status_code == 401
        response = client.put("/api/prices/virgin", json={"price": 1600}, headers=auth_headers())
        assert response.status_code == 200
        assert response.json["price"] == 1600

        history = client.get("/api/prices/history").json
        assert history["count"] == 1
        assert history["items"][0]["old_value"] == 1500

    def test_negative_price_is_400(self, client, db_session):
        response = client.put("/api/prices/virgin", json={"price": -1}, headers=auth_headers())
        assert response.status_code == 400

    def test_non_ascii_token_is_403(self, client, db_session):
        response = client.put(
            "/api/prices/virgin", json={"price": 1600}, headers={"Authorization": "Bearer café"},
        )
        assert response.status_code == 403


class TestDashboardRoutes:
    def test_summary(self, client, finished_stock, cash_ledger):
        client.post("/api/sales", json={"quantity": 10, "film_type": "virgin"})

        summary = client.get("/api/dashboard").json
        assert summary["total_revenue"] == 15000
        # 50 virgin * 1500 + 30 colored * 1200
        assert summary["estimated_value"] == 50 * 1500 + 30 * 1200
        assert summary["pools"]["finished"] == {"virgin": 50, "colored": 30}
        assert summary["pending_notifications"] == 0


class TestCashInflowRoutes:
    def test_dispatch_requires_admin(self, client, db_session):
        assert client.post("/api/cash-inflows/dispatch").status_code == 401

    def test_dispatch_delivers_pending(self, client, finished_stock, cash_ledger):
        cash_ledger.fail(503)
        client.post("/api/sales", json={"quantity": 1, "film_type": "virgin"})
        cash_ledger.reset()

        response = client.post("/api/cash-inflows/dispatch", json={"limit": 10}, headers=auth_headers())
        assert response.status_code == 200
        assert response.json["sent"] == 1
        assert response.json["pending"] == 0

    def test_list_pending(self, client, finished_stock, cash_ledger):
        cash_ledger.fail(503)
        client.post("/api/sales", json={"quantity": 1, "film_type": "virgin"})

        response = client.get("/api/cash-inflows?status=PENDING", headers=auth_headers())
        assert response.status_code == 200
        assert response.json["count"] == 1


class TestCors:
    def test_allowed_origin_gets_headers(self, client, db_session):
        response = client.get("/api/stock", headers={"Origin": "http://localhost:5173"})
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_unknown_origin_gets_none(self, client, db_session):
        response = client.get("/api/stock", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in response.headers
