"""
HTTP-level tests for the inventory API.

Each test drives a workflow through the JSON endpoints and checks the
status code, the error code on failures and the resulting stock.
"""

from kelola.extensions import db
from kelola.models import ProductVariant
from kelola.services import ledger_service


def _stock(variant_id):
    return db.session.get(ProductVariant, variant_id).stock


class TestHealth:

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["status"] == "healthy"
        assert set(body["checks"]) == {"database", "ledger"}


class TestSalesApi:

    def test_create_sale(self, client, staff_headers, make_variant):
        variant = make_variant(stock=20)

        resp = client.post(
            "/api/sales",
            json={"items": [{"variant_id": variant.id, "quantity": 6, "price_cents": 100}]},
            headers=staff_headers,
        )

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["total_amount_cents"] == 600
        assert sale["status"] == "COMPLETED"
        assert sale["items"][0]["quantity"] == 6
        assert _stock(variant.id) == 14

    def test_insufficient_stock_is_409(self, client, staff_headers, make_variant):
        variant = make_variant(stock=2)

        resp = client.post(
            "/api/sales",
            json={"items": [{"variant_id": variant.id, "quantity": 3}]},
            headers=staff_headers,
        )

        assert resp.status_code == 409
        body = resp.get_json()
        assert body["error"] == "INSUFFICIENT_STOCK"
        assert body["details"]["available"] == 2
        assert _stock(variant.id) == 2

    def test_invalid_payload_is_400(self, client, staff_headers, db_session):
        resp = client.post("/api/sales", json={"items": []}, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "VALIDATION_ERROR"

    def test_unknown_variant_is_404(self, client, staff_headers, db_session):
        resp = client.post(
            "/api/sales",
            json={"items": [{"variant_id": 12345, "quantity": 1}]},
            headers=staff_headers,
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "VARIANT_NOT_FOUND"

    def test_list_and_get(self, client, staff_headers, make_variant):
        variant = make_variant(stock=5)
        created = client.post(
            "/api/sales",
            json={"items": [{"variant_id": variant.id, "quantity": 1}]},
            headers=staff_headers,
        ).get_json()["sale"]

        listing = client.get("/api/sales", headers=staff_headers).get_json()
        assert listing["pagination"]["total"] == 1
        assert "items" not in listing["sales"][0]

        resp = client.get(f"/api/sales/{created['id']}", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["sale"]["invoice_number"] == created["invoice_number"]

        assert client.get("/api/sales/999", headers=staff_headers).status_code == 404


class TestPurchasesApi:

    def _create(self, client, headers, variant_id, quantity=10):
        resp = client.post(
            "/api/purchases",
            json={"items": [{"variant_id": variant_id, "quantity": quantity}], "notes": "batch 7"},
            headers=headers,
        )
        assert resp.status_code == 201
        return resp.get_json()["order"]

    def test_complete_twice(self, client, owner_headers, make_variant):
        variant = make_variant(stock=4)
        order = self._create(client, owner_headers, variant.id)
        assert order["status"] == "PENDING"
        assert _stock(variant.id) == 4

        first = client.patch(f"/api/purchases/{order['id']}/complete", headers=owner_headers)
        second = client.patch(f"/api/purchases/{order['id']}/complete", headers=owner_headers)

        assert first.status_code == 200
        assert first.get_json()["order"]["status"] == "COMPLETED"
        assert second.status_code == 409
        assert second.get_json()["error"] == "ALREADY_COMPLETED"
        assert _stock(variant.id) == 14

    def test_edit_and_delete_pending(self, client, owner_headers, make_variant):
        variant = make_variant(stock=0)
        order = self._create(client, owner_headers, variant.id)

        resp = client.put(
            f"/api/purchases/{order['id']}",
            json={"items": [{"variant_id": variant.id, "quantity": 2, "unit_price_cents": 500}]},
            headers=owner_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["order"]["total_amount_cents"] == 1000

        assert client.delete(f"/api/purchases/{order['id']}", headers=owner_headers).status_code == 200
        assert client.get(f"/api/purchases/{order['id']}", headers=owner_headers).status_code == 404

    def test_list_with_stats(self, client, owner_headers, make_variant):
        variant = make_variant(stock=0)
        self._create(client, owner_headers, variant.id, quantity=3)

        body = client.get("/api/purchases?status=pending", headers=owner_headers).get_json()

        assert body["pagination"]["total"] == 1
        assert body["stats"]["pending_count"] == 1
        assert client.get("/api/purchases?status=bogus", headers=owner_headers).status_code == 400


class TestInventoryApi:

    def test_adjust_stock(self, client, owner_headers, make_variant):
        variant = make_variant(stock=20)
        payload = {"variant_id": variant.id, "new_stock": 15, "reason": "barang rusak"}

        resp = client.post("/api/inventory/adjust-stock", json=payload, headers=owner_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["previous_stock"] == 20
        assert body["new_stock"] == 15
        assert body["difference"] == -5

        again = client.post("/api/inventory/adjust-stock", json=payload, headers=owner_headers)
        assert again.status_code == 409
        assert again.get_json()["error"] == "NO_CHANGE_REQUESTED"

    def test_adjust_requires_reason(self, client, owner_headers, make_variant):
        variant = make_variant(stock=20)
        resp = client.post(
            "/api/inventory/adjust-stock",
            json={"variant_id": variant.id, "new_stock": 15, "reason": ""},
            headers=owner_headers,
        )
        assert resp.status_code == 400

    def test_overview_alerts_only(self, client, staff_headers, make_variant):
        make_variant(stock=0, min_stock=10)
        make_variant(stock=35, min_stock=10)

        body = client.get("/api/inventory?alerts_only=true", headers=staff_headers).get_json()

        assert [row["stock_status"] for row in body["inventory"]] == ["CRITICAL"]
        assert body["summary"]["total_variants"] == 2

    def test_movement_history(self, client, staff_headers, make_variant):
        variant = make_variant(stock=10)
        client.post(
            "/api/sales",
            json={"items": [{"variant_id": variant.id, "quantity": 2}]},
            headers=staff_headers,
        )

        body = client.get(
            f"/api/inventory/movements?variant_id={variant.id}&type=out", headers=staff_headers
        ).get_json()

        assert body["pagination"]["total"] == 1
        assert body["movements"][0]["quantity"] == 2

    def test_days_remaining(self, client, staff_headers, make_variant):
        variant = make_variant(stock=5)

        body = client.get(
            f"/api/inventory/analytics?variant_id={variant.id}", headers=staff_headers
        ).get_json()

        assert body["days_remaining"] is None
        assert body["status"] == "unknown"

    def test_analytics_dashboard(self, client, staff_headers, make_variant):
        variant = make_variant(stock=40)
        ledger_service.apply_stock_delta(variant.id, -30, None, "SALE")
        make_variant(stock=0)

        body = client.get("/api/inventory/analytics", headers=staff_headers).get_json()

        assert body["total_variants"] == 2
        assert body["critical_stock"] == 1
        assert body["warning_stock"] == 0
        assert body["total"] == 1
        assert body["variants"][0]["days_remaining"] == 10
        recommendation = body["production_recommendations"][0]
        assert recommendation["variant"]["id"] == variant.id
        assert recommendation["recommended_quantity"] == 4
        assert recommendation["urgency"] == 2

    def test_analytics_low_stock_only(self, client, staff_headers, make_variant):
        variant = make_variant(stock=40)
        ledger_service.apply_stock_delta(variant.id, -30, None, "SALE")

        body = client.get(
            "/api/inventory/analytics?type=low-stock&threshold=9", headers=staff_headers
        ).get_json()

        assert body == {"variants": [], "total": 0}

    def test_reconcile_clean(self, client, owner_headers, make_variant):
        make_variant(stock=10)
        body = client.get("/api/inventory/reconcile", headers=owner_headers).get_json()
        assert body == {"drifted": [], "count": 0}


class TestCatalogApi:

    def test_create_product_with_variants(self, client, owner_headers, db_session):
        resp = client.post(
            "/api/products",
            json={
                "sku": "KMJ-9001",
                "name": "Kemeja Linen",
                "cost_price_cents": 90000,
                "selling_price_cents": 150000,
                "variants": [
                    {"size": "M", "color": "White", "stock": 5, "barcode": "8991001"},
                    {"size": "L", "color": "White", "stock": 2},
                ],
            },
            headers=owner_headers,
        )

        assert resp.status_code == 201
        variants = resp.get_json()["product"]["variants"]
        assert sorted(v["stock"] for v in variants) == [2, 5]
        assert all(v["initial_stock"] == v["stock"] for v in variants)

    def test_update_variant_min_stock(self, client, owner_headers, staff_headers, make_variant):
        variant = make_variant(stock=4, min_stock=5)
        path = f"/api/products/{variant.product_id}/variants/{variant.id}"

        resp = client.put(path, json={"min_stock": 2}, headers=owner_headers)
        assert resp.status_code == 200
        assert resp.get_json()["variant"]["min_stock"] == 2
        assert resp.get_json()["variant"]["stock"] == 4

        assert client.put(path, json={"min_stock": -1}, headers=owner_headers).status_code == 400
        assert client.put(path, json={}, headers=owner_headers).status_code == 400
        assert client.put(path, json={"min_stock": 9}, headers=staff_headers).status_code == 403
        missing = client.put(
            f"/api/products/{variant.product_id}/variants/999", json={"min_stock": 1}, headers=owner_headers
        )
        assert missing.status_code == 404

    def test_barcode_scan(self, client, staff_headers, make_variant):
        variant = make_variant(stock=3, barcode="8990001112223")

        hit = client.get("/api/barcode/scan?barcode=8990001112223", headers=staff_headers)
        miss = client.get("/api/barcode/scan?barcode=000", headers=staff_headers)
        blank = client.get("/api/barcode/scan", headers=staff_headers)

        assert hit.status_code == 200
        assert hit.get_json()["variant"]["id"] == variant.id
        assert miss.status_code == 404
        assert blank.status_code == 400


class TestReorderApi:

    def test_suggest_then_order(self, client, owner_headers, make_variant):
        variant = make_variant(stock=1, min_stock=5, cost_price_cents=500)

        suggestions = client.get("/api/reorder-suggestions", headers=owner_headers).get_json()
        row = suggestions["suggestions"][0]
        assert row["variant_id"] == variant.id
        assert row["priority"] == "HIGH"

        resp = client.post(
            "/api/reorder-suggestions",
            json={"selected": [{"variant_id": variant.id, "quantity": row["suggested_quantity"]}]},
            headers=owner_headers,
        )

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["order"]["status"] == "PENDING"
        assert body["summary"]["total_cost_cents"] == row["suggested_quantity"] * 500
        assert _stock(variant.id) == 1

    def test_empty_selection_is_400(self, client, owner_headers, db_session):
        resp = client.post("/api/reorder-suggestions", json={"selected": []}, headers=owner_headers)
        assert resp.status_code == 400


class TestPartiesAndActivity:

    def test_create_and_list_customers(self, client, staff_headers, db_session):
        resp = client.post(
            "/api/customers", json={"name": "Toko Melati", "phone": "0811"}, headers=staff_headers
        )
        assert resp.status_code == 201

        body = client.get("/api/suppliers?search=melati", headers=staff_headers).get_json()
        assert [p["name"] for p in body["parties"]] == ["Toko Melati"]

    def test_customer_detail_update_delete(self, client, staff_headers, make_variant):
        variant = make_variant(stock=5, selling_price_cents=1000)
        sale = client.post(
            "/api/sales",
            json={
                "items": [{"variant_id": variant.id, "quantity": 2}],
                "customer_name": "Bu Sri",
                "customer_phone": "0877",
            },
            headers=staff_headers,
        ).get_json()["sale"]
        customer_id = sale["supplier_id"]

        detail = client.get(f"/api/customers/{customer_id}", headers=staff_headers).get_json()
        assert detail["party"]["name"] == "Bu Sri"
        assert detail["stats"]["total_spent_cents"] == 2000
        assert detail["stats"]["total_transactions"] == 1

        resp = client.put(
            f"/api/customers/{customer_id}",
            json={"name": "Ibu Sri", "phone": "0877"},
            headers=staff_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["party"]["name"] == "Ibu Sri"
        assert client.put(f"/api/customers/{customer_id}", json={}, headers=staff_headers).status_code == 400

        assert client.delete(f"/api/customers/{customer_id}", headers=staff_headers).status_code == 200
        gone = client.get(f"/api/customers/{customer_id}", headers=staff_headers)
        assert gone.status_code == 404
        assert gone.get_json()["error"] == "CUSTOMER_NOT_FOUND"
        assert client.get(f"/api/sales/{sale['id']}", headers=staff_headers).get_json()["sale"]["supplier_id"] == customer_id

    def test_supplier_detail_update_delete(self, client, owner_headers, db_session):
        created = client.post(
            "/api/suppliers", json={"name": "CV Sumber Kain", "phone": "0221"}, headers=owner_headers
        ).get_json()["party"]

        assert client.get(f"/api/suppliers/{created['id']}", headers=owner_headers).status_code == 200
        assert "stats" not in client.get(f"/api/suppliers/{created['id']}", headers=owner_headers).get_json()

        resp = client.put(
            f"/api/suppliers/{created['id']}",
            json={"name": "CV Sumber Kain Jaya", "phone": "0221", "address": "Bandung"},
            headers=owner_headers,
        )
        assert resp.get_json()["party"]["address"] == "Bandung"

        assert client.delete(f"/api/suppliers/{created['id']}", headers=owner_headers).status_code == 200
        assert client.delete(f"/api/suppliers/{created['id']}", headers=owner_headers).status_code == 404
        listing = client.get("/api/suppliers", headers=owner_headers).get_json()
        assert listing["parties"] == []
        assert client.get("/api/suppliers/999", headers=owner_headers).status_code == 404

    def test_activity_log_records_sale(self, client, owner_headers, staff_headers, make_variant):
        variant = make_variant(stock=5)
        client.post(
            "/api/sales",
            json={"items": [{"variant_id": variant.id, "quantity": 1}]},
            headers=staff_headers,
        )

        body = client.get(
            "/api/activity-logs?resource=sales&stats=true", headers=owner_headers
        ).get_json()

        assert body["total"] == 1
        assert body["logs"][0]["action"] == "CREATE"
        assert "stats" in body
