"""
HTTP surface tests.

Verifies:
- actor headers are required and re-validated against the directory (401/403)
- lifecycle errors map to their status codes with a JSON body
- the order -> delivery flow end to end over HTTP
"""

import pytest

from conftest import actor_headers


def _place(client, shopkeeper, company, product, quantity=1, **extra):
    return client.post(
        "/api/orders",
        json={
            "company_id": company.id,
            "items": [{"product_id": product.id, "quantity": quantity}],
            "delivery_area": "Dhanmondi",
            **extra,
        },
        headers=actor_headers(shopkeeper),
    )


# =============================================================================
# IDENTITY
# =============================================================================


class TestActorHeaders:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/orders"),
            ("GET", "/api/orders"),
            ("GET", "/api/orders/1"),
            ("PUT", "/api/orders/1/status"),
            ("PUT", "/api/orders/1/cancel"),
            ("POST", "/api/deliveries"),
            ("GET", "/api/deliveries"),
            ("GET", "/api/deliveries/by-area"),
            ("PUT", "/api/deliveries/1/status"),
            ("PUT", "/api/deliveries/1/complete"),
            ("PUT", "/api/deliveries/1/report-issue"),
            ("GET", "/api/workers"),
            ("GET", "/api/workers/available/Dhanmondi"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_role_must_match_directory(self, client, db_session, shopkeeper):
        resp = client.get("/api/orders", headers={"X-Actor-Id": str(shopkeeper.id), "X-Actor-Role": "admin"})
        assert resp.status_code == 401

    def test_inactive_account_is_forbidden(self, client, db_session, make_account):
        suspended = make_account("shopkeeper", status="suspended")
        resp = client.get("/api/orders", headers=actor_headers(suspended))
        assert resp.status_code == 403

    def test_wrong_role_for_route(self, client, db_session, company):
        resp = client.post("/api/orders", json={}, headers=actor_headers(company))
        assert resp.status_code == 403

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"


# =============================================================================
# ORDERS
# =============================================================================


class TestOrderRoutes:

    def test_place_order(self, client, db_session, company, shopkeeper, make_product):
        product = make_product(company, price_cents=10000, stock=5)

        resp = _place(client, shopkeeper, company, product, quantity=2)

        assert resp.status_code == 201
        order = resp.json["order"]
        assert order["order_number"] == "ORD-1001"
        assert order["total_cents"] == 20000
        assert order["tax_cents"] == 1000
        assert order["final_cents"] == 26000
        assert order["timeline"][0]["note"] == "Order placed"

    def test_insufficient_stock_is_409(self, client, db_session, company, shopkeeper, make_product):
        product = make_product(company, stock=1)

        resp = _place(client, shopkeeper, company, product, quantity=3)

        assert resp.status_code == 409
        assert resp.json["code"] == "insufficient_stock"
        assert resp.json["details"]["available_quantity"] == 1

    @pytest.mark.parametrize("payload", [
        {},
        {"company_id": 1, "items": []},
        {"company_id": 1, "items": [{"product_id": 1, "quantity": 0}]},
        {"company_id": 1, "items": [{"product_id": 1, "quantity": 1.5}]},
        {"company_id": "abc", "items": [{"product_id": 1, "quantity": 1}]},
    ])
    def test_malformed_payloads(self, client, db_session, shopkeeper, payload):
        resp = client.post("/api/orders", json=payload, headers=actor_headers(shopkeeper))
        assert resp.status_code == 400
        assert resp.json["code"] == "validation_error"

    def test_unavailable_company_is_400(self, client, db_session, make_account, shopkeeper, make_product):
        closed = make_account("company_rep", status="inactive")
        product = make_product(closed)

        resp = _place(client, shopkeeper, closed, product)

        assert resp.status_code == 400
        assert resp.json["error"] == "Selected company is not available"

    def test_reject_then_illegal_approve(self, client, db_session, company, shopkeeper, make_product):
        product = make_product(company, stock=5)
        order_id = _place(client, shopkeeper, company, product, quantity=2).json["order"]["id"]

        resp = client.put(
            f"/api/orders/{order_id}/status",
            json={"status": "rejected", "reason": "out of budget"},
            headers=actor_headers(company),
        )
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "rejected"
        assert len(resp.json["order"]["timeline"]) == 2

        resp = client.put(
            f"/api/orders/{order_id}/status",
            json={"status": "approved"},
            headers=actor_headers(company),
        )
        assert resp.status_code == 409
        assert resp.json["error"] == "Cannot change order status from rejected to approved"

    def test_cancel_by_shopkeeper(self, client, db_session, company, shopkeeper, make_product):
        product = make_product(company, stock=5)
        order_id = _place(client, shopkeeper, company, product, quantity=2).json["order"]["id"]

        resp = client.put(
            f"/api/orders/{order_id}/cancel",
            json={"cancellation_reason": "ordered twice"},
            headers=actor_headers(shopkeeper),
        )

        assert resp.status_code == 200
        assert resp.json["order"]["cancellation_reason"] == "ordered twice"

    def test_other_shopkeeper_cannot_read_order(self, client, db_session, company, shopkeeper, make_account,
                                                make_product):
        nosy = make_account("shopkeeper")
        order_id = _place(client, shopkeeper, company, make_product(company)).json["order"]["id"]

        resp = client.get(f"/api/orders/{order_id}", headers=actor_headers(nosy))

        assert resp.status_code == 403

    def test_single_order_lists_next_statuses(self, client, db_session, company, shopkeeper, make_product):
        order_id = _place(client, shopkeeper, company, make_product(company)).json["order"]["id"]

        resp = client.get(f"/api/orders/{order_id}", headers=actor_headers(company))

        assert resp.status_code == 200
        assert resp.json["order"]["allowed_transitions"] == ["approved", "cancelled", "rejected"]
        assert resp.json["order"]["is_terminal"] is False

    def test_missing_order_is_404(self, client, db_session, admin):
        resp = client.get("/api/orders/999", headers=actor_headers(admin))
        assert resp.status_code == 404


# =============================================================================
# DELIVERIES
# =============================================================================


class TestDeliveryRoutes:

    def test_full_delivery_flow(self, client, db_session, company, shopkeeper, worker, make_product):
        product = make_product(company, stock=5)
        order_id = _place(client, shopkeeper, company, product, quantity=2).json["order"]["id"]
        client.put(f"/api/orders/{order_id}/status", json={"status": "approved"}, headers=actor_headers(company))

        resp = client.post(
            "/api/deliveries",
            json={
                "order_id": order_id,
                "delivery_worker_id": worker.id,
                "route_summary": {"distance_km": 3.5, "estimated_minutes": 20},
            },
            headers=actor_headers(company),
        )
        assert resp.status_code == 201
        delivery = resp.json["delivery"]
        assert delivery["delivery_number"] == "DEL-0001"
        assert delivery["route_summary"] == {"distance_km": 3.5, "estimated_minutes": 20}

        resp = client.post(
            "/api/deliveries",
            json={"order_id": order_id, "delivery_worker_id": worker.id},
            headers=actor_headers(company),
        )
        assert resp.status_code == 409
        assert resp.json["code"] == "conflict"

        resp = client.put(
            f"/api/deliveries/{delivery['id']}/status",
            json={"status": "picked_up"},
            headers=actor_headers(worker),
        )
        assert resp.status_code == 200

        resp = client.put(
            f"/api/deliveries/{delivery['id']}/complete",
            json={"signature": "sig", "notes": "received by owner"},
            headers=actor_headers(worker),
        )
        assert resp.status_code == 200
        assert resp.json["delivery"]["status"] == "delivered"
        assert resp.json["delivery"]["proof"]["notes"] == "received by owner"

        order = client.get(f"/api/orders/{order_id}", headers=actor_headers(shopkeeper)).json["order"]
        assert order["status"] == "delivered"
        assert [t["status"] for t in order["timeline"]] == ["pending", "approved", "shipped", "delivered"]

    def test_report_issue_cannot_complete(self, client, db_session, company, worker, approved_order):
        delivery_id = client.post(
            "/api/deliveries",
            json={"order_id": approved_order.id, "delivery_worker_id": worker.id},
            headers=actor_headers(company),
        ).json["delivery"]["id"]
        client.put(f"/api/deliveries/{delivery_id}/status", json={"status": "picked_up"},
                   headers=actor_headers(worker))

        resp = client.put(
            f"/api/deliveries/{delivery_id}/report-issue",
            json={"issue_type": "damaged_goods", "description": "water damage", "can_complete": False},
            headers=actor_headers(worker),
        )

        assert resp.status_code == 200
        assert resp.json["delivery"]["status"] == "failed"
        order = client.get(f"/api/orders/{approved_order.id}", headers=actor_headers(company)).json["order"]
        assert order["status"] == "cancelled"
        assert "water damage" in order["cancellation_reason"]

    def test_invalid_issue_type_is_400(self, client, db_session, company, worker, approved_order):
        delivery_id = client.post(
            "/api/deliveries",
            json={"order_id": approved_order.id, "delivery_worker_id": worker.id},
            headers=actor_headers(company),
        ).json["delivery"]["id"]

        resp = client.put(
            f"/api/deliveries/{delivery_id}/report-issue",
            json={"issue_type": "meteor", "description": "?"},
            headers=actor_headers(worker),
        )

        assert resp.status_code == 400

    def test_assignment_needs_ids(self, client, db_session, company):
        resp = client.post("/api/deliveries", json={"order_id": 1}, headers=actor_headers(company))
        assert resp.status_code == 400


class TestWorkerRoutes:

    def test_available_workers(self, client, db_session, company, worker):
        resp = client.get("/api/workers/available/dhanmondi", headers=actor_headers(company))

        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert resp.json["workers"][0]["id"] == worker.id

    def test_exact_flag(self, client, db_session, company, worker):
        resp = client.get("/api/workers/available/Dhan?exact=1", headers=actor_headers(company))

        assert resp.status_code == 200
        assert resp.json["count"] == 0

    def test_workers_cannot_list_workers(self, client, db_session, worker):
        resp = client.get("/api/workers", headers=actor_headers(worker))
        assert resp.status_code == 403
