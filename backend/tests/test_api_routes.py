"""
HTTP surface tests: authentication, permission checks and the remote order
flow end to end.
"""

import pytest

from conftest import DEFAULT_PASSWORD, auth_headers, order_line, sale_payload


# =============================================================================
# UNAUTHENTICATED ACCESS — 401
# =============================================================================


class TestUnauthenticatedAccess:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales"),
            ("POST", "/api/returns"),
            ("GET", "/api/remote-orders/pending"),
            ("GET", "/api/remote-orders/lookup?code=123456"),
            ("POST", "/api/remote-orders/1/complete"),
            ("POST", "/api/remote-orders/1/cancel"),
            ("GET", "/api/reports/dashboard"),
            ("GET", "/api/audit-log"),
            ("GET", "/api/cashiers"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/conversations"),
            ("POST", "/api/conversations/s-1/reply"),
            ("POST", "/api/reports/ai-analysis"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401


# =============================================================================
# PLAIN CASHIER DENIED PRIVILEGED OPERATIONS — 403
# =============================================================================


class TestPermissions:
    @pytest.mark.parametrize(
        "method,path,flag",
        [
            ("GET", "/api/sales", "can_access_dashboard"),
            ("GET", "/api/reports/dashboard", "can_access_dashboard"),
            ("GET", "/api/returns", "can_process_returns"),
            ("GET", "/api/remote-orders/pending", "can_verify_remote_orders"),
            ("GET", "/api/audit-log", "can_view_audit_log"),
            ("GET", "/api/cashiers", "can_manage_cashiers"),
            ("POST", "/api/products", "can_manage_products"),
            ("GET", "/api/conversations", "can_access_ai_analysis"),
            ("GET", "/api/conversations/pending-count", "can_access_ai_analysis"),
            ("POST", "/api/reports/ai-analysis", "can_access_ai_analysis"),
        ],
    )
    def test_plain_cashier_denied(self, client, cashier, headers_for, method, path, flag):
        resp = getattr(client, method.lower())(path, headers=headers_for(cashier))
        assert resp.status_code == 403
        assert resp.json["required_permission"] == flag

    def test_admin_allowed(self, client, admin, headers_for):
        headers = headers_for(admin)
        for path in ("/api/sales", "/api/reports/dashboard", "/api/returns", "/api/audit-log", "/api/cashiers"):
            assert client.get(path, headers=headers).status_code == 200, path


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================


class TestAuth:
    def test_login_logout(self, client, cashier):
        resp = client.post("/api/auth/login", json={"username": "cajero", "password": DEFAULT_PASSWORD})
        assert resp.status_code == 200
        token = resp.json["token"]
        assert resp.json["cashier"]["username"] == "cajero"
        assert resp.json["expires_at"].endswith("Z")

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 200
        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_bad_credentials(self, client, cashier):
        resp = client.post("/api/auth/login", json={"username": "cajero", "password": "nope"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        assert client.post("/api/auth/login", json={}).status_code == 400


# =============================================================================
# SALES / RETURNS / PRODUCTS
# =============================================================================


class TestSalesAndCatalog:
    def test_record_sale(self, client, cashier, headers_for, empanada):
        header, lines = sale_payload([order_line(empanada, 2)], tendered=10000)
        resp = client.post("/api/sales", json={"sale": header, "lines": lines}, headers=headers_for(cashier))
        assert resp.status_code == 201
        assert resp.json["sale_id"]

        stock = client.get("/api/products", headers=headers_for(cashier)).json["items"]
        assert stock[0]["available"] == 8

    def test_invalid_sale_is_400_with_code(self, client, cashier, headers_for, empanada):
        header, lines = sale_payload([order_line(empanada, 2)], tendered=100)
        resp = client.post("/api/sales", json={"sale": header, "lines": lines}, headers=headers_for(cashier))
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_SALE"

    def test_public_catalog(self, client, db_session, make_product):
        make_product("Visible", 1000, 3)
        make_product("Oculto", 1000, 3, visible_to_customers=False)
        resp = client.get("/api/products/catalog")
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json["items"]] == ["Visible"]

    def test_product_admin(self, client, admin, headers_for):
        headers = headers_for(admin)
        resp = client.post("/api/products", json={"name": "Buñuelo", "price": 1500, "initial_stock": 40}, headers=headers)
        assert resp.status_code == 201
        pid = resp.json["product"]["id"]

        resp = client.post(f"/api/products/{pid}/visibility", json={"visible_to_customers": False}, headers=headers)
        assert resp.json["product"]["visible_to_customers"] is False
        assert client.post(f"/api/products/{pid}/active", json={}, headers=headers).status_code == 400
        assert client.put("/api/products/999", json={"price": 10}, headers=headers).status_code == 404

        resp = client.post("/api/products", json={"name": "X", "price": 1500, "initial_stock": 1}, headers=headers)
        assert resp.status_code == 400
        assert resp.json["code"] == "VALIDATION_ERROR"

    def test_returns(self, client, admin, headers_for, empanada):
        headers = headers_for(admin)
        resp = client.post("/api/returns", json={"product_id": empanada.id, "quantity": 2}, headers=headers)
        assert resp.status_code == 201
        assert resp.json["return"]["refund_amount"] == 6000

        resp = client.post("/api/returns", json={"product_id": empanada.id, "quantity": 0}, headers=headers)
        assert resp.status_code == 400
        assert len(client.get("/api/returns", headers=headers).json["items"]) == 1


# =============================================================================
# REMOTE ORDERS
# =============================================================================


class TestRemoteOrders:
    def _create(self, client, product, quantity=2, customer=None):
        line = order_line(product, quantity)
        return client.post("/api/remote-orders", json={
            "details": [line],
            "total": line["subtotal"],
            "customer_info": customer or {"document": "1020304050", "phone": "3001234567"},
        })

    def test_customer_creates_and_edits_order(self, client, db_session, empanada):
        resp = self._create(client, empanada)
        assert resp.status_code == 201
        order = resp.json["order"]
        assert order["status"] == "pendiente"
        assert len(order["reference_code"]) == 6
        assert order["details"][0]["quantity"] == 2

        line = order_line(empanada, 3)
        resp = client.put(f"/api/remote-orders/{order['id']}", json={
            "reference_code": order["reference_code"], "details": [line], "total": 9000,
        })
        assert resp.status_code == 200
        assert resp.json["order"]["total"] == 9000

    def test_edit_requires_matching_reference_code(self, client, db_session, empanada):
        order = self._create(client, empanada).json["order"]
        body = {"details": [order_line(empanada, 1)], "total": 3000}
        url = f"/api/remote-orders/{order['id']}"

        assert client.put(url, json=body).status_code == 400
        wrong = client.put(url, json={**body, "reference_code": "000000"})
        assert wrong.status_code == 409
        assert wrong.json["code"] == "ORDER_NOT_EDITABLE"
        assert client.put(url, json={**body, "reference_code": order["reference_code"]}).status_code == 200

    def test_invalid_order(self, client, db_session, empanada):
        resp = client.post("/api/remote-orders", json={"details": [], "total": 0})
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_ORDER"

    def test_insufficient_stock(self, client, db_session, empanada):
        resp = self._create(client, empanada, quantity=11)
        assert resp.status_code == 409
        assert resp.json["code"] == "INSUFFICIENT_STOCK"

    def test_rejected_order(self, client, db_session, make_product):
        tv = make_product("Televisor", 600000, 1)
        resp = self._create(client, tv, quantity=1)
        assert resp.status_code == 422
        assert resp.json["code"] == "ORDER_REJECTED"

    def test_verify_and_complete(self, client, verifier, headers_for, empanada):
        order = self._create(client, empanada).json["order"]
        headers = headers_for(verifier)

        found = client.get(f"/api/remote-orders/lookup?code={order['reference_code']}", headers=headers)
        assert [o["id"] for o in found.json["items"]] == [order["id"]]
        by_customer = client.get("/api/remote-orders/lookup?customer=3001234567", headers=headers)
        assert len(by_customer.json["items"]) == 1
        assert client.get("/api/remote-orders/lookup", headers=headers).status_code == 400
        assert len(client.get("/api/remote-orders/pending", headers=headers).json["items"]) == 1

        resp = client.post(f"/api/remote-orders/{order['id']}/complete", headers=headers)
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "completada"
        assert resp.json["order"]["sale_id"]

        again = client.post(f"/api/remote-orders/{order['id']}/complete", headers=headers)
        assert again.status_code == 409
        assert again.json["code"] == "ORDER_ALREADY_PROCESSED"

        edit = client.put(f"/api/remote-orders/{order['id']}", json={
            "reference_code": order["reference_code"], "details": [order_line(empanada, 1)], "total": 3000,
        })
        assert edit.status_code == 409
        assert edit.json["code"] == "ORDER_NOT_EDITABLE"

    def test_complete_missing(self, client, verifier, headers_for):
        resp = client.post("/api/remote-orders/999/complete", headers=headers_for(verifier))
        assert resp.status_code == 404

    def test_inconsistent_state_is_500_with_message(self, client, verifier, headers_for, empanada, monkeypatch):
        from bingo_pos.services import remote_order_service

        order = self._create(client, empanada).json["order"]
        monkeypatch.setattr(remote_order_service, "mark_completed", lambda *args: 0)

        resp = client.post(f"/api/remote-orders/{order['id']}/complete", headers=headers_for(verifier))
        assert resp.status_code == 500
        assert resp.json["code"] == "INCONSISTENT_STATE"
        assert resp.json["details"]["reference_code"] == order["reference_code"]
        assert resp.json["details"]["sale_id"]

    def test_cancel(self, client, verifier, headers_for, empanada):
        order = self._create(client, empanada).json["order"]
        headers = headers_for(verifier)

        resp = client.post(f"/api/remote-orders/{order['id']}/cancel", headers=headers)
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "cancelada"
        assert client.post(f"/api/remote-orders/{order['id']}/cancel", headers=headers).status_code == 409


# =============================================================================
# ADMIN / SYSTEM
# =============================================================================


class TestAdminAndSystem:
    def test_cashier_management(self, client, admin, headers_for):
        headers = headers_for(admin)
        resp = client.post("/api/cashiers", json={
            "username": "Nuevo", "full_name": "Nuevo Cajero", "password": "secret1",
        }, headers=headers)
        assert resp.status_code == 201
        cid = resp.json["cashier"]["id"]
        assert resp.json["cashier"]["username"] == "nuevo"
        assert "password_hash" not in resp.json["cashier"]

        resp = client.put(f"/api/cashiers/{cid}", json={"can_process_returns": True}, headers=headers)
        assert resp.json["cashier"]["can_process_returns"] is True
        assert client.put("/api/cashiers/999", json={}, headers=headers).status_code == 404

        dup = client.post("/api/cashiers", json={"username": "nuevo", "full_name": "N", "password": "secret1"}, headers=headers)
        assert dup.status_code == 409

    def test_audit_log_newest_first(self, client, admin, headers_for):
        client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})
        client.post("/api/auth/login", json={"username": "admin", "password": DEFAULT_PASSWORD})

        items = client.get("/api/audit-log", headers=headers_for(admin)).json["items"]
        assert [i["action"] for i in items[:2]] == ["LOGIN", "LOGIN_FAILED"]

    def test_dashboard(self, client, admin, headers_for, empanada):
        headers = headers_for(admin)
        header, lines = sale_payload([order_line(empanada, 1)])
        client.post("/api/sales", json={"sale": header, "lines": lines}, headers=headers)

        data = client.get("/api/reports/dashboard", headers=headers).json
        assert data["total_sales"] == 1
        assert data["total_revenue"] == 3000
        rows = client.get("/api/reports/sales-by-product", headers=headers).json["items"]
        assert rows[0]["units_sold"] == 1

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"

    def test_presence(self, app, client, db_session):
        from bingo_pos.services import presence_service
        presence_service.init_app(app)

        assert client.post("/api/presence", json={"session_id": "s1", "state": "consultando"}).json["total"] == 1
        client.post("/api/presence", json={"session_id": "s2", "state": "pagando"})
        assert client.get("/api/presence").json == {
            "total": 2,
            "states": {"consultando": 1, "pagando": 1, "completado": 0},
        }
        client.post("/api/presence", json={"session_id": "s1", "state": "inactive"})
        assert client.get("/api/presence").json["total"] == 1
        assert client.post("/api/presence", json={"state": "pagando"}).status_code == 400
        assert client.post("/api/presence", data="nope", content_type="text/plain").status_code == 400

    def test_cors_for_allowed_origin(self, client, db_session):
        resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        resp = client.get("/api/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


# =============================================================================
# SUPPORT CHAT / AI ANALYSIS
# =============================================================================


class TestConversationsApi:
    def test_parent_question_then_staff_reply(self, client, admin, headers_for):
        resp = client.post("/api/conversations/ask", json={
            "session_id": "s-1", "question": "¿Cómo pago?", "customer_info": {"document": "1020"},
        })
        assert resp.status_code == 503
        assert resp.json["code"] == "AI_UNAVAILABLE"

        headers = headers_for(admin)
        assert client.get("/api/conversations/pending-count", headers=headers).json == {"count": 0}

        resp = client.post("/api/conversations/s-1/reply", json={"message": "Con el QR"}, headers=headers)
        assert resp.status_code == 201
        assert resp.json["message"]["customer_document"] == "1020"

        sessions = client.get("/api/conversations", headers=headers).json["sessions"]
        assert [m["sender"] for m in sessions["s-1"]] == ["user", "admin"]

    def test_reply_errors(self, client, admin, headers_for):
        headers = headers_for(admin)
        assert client.post("/api/conversations/none/reply", json={"message": "hola"}, headers=headers).status_code == 404
        assert client.post("/api/conversations/ask", json={"session_id": "s"}).status_code == 400

    def test_ai_analysis_not_configured(self, client, admin, headers_for):
        resp = client.post("/api/reports/ai-analysis", json={"question": "¿Cómo vamos?"}, headers=headers_for(admin))
        assert resp.status_code == 503
        assert resp.json["code"] == "AI_UNAVAILABLE"
