"""
HTTP surface: authentication, role checks and the JSON error shape.
"""

import pytest

from app.models import InventoryItem, User


class TestAuth:
    def test_register_login_me_logout(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "name": "New Hire",
            "email": "New.Hire@Example.com",
            "phone": "(091) 123-4567",
            "password": "longenough",
        })
        assert resp.status_code == 201
        assert resp.get_json()["user"]["role"] == "Employee"
        assert resp.get_json()["user"]["email"] == "new.hire@example.com"
        assert resp.get_json()["user"]["phone"] == "0911234567"

        resp = client.post("/api/auth/login", json={"email": "new.hire@example.com", "password": "longenough"})
        assert resp.status_code == 200
        headers = {"Authorization": f"Bearer {resp.get_json()['token']}"}

        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["name"] == "New Hire"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_register_duplicate_email(self, client, employee_user):
        resp = client.post("/api/auth/register", json={
            "name": "Copy Cat",
            "email": employee_user.email,
            "phone": "0911000000",
            "password": "longenough",
        })
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "conflict"

    @pytest.mark.parametrize("password", ["short", "x" * 65])
    def test_register_password_length(self, client, db_session, password):
        resp = client.post("/api/auth/register", json={
            "name": "Weak Pass",
            "email": "weak@example.com",
            "phone": "0911000000",
            "password": password,
        })
        assert resp.status_code == 400
        assert db_session.query(User).count() == 0

    def test_wrong_password(self, client, employee_user):
        resp = client.post("/api/auth/login", json={"email": employee_user.email, "password": "wrong-password"})
        assert resp.status_code == 401

    def test_missing_token(self, client, db_session):
        resp = client.get("/api/inventory")
        assert resp.status_code == 401
        assert resp.get_json()["kind"] == "authentication_error"


class TestRoles:
    ITEM = {"name": "Drill", "category": "Home", "price_cents": 4999, "quantity": 20}

    def test_employee_cannot_create_item(self, client, employee_headers):
        resp = client.post("/api/inventory", json=self.ITEM, headers=employee_headers)
        assert resp.status_code == 403

    def test_manager_creates_item(self, client, manager_headers, manager_user):
        resp = client.post("/api/inventory", json=self.ITEM, headers=manager_headers)
        assert resp.status_code == 201
        assert resp.get_json()["item"]["author_id"] == manager_user.id

    def test_manager_cannot_delete(self, client, manager_headers, widget):
        resp = client.delete(f"/api/inventory/{widget.id}", headers=manager_headers)
        assert resp.status_code == 403

    def test_only_admin_records_movements(self, client, manager_headers, admin_headers, widget):
        body = {"item": widget.id, "type": "Purchase", "quantityChange": 5}

        assert client.post("/api/stock-movements", json=body, headers=manager_headers).status_code == 403

        resp = client.post("/api/stock-movements", json=body, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.get_json()["movement"]["quantity_after"] == 20

    def test_employee_cannot_list_movements(self, client, employee_headers):
        assert client.get("/api/stock-movements", headers=employee_headers).status_code == 403


class TestInventoryRoutes:
    def test_create_rejects_unknown_field(self, client, admin_headers):
        resp = client.post("/api/inventory", json={
            "name": "Drill", "category": "Home", "price_cents": 1, "quantity": 1, "version_id": 9,
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation_error"

    def test_update_rejects_quantity(self, client, admin_headers, widget):
        resp = client.put(f"/api/inventory/{widget.id}", json={"quantity": 1000}, headers=admin_headers)
        assert resp.status_code == 400

    def test_low_stock_listing(self, client, employee_headers, widget, gadget):
        resp = client.get("/api/inventory/low-stock", headers=employee_headers)
        assert resp.status_code == 200
        assert resp.get_json()["items"] == []

    def test_get_missing_item(self, client, employee_headers):
        resp = client.get("/api/inventory/999999", headers=employee_headers)
        assert resp.status_code == 404
        assert resp.get_json()["kind"] == "not_found"

    def test_list_paginates(self, client, employee_headers, widget, gadget):
        resp = client.get("/api/inventory?limit=1&page=1", headers=employee_headers)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["total_items"] == 2
        assert body["total_pages"] == 2
        assert len(body["items"]) == 1


class TestOrderRoutes:
    def test_create_and_fetch(self, client, employee_headers, employee_user, widget):
        resp = client.post("/api/orders", json={
            "customer": employee_user.id,
            "items": [{"product": widget.id, "quantity": 3, "price": 1}],
            "totalAmount": 1,
        }, headers=employee_headers)
        assert resp.status_code == 201
        order = resp.get_json()["order"]
        assert order["total_amount_cents"] == 3750
        assert order["items"][0]["unit_price_cents"] == 1250

        resp = client.get(f"/api/orders/{order['id']}", headers=employee_headers)
        assert resp.status_code == 200

    def test_insufficient_stock_is_409(self, client, db_session, employee_headers, employee_user, widget):
        resp = client.post("/api/orders", json={
            "customer": employee_user.id,
            "items": [{"product": widget.id, "quantity": 16}],
        }, headers=employee_headers)
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "insufficient_stock"
        db_session.expire_all()
        assert db_session.get(InventoryItem, widget.id).quantity == 15

    def test_status_update(self, client, employee_headers, employee_user, widget):
        order_id = client.post("/api/orders", json={
            "customer": employee_user.id,
            "items": [{"product": widget.id, "quantity": 1}],
        }, headers=employee_headers).get_json()["order"]["id"]

        resp = client.put("/api/orders/status", json={"orderId": order_id, "status": "Shipped"}, headers=employee_headers)
        assert resp.status_code == 200
        assert resp.get_json()["order"]["status"] == "Shipped"


def test_health(client, db_session):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["checks"]["database"]["status"] == "healthy"


class TestMalformedIds:
    @pytest.mark.parametrize("item", [[1], {"id": 1}, "1", 0])
    def test_movement_item_id(self, client, admin_headers, widget, item):
        resp = client.post("/api/stock-movements", json={
            "item": item, "type": "Purchase", "quantityChange": 1,
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation_error"

    @pytest.mark.parametrize("customer", [{"id": 1}, [1], "1", -1])
    def test_order_customer_id(self, client, employee_headers, widget, customer):
        resp = client.post("/api/orders", json={
            "customer": customer,
            "items": [{"product": widget.id, "quantity": 1}],
        }, headers=employee_headers)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation_error"

    def test_status_order_id(self, client, employee_headers):
        resp = client.put("/api/orders/status", json={"orderId": [1], "status": "Shipped"}, headers=employee_headers)
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation_error"


def test_unexpected_failure_has_kind(client, employee_headers, employee_user, widget, monkeypatch):
    from app.services import order_service

    def boom(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(order_service, "create_order", boom)

    resp = client.post("/api/orders", json={
        "customer": employee_user.id,
        "items": [{"product": widget.id, "quantity": 1}],
    }, headers=employee_headers)

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error", "kind": "internal_error"}


class TestMovementNotesRoute:
    def test_clear_notes(self, client, admin_headers, widget):
        movement_id = client.post("/api/stock-movements", json={
            "item": widget.id, "type": "Purchase", "quantityChange": 2, "notes": "wrong supplier",
        }, headers=admin_headers).get_json()["movement"]["id"]

        resp = client.patch(f"/api/stock-movements/{movement_id}", json={"notes": ""}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.get_json()["movement"]["notes"] is None

    def test_notes_key_required(self, client, admin_headers, widget):
        movement_id = client.post("/api/stock-movements", json={
            "item": widget.id, "type": "Purchase", "quantityChange": 2, "notes": "keep me",
        }, headers=admin_headers).get_json()["movement"]["id"]

        resp = client.patch(f"/api/stock-movements/{movement_id}", json={}, headers=admin_headers)

        assert resp.status_code == 400


class TestPasswordResetRoutes:
    def _issue(self, client, email, caplog):
        with caplog.at_level("INFO", logger="app.services.auth_service"):
            resp = client.post("/api/auth/reset-password-request", json={"email": email})
        records = [r for r in caplog.records if r.name == "app.services.auth_service" and "reset token" in r.getMessage()]
        return resp, (records[-1].args[-1] if records else None)

    def test_request_then_reset(self, client, employee_user, caplog):
        resp, token = self._issue(client, employee_user.email, caplog)
        assert resp.status_code == 200
        assert token not in resp.get_data(as_text=True)

        resp = client.post("/api/auth/reset-password", json={
            "email": employee_user.email, "token": token, "password": "brand-new-pass",
        })
        assert resp.status_code == 200

        resp = client.post("/api/auth/login", json={"email": employee_user.email, "password": "brand-new-pass"})
        assert resp.status_code == 200

    def test_disabled_account_is_403(self, client, db_session, employee_user, caplog):
        employee_user.is_active = False
        db_session.commit()

        resp, token = self._issue(client, employee_user.email, caplog)

        assert resp.status_code == 403
        assert resp.get_json()["kind"] == "permission_denied"
        assert token is None

    def test_unknown_email_is_404(self, client, db_session, caplog):
        resp, _ = self._issue(client, "ghost@example.com", caplog)
        assert resp.status_code == 404

    def test_bad_token_is_400(self, client, employee_user):
        resp = client.post("/api/auth/reset-password", json={
            "email": employee_user.email, "token": "not-the-token", "password": "brand-new-pass",
        })
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "validation_error"
