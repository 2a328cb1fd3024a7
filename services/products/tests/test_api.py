"""HTTP-level tests for the Products service routes."""
from decimal import Decimal

from product_service import models

ADDRESS = {"street": "12 Kiln Lane", "city": "Tashkent", "country": "UZ"}


def _order_body(lines, user_id="U1"):
    return {
        "user_id": user_id,
        "shipping_address": ADDRESS,
        "items": [{"product_id": pid, "quantity": qty} for pid, qty in lines],
    }


def _place(client, headers, lines, user_id="U1"):
    response = client.post("/order", json=_order_body(lines, user_id), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "healthy"}


def test_invalid_token_is_rejected(client):
    response = client.post("/order", json=_order_body([]), headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


class TestCatalogRoutes:

    def test_add_category_requires_admin(self, client, user_headers):
        response = client.post("/category", json={"name": "Textiles"}, headers=user_headers)
        assert response.status_code == 403

    def test_add_category_and_product(self, client, admin_headers, user_headers):
        category = client.post("/category", json={"name": "Textiles"}, headers=admin_headers).json()
        response = client.post(
            "/product/add",
            json={"name": "Ikat scarf", "price": "35.00", "category_id": category["id"], "quantity": 3},
            headers=user_headers,
        )
        assert response.status_code == 201
        product = client.get(f"/product/{response.json()['id']}").json()
        assert Decimal(product["price"]) == Decimal("35.00")

    def test_add_product_with_unknown_category(self, client, user_headers, count_rows):
        response = client.post(
            "/product/add",
            json={"name": "Ikat scarf", "price": "35.00", "category_id": "nope"},
            headers=user_headers,
        )
        assert response.status_code == 404
        assert "category ID nope not found" in response.json()["detail"]
        assert count_rows(models.Product) == 0

    def test_get_missing_product(self, client, category):
        assert client.get("/product/missing").status_code == 404


class TestOrderRoutes:

    def test_place_order(self, client, user_headers, make_product):
        make_product(price="10.00", product_id="P1")
        order = _place(client, user_headers, [("P1", 2)])

        assert Decimal(order["total_amount"]) == Decimal("20.00")
        assert order["status"] == "pending"
        assert len(order["items"]) == 1
        assert Decimal(order["items"][0]["price"]) == Decimal("10.00")

    def test_cannot_order_for_someone_else(self, client, user_headers, make_product):
        make_product(product_id="P1")
        response = client.post("/order", json=_order_body([("P1", 1)], user_id="U2"), headers=user_headers)
        assert response.status_code == 403

    def test_empty_order_is_rejected(self, client, user_headers, category):
        response = client.post("/order", json=_order_body([]), headers=user_headers)
        assert response.status_code == 400

    def test_missing_product_is_not_found(self, client, user_headers, make_product, count_rows):
        make_product(product_id="P1")
        response = client.post("/order", json=_order_body([("P1", 1), ("P404", 1)]), headers=user_headers)
        assert response.status_code == 404
        assert "P404" in response.json()["detail"]
        assert count_rows(models.Order) == 0

    def test_insufficient_stock(self, client, user_headers, make_product):
        make_product(product_id="P1", quantity=1)
        response = client.post("/order", json=_order_body([("P1", 2)]), headers=user_headers)
        assert response.status_code == 400

    def test_show_order_owner_only(self, client, user_headers, auth_headers, admin_headers, make_product):
        make_product(product_id="P1")
        order = _place(client, user_headers, [("P1", 1)])

        assert client.get(f"/order/{order['id']}", headers=user_headers).status_code == 200
        assert client.get(f"/order/{order['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/order/{order['id']}", headers=auth_headers("U2")).status_code == 403

    def test_timeline(self, client, user_headers, make_product):
        make_product(product_id="P1")
        order = _place(client, user_headers, [("P1", 1)])
        client.put("/order/cancel", json={"order_id": order["id"]}, headers=user_headers)

        events = client.get(f"/order/{order['id']}/timeline", headers=user_headers).json()
        assert [e["event_type"] for e in events] == ["created", "cancelled"]


class TestPaymentRoutes:

    def test_pay_twice_lists_two_payments(self, client, user_headers, make_product):
        make_product(price="12.50", product_id="P1")
        order = _place(client, user_headers, [("P1", 2)])

        for _ in range(2):
            response = client.post(
                "/order/pay",
                json={"order_id": order["id"], "payment_method": "card", "amount": "1.00"},
                headers=user_headers,
            )
            assert response.status_code == 201
            assert Decimal(response.json()["amount"]) == Decimal("25.00")
            assert response.json()["status"] == "paid"

        listed = client.get(f"/order/payment/status/{order['id']}", headers=user_headers).json()
        assert len(listed) == 2

    def test_payment_status_without_payments(self, client, user_headers, make_product):
        make_product(product_id="P1")
        order = _place(client, user_headers, [("P1", 1)])
        response = client.get(f"/order/payment/status/{order['id']}", headers=user_headers)
        assert response.status_code == 404

    def test_pay_unknown_order(self, client, user_headers, category):
        response = client.post("/order/pay", json={"order_id": "nope", "payment_method": "card"}, headers=user_headers)
        assert response.status_code == 404


class TestLifecycleRoutes:

    def test_cancel_shipped_order(self, client, user_headers, admin_headers, make_product):
        make_product(product_id="P1")
        order = _place(client, user_headers, [("P1", 1)])
        for status in ("paid", "shipped"):
            client.put("/order/status", json={"order_id": order["id"], "status": status}, headers=admin_headers)

        response = client.put("/order/cancel", json={"order_id": order["id"]}, headers=user_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_status_change_requires_admin(self, client, user_headers, make_product):
        make_product(product_id="P1")
        order = _place(client, user_headers, [("P1", 1)])
        response = client.put("/order/status", json={"order_id": order["id"], "status": "paid"}, headers=user_headers)
        assert response.status_code == 403

    def test_invalid_transition(self, client, user_headers, admin_headers, make_product):
        make_product(product_id="P1")
        order = _place(client, user_headers, [("P1", 1)])
        response = client.put("/order/status", json={"order_id": order["id"], "status": "delivered"}, headers=admin_headers)
        assert response.status_code == 400

    def test_unknown_status_value(self, client, user_headers, admin_headers, make_product):
        make_product(product_id="P1")
        order = _place(client, user_headers, [("P1", 1)])
        response = client.put("/order/status", json={"order_id": order["id"], "status": "lost"}, headers=admin_headers)
        assert response.status_code == 422

    def test_stale_version(self, client, user_headers, admin_headers, make_product):
        make_product(product_id="P1")
        order = _place(client, user_headers, [("P1", 1)])
        body = {"order_id": order["id"], "status": "paid", "version": 1}
        assert client.put("/order/status", json=body, headers=admin_headers).json()["version"] == 2

        response = client.put("/order/status", json={**body, "status": "shipped"}, headers=admin_headers)
        assert response.status_code == 409

    def test_update_shipping(self, client, user_headers, admin_headers, make_product):
        make_product(product_id="P1")
        order = _place(client, user_headers, [("P1", 1)])
        body = {
            "order_id": order["id"],
            "tracking_number": "DHL-001",
            "carrier": "DHL",
            "estimated_delivery_date": "2026-11-02",
        }
        response = client.put("/order/shipping", json=body, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["carrier"] == "DHL"

        shown = client.get(f"/order/{order['id']}", headers=user_headers).json()
        assert shown["shipping_details"] == {k: v for k, v in body.items() if k != "order_id"}
        assert shown["shipping_address"]["street"] == "12 Kiln Lane"

    def test_update_shipping_unknown_order(self, client, admin_headers, category):
        body = {"order_id": "nope", "tracking_number": "X", "carrier": "DHL", "estimated_delivery_date": "2026-11-02"}
        assert client.put("/order/shipping", json=body, headers=admin_headers).status_code == 404
