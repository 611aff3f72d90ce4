# 订单API测试

import pytest

from services.notifications import KIND_BUSINESS, KIND_STATUS
from utils.exceptions import PaymentGatewayError


@pytest.fixture
def direct_order_body():
    return {
        "customerName": "Sam Lee",
        "customerEmail": "sam@example.com",
        "customerPhone": "604-555-0111",
        "fulfillmentType": "pickup",
        "scheduledDate": "2026-11-21",
        "scheduledTime": "5:00 PM",
        "items": [{"itemName": "Dal", "itemPrice": "12.00", "pricingType": "fixed", "quantity": 3}],
        "deliveryFee": "25.00",
    }


class TestDirectOrder:
    """POST /api/orders"""

    def test_create_pickup_order(self, client, direct_order_body, query_ops, dispatcher):
        response = client.post("/api/orders", json=direct_order_body)

        assert response.status_code == 200
        order = query_ops.get_order(response.json()["data"]["orderId"])
        assert order["fulfillment_type"] == "pickup"
        assert order["delivery_fee_cents"] == 0
        assert order["total_cents"] == 3600
        assert order["payment_status"] is None
        assert dispatcher.kinds == [KIND_BUSINESS]

    def test_empty_cart(self, client, direct_order_body):
        direct_order_body["items"] = []

        response = client.post("/api/orders", json=direct_order_body)
        assert response.status_code == 400
        assert response.json()["error"] == "Cart is empty"


class TestAdminOrders:
    """后台订单接口"""

    def test_requires_token(self, client):
        assert client.get("/api/orders").status_code == 401

    def test_rejects_invalid_token(self, client):
        response = client.get("/api/orders", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_list_orders(self, client, admin_headers, make_order):
        older = make_order()
        newer = make_order(status="confirmed", payment_status="paid")

        response = client.get("/api/orders", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert [o["id"] for o in data["items"]] == [newer, older]
        assert data["pagination"]["total_count"] == 2
        first = data["items"][0]
        assert first["total"] == "65.00"
        assert first["items"][1]["lineTotal"] == "20.00"
        assert first["items"][1]["guestCount"] == 4

    def test_list_filters(self, client, admin_headers, make_order):
        make_order()
        confirmed = make_order(status="confirmed")

        response = client.get("/api/orders", params={"status": "confirmed"}, headers=admin_headers)
        assert [o["id"] for o in response.json()["data"]["items"]] == [confirmed]

        assert client.get("/api/orders", params={"status": "bogus"}, headers=admin_headers).status_code == 400
        assert client.get("/api/orders", params={"date": "11/20/2026"}, headers=admin_headers).status_code == 400

    def test_get_order(self, client, admin_headers, make_order):
        order_id = make_order(payment_status="authorized", payment_intent_id="pi_1")

        response = client.get(f"/api/orders/{order_id}", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["paymentStatus"] == "authorized"
        assert data["stripePaymentIntentId"] == "pi_1"
        assert data["customerPhone"] == "604-555-0100"

    def test_get_missing_order(self, client, admin_headers):
        assert client.get("/api/orders/missing", headers=admin_headers).status_code == 404


class TestOrderLookup:
    """GET /api/orders/lookup"""

    def test_lookup_by_prefix(self, client, make_order):
        order_id = make_order()

        response = client.get("/api/orders/lookup", params={"id": order_id[:8]})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == order_id
        assert data["total"] == "65.00"
        for hidden in ("notes", "customerEmail", "customerPhone", "customerAddress",
                       "stripePaymentIntentId", "stripeSessionId"):
            assert hidden not in data

    def test_lookup_requires_id(self, client):
        assert client.get("/api/orders/lookup").status_code == 400

    def test_lookup_short_prefix(self, client, make_order):
        order_id = make_order()
        assert client.get("/api/orders/lookup", params={"id": order_id[:4]}).status_code == 404


class TestUpdateOrderStatus:
    """PUT /api/orders/{id}"""

    def test_confirm_captures(self, client, admin_headers, make_order, gateway, dispatcher):
        order_id = make_order(payment_status="authorized", payment_intent_id="pi_1")

        response = client.put(f"/api/orders/{order_id}", json={"status": "confirmed"}, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "confirmed"
        assert data["paymentStatus"] == "paid"
        assert gateway.captured == ["pi_1"]
        assert [(n.kind, n.new_status) for n in dispatcher.sent] == [(KIND_STATUS, "confirmed")]

    @pytest.mark.parametrize("retryable,status_code", [(False, 502), (True, 503)])
    def test_capture_failure(self, client, admin_headers, make_order, gateway, query_ops, dispatcher,
                             retryable, status_code):
        order_id = make_order(payment_status="authorized", payment_intent_id="pi_1")
        gateway.fail_capture = PaymentGatewayError("declined", retryable=retryable)

        response = client.put(f"/api/orders/{order_id}", json={"status": "confirmed"}, headers=admin_headers)

        assert response.status_code == status_code
        assert response.json()["error"] == "Failed to capture payment"
        assert query_ops.get_order(order_id)["status"] == "new"
        assert dispatcher.sent == []

    def test_confirm_before_authorization(self, client, admin_headers, make_order, query_ops, gateway, dispatcher):
        order_id = make_order()

        response = client.put(f"/api/orders/{order_id}", json={"status": "confirmed"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Payment has not been authorized yet"
        assert query_ops.get_order(order_id)["status"] == "new"
        assert gateway.captured == []
        assert dispatcher.sent == []

    def test_invalid_transition(self, client, admin_headers, make_order):
        order_id = make_order(status="completed", payment_status="paid")

        response = client.put(f"/api/orders/{order_id}", json={"status": "new"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid status transition"

    def test_missing_order(self, client, admin_headers):
        response = client.put("/api/orders/missing", json={"status": "confirmed"}, headers=admin_headers)
        assert response.status_code == 404


class TestSoftDelete:
    """DELETE /api/orders/{id}"""

    def test_cancel_releases_authorization(self, client, admin_headers, make_order, gateway, dispatcher):
        order_id = make_order(payment_status="authorized", payment_intent_id="pi_1")

        response = client.delete(f"/api/orders/{order_id}", headers=admin_headers)

        assert response.status_code == 200
        order = response.json()["data"]["order"]
        assert order["status"] == "cancelled"
        assert order["paymentStatus"] == "cancelled"
        assert gateway.released == ["pi_1"]
        assert [(n.kind, n.new_status) for n in dispatcher.sent] == [(KIND_STATUS, "cancelled")]

    def test_cancel_survives_release_failure(self, client, admin_headers, make_order, gateway):
        order_id = make_order(payment_status="authorized", payment_intent_id="pi_1")
        gateway.fail_release = PaymentGatewayError("gateway down", retryable=True)

        response = client.delete(f"/api/orders/{order_id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["order"]["status"] == "cancelled"

    def test_completed_order_rejected(self, client, admin_headers, make_order):
        order_id = make_order(status="completed", payment_status="paid")
        assert client.delete(f"/api/orders/{order_id}", headers=admin_headers).status_code == 400
