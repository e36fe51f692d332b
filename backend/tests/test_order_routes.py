# Overview: Pytest coverage for the order HTTP API (auth, status codes, JSON shapes).

import pytest

from storefront.services import order_service

from conftest import sign


TRACKING = {
    "reference_number": "AWB123456",
    "estimate_date": "2026-10-25T00:00:00Z",
    "courier_partner": "Delhivery",
    "tracking_link": "https://track.example.com/AWB123456",
    "status": "Picked by Courier",
}


@pytest.fixture
def customer_headers(auth_headers, customer):
    return auth_headers(customer)


@pytest.fixture
def other_headers(auth_headers, other_customer):
    return auth_headers(other_customer)


@pytest.fixture
def admin_headers(auth_headers, admin_user):
    return auth_headers(admin_user)


class TestUnauthenticatedAccess:
    @pytest.mark.parametrize("method, path", [
        ("get", "/api/orders/"),
        ("post", "/api/orders/"),
        ("get", "/api/orders/ORD-1"),
        ("post", "/api/orders/ORD-1/confirm"),
        ("post", "/api/orders/ORD-1/cancel"),
        ("post", "/api/orders/ORD-1/payment/intent"),
        ("post", "/api/orders/ORD-1/payment/verify"),
        ("post", "/api/orders/ORD-1/payment/failed"),
        ("get", "/api/admin/orders/"),
        ("put", "/api/admin/orders/ORD-1/tracking"),
        ("post", "/api/admin/orders/ORD-1/refund"),
    ])
    def test_requires_auth(self, client, method, path):
        response = getattr(client, method)(path, json={})
        assert response.status_code == 401

    def test_invalid_token(self, client):
        response = client.get("/api/orders/", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401
        assert response.get_json()["error"] == "Invalid or expired token"


class TestCustomerDeniedAdmin:
    @pytest.mark.parametrize("method, path", [
        ("get", "/api/admin/orders/"),
        ("put", "/api/admin/orders/ORD-1/tracking"),
        ("post", "/api/admin/orders/ORD-1/refund"),
    ])
    def test_forbidden(self, client, customer_headers, method, path):
        response = getattr(client, method)(path, json={}, headers=customer_headers)
        assert response.status_code == 403


class TestCustomerRoutes:
    def test_create_order(self, client, customer_headers, customer, kurta, saved_address, fill_cart):
        fill_cart(customer, [(kurta, 1)])

        response = client.post("/api/orders/", json={"address_id": saved_address.id}, headers=customer_headers)

        assert response.status_code == 201
        order = response.get_json()["order"]
        assert order["status"] == "Pending"
        assert order["payment_method"] == "CashOnDelivery"
        assert order["base_price"] == "100.00"
        assert order["tax_amount"] == "18.00"
        assert order["total_amount"] == "118.00"
        assert order["items"][0]["name"] == "Cotton Kurta"
        assert order["tracking"] is None
        assert "payment_history" not in order

    def test_create_order_empty_cart(self, client, customer_headers, saved_address):
        response = client.post("/api/orders/", json={"address_id": saved_address.id}, headers=customer_headers)
        assert response.status_code == 400
        assert "Cart is empty" in response.get_json()["error"]

    def test_create_order_insufficient_stock_details(self, client, customer_headers, customer, scarf, saved_address, fill_cart):
        fill_cart(customer, [(scarf, 9)])

        response = client.post("/api/orders/", json={"address_id": saved_address.id}, headers=customer_headers)

        assert response.status_code == 400
        assert response.get_json()["details"]["available"] == 2

    def test_list_and_get(self, client, customer_headers, place_order):
        order = place_order()

        listed = client.get("/api/orders/", headers=customer_headers).get_json()["orders"]
        fetched = client.get(f"/api/orders/{order.order_number}", headers=customer_headers)

        assert [o["order_number"] for o in listed] == [order.order_number]
        assert fetched.status_code == 200
        assert fetched.get_json()["order"]["address"]["postal"] == "560038"

    def test_other_customers_order_is_not_found(self, client, other_headers, place_order):
        order = place_order()
        response = client.get(f"/api/orders/{order.order_number}", headers=other_headers)
        assert response.status_code == 404

    def test_confirm_then_cancel(self, client, customer_headers, place_order, mailer):
        order = place_order()

        confirmed = client.post(
            f"/api/orders/{order.order_number}/confirm",
            json={"delivery_note": "Leave with security"},
            headers=customer_headers,
        )
        cancelled = client.post(f"/api/orders/{order.order_number}/cancel", headers=customer_headers)

        assert confirmed.status_code == 200
        assert confirmed.get_json()["order"]["status"] == "Confirmed"
        assert confirmed.get_json()["order"]["delivery_note"] == "Leave with security"
        assert cancelled.status_code == 200
        assert cancelled.get_json()["order"]["status"] == "Cancelled"
        assert len(mailer.sent) == 2

    def test_cancel_pending_conflicts(self, client, customer_headers, place_order):
        order = place_order()

        response = client.post(f"/api/orders/{order.order_number}/cancel", headers=customer_headers)

        assert response.status_code == 409
        body = response.get_json()
        assert body["error"] == "Order cannot be cancelled at this stage."
        assert body["details"]["status"] == "Pending"


class TestPaymentRoutes:
    def test_intent_and_verify(self, client, customer_headers, place_order):
        order = place_order(payment_method="Gateway")

        intent_response = client.post(f"/api/orders/{order.order_number}/payment/intent", headers=customer_headers)
        assert intent_response.status_code == 201
        intent = intent_response.get_json()["intent"]
        assert intent["amount"] == 11800
        assert intent["currency"] == "INR"
        assert intent_response.get_json()["key_id"] == "rzp_test_key"

        gateway_order_id = intent["gateway_order_id"]
        verify_response = client.post(
            f"/api/orders/{order.order_number}/payment/verify",
            json={
                "gateway_order_id": gateway_order_id,
                "gateway_payment_id": "pay_http1",
                "signature": sign(gateway_order_id, "pay_http1"),
            },
            headers=customer_headers,
        )

        assert verify_response.status_code == 200
        body = verify_response.get_json()
        assert body["verified"] is True
        assert body["order"]["status"] == "Confirmed"
        assert body["order"]["payment_status"] == "Paid"

    def test_bad_signature_is_400_and_recorded(self, client, customer_headers, place_order, customer_principal):
        order = place_order(payment_method="Gateway")
        _, intent = order_service.create_payment_intent(customer_principal, order.order_number)

        response = client.post(
            f"/api/orders/{order.order_number}/payment/verify",
            json={
                "gateway_order_id": intent.gateway_order_id,
                "gateway_payment_id": "pay_http1",
                "signature": "forged",
            },
            headers=customer_headers,
        )

        assert response.status_code == 400
        body = response.get_json()
        assert body["error"] == "Invalid payment signature"
        assert body["order"]["status"] == "Pending"
        assert body["order"]["payment_status"] == "Failed"

    def test_forged_replay_on_paid_order_is_400(self, client, customer_headers, paid_gateway_order):
        response = client.post(
            f"/api/orders/{paid_gateway_order.order_number}/payment/verify",
            json={
                "gateway_order_id": paid_gateway_order.gateway_order_id,
                "gateway_payment_id": "pay_test0001",
                "signature": "deadbeef" * 8,
            },
            headers=customer_headers,
        )

        assert response.status_code == 400
        assert response.get_json()["order"]["payment_status"] == "Paid"

    def test_verify_missing_fields(self, client, customer_headers, place_order):
        order = place_order(payment_method="Gateway")
        response = client.post(f"/api/orders/{order.order_number}/payment/verify", json={}, headers=customer_headers)
        assert response.status_code == 400

    def test_gateway_down_is_503(self, client, customer_headers, place_order, fake_gateway):
        fake_gateway.fail_orders = True
        order = place_order(payment_method="Gateway")

        response = client.post(f"/api/orders/{order.order_number}/payment/intent", headers=customer_headers)

        assert response.status_code == 503

    def test_payment_failed(self, client, customer_headers, place_order, customer_principal):
        order = place_order(payment_method="Gateway")
        order_service.create_payment_intent(customer_principal, order.order_number)

        first = client.post(
            f"/api/orders/{order.order_number}/payment/failed",
            json={"reason": "User closed checkout", "gateway_payment_id": "pay_x"},
            headers=customer_headers,
        )
        second = client.post(
            f"/api/orders/{order.order_number}/payment/failed",
            json={"reason": "User closed checkout", "gateway_payment_id": "pay_x"},
            headers=customer_headers,
        )

        assert first.status_code == 200
        assert first.get_json()["recorded"] is True
        assert first.get_json()["order"]["status"] == "Cancelled"
        assert second.get_json()["recorded"] is False


class TestAdminRoutes:
    def test_list_all_orders(self, client, admin_headers, place_order):
        order = place_order()

        response = client.get("/api/admin/orders/?status=Pending", headers=admin_headers)

        assert response.status_code == 200
        orders = response.get_json()["orders"]
        assert [o["order_number"] for o in orders] == [order.order_number]
        assert orders[0]["user"]["email"] == "asha@example.com"
        assert orders[0]["payment_history"] == []

    def test_list_all_orders_bad_status(self, client, admin_headers):
        response = client.get("/api/admin/orders/?status=Lost", headers=admin_headers)
        assert response.status_code == 400

    def test_update_tracking(self, client, admin_headers, place_order, customer_principal):
        order = place_order()
        order_service.confirm_order(customer_principal, order.order_number)

        response = client.put(
            f"/api/admin/orders/{order.order_number}/tracking", json=TRACKING, headers=admin_headers
        )

        assert response.status_code == 200
        body = response.get_json()["order"]
        assert body["status"] == "Shipped"
        assert body["tracking"]["courier_partner"] == "Delhivery"
        assert body["tracking"]["estimate_date"] == "2026-10-25T00:00:00Z"
        assert {n["kind"] for n in body["notifications"]} == {"order_confirmed", "shipped"}

    def test_update_tracking_missing_field(self, client, admin_headers, place_order):
        order = place_order()
        payload = dict(TRACKING)
        del payload["courier_partner"]

        response = client.put(
            f"/api/admin/orders/{order.order_number}/tracking", json=payload, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.get_json()["details"]["missing"] == ["courier_partner"]

    def test_update_tracking_unknown_order(self, client, admin_headers):
        response = client.put("/api/admin/orders/ORD-NOPE/tracking", json=TRACKING, headers=admin_headers)
        assert response.status_code == 404

    def test_refund(self, client, admin_headers, paid_gateway_order, customer_principal):
        order_service.cancel_order(customer_principal, paid_gateway_order.order_number)
        url = f"/api/admin/orders/{paid_gateway_order.order_number}/refund"

        first = client.post(url, headers=admin_headers)
        second = client.post(url, headers=admin_headers)

        assert first.status_code == 200
        assert first.get_json()["refunded"] is True
        assert first.get_json()["order"]["refund_status"] == "Refunded"
        assert second.status_code == 200
        assert second.get_json()["refunded"] is False
        assert len(second.get_json()["order"]["payment_history"]) == 2

    def test_refund_gateway_failure(self, client, admin_headers, paid_gateway_order, customer_principal, fake_gateway):
        order_service.cancel_order(customer_principal, paid_gateway_order.order_number)
        fake_gateway.fail_refunds = True

        response = client.post(f"/api/admin/orders/{paid_gateway_order.order_number}/refund", headers=admin_headers)

        assert response.status_code == 503
        assert response.get_json()["error"] == "Refund failed"

    def test_refund_not_applicable(self, client, admin_headers, place_order):
        order = place_order()
        response = client.post(f"/api/admin/orders/{order.order_number}/refund", headers=admin_headers)
        assert response.status_code == 409


class TestPublicRoutes:
    def test_tracking_lookup_has_no_personal_data(self, client, place_order, admin_principal):
        order = place_order()
        order_service.update_tracking(admin_principal, order.order_number, TRACKING)

        response = client.get(f"/api/tracking/{order.order_number}")

        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "Shipped"
        assert body["tracking"]["reference_number"] == "AWB123456"
        assert "address" not in body

    def test_tracking_unknown_order(self, client):
        assert client.get("/api/tracking/ORD-NOPE").status_code == 404

    def test_health(self, client, admin_user):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["mailer"] == "RecordingMailer"

    def test_health_without_admin_is_degraded(self, client):
        body = client.get("/api/health").get_json()
        assert body["status"] == "degraded"
