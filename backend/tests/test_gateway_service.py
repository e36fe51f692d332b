# Overview: Pytest coverage for the Razorpay adapter (fake API via httpx.MockTransport).

from decimal import Decimal

import httpx
import pytest

from storefront import create_app
from storefront.models import Order
from storefront.services import gateway_service
from storefront.services.gateway_service import (
    GatewayConfigError,
    GatewayUnavailableError,
    RazorpayGateway,
    VerificationOutcome,
)

from conftest import GATEWAY_BASE_URL, KEY_ID, KEY_SECRET, TEST_CONFIG, sign


def _order(**overrides):
    values = dict(order_number="ORD-20261018-AAAAAAAAAA", user_id=7, total_amount=Decimal("236.50"))
    values.update(overrides)
    return Order(**values)


@pytest.fixture
def gateway(app):
    return gateway_service.get_gateway()


class TestConfiguration:
    def test_missing_keys_rejected(self):
        with pytest.raises(GatewayConfigError):
            RazorpayGateway(None, KEY_SECRET)
        with pytest.raises(GatewayConfigError):
            RazorpayGateway(KEY_ID, "")

    def test_app_refuses_to_start_without_keys(self):
        config = dict(TEST_CONFIG, RAZORPAY_KEY_ID=None, RAZORPAY_KEY_SECRET=None)
        with pytest.raises(GatewayConfigError):
            create_app(config)


class TestCreateIntent:
    def test_posts_amount_in_minor_units(self, gateway, fake_gateway):
        order = _order()

        intent = gateway.create_intent(order)

        method, path, body = fake_gateway.requests[-1]
        assert (method, path) == ("POST", "/v1/orders")
        assert body["amount"] == 23650
        assert body["currency"] == "INR"
        assert body["receipt"] == order.order_number
        assert intent.amount_minor_units == 23650

    def test_binds_intent_to_order(self, gateway):
        order = _order(payment_method="CashOnDelivery")

        intent = gateway.create_intent(order)

        assert order.gateway_order_id == intent.gateway_order_id
        assert order.payment_method == "Gateway"
        assert order.payment_status == "Pending"

    def test_upstream_error_leaves_order_untouched(self, gateway, fake_gateway):
        fake_gateway.fail_orders = True
        order = _order()

        with pytest.raises(GatewayUnavailableError) as exc_info:
            gateway.create_intent(order)

        assert exc_info.value.upstream_status == 502
        assert order.gateway_order_id is None

    def test_network_error_is_unavailable(self, app):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = RazorpayGateway(
            KEY_ID, KEY_SECRET, base_url=GATEWAY_BASE_URL, transport=httpx.MockTransport(handler)
        )
        with pytest.raises(GatewayUnavailableError):
            gateway.create_intent(_order())

    def test_response_without_id_is_unavailable(self, app):
        gateway = RazorpayGateway(
            KEY_ID,
            KEY_SECRET,
            base_url=GATEWAY_BASE_URL,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"status": "created"})),
        )
        with pytest.raises(GatewayUnavailableError):
            gateway.create_intent(_order())


class TestVerifyCallback:
    def test_valid_signature(self, gateway):
        order = _order(gateway_order_id="order_abc")
        callback = {
            "gateway_order_id": "order_abc",
            "gateway_payment_id": "pay_1",
            "signature": sign("order_abc", "pay_1"),
        }
        assert gateway.verify_callback(order, callback) is VerificationOutcome.VERIFIED

    def test_tampered_signature(self, gateway):
        order = _order(gateway_order_id="order_abc")
        callback = {
            "gateway_order_id": "order_abc",
            "gateway_payment_id": "pay_1",
            "signature": sign("order_abc", "pay_2"),
        }
        assert gateway.verify_callback(order, callback) is VerificationOutcome.SIGNATURE_MISMATCH

    def test_signature_for_another_intent(self, gateway):
        """A correctly signed callback for a different intent does not verify this order."""
        order = _order(gateway_order_id="order_abc")
        callback = {
            "gateway_order_id": "order_xyz",
            "gateway_payment_id": "pay_1",
            "signature": sign("order_xyz", "pay_1"),
        }
        assert gateway.verify_callback(order, callback) is VerificationOutcome.SIGNATURE_MISMATCH

    def test_signed_with_wrong_secret(self, gateway):
        order = _order(gateway_order_id="order_abc")
        callback = {
            "gateway_order_id": "order_abc",
            "gateway_payment_id": "pay_1",
            "signature": sign("order_abc", "pay_1", secret="not-the-secret"),
        }
        assert gateway.verify_callback(order, callback) is VerificationOutcome.SIGNATURE_MISMATCH


class TestRefund:
    def test_refunds_full_amount(self, gateway, fake_gateway):
        order = _order(gateway_payment_id="pay_42")

        refund = gateway.refund(order)

        method, path, body = fake_gateway.requests[-1]
        assert path == "/v1/payments/pay_42/refund"
        assert body == {"amount": 23650, "speed": "normal", "receipt": f"refund-{order.order_number}"}
        assert refund.refund_id.startswith("rfnd_")
        assert refund.amount_minor_units == 23650

    def test_rejected_refund_is_unavailable(self, gateway, fake_gateway):
        fake_gateway.fail_refunds = True
        with pytest.raises(GatewayUnavailableError):
            gateway.refund(_order(gateway_payment_id="pay_42"))
