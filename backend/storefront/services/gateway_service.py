# Overview: Razorpay payment gateway adapter over httpx; creates intents, verifies callbacks, issues refunds.

"""
Payment Gateway Adapter

WHY: Gateway payments happen in three steps. The server creates a remote
"order" (payment intent) for the exact amount, the customer pays on the
gateway's checkout, and the gateway hands back a signed callback that the
server must verify before trusting it.

DESIGN PRINCIPLES:
- Missing credentials are a startup error (init_app raises), never per request
- Network/API failures surface as GatewayUnavailableError, before any order
  field is written
- Signature mismatch is a result, not an exception
- No retries here: a refund call is made at most once per request
"""

from __future__ import annotations

import enum
import hashlib
import hmac
from dataclasses import dataclass

import httpx
from flask import current_app

from ..models import Order
from ..models.orders import METHOD_GATEWAY, PAYMENT_PENDING
from .pricing_service import to_minor_units


EXTENSION_KEY = "storefront.gateway"
PROVIDER_NAME = "Razorpay"


class GatewayError(Exception):
    """Raised for payment gateway errors."""
    pass


class GatewayConfigError(GatewayError, RuntimeError):
    """Gateway credentials are missing; the application must not start."""
    pass


class GatewayUnavailableError(GatewayError):
    """Gateway unreachable or rejected the call. Safe for the client to retry."""
    status_code = 503

    def __init__(self, message: str = "Payment gateway unavailable. Try again later.", *, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class VerificationOutcome(enum.Enum):
    VERIFIED = "verified"
    SIGNATURE_MISMATCH = "signature_mismatch"


@dataclass(frozen=True)
class GatewayIntent:
    gateway_order_id: str
    amount_minor_units: int
    currency: str


@dataclass(frozen=True)
class GatewayRefund:
    refund_id: str
    amount_minor_units: int


def bind_intent(order: Order, intent: GatewayIntent) -> None:
    """Attach an intent to the order. Re-binding the same intent is a no-op."""
    order.gateway_order_id = intent.gateway_order_id
    order.payment_method = METHOD_GATEWAY
    order.payment_status = PAYMENT_PENDING


class RazorpayGateway:
    """
    Thin client for the Razorpay Orders and Refunds REST API.

    transport is injectable (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        key_id: str | None,
        key_secret: str | None,
        *,
        base_url: str = "https://api.razorpay.com/v1",
        currency: str = "INR",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not key_id or not key_secret:
            raise GatewayConfigError(
                "Missing Razorpay keys. Please set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET"
            )
        self.key_id = key_id
        self._key_secret = key_secret
        self.currency = currency
        self._client = httpx.Client(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    # -------------------------------------------------------------------------
    # Raw API calls
    # -------------------------------------------------------------------------

    def _post(self, path: str, payload: dict, *, action: str) -> dict:
        try:
            response = self._client.post(path, json=payload)
        except httpx.HTTPError as exc:
            current_app.logger.error("Razorpay %s failed: %s", action, exc)
            raise GatewayUnavailableError() from exc

        if response.status_code >= 400:
            current_app.logger.error(
                "Razorpay %s rejected: HTTP %s %s", action, response.status_code, response.text[:500]
            )
            raise GatewayUnavailableError(upstream_status=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayUnavailableError("Payment gateway returned an invalid response") from exc
        if not isinstance(body, dict) or not body.get("id"):
            raise GatewayUnavailableError("Payment gateway returned an invalid response")
        return body

    def create_order(self, *, amount_minor_units: int, receipt: str, notes: dict | None = None) -> dict:
        return self._post(
            "/orders",
            {
                "amount": amount_minor_units,
                "currency": self.currency,
                "receipt": receipt,
                "notes": notes or {},
            },
            action="order create",
        )

    def refund_payment(self, payment_id: str, *, amount_minor_units: int, receipt: str) -> dict:
        return self._post(
            f"/payments/{payment_id}/refund",
            {
                "amount": amount_minor_units,
                "speed": "normal",
                "receipt": receipt,
            },
            action="refund",
        )

    def expected_signature(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
        return hmac.new(self._key_secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

    def signature_matches(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        expected = self.expected_signature(gateway_order_id, gateway_payment_id)
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))

    # -------------------------------------------------------------------------
    # Order-level operations
    # -------------------------------------------------------------------------

    def create_intent(self, order: Order) -> GatewayIntent:
        """
        Create a remote payment intent for the order's gross total and bind it.

        Order fields are written only after the gateway call succeeds; the
        caller commits.
        """
        amount = to_minor_units(order.total_amount)
        body = self.create_order(
            amount_minor_units=amount,
            receipt=order.order_number,
            notes={"order_number": order.order_number, "user_id": str(order.user_id)},
        )

        intent = GatewayIntent(
            gateway_order_id=body["id"],
            amount_minor_units=int(body.get("amount", amount)),
            currency=body.get("currency", self.currency),
        )

        bind_intent(order, intent)
        return intent

    def verify_callback(self, order: Order, callback: dict) -> VerificationOutcome:
        """
        Check the callback signature against the intent bound to this order.

        The signature is recomputed over the order's own gateway_order_id so a
        callback minted for a different intent never verifies.
        """
        gateway_order_id = order.gateway_order_id or ""
        if callback["gateway_order_id"] != gateway_order_id:
            return VerificationOutcome.SIGNATURE_MISMATCH
        if not self.signature_matches(gateway_order_id, callback["gateway_payment_id"], callback["signature"]):
            return VerificationOutcome.SIGNATURE_MISMATCH
        return VerificationOutcome.VERIFIED

    def refund(self, order: Order) -> GatewayRefund:
        """Refund the full gross total of the captured payment. Does not touch the order."""
        amount = to_minor_units(order.total_amount)
        body = self.refund_payment(
            order.gateway_payment_id,
            amount_minor_units=amount,
            receipt=f"refund-{order.order_number}",
        )
        return GatewayRefund(refund_id=body["id"], amount_minor_units=int(body.get("amount", amount)))


def init_app(app) -> RazorpayGateway:
    """Build the gateway from config. Raises GatewayConfigError if keys are missing."""
    gateway = RazorpayGateway(
        app.config.get("RAZORPAY_KEY_ID"),
        app.config.get("RAZORPAY_KEY_SECRET"),
        base_url=app.config.get("RAZORPAY_BASE_URL", "https://api.razorpay.com/v1"),
        currency=app.config.get("PAYMENT_CURRENCY", "INR"),
        timeout=app.config.get("GATEWAY_TIMEOUT_SECONDS", 10.0),
    )
    app.extensions[EXTENSION_KEY] = gateway
    return gateway


def get_gateway() -> RazorpayGateway:
    return current_app.extensions[EXTENSION_KEY]
