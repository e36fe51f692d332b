# Overview: Flask API routes for customer order operations; parses input and returns JSON responses.

# backend/storefront/routes/orders.py
"""
Customer Order API Routes

WHY: Thin HTTP glue over order_service. Every route resolves the bearer
token to a principal and passes it to the service, which enforces ownership.

DESIGN:
- Create an order from the caller's cart (COD or gateway payment)
- List / view own orders
- Confirm, cancel, and drive the gateway payment flow

ERRORS:
- 400 validation, 404 not found or not owned, 409 state conflict
- 503 payment gateway unavailable (safe to retry)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..projections import project_order
from ..services import order_service
from ..services.gateway_service import GatewayUnavailableError
from ..validation import OrderDomainError
from ..decorators import require_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _error_response(e):
    return jsonify(e.to_dict()), e.status_code


# =============================================================================
# ORDER CREATION
# =============================================================================

@orders_bp.post("/")
@require_auth
def create_order_route():
    """
    Create an order from the caller's cart.

    Request body:
    {
        "address_id": 3,                      (or an inline "address" object)
        "address": {"name": "...", "mobile": "...", "address": "...",
                    "city": "...", "state": "...", "postal": "..."},
        "payment_method": "CashOnDelivery",   (or "Gateway")
        "delivery_note": "Leave at the gate"  (optional)
    }

    Returns:
        201: Order created (status Pending)
        400: Empty cart, insufficient stock, invalid address
        404: Saved address or product not found
    """
    try:
        data = request.get_json(silent=True) or {}

        order = order_service.create_order(
            g.principal,
            address=data.get("address"),
            address_id=data.get("address_id"),
            payment_method=data.get("payment_method"),
            delivery_note=data.get("delivery_note"),
        )

        return jsonify({"order": project_order(order)}), 201

    except OrderDomainError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ORDER QUERIES
# =============================================================================

@orders_bp.get("/")
@require_auth
def list_orders_route():
    try:
        orders = order_service.list_orders(g.principal)
        return jsonify({"orders": [project_order(order) for order in orders]}), 200
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<order_number>")
@require_auth
def get_order_route(order_number: str):
    try:
        order = order_service.get_order(g.principal, order_number)
        return jsonify({"order": project_order(order)}), 200
    except OrderDomainError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LIFECYCLE
# =============================================================================

@orders_bp.post("/<order_number>/confirm")
@require_auth
def confirm_order_route(order_number: str):
    """
    Confirm an order (COD, or an already paid gateway order).

    Request body (optional):
    {
        "delivery_note": "Ring twice"
    }

    Returns:
        200: Order confirmed
        409: Not Pending/Confirmed, or gateway payment not verified
    """
    try:
        data = request.get_json(silent=True) or {}

        order = order_service.confirm_order(
            g.principal,
            order_number,
            delivery_note=data.get("delivery_note"),
        )

        return jsonify({"order": project_order(order)}), 200

    except OrderDomainError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to confirm order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_number>/cancel")
@require_auth
def cancel_order_route(order_number: str):
    """
    Cancel a Confirmed order before the courier is assigned.

    Returns:
        200: Order cancelled (refund_status Pending for paid gateway orders)
        409: Order cannot be cancelled at this stage
    """
    try:
        order = order_service.cancel_order(g.principal, order_number)
        return jsonify({"order": project_order(order)}), 200
    except OrderDomainError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# GATEWAY PAYMENT
# =============================================================================

@orders_bp.post("/<order_number>/payment/intent")
@require_auth
def create_payment_intent_route(order_number: str):
    """
    Create a gateway payment intent for the order total.

    Returns:
        201: {"intent": {...}, "key_id": "...", "order": {...}}
        409: Already paid or not payable
        503: Gateway unavailable
    """
    try:
        order, intent = order_service.create_payment_intent(g.principal, order_number)

        return jsonify({
            "intent": {
                "gateway_order_id": intent.gateway_order_id,
                "amount": intent.amount_minor_units,
                "currency": intent.currency,
            },
            "key_id": current_app.config.get("RAZORPAY_KEY_ID"),
            "order": project_order(order),
        }), 201

    except OrderDomainError as e:
        return _error_response(e)
    except GatewayUnavailableError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create payment intent")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_number>/payment/verify")
@require_auth
def verify_payment_route(order_number: str):
    """
    Verify the signed gateway callback.

    Request body:
    {
        "gateway_order_id": "order_...",
        "gateway_payment_id": "pay_...",
        "signature": "hex hmac"
    }

    Returns:
        200: Payment verified, order confirmed
        400: Missing fields, or signature mismatch (recorded as a failed payment)
        409: No intent created, or already paid by a different payment
    """
    try:
        result = order_service.verify_payment(g.principal, order_number, request.get_json(silent=True))

        if not result.verified:
            return jsonify({
                "error": "Invalid payment signature",
                "order": project_order(result.order),
            }), 400

        return jsonify({"verified": True, "order": project_order(result.order)}), 200

    except OrderDomainError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify payment")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<order_number>/payment/failed")
@require_auth
def mark_payment_failed_route(order_number: str):
    """
    Record a payment failure or checkout dismissal reported by the client.

    Request body (all optional):
    {
        "reason": "Payment cancelled by user",
        "gateway_order_id": "order_...",
        "gateway_payment_id": "pay_..."
    }

    Returns:
        200: {"recorded": bool, "order": {...}}
        409: Order already shipped/delivered, or no intent exists
    """
    try:
        order, changed = order_service.mark_payment_failed(
            g.principal, order_number, request.get_json(silent=True)
        )
        return jsonify({"recorded": changed, "order": project_order(order)}), 200
    except OrderDomainError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record payment failure")
        return jsonify({"error": "Internal server error"}), 500
