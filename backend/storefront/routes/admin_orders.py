# Overview: Flask API routes for admin order operations (listing, tracking, refunds).

# backend/storefront/routes/admin_orders.py
"""
Admin Order API Routes

SECURITY:
- All routes require a bearer token for a user with role == "admin"
- Refunds call the payment gateway at most once per request
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..projections import project_order, AUDIENCE_ADMIN
from ..services import order_service
from ..services.gateway_service import GatewayUnavailableError
from ..validation import OrderDomainError
from ..decorators import require_auth, require_admin


admin_orders_bp = Blueprint("admin_orders", __name__, url_prefix="/api/admin/orders")


@admin_orders_bp.get("/")
@require_auth
@require_admin
def list_all_orders_route():
    """
    List every order, newest first.

    Query params:
        status: Optional order status filter (Pending, Confirmed, ...)
    """
    try:
        orders = order_service.list_all_orders(g.principal, status=request.args.get("status"))
        return jsonify({
            "orders": [project_order(order, audience=AUDIENCE_ADMIN) for order in orders]
        }), 200
    except OrderDomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@admin_orders_bp.put("/<order_number>/tracking")
@require_auth
@require_admin
def update_tracking_route(order_number: str):
    """
    Set tracking details and sync the order status.

    Request body (all required):
    {
        "reference_number": "AWB123",
        "estimate_date": "2026-10-20",
        "courier_partner": "Delhivery",
        "tracking_link": "https://track.example/AWB123",
        "status": "Picked by Courier"
    }

    Status mapping:
    - Picked by Courier -> Shipped
    - Delivered -> Delivered
    - Order Confirmed -> Confirmed (unless still Pending)
    - On the Way / Ready for Pickup -> unchanged

    Returns:
        200: Updated order
        400: Missing/invalid tracking fields
        409: Order cancelled or already delivered
    """
    try:
        order = order_service.update_tracking(g.principal, order_number, request.get_json(silent=True))
        return jsonify({"order": project_order(order, audience=AUDIENCE_ADMIN)}), 200
    except OrderDomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update tracking")
        return jsonify({"error": "Internal server error"}), 500


@admin_orders_bp.post("/<order_number>/refund")
@require_auth
@require_admin
def refund_order_route(order_number: str):
    """
    Refund the full amount of a cancelled, gateway-paid order.

    Returns:
        200: {"refunded": bool, "order": {...}} (refunded=False if already done)
        409: Not a cancelled gateway-paid order
        503: Gateway refused or unreachable (refund_status set to Failed)
    """
    try:
        order, refunded_now = order_service.refund_order(g.principal, order_number)
        return jsonify({
            "refunded": refunded_now,
            "message": "Refund processed" if refunded_now else "Order already refunded",
            "order": project_order(order, audience=AUDIENCE_ADMIN),
        }), 200
    except OrderDomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except GatewayUnavailableError as e:
        return jsonify({"error": "Refund failed", "message": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to refund order")
        return jsonify({"error": "Internal server error"}), 500
