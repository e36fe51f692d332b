# backend/storefront/routes/tracking.py
"""Public order tracking lookup (no authentication, no personal data)."""

from flask import Blueprint, jsonify, current_app

from ..projections import project_tracking
from ..services import order_service
from ..validation import NotFoundError


tracking_bp = Blueprint("tracking", __name__, url_prefix="/api/tracking")


@tracking_bp.get("/<order_number>")
def get_tracking_route(order_number: str):
    try:
        order = order_service.get_tracking(order_number)
        return jsonify(project_tracking(order)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load tracking")
        return jsonify({"error": "Internal server error"}), 500
