# Overview: Pure projection of Order entities into their external JSON shape.

"""
One projection for every consumer of an order: customer API responses, the
admin list, the public tracking endpoint and email bodies all read from
project_order(), so the shapes cannot drift apart.
"""

from __future__ import annotations

from .models import Order
from .services.pricing_service import compute_totals
from storefront.time_utils import to_utc_z


AUDIENCE_CUSTOMER = "customer"
AUDIENCE_ADMIN = "admin"
AUDIENCE_NOTIFICATION = "notification"


def project_items(order: Order) -> list[dict]:
    return [
        {
            "product_id": item.product_id,
            "sku": item.sku,
            "name": item.product_name,
            "quantity": item.quantity,
            "unit_price": str(item.unit_price),
            "line_total": str(item.line_total),
        }
        for item in order.items
    ]


def project_order(order: Order, *, audience: str = AUDIENCE_CUSTOMER) -> dict:
    """
    Project an order for the given audience.

    Totals are derived from the item snapshots for display; total_amount is
    the stored, charged figure.
    """
    totals = compute_totals(order.items)

    data = {
        "order_number": order.order_number,
        "items": project_items(order),
        "address": dict(order.shipping_address or {}),
        "base_price": str(totals.base_price),
        "tax_amount": str(totals.tax_amount),
        "total_amount": str(order.total_amount),
        "status": order.status,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "refund_status": order.refund_status,
        "refund_id": order.refund_id,
        "refund_initiated_at": to_utc_z(order.refund_initiated_at),
        "refund_completed_at": to_utc_z(order.refund_completed_at),
        "delivery_note": order.delivery_note,
        "tracking": order.tracking_dict(),
        "created_at": to_utc_z(order.created_at),
        "confirmed_at": to_utc_z(order.confirmed_at),
        "shipped_at": to_utc_z(order.shipped_at),
        "delivered_at": to_utc_z(order.delivered_at),
        "cancelled_at": to_utc_z(order.cancelled_at),
    }

    if audience == AUDIENCE_NOTIFICATION:
        return data

    data["updated_at"] = to_utc_z(order.updated_at)

    if audience == AUDIENCE_ADMIN:
        user = order.user
        data["user"] = {"id": user.id, "name": user.name, "email": user.email} if user else None
        data["gateway_order_id"] = order.gateway_order_id
        data["gateway_payment_id"] = order.gateway_payment_id
        data["payment_history"] = [event.to_dict() for event in order.payment_history]
        data["notifications"] = [flag.to_dict() for flag in order.notifications]
        data["version_id"] = order.version_id

    return data


def project_tracking(order: Order) -> dict:
    """Public tracking view: no personal data."""
    return {
        "order_number": order.order_number,
        "status": order.status,
        "tracking": order.tracking_dict(),
    }
