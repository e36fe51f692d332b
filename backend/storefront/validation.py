from __future__ import annotations

from typing import Any

from storefront.time_utils import parse_estimate_date


class OrderDomainError(Exception):
    """Base for errors reported to the caller before any write happens."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(OrderDomainError, ValueError):
    """400-level input problem."""
    status_code = 400


class NotFoundError(OrderDomainError, LookupError):
    """404-level: record absent or not owned by the caller."""
    status_code = 404


class ConflictError(OrderDomainError, ValueError):
    """409-level business rule conflict (e.g., cancel after shipping)."""
    status_code = 409


class ForbiddenError(OrderDomainError, PermissionError):
    """403-level: operation requires the admin role."""
    status_code = 403


class EmptyCartError(ValidationError):
    def __init__(self):
        super().__init__("Cart is empty. Please add items to cart first.")


class InsufficientStockError(ValidationError):
    def __init__(self, product_name: str, product_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Only {available} available.",
            details={
                "product_id": product_id,
                "product": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.available = available


# =============================================================================
# PAYLOAD VALIDATION
# =============================================================================

ADDRESS_REQUIRED_FIELDS = ("name", "mobile", "address", "city", "state", "postal")
ADDRESS_OPTIONAL_FIELDS = ("email", "area")

TRACKING_FIELDS = ("reference_number", "estimate_date", "courier_partner", "tracking_link", "status")

GATEWAY_CALLBACK_FIELDS = ("gateway_payment_id", "gateway_order_id", "signature")


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        return None
    s = str(value).strip()
    return s or None


def validate_address_payload(data: Any) -> dict:
    """
    Validate an inline shipping address and return a normalized snapshot.

    Unknown keys are dropped; required keys must be non-empty strings.
    """
    if not isinstance(data, dict):
        raise ValidationError("Shipping address must be an object")

    missing = [f for f in ADDRESS_REQUIRED_FIELDS if not _clean_str(data.get(f))]
    if missing:
        raise ValidationError(
            f"Shipping address missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )

    snapshot = {f: _clean_str(data.get(f)) for f in ADDRESS_REQUIRED_FIELDS}
    for f in ADDRESS_OPTIONAL_FIELDS:
        snapshot[f] = _clean_str(data.get(f))
    return snapshot


def validate_tracking_payload(data: Any, allowed_statuses) -> dict:
    """
    Validate an admin tracking update. All fields are required.

    Returns a dict with estimate_date parsed to a datetime.
    """
    if not isinstance(data, dict):
        raise ValidationError("All tracking fields are required")

    values = {f: _clean_str(data.get(f)) for f in TRACKING_FIELDS}
    missing = [f for f, v in values.items() if not v]
    if missing:
        raise ValidationError("All tracking fields are required", details={"missing": missing})

    if values["status"] not in allowed_statuses:
        raise ValidationError(
            f"Invalid status value '{values['status']}'. Must be one of: {', '.join(allowed_statuses)}"
        )

    try:
        values["estimate_date"] = parse_estimate_date(values["estimate_date"])
    except ValueError:
        raise ValidationError("estimate_date must be an ISO-8601 date")

    link = values["tracking_link"]
    if not (link.startswith("http://") or link.startswith("https://")):
        raise ValidationError("tracking_link must be an http(s) URL")

    return values


def validate_gateway_callback(data: Any) -> dict:
    """Signed gateway callback: payment id, gateway order id and signature."""
    if not isinstance(data, dict):
        data = {}
    values = {f: _clean_str(data.get(f)) for f in GATEWAY_CALLBACK_FIELDS}
    if not all(values.values()):
        raise ValidationError("Missing payment details: gateway_payment_id, gateway_order_id and signature are required")
    return values
