# Overview: Order lifecycle and payment state machine; encapsulates business logic and database work.

"""
Order State Machine

================================================================================
PURPOSE: Govern every status, payment and refund transition of an order
================================================================================

STATE MACHINE:
    Pending -> Confirmed -> Shipped -> Delivered
    Pending/Confirmed -> Cancelled

    Delivered and Cancelled are terminal.

RULES:
1. Validation, not-found and conflict errors are raised before any write
2. Each transition is one read-modify-write of the order row (version checked)
3. Side effects run in order: status change -> timestamp stamping -> commit
   -> notification dispatch -> notification flag commit
4. Lifecycle timestamps are stamped once; the first transition wins
5. Payment history is append-only; refunds are negative entries
6. Notification failures are recorded on the order and logged, never raised
7. Gateway calls happen outside the retried DB block, at most once per request

================================================================================
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Address, Order, OrderItem, OrderNotification, OrderPaymentEvent
from ..models.orders import (
    ORDER_PENDING,
    ORDER_CONFIRMED,
    ORDER_SHIPPED,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
    ORDER_STATUSES,
    METHOD_COD,
    METHOD_GATEWAY,
    PAYMENT_METHODS,
    PAYMENT_PENDING,
    PAYMENT_PAID,
    PAYMENT_FAILED,
    REFUND_NOT_APPLICABLE,
    REFUND_PENDING,
    REFUND_REFUNDED,
    REFUND_FAILED,
    TRACKING_ORDER_CONFIRMED,
    TRACKING_PICKED,
    TRACKING_ON_THE_WAY,
    TRACKING_READY_FOR_PICKUP,
    TRACKING_DELIVERED,
    TRACKING_STATUSES,
)
from ..projections import project_order, AUDIENCE_NOTIFICATION
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    ForbiddenError,
    validate_address_payload,
    validate_tracking_payload,
    validate_gateway_callback,
)
from storefront.time_utils import utcnow
from . import cart_service, pricing_service
from .concurrency import lock_for_update, run_with_retry
from .gateway_service import (
    PROVIDER_NAME,
    GatewayIntent,
    GatewayUnavailableError,
    VerificationOutcome,
    bind_intent,
    get_gateway,
)
from .notification_service import (
    KIND_ORDER_CONFIRMED,
    KIND_SHIPPED,
    KIND_CANCELLED,
    KIND_REFUNDED,
    NOTIFICATION_KINDS,
    get_dispatcher,
)
from .session_service import Principal


STATUS_TIMESTAMPS = {
    ORDER_CONFIRMED: "confirmed_at",
    ORDER_SHIPPED: "shipped_at",
    ORDER_DELIVERED: "delivered_at",
    ORDER_CANCELLED: "cancelled_at",
}

# Tracking statuses meaning the parcel is with the courier
COURIER_STAGES = {TRACKING_PICKED, TRACKING_ON_THE_WAY, TRACKING_READY_FOR_PICKUP, TRACKING_DELIVERED}

MAX_DELIVERY_NOTE_LENGTH = 500


@dataclass(frozen=True)
class PaymentVerification:
    order: Order
    outcome: VerificationOutcome

    @property
    def verified(self) -> bool:
        return self.outcome is VerificationOutcome.VERIFIED


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def generate_order_number() -> str:
    """Human-facing order id: date prefix plus 40 random bits."""
    return f"ORD-{utcnow():%Y%m%d}-{uuid.uuid4().hex[:10].upper()}"


def _require_admin(principal: Principal) -> None:
    if not principal.is_admin:
        raise ForbiddenError("Admin access required")


def _load_order(order_number: str, principal: Principal | None = None, *, lock: bool = False) -> Order:
    """
    Fetch an order by its human-facing number.

    Non-admin principals only see their own orders; someone else's order is
    reported as not found.
    """
    query = db.session.query(Order).filter_by(order_number=order_number)
    if principal is not None and not principal.is_admin:
        query = query.filter_by(user_id=principal.user_id)
    if lock:
        query = lock_for_update(query)

    order = query.first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def _set_status(order: Order, status: str) -> None:
    """Change status, then stamp the matching lifecycle timestamp if unset."""
    order.status = status
    field = STATUS_TIMESTAMPS.get(status)
    if field and getattr(order, field) is None:
        setattr(order, field, utcnow())


def _record_payment_event(
    order: Order,
    status: str,
    amount: Decimal,
    transaction_ref: str | None,
    reason: str | None = None,
) -> OrderPaymentEvent:
    event = OrderPaymentEvent(
        status=status,
        provider=PROVIDER_NAME,
        amount=amount,
        currency=current_app.config.get("PAYMENT_CURRENCY", "INR"),
        transaction_ref=transaction_ref,
        reason=reason,
        occurred_at=utcnow(),
    )
    order.payment_history.append(event)
    return event


def _clean_note(value) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError("delivery_note must be a string")
    note = value.strip()
    if len(note) > MAX_DELIVERY_NOTE_LENGTH:
        raise ValidationError(f"delivery_note must be at most {MAX_DELIVERY_NOTE_LENGTH} characters")
    return note


def _resolve_shipping_address(principal: Principal, address, address_id) -> dict:
    if address_id is not None:
        try:
            address_id = int(address_id)
        except (TypeError, ValueError):
            raise ValidationError("address_id must be an integer")

        saved = db.session.query(Address).filter_by(id=address_id, user_id=principal.user_id).first()
        if saved is None:
            raise NotFoundError("Address not found")
        return saved.to_snapshot()

    if address:
        return validate_address_payload(address)

    raise ValidationError("Shipping address is required")


def _dispatch_notification(order_id: int, kind: str) -> bool:
    """
    Send one notification kind for an order unless it was already sent.

    Runs after the triggering transition has committed. The outcome is stored
    on the order's notification flag. Never raises.

    Best effort, not exactly-once: the flag is read without a lock, so two
    concurrent first dispatches of one kind may both send. The slower one then
    fails on uq_order_notifications_order_kind and its attempt is rolled back.

    Returns:
        True if the notification is (now or previously) sent
    """
    try:
        order = db.session.get(Order, order_id)
        if order is None:
            return False

        flag = order.notification(kind)
        if flag is not None and flag.sent:
            return True
        if flag is None:
            flag = OrderNotification(kind=kind, sent=False, attempts=0)
            order.notifications.append(flag)

        user = order.user
        recipient = {"name": user.name, "email": user.email} if user else None
        summary = project_order(order, audience=AUDIENCE_NOTIFICATION)

        result = get_dispatcher().notify(kind, summary, recipient)

        flag.attempts = (flag.attempts or 0) + 1
        if result.success:
            flag.sent = True
            flag.sent_at = utcnow()
            flag.last_error = None
        else:
            flag.last_error = (result.error or "Unknown error")[:500]

        db.session.commit()
        return result.success
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record %s notification for order id %s", kind, order_id)
        return False


# =============================================================================
# ORDER CREATION
# =============================================================================

def create_order(
    principal: Principal,
    *,
    address: dict | None = None,
    address_id=None,
    payment_method: str | None = None,
    delivery_note: str | None = None,
) -> Order:
    """
    Create a Pending order from the caller's cart.

    WHY: Captures items, prices and address as snapshots and fixes the
    GST-inclusive total once. The cart is cleared in the same transaction,
    after the order rows are flushed, so a failed write never loses the cart.

    Args:
        principal: Authenticated caller (order owner)
        address: Inline shipping address (used when address_id is absent)
        address_id: Saved address id owned by the caller
        payment_method: CashOnDelivery (default) or Gateway
        delivery_note: Optional free text for the courier

    Returns:
        Created order (status Pending, payment Pending)

    Raises:
        ValidationError: No address, bad address, empty cart, insufficient stock
        NotFoundError: Saved address or a product not found
    """
    if payment_method in (None, ""):
        payment_method = METHOD_COD
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {payment_method}. Must be one of {list(PAYMENT_METHODS)}")

    shipping_address = _resolve_shipping_address(principal, address, address_id)
    note = _clean_note(delivery_note)

    def _op():
        cart = cart_service.get_cart(principal.user_id)
        lines = cart_service.materialize_order_items(cart)
        totals = pricing_service.compute_totals(lines)

        order = Order(
            order_number=generate_order_number(),
            user_id=principal.user_id,
            shipping_address=shipping_address,
            total_amount=totals.gross_total,
            status=ORDER_PENDING,
            payment_method=payment_method,
            payment_status=PAYMENT_PENDING,
            refund_status=REFUND_NOT_APPLICABLE,
            delivery_note=note,
            created_at=utcnow(),
        )
        for position, line in enumerate(lines, start=1):
            order.items.append(OrderItem(
                position=position,
                product_id=line.product_id,
                sku=line.sku,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
            ))

        db.session.add(order)
        db.session.flush()

        cart_service.clear_cart(cart)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order %s created for user %s (total %s, %s)",
        order.order_number, order.user_id, order.total_amount, order.payment_method,
    )
    return order


# =============================================================================
# QUERIES
# =============================================================================

def get_order(principal: Principal, order_number: str) -> Order:
    return _load_order(order_number, principal)


def list_orders(principal: Principal) -> list[Order]:
    """The caller's own orders, newest first."""
    return (
        db.session.query(Order)
        .filter_by(user_id=principal.user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def list_all_orders(principal: Principal, status: str | None = None) -> list[Order]:
    """All orders for the admin view, optionally filtered by status."""
    _require_admin(principal)

    query = db.session.query(Order)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status: {status}. Must be one of {list(ORDER_STATUSES)}")
        query = query.filter_by(status=status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_tracking(order_number: str) -> Order:
    """Public lookup used by the tracking page (no ownership check)."""
    return _load_order(order_number)


# =============================================================================
# CONFIRMATION
# =============================================================================

def confirm_order(principal: Principal, order_number: str, delivery_note: str | None = None) -> Order:
    """
    Confirm an order by explicit action (Pending/Confirmed -> Confirmed).

    WHY: Cash-on-delivery orders have no payment callback; the customer or an
    admin confirms them. Gateway orders are confirmed by payment verification
    and can only be re-confirmed here once paid.

    Raises:
        NotFoundError: Order not found / not owned
        ConflictError: Status not Pending/Confirmed, or gateway payment unverified
    """
    note = _clean_note(delivery_note) if delivery_note is not None else None

    def _op():
        order = _load_order(order_number, principal, lock=True)

        if order.status not in (ORDER_PENDING, ORDER_CONFIRMED):
            raise ConflictError(f"Cannot confirm order with status {order.status}")

        if order.payment_method == METHOD_GATEWAY and order.payment_status != PAYMENT_PAID:
            raise ConflictError("Online payment must be verified before the order is confirmed")

        if note is not None:
            order.delivery_note = note

        if order.status != ORDER_CONFIRMED:
            _set_status(order, ORDER_CONFIRMED)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    _dispatch_notification(order.id, KIND_ORDER_CONFIRMED)
    return order


# =============================================================================
# GATEWAY PAYMENT
# =============================================================================

def _ensure_payable(order: Order) -> None:
    if order.payment_status == PAYMENT_PAID:
        raise ConflictError("Order is already paid")
    if order.status not in (ORDER_PENDING, ORDER_CONFIRMED):
        raise ConflictError(f"Cannot take payment for order with status {order.status}")


def create_payment_intent(principal: Principal, order_number: str) -> tuple[Order, GatewayIntent]:
    """
    Create a gateway payment intent for the order's gross total.

    The gateway is called once, before anything is written. If it is
    unavailable, GatewayUnavailableError propagates and the order is unchanged.

    Raises:
        NotFoundError, ConflictError, GatewayUnavailableError
    """
    order = _load_order(order_number, principal)
    _ensure_payable(order)

    intent = get_gateway().create_intent(order)

    def _op():
        current = _load_order(order_number, principal, lock=True)
        _ensure_payable(current)
        bind_intent(current, intent)
        db.session.commit()
        return current

    order = run_with_retry(_op)
    current_app.logger.info("Payment intent %s created for order %s", intent.gateway_order_id, order.order_number)
    return order, intent


def verify_payment(principal: Principal, order_number: str, payload: dict | None) -> PaymentVerification:
    """
    Verify a signed gateway callback.

    Signature mismatch is a recorded negative result: payment_status becomes
    Failed and a Failed history entry is appended, but the order status is
    untouched so a forged callback cannot cancel a legitimate order.

    On success the payment is recorded (Paid), a Pending order moves to
    Confirmed, and after commit the confirmation notification is sent if it
    has not been already. Replaying an already verified callback is a no-op;
    the signature is still checked first, so a forged replay is a mismatch
    and a Paid order is never downgraded.

    Raises:
        ValidationError: Missing callback fields
        NotFoundError: Order not found / not owned
        ConflictError: No intent created, or already paid by another payment
    """
    callback = validate_gateway_callback(payload)
    gateway = get_gateway()

    def _op():
        order = _load_order(order_number, principal, lock=True)

        if not order.gateway_order_id:
            raise ConflictError("No payment has been initiated for this order")

        outcome = gateway.verify_callback(order, callback)

        if order.payment_status == PAYMENT_PAID:
            # A bad signature never downgrades a captured payment
            if outcome is VerificationOutcome.SIGNATURE_MISMATCH:
                return PaymentVerification(order, outcome)
            if order.gateway_payment_id == callback["gateway_payment_id"]:
                return PaymentVerification(order, VerificationOutcome.VERIFIED)
            raise ConflictError("Order is already paid")

        if outcome is VerificationOutcome.SIGNATURE_MISMATCH:
            order.payment_status = PAYMENT_FAILED
            _record_payment_event(
                order,
                PAYMENT_FAILED,
                order.total_amount,
                callback["gateway_payment_id"],
                reason="Invalid payment signature",
            )
            db.session.commit()
            return PaymentVerification(order, outcome)

        order.payment_status = PAYMENT_PAID
        order.payment_method = METHOD_GATEWAY
        order.gateway_payment_id = callback["gateway_payment_id"]
        order.gateway_signature = callback["signature"]

        if order.status == ORDER_PENDING:
            _set_status(order, ORDER_CONFIRMED)
        elif order.status == ORDER_CANCELLED and order.refund_status != REFUND_REFUNDED:
            # Captured after the order was cancelled: money must go back
            order.refund_status = REFUND_PENDING

        _record_payment_event(order, PAYMENT_PAID, order.total_amount, callback["gateway_payment_id"])

        db.session.commit()
        return PaymentVerification(order, outcome)

    result = run_with_retry(_op)

    if result.verified:
        if result.order.status != ORDER_CANCELLED:
            _dispatch_notification(result.order.id, KIND_ORDER_CONFIRMED)
    else:
        current_app.logger.warning(
            "Payment signature mismatch for order %s (payment %s)",
            order_number, callback["gateway_payment_id"],
        )
    return result


def mark_payment_failed(principal: Principal, order_number: str, payload: dict | None) -> tuple[Order, bool]:
    """
    Record an explicit payment failure/cancel event from the checkout.

    Ignored once the order is Paid. A repeat of the same failure (same
    transaction reference) is not recorded twice.

    Returns:
        (order, changed)

    Raises:
        NotFoundError: Order not found / not owned
        ConflictError: Order already shipped/delivered, or no intent exists
    """
    payload = payload if isinstance(payload, dict) else {}
    reason = str(payload.get("reason") or "").strip()[:255] or "Payment cancelled/failed"
    incoming_ref = payload.get("gateway_payment_id") or payload.get("gateway_order_id") or None
    if incoming_ref is not None:
        incoming_ref = str(incoming_ref)[:128]

    def _op():
        order = _load_order(order_number, principal, lock=True)

        if order.payment_status == PAYMENT_PAID:
            return order, False

        already_failed = order.status == ORDER_CANCELLED and order.payment_status == PAYMENT_FAILED
        duplicate = incoming_ref is not None and any(
            event.transaction_ref == incoming_ref and event.status == PAYMENT_FAILED
            for event in order.payment_history
        )
        if already_failed and duplicate:
            return order, False

        if order.status in (ORDER_SHIPPED, ORDER_DELIVERED):
            raise ConflictError(f"Cannot fail payment for order with status {order.status}")

        if not order.gateway_order_id:
            raise ConflictError("No payment has been initiated for this order")

        order.payment_status = PAYMENT_FAILED
        order.payment_method = METHOD_GATEWAY
        if order.status != ORDER_CANCELLED:
            _set_status(order, ORDER_CANCELLED)
        order.refund_status = REFUND_NOT_APPLICABLE

        transaction_ref = incoming_ref or f"gw-fail-{uuid.uuid4().hex[:12]}"
        _record_payment_event(order, PAYMENT_FAILED, order.total_amount, transaction_ref, reason=reason)

        db.session.commit()
        return order, True

    order, changed = run_with_retry(_op)
    if changed:
        current_app.logger.info("Order %s cancelled after payment failure: %s", order.order_number, reason)
        _dispatch_notification(order.id, KIND_CANCELLED)
    return order, changed


# =============================================================================
# CANCELLATION
# =============================================================================

def cancel_order(principal: Principal, order_number: str) -> Order:
    """
    Cancel a Confirmed order before a courier is assigned.

    Allowed only when status is exactly Confirmed and no tracking field is
    populated. Gateway-paid orders move to refund Pending; everything else is
    NotApplicable.

    Raises:
        NotFoundError: Order not found / not owned
        ConflictError: Any other status, or tracking already populated
    """
    def _op():
        order = _load_order(order_number, principal, lock=True)

        if order.status != ORDER_CONFIRMED or order.has_tracking:
            raise ConflictError(
                "Order cannot be cancelled at this stage.",
                details={"status": order.status, "has_tracking": order.has_tracking},
            )

        _set_status(order, ORDER_CANCELLED)

        if order.payment_method == METHOD_GATEWAY and order.payment_status == PAYMENT_PAID:
            order.refund_status = REFUND_PENDING
        else:
            order.refund_status = REFUND_NOT_APPLICABLE

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s cancelled (refund %s)", order.order_number, order.refund_status)
    _dispatch_notification(order.id, KIND_CANCELLED)
    return order


# =============================================================================
# TRACKING
# =============================================================================

def map_tracking_status(current_status: str, tracking_status: str) -> str:
    """
    Coarse order status implied by a tracking status.

    Deterministic in (current_status, tracking_status), so replaying the same
    tracking update always lands on the same order status.
    """
    if tracking_status == TRACKING_PICKED:
        return ORDER_SHIPPED
    if tracking_status == TRACKING_DELIVERED:
        return ORDER_DELIVERED
    if tracking_status == TRACKING_ORDER_CONFIRMED:
        return ORDER_PENDING if current_status == ORDER_PENDING else ORDER_CONFIRMED
    return current_status


def update_tracking(principal: Principal, order_number: str, payload: dict | None) -> Order:
    """
    Admin: set the tracking sub-record and sync the coarse order status.

    All five tracking fields are required. The first courier-stage update
    triggers the shipping notification.

    Raises:
        ForbiddenError: Caller is not an admin
        ValidationError: Missing or malformed tracking fields
        NotFoundError: Order not found
        ConflictError: Order cancelled, or delivered and update is not Delivered
    """
    _require_admin(principal)
    values = validate_tracking_payload(payload, TRACKING_STATUSES)

    def _op():
        order = _load_order(order_number, lock=True)

        if order.status == ORDER_CANCELLED:
            raise ConflictError("Cannot update tracking for a cancelled order")
        if order.status == ORDER_DELIVERED and values["status"] != TRACKING_DELIVERED:
            raise ConflictError("Order has already been delivered")

        incoming = (
            values["reference_number"],
            values["estimate_date"],
            values["courier_partner"],
            values["tracking_link"],
            values["status"],
        )
        current = (
            order.tracking_reference_number,
            order.tracking_estimate_date,
            order.tracking_courier_partner,
            order.tracking_link,
            order.tracking_status,
        )
        if incoming != current:
            (
                order.tracking_reference_number,
                order.tracking_estimate_date,
                order.tracking_courier_partner,
                order.tracking_link,
                order.tracking_status,
            ) = incoming
            order.tracking_updated_at = utcnow()

        target = map_tracking_status(order.status, values["status"])
        if target != order.status:
            _set_status(order, target)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Tracking for order %s set to %r (status %s)", order.order_number, values["status"], order.status
    )
    if values["status"] in COURIER_STAGES:
        _dispatch_notification(order.id, KIND_SHIPPED)
    return order


# =============================================================================
# REFUNDS
# =============================================================================

def _ensure_refundable(order: Order) -> None:
    if order.payment_method != METHOD_GATEWAY or order.payment_status != PAYMENT_PAID:
        raise ConflictError("Refund not applicable for this order")
    if order.status != ORDER_CANCELLED:
        raise ConflictError("Order must be cancelled before refund")


def refund_order(principal: Principal, order_number: str) -> tuple[Order, bool]:
    """
    Admin: refund the full gross total of a cancelled, gateway-paid order.

    Already Refunded -> returns (order, False) without calling the gateway or
    writing history. Gateway failure sets refund_status = Failed (no history
    entry) and re-raises GatewayUnavailableError; it is never retried here.

    Returns:
        (order, refunded_now)

    Raises:
        ForbiddenError, NotFoundError, ConflictError, GatewayUnavailableError
    """
    _require_admin(principal)

    order = _load_order(order_number)
    _ensure_refundable(order)

    if order.refund_status == REFUND_REFUNDED:
        return order, False

    if not order.gateway_payment_id:
        raise ConflictError("Payment ID not found for refund")

    initiated_at = utcnow()
    try:
        refund = get_gateway().refund(order)
    except GatewayUnavailableError:
        def _mark_failed():
            current = _load_order(order_number, lock=True)
            if current.refund_status != REFUND_REFUNDED:
                current.refund_status = REFUND_FAILED
            db.session.commit()

        run_with_retry(_mark_failed)
        current_app.logger.error("Refund failed for order %s", order_number)
        raise

    def _op():
        current = _load_order(order_number, lock=True)
        if current.refund_status == REFUND_REFUNDED:
            return current, False

        current.refund_status = REFUND_REFUNDED
        current.refund_id = refund.refund_id
        current.refund_initiated_at = current.refund_initiated_at or initiated_at
        current.refund_completed_at = utcnow()
        _record_payment_event(current, REFUND_REFUNDED, -current.total_amount, refund.refund_id)

        db.session.commit()
        return current, True

    order, refunded_now = run_with_retry(_op)
    if refunded_now:
        current_app.logger.info("Order %s refunded (%s)", order.order_number, order.refund_id)
        _dispatch_notification(order.id, KIND_REFUNDED)
    return order, refunded_now


# =============================================================================
# RECONCILIATION
# =============================================================================

def applicable_notifications(order: Order) -> list[str]:
    """Notification kinds an order's current state calls for."""
    kinds = []
    if order.confirmed_at is not None and not (
        order.status == ORDER_CANCELLED and order.payment_status == PAYMENT_FAILED
    ):
        kinds.append(KIND_ORDER_CONFIRMED)
    if order.tracking_status in COURIER_STAGES:
        kinds.append(KIND_SHIPPED)
    if order.status == ORDER_CANCELLED:
        kinds.append(KIND_CANCELLED)
    if order.refund_status == REFUND_REFUNDED:
        kinds.append(KIND_REFUNDED)
    return kinds


def resend_notifications(order_number: str | None = None, kind: str | None = None) -> list[dict]:
    """
    Re-attempt notifications that the order's state calls for but that were
    never delivered. Flags already sent are skipped.

    Returns:
        One entry per attempt: {"order_number", "kind", "sent"}
    """
    if kind is not None and kind not in NOTIFICATION_KINDS:
        raise ValidationError(f"Invalid notification kind: {kind}. Must be one of {list(NOTIFICATION_KINDS)}")

    if order_number:
        orders = [_load_order(order_number)]
    else:
        orders = (
            db.session.query(Order)
            .filter(Order.status != ORDER_PENDING)
            .order_by(Order.id)
            .all()
        )

    attempts = []
    for order in orders:
        for pending_kind in applicable_notifications(order):
            if kind is not None and pending_kind != kind:
                continue
            flag = order.notification(pending_kind)
            if flag is not None and flag.sent:
                continue
            number = order.order_number
            sent = _dispatch_notification(order.id, pending_kind)
            attempts.append({"order_number": number, "kind": pending_kind, "sent": sent})
    return attempts
