from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


# =============================================================================
# ORDER STATUS (CONSTANTS)
# =============================================================================

ORDER_PENDING = "Pending"
ORDER_CONFIRMED = "Confirmed"
ORDER_SHIPPED = "Shipped"
ORDER_DELIVERED = "Delivered"
ORDER_CANCELLED = "Cancelled"

ORDER_STATUSES = (ORDER_PENDING, ORDER_CONFIRMED, ORDER_SHIPPED, ORDER_DELIVERED, ORDER_CANCELLED)
TERMINAL_STATUSES = {ORDER_DELIVERED, ORDER_CANCELLED}

METHOD_COD = "CashOnDelivery"
METHOD_GATEWAY = "Gateway"
PAYMENT_METHODS = (METHOD_COD, METHOD_GATEWAY)

PAYMENT_PENDING = "Pending"
PAYMENT_PAID = "Paid"
PAYMENT_FAILED = "Failed"

REFUND_NOT_APPLICABLE = "NotApplicable"
REFUND_PENDING = "Pending"
REFUND_REFUNDED = "Refunded"
REFUND_FAILED = "Failed"

# Courier-facing tracking statuses (admin-entered)
TRACKING_ORDER_CONFIRMED = "Order Confirmed"
TRACKING_PICKED = "Picked by Courier"
TRACKING_ON_THE_WAY = "On the Way"
TRACKING_READY_FOR_PICKUP = "Ready for Pickup"
TRACKING_DELIVERED = "Delivered"
TRACKING_STATUSES = (
    TRACKING_ORDER_CONFIRMED,
    TRACKING_PICKED,
    TRACKING_ON_THE_WAY,
    TRACKING_READY_FOR_PICKUP,
    TRACKING_DELIVERED,
)


class Order(db.Model):
    """
    Order aggregate.

    WHY: An order owns snapshots of its lines, shipping address and payment
    facts, so later catalog or address-book edits never change a placed order.

    LIFECYCLE:
        Pending -> Confirmed -> Shipped -> Delivered
        Pending/Confirmed -> Cancelled

    CONCURRENCY: version_id is checked on every flush, so two writers that
    read the same version cannot both commit (StaleDataError on the loser).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-facing identifier (e.g., "ORD-20260118-3FA2C9D10B"), never reassigned
    order_number = db.Column(db.String(64), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Denormalized copy of the shipping address at order time
    shipping_address = db.Column(db.JSON, nullable=False)

    # GST-inclusive gross total, fixed at creation
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ORDER_PENDING, index=True)
    payment_method = db.Column(db.String(32), nullable=False, default=METHOD_COD)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING, index=True)

    delivery_note = db.Column(db.String(500), nullable=False, default="")

    # Gateway binding
    gateway_order_id = db.Column(db.String(64), nullable=True, index=True)
    gateway_payment_id = db.Column(db.String(64), nullable=True)
    gateway_signature = db.Column(db.String(255), nullable=True)

    # Refunds (gateway-paid orders only)
    refund_status = db.Column(db.String(16), nullable=False, default=REFUND_NOT_APPLICABLE)
    refund_id = db.Column(db.String(64), nullable=True)
    refund_initiated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refund_completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Tracking sub-record (all empty until an admin assigns a courier)
    tracking_reference_number = db.Column(db.String(128), nullable=True)
    tracking_estimate_date = db.Column(db.DateTime(timezone=True), nullable=True)
    tracking_courier_partner = db.Column(db.String(128), nullable=True)
    tracking_link = db.Column(db.String(512), nullable=True)
    tracking_status = db.Column(db.String(32), nullable=True)
    tracking_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Lifecycle timestamps (first transition wins)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
    )
    payment_history = db.relationship(
        "OrderPaymentEvent",
        backref="order",
        lazy=True,
        order_by="OrderPaymentEvent.id",
    )
    notifications = db.relationship("OrderNotification", backref="order", lazy=True)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def has_tracking(self) -> bool:
        """True once any courier field has been populated."""
        return any((
            self.tracking_reference_number,
            self.tracking_estimate_date,
            self.tracking_courier_partner,
            self.tracking_link,
        ))

    def tracking_dict(self) -> dict | None:
        if not self.has_tracking and not self.tracking_status:
            return None
        return {
            "reference_number": self.tracking_reference_number or "",
            "estimate_date": to_utc_z(self.tracking_estimate_date),
            "courier_partner": self.tracking_courier_partner or "",
            "tracking_link": self.tracking_link or "",
            "status": self.tracking_status,
            "updated_at": to_utc_z(self.tracking_updated_at),
        }

    def notification(self, kind: str) -> "OrderNotification | None":
        for flag in self.notifications:
            if flag.kind == kind:
                return flag
        return None

    def __repr__(self) -> str:
        return f"<Order {self.order_number} status={self.status} payment={self.payment_status}>"


class OrderItem(db.Model):
    """Line item captured when the order was placed (price snapshot)."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    # Product reference plus the descriptive fields needed to render the order later
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)

    @property
    def line_total(self):
        return self.unit_price * self.quantity


class OrderPaymentEvent(db.Model):
    """
    Append-only payment history for an order.

    IMMUTABLE: Rows are never updated or deleted. Refunds are recorded with a
    negative amount.
    """
    __tablename__ = "order_payment_events"
    __table_args__ = (
        db.Index("ix_order_payment_events_order_ref", "order_id", "transaction_ref"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False)  # Paid, Failed, Refunded
    provider = db.Column(db.String(32), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="INR")
    transaction_ref = db.Column(db.String(128), nullable=True)
    reason = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "provider": self.provider,
            "amount": str(self.amount),
            "currency": self.currency,
            "transaction_ref": self.transaction_ref,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class OrderNotification(db.Model):
    """
    Delivery record for one notification kind on one order.

    sent flips to True once and is never reset; failures only record
    last_error so a later pass can retry.
    """
    __tablename__ = "order_notifications"
    __table_args__ = (
        db.UniqueConstraint("order_id", "kind", name="uq_order_notifications_order_kind"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    kind = db.Column(db.String(32), nullable=False)

    sent = db.Column(db.Boolean, nullable=False, default=False)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_error = db.Column(db.String(500), nullable=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "sent": self.sent,
            "sent_at": to_utc_z(self.sent_at),
            "last_error": self.last_error,
            "attempts": self.attempts,
        }
