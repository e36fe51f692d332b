# Overview: Reads a user's cart into immutable order-line snapshots.

"""
Cart Snapshot Reader

WHY: An order must capture what the customer is buying at the instant it is
placed: the catalog price right now and enough stock to cover each line.
Cart mutation lives elsewhere; this module only reads and, once the order is
written, clears.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..extensions import db
from ..models import Cart, Product
from ..validation import EmptyCartError, InsufficientStockError, NotFoundError


@dataclass(frozen=True)
class OrderLineSnapshot:
    product_id: int
    sku: str
    product_name: str
    quantity: int
    unit_price: Decimal


def get_cart(user_id: int) -> Cart | None:
    return db.session.query(Cart).filter_by(user_id=user_id).first()


def materialize_order_items(cart: Cart | None) -> list[OrderLineSnapshot]:
    """
    Resolve each cart line against the catalog.

    Returns:
        Snapshots in cart order, priced from the catalog (not the cart)

    Raises:
        EmptyCartError: no cart or zero lines
        NotFoundError: a product no longer exists or is inactive
        InsufficientStockError: quantity exceeds current availability
    """
    if cart is None or not cart.items:
        raise EmptyCartError()

    snapshots = []
    for line in cart.items:
        product = db.session.query(Product).filter_by(id=line.product_id).first()
        if product is None or not product.is_active:
            raise NotFoundError(
                "One or more products not found",
                details={"product_id": line.product_id},
            )

        if line.quantity > product.availability:
            raise InsufficientStockError(
                product_name=product.name,
                product_id=product.id,
                available=product.availability,
                requested=line.quantity,
            )

        snapshots.append(OrderLineSnapshot(
            product_id=product.id,
            sku=product.sku,
            product_name=product.name,
            quantity=line.quantity,
            unit_price=Decimal(product.price),
        ))

    return snapshots


def clear_cart(cart: Cart) -> None:
    """Remove all lines. Caller commits, after the order row is flushed."""
    cart.items.clear()
