# Overview: GST back-calculation for order totals; pure functions, no database work.

"""
Pricing Engine

WHY: Catalog prices are GST-inclusive. The customer is charged the literal
sum of line prices; base price and tax are derived from that sum for display.

RULES:
- gross_total = sum(unit_price * quantity), exact, never rounded
- base_price  = round_half_up(gross_total / (1 + rate), 2)
- tax_amount  = round_half_up(gross_total - base_price, 2)

NOTE: A single fixed rate applies to every line. Per-product rates are not
supported.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable

from ..validation import ValidationError


GST_RATE = Decimal("0.18")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: Decimal
    tax_amount: Decimal
    gross_total: Decimal

    def to_dict(self) -> dict:
        return {
            "base_price": str(self.base_price),
            "tax_amount": str(self.tax_amount),
            "gross_total": str(self.gross_total),
        }


def round2(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        # str() first so floats like 0.1 keep their printed value
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number")


def _line_values(item: Any) -> tuple[Decimal, int]:
    if isinstance(item, dict):
        unit_price, quantity = item.get("unit_price"), item.get("quantity")
    else:
        unit_price, quantity = getattr(item, "unit_price", None), getattr(item, "quantity", None)

    price = to_decimal(unit_price, "unit_price")
    if price < 0:
        raise ValidationError("unit_price must not be negative")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError("quantity must be a positive integer")
    return price, quantity


def gross_total(items: Iterable[Any]) -> Decimal:
    return sum((price * qty for price, qty in map(_line_values, items)), Decimal("0"))


def compute_totals(items: Iterable[Any], rate: Decimal = GST_RATE) -> PriceBreakdown:
    """
    Derive base price, tax and gross total from GST-inclusive lines.

    Args:
        items: mappings or objects exposing unit_price and quantity
        rate: tax rate baked into unit prices

    Returns:
        PriceBreakdown

    Raises:
        ValidationError: negative price or non-positive quantity
    """
    gross = gross_total(items)
    base = round2(gross / (Decimal("1") + rate))
    tax = round2(gross - base)
    return PriceBreakdown(base_price=base, tax_amount=tax, gross_total=gross)


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to integer minor units (paise), rounding half-up."""
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
