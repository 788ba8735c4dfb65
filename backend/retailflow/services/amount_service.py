# Overview: Pure derivation of subtotal, discount, tax, total and due for a document.

"""
Derived Amount Calculator

Every monetary figure shown on a purchase or sale form is derived from four
inputs: the line items, the discount descriptor, the tax percentage and the
amount already paid. Nothing else is consulted, so the same inputs always
produce the same figures.

ORDER OF OPERATIONS:
    subtotal = sum(quantity * unit_price)
    discount = value                      (fixed)
             = subtotal * value / 100     (percentage)
    discount is clamped to subtotal       (total can never go negative)
    tax      = (subtotal - discount) * tax_percentage / 100
    total    = subtotal - discount + tax
    due      = total - paid_amount        (negative due is flagged, not clamped)

The POS screen and the sale form tax the full subtotal instead, so the same
cart shows a different tax there than the default above gives. Pass
TAX_BASE_SUBTOTAL to get `tax = subtotal * tax_percentage / 100` and match
those screens.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from ..validation import (
    InvalidDiscount,
    InvalidLineItem,
    ValidationError,
    from_cents,
    parse_money,
    parse_quantity,
    round_money,
    to_cents,
)


DISCOUNT_FIXED = "fixed"
DISCOUNT_PERCENTAGE = "percentage"
VALID_DISCOUNT_TYPES = (DISCOUNT_FIXED, DISCOUNT_PERCENTAGE)

TAX_BASE_DISCOUNTED = "discounted"
TAX_BASE_SUBTOTAL = "subtotal"

WARNING_OVERPAID = "OVERPAID"
WARNING_DISCOUNT_CLAMPED = "DISCOUNT_CLAMPED"


@dataclass(frozen=True)
class LineItem:
    quantity: float
    unit_price: float

    def __post_init__(self):
        if not (math.isfinite(self.quantity) and math.isfinite(self.unit_price)):
            raise InvalidLineItem("Quantity and unit price must be finite numbers")
        if self.quantity < 0:
            raise InvalidLineItem("Quantity cannot be negative", field="quantity")
        if self.unit_price < 0:
            raise InvalidLineItem("Unit price cannot be negative", field="unit_price")

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class Discount:
    type: str = DISCOUNT_FIXED
    value: float = 0.0

    def __post_init__(self):
        if self.type not in VALID_DISCOUNT_TYPES:
            raise InvalidDiscount(
                f"Invalid discount type: {self.type}. Must be one of {list(VALID_DISCOUNT_TYPES)}",
                field="discount_type",
            )
        if self.value < 0:
            raise InvalidDiscount("Discount cannot be negative", field="discount_value")


@dataclass(frozen=True)
class DerivedAmounts:
    subtotal: float
    discount: float
    tax: float
    total: float
    paid_amount: float
    due: float
    warnings: tuple[str, ...] = ()

    @property
    def is_overpaid(self) -> bool:
        return WARNING_OVERPAID in self.warnings

    @property
    def is_fully_paid(self) -> bool:
        return to_cents(self.due) <= 0

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
            "paid_amount": self.paid_amount,
            "due": self.due,
            "warnings": list(self.warnings),
        }


def coerce_line_item(item: Any) -> LineItem:
    """Accept a LineItem or an API-style mapping with quantity/unit_price (or price)."""
    if isinstance(item, LineItem):
        return item
    if isinstance(item, Mapping):
        price = item.get("unit_price", item.get("price"))
        return LineItem(
            quantity=parse_quantity(item.get("quantity"), "quantity"),
            unit_price=parse_quantity(price, "unit_price"),
        )
    quantity = getattr(item, "quantity", None)
    price = getattr(item, "unit_price", getattr(item, "price", None))
    if quantity is None or price is None:
        raise InvalidLineItem(f"Unsupported line item: {item!r}")
    return LineItem(quantity=parse_quantity(quantity), unit_price=parse_quantity(price, "unit_price"))


def coerce_discount(discount: Any) -> Discount:
    if discount is None:
        return Discount()
    if isinstance(discount, Discount):
        return discount
    if isinstance(discount, Mapping):
        try:
            value = parse_money(discount.get("value"), "discount_value")
        except ValidationError as exc:
            raise InvalidDiscount(exc.message, field="discount_value")
        return Discount(type=discount.get("type") or DISCOUNT_FIXED, value=value)
    raise InvalidDiscount(f"Unsupported discount descriptor: {discount!r}")


def calculate_subtotal(items: Iterable[Any]) -> float:
    return round_money(sum(coerce_line_item(i).line_total for i in items))


def derive_amounts(
    items: Iterable[Any],
    discount: Any = None,
    tax_percentage: Any = 0,
    paid_amount: Any = 0,
    *,
    tax_base: str = TAX_BASE_DISCOUNTED,
) -> DerivedAmounts:
    """
    Derive subtotal, discount, tax, total and due.

    Raises:
        InvalidLineItem: quantity or unit price is negative or not a number
        InvalidDiscount: discount type unknown or value negative
        ValidationError: tax percentage or paid amount invalid
    """
    if tax_base not in (TAX_BASE_DISCOUNTED, TAX_BASE_SUBTOTAL):
        raise ValueError(f"Unknown tax base: {tax_base}")

    lines = [coerce_line_item(i) for i in items]
    desc = coerce_discount(discount)
    tax_pct = parse_money(tax_percentage, "tax_percentage")
    paid = parse_money(paid_amount, "paid_amount")

    if tax_pct < 0:
        raise ValidationError("Tax percentage cannot be negative", field="tax_percentage")
    if paid < 0:
        raise ValidationError("Paid amount cannot be negative", field="paid_amount")

    warnings: list[str] = []

    subtotal_cents = to_cents(sum(line.line_total for line in lines))

    if desc.type == DISCOUNT_FIXED:
        discount_cents = to_cents(desc.value)
    else:
        discount_cents = to_cents(from_cents(subtotal_cents) * desc.value / 100)

    if discount_cents > subtotal_cents:
        discount_cents = subtotal_cents
        warnings.append(WARNING_DISCOUNT_CLAMPED)

    base_cents = subtotal_cents if tax_base == TAX_BASE_SUBTOTAL else subtotal_cents - discount_cents
    tax_cents = to_cents(from_cents(base_cents) * tax_pct / 100)

    total_cents = subtotal_cents - discount_cents + tax_cents
    due_cents = total_cents - to_cents(paid)

    if due_cents < 0:
        warnings.append(WARNING_OVERPAID)

    return DerivedAmounts(
        subtotal=from_cents(subtotal_cents),
        discount=from_cents(discount_cents),
        tax=from_cents(tax_cents),
        total=from_cents(total_cents),
        paid_amount=from_cents(to_cents(paid)),
        due=from_cents(due_cents),
        warnings=tuple(warnings),
    )
