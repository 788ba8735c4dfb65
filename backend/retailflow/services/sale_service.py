# Overview: Sale checkout payload and the sale screen's payment action.

"""
Sale Workflow

A sale is created at checkout with its items and an optional first payment,
both in one request. After that the only client action is paying the
outstanding due through the payment allocator; every payment is a new entry,
never an edit.

The sale's status (completed, pending, ...) is whatever the server reports.
The client shows it as-is and never re-derives it from the due amount.
"""

from __future__ import annotations

from typing import Any, Iterable

from ..models import Sale, SaleItem
from ..permissions import WorkflowPermission
from ..validation import (
    AmountExceedsDue,
    InvalidLineItem,
    MissingField,
    from_cents,
    parse_quantity,
    to_cents,
)
from . import invalidation_service as mutations
from .amount_service import DISCOUNT_FIXED, Discount, DerivedAmounts, coerce_discount, derive_amounts
from .lifecycle_service import (
    ACTION_PAY,
    SALE_LIFECYCLE,
    ActionHandler,
    EntityWorkflow,
    WorkflowAction,
)
from .payment_service import PAYMENT_TYPE_CUSTOMER, build_method, prepare_payment


def build_cart_items(items: Iterable[Any]) -> list[SaleItem]:
    cart = []
    for index, item in enumerate(items):
        if isinstance(item, SaleItem):
            cart.append(item)
            continue
        if not item.get("product_id"):
            raise InvalidLineItem(f"Line {index + 1}: product is required", field="product_id")
        quantity = parse_quantity(item.get("quantity"), "quantity")
        unit_price = parse_quantity(item.get("unit_price", item.get("price")), "unit_price")
        if quantity <= 0:
            raise InvalidLineItem(f"Line {index + 1}: quantity must be greater than 0", field="quantity")
        if unit_price < 0:
            raise InvalidLineItem(f"Line {index + 1}: unit price cannot be negative", field="unit_price")
        warehouse_id = item.get("warehouse_id")
        cart.append(SaleItem(
            product_id=int(item["product_id"]),
            warehouse_id=int(warehouse_id) if warehouse_id else None,
            quantity=quantity,
            unit_price=unit_price,
        ))
    return cart


def preview_checkout(
    items: Iterable[Any],
    discount: Any = None,
    tax_percentage: Any = 0,
    paid_amount: Any = 0,
) -> DerivedAmounts:
    """Figures for the checkout summary panel."""
    cart = build_cart_items(items)
    return derive_amounts(
        ({"quantity": i.quantity, "unit_price": i.unit_price} for i in cart),
        discount,
        tax_percentage,
        paid_amount,
    )


def build_sale_payload(
    *,
    customer_id: Any,
    items: Iterable[Any],
    discount: Any = None,
    tax_percentage: Any = 0,
    paid_amount: Any = 0,
    payment_method: str | None = None,
    account_code: str | None = None,
    accounts: Iterable = (),
    branch_id: int | None = None,
) -> dict:
    """
    Validate a checkout and build the POST /sales body.

    Raises:
        MissingField: no customer, empty cart, or payment account missing
        InvalidLineItem / InvalidDiscount: bad cart figures
        AmountExceedsDue: paid amount above the sale total
        IneligibleAccount: account does not match the payment method
    """
    if not customer_id:
        raise MissingField("Please select a customer", field="customer_id")

    cart = build_cart_items(items)
    if not cart:
        raise MissingField("Cart is empty", field="items")

    desc: Discount = coerce_discount(discount or {"type": DISCOUNT_FIXED, "value": 0})
    amounts = derive_amounts(
        ({"quantity": i.quantity, "unit_price": i.unit_price} for i in cart),
        desc,
        tax_percentage,
        paid_amount,
    )
    if amounts.is_overpaid:
        raise AmountExceedsDue("Paid amount cannot exceed total", field="paid_amount")

    payload = {
        "customer_id": int(customer_id),
        "discount_type": desc.type,
        "discount_value": desc.value,
        "tax_percentage": parse_quantity(tax_percentage or 0, "tax_percentage"),
        "paid_amount": amounts.paid_amount,
        "items": [i.to_dict() for i in cart],
        "payments": [],
    }
    if branch_id is not None:
        payload["branch_id"] = branch_id

    if to_cents(amounts.paid_amount) > 0:
        variant = build_method(payment_method, account_code, accounts)
        payload["payment_method"] = variant.method
        payload["account_code"] = variant.account.code
        payload["payments"] = [{
            "method": variant.method,
            "amount": amounts.paid_amount,
            "account_code": variant.account.code,
        }]
    return payload


def sale_due(sale: Sale) -> float:
    """total - paid_amount as reported by the server."""
    return from_cents(to_cents(sale.total) - to_cents(sale.paid_amount))


def payment_block_reason(sale: Sale) -> str | None:
    if to_cents(sale_due(sale)) <= 0:
        return "No outstanding due on this sale"
    return None


def _prepare_payment(sale: Sale, fields: dict) -> dict:
    return prepare_payment(
        fields,
        payment_type=PAYMENT_TYPE_CUSTOMER,
        entity_id=sale.id,
        due_amount=sale_due(sale),
        party_id=sale.customer_id,
    )


SALE_ACTIONS = (
    WorkflowAction(
        name=ACTION_PAY,
        label="Pay Due",
        permission=WorkflowPermission.PAYMENT_CREATE,
        mutation=mutations.PAYMENT_CREATE,
        modal="sale-payment",
        required_fields=("amount", "method", "payment_account_code"),
        optional_fields=("note",),
        transition=False,
        guard=payment_block_reason,
        needs_accounts=True,
    ),
)

SALE_WORKFLOW = EntityWorkflow(
    entity_type="sale",
    machine=SALE_LIFECYCLE,
    actions=SALE_ACTIONS,
    handlers={
        ACTION_PAY: ActionHandler(
            prepare=_prepare_payment,
            send=lambda api, sale, body: api.create_payment(body),
        ),
    },
    number=lambda sale: sale.invoice_no,
)
