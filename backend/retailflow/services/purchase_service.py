# Overview: Purchase order payloads and the purchase screen's workflow actions.

"""
Purchase Workflow

LIFECYCLE:
1. Create (ordered) - supplier, warehouse and ordered lines
2. Receive (ordered -> received) - received quantity per line, defaults to
   the ordered quantity
3. Cancel (ordered -> cancelled)
Supplier payments can be made while ordered or received, whenever the
server reports a positive due.
"""

from __future__ import annotations

from typing import Any, Iterable

from ..models import PURCHASE_STATUS_CANCELLED, Purchase
from ..permissions import WorkflowPermission
from ..validation import (
    InvalidLineItem,
    MissingField,
    optional_text,
    parse_line_id,
    parse_money,
    parse_quantity,
    to_cents,
)
from . import invalidation_service as mutations
from .amount_service import derive_amounts
from .lifecycle_service import (
    ACTION_CANCEL,
    ACTION_PAY,
    ACTION_RECEIVE,
    PURCHASE_LIFECYCLE,
    ActionHandler,
    EntityWorkflow,
    WorkflowAction,
)
from .payment_service import PAYMENT_TYPE_SUPPLIER, prepare_payment


# =============================================================================
# CREATION
# =============================================================================

def build_purchase_payload(
    *,
    supplier_id: Any,
    warehouse_id: Any,
    items: Iterable[dict],
    note: str | None = None,
) -> dict:
    """
    Validate an order and build the POST /purchases body.

    Raises:
        MissingField: supplier or warehouse missing, or no lines
        InvalidLineItem: product missing, quantity <= 0 or price < 0
    """
    if not supplier_id:
        raise MissingField("Supplier is required", field="supplier_id")
    if not warehouse_id:
        raise MissingField("Warehouse is required", field="warehouse_id")

    lines = []
    for index, item in enumerate(items):
        if not item.get("product_id"):
            raise InvalidLineItem(f"Line {index + 1}: product is required", field="product_id")
        quantity = parse_quantity(item.get("quantity"), "quantity")
        price = parse_quantity(item.get("price", item.get("unit_price")), "price")
        if quantity <= 0:
            raise InvalidLineItem(f"Line {index + 1}: quantity must be greater than 0", field="quantity")
        if price < 0:
            raise InvalidLineItem(f"Line {index + 1}: price cannot be negative", field="price")
        lines.append({"product_id": int(item["product_id"]), "quantity": quantity, "price": price})

    if not lines:
        raise MissingField("Add at least one item", field="items")

    amounts = derive_amounts({"quantity": line["quantity"], "unit_price": line["price"]} for line in lines)

    payload = {
        "supplier_id": int(supplier_id),
        "warehouse_id": int(warehouse_id),
        "items": lines,
        "total": amounts.total,
    }
    note = optional_text(note)
    if note:
        payload["note"] = note
    return payload


# =============================================================================
# RECEIVE
# =============================================================================

def build_receive_payload(purchase: Purchase, items: Iterable[dict] | None = None) -> dict:
    """
    Received quantities per purchase line.

    Lines not mentioned in `items` are received in full. Each received
    quantity must lie in [0, ordered quantity].
    """
    overrides = {}
    for item in items or []:
        item_id = parse_line_id(item.get("purchase_item_id"))
        if item_id is None:
            raise InvalidLineItem("purchase_item_id is required", field="purchase_item_id")
        overrides[item_id] = item

    known_ids = {line.id for line in purchase.items}
    unknown = set(overrides) - known_ids
    if unknown:
        raise InvalidLineItem(
            f"Items {sorted(unknown)} do not belong to purchase {purchase.po_no}",
            field="purchase_item_id",
        )

    payload_items = []
    for line in purchase.items:
        override = overrides.get(line.id, {})
        received = override.get("received_quantity", line.quantity)
        received = parse_quantity(received, "received_quantity")
        if received < 0:
            raise InvalidLineItem("Received quantity cannot be negative", field="received_quantity")
        if to_cents(received) > to_cents(line.quantity):
            raise InvalidLineItem(
                f"Received quantity {received:g} exceeds ordered quantity {line.quantity:g}",
                field="received_quantity",
            )
        entry = {"purchase_item_id": line.id, "received_quantity": received}
        if override.get("batch_no"):
            entry["batch_no"] = override["batch_no"]
        if override.get("expiry_date"):
            entry["expiry_date"] = override["expiry_date"]
        payload_items.append(entry)

    if not payload_items:
        raise MissingField("Purchase has no items to receive", field="items")
    return {"items": payload_items}


# =============================================================================
# PAYMENT GUARD
# =============================================================================

def payment_block_reason(purchase: Purchase) -> str | None:
    if purchase.status == PURCHASE_STATUS_CANCELLED:
        return "Purchase is cancelled"
    if to_cents(parse_money(purchase.due_amount)) <= 0:
        return "Nothing due on this purchase"
    return None


def _prepare_payment(purchase: Purchase, fields: dict) -> dict:
    return prepare_payment(
        fields,
        payment_type=PAYMENT_TYPE_SUPPLIER,
        entity_id=purchase.id,
        due_amount=purchase.due_amount,
        party_id=purchase.supplier_id,
    )


# =============================================================================
# WORKFLOW
# =============================================================================

PURCHASE_ACTIONS = (
    WorkflowAction(
        name=ACTION_RECEIVE,
        label="Receive Items",
        permission=WorkflowPermission.PURCHASE_RECEIVE,
        mutation=mutations.PURCHASE_RECEIVE,
        modal="purchase-receive",
        optional_fields=("items",),
    ),
    WorkflowAction(
        name=ACTION_PAY,
        label="Pay",
        permission=WorkflowPermission.PAYMENT_CREATE,
        mutation=mutations.PAYMENT_CREATE,
        modal="purchase-payment",
        required_fields=("amount", "method", "payment_account_code"),
        optional_fields=("note",),
        transition=False,
        guard=payment_block_reason,
        needs_accounts=True,
    ),
    WorkflowAction(
        name=ACTION_CANCEL,
        label="Cancel",
        permission=WorkflowPermission.PURCHASE_CANCEL,
        mutation=mutations.PURCHASE_CANCEL,
        confirm="Cancel purchase order {number}? This cannot be undone.",
    ),
)

PURCHASE_WORKFLOW = EntityWorkflow(
    entity_type="purchase",
    machine=PURCHASE_LIFECYCLE,
    actions=PURCHASE_ACTIONS,
    handlers={
        ACTION_RECEIVE: ActionHandler(
            prepare=lambda purchase, fields: build_receive_payload(purchase, fields.get("items")),
            send=lambda api, purchase, body: api.receive_purchase(purchase.id, body),
        ),
        ACTION_PAY: ActionHandler(
            prepare=_prepare_payment,
            send=lambda api, purchase, body: api.create_payment(body),
        ),
        ACTION_CANCEL: ActionHandler(
            prepare=lambda purchase, fields: None,
            send=lambda api, purchase, body: api.cancel_purchase(purchase.id),
        ),
    },
    number=lambda purchase: purchase.po_no,
)
