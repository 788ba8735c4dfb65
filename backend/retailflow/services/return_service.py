# Overview: Purchase return payloads, refund rules and the return screen's workflow actions.

"""
Purchase Return Workflow

WHY: Goods sent back to a supplier move stock out of the warehouse and, once
processed, post ledger entries against the supplier. Processing is
irreversible, so every step before it is validated on the client.

LIFECYCLE:
1. Create (draft) - reason plus the purchase lines being sent back
2. Approve (draft -> approved) - records approver and optional notes
3. Process (approved -> processed) - server posts ledger + inventory
4. Cancel (draft/approved -> cancelled)
5. Refund (processed, repeatable) - each refund is a history entry

RULES:
- returned_quantity must be in (0, ordered quantity] of the purchase line
- total = sum(returned_quantity * price)
- Draft returns are the only editable ones
"""

from __future__ import annotations

from typing import Any, Iterable

from ..models import (
    PURCHASE_STATUS_CANCELLED,
    RETURN_STATUS_DRAFT,
    Purchase,
    PurchaseReturn,
    PurchaseReturnItem,
)
from ..permissions import WorkflowPermission
from ..validation import (
    AmountNotPositive,
    InvalidLineItem,
    MissingField,
    ReturnQuantityExceeded,
    ValidationError,
    from_cents,
    optional_text,
    parse_line_id,
    parse_money,
    parse_quantity,
    require_text,
    to_cents,
)
from . import invalidation_service as mutations
from .lifecycle_service import (
    ACTION_APPROVE,
    ACTION_CANCEL,
    ACTION_PROCESS,
    ACTION_REFUND,
    PURCHASE_RETURN_LIFECYCLE,
    ActionHandler,
    EntityWorkflow,
    TransitionError,
    WorkflowAction,
)
from .payment_service import build_method


# =============================================================================
# CREATION / EDIT
# =============================================================================

def build_return_items(purchase: Purchase, items: Iterable[dict]) -> list[PurchaseReturnItem]:
    """
    Resolve requested lines against the purchase.

    Price comes from the purchase line unless the caller overrides it.

    Raises:
        InvalidLineItem: unknown purchase line, bad quantity or price
        ReturnQuantityExceeded: quantity above what was ordered
        MissingField: no lines
    """
    by_id = {line.id: line for line in purchase.items}
    seen = set()
    result = []

    for item in items:
        item_id = parse_line_id(item.get("purchase_item_id"))
        if item_id is None or item_id not in by_id:
            raise InvalidLineItem(
                f"Item {item_id} is not part of purchase {purchase.po_no}",
                field="purchase_item_id",
            )
        if item_id in seen:
            raise InvalidLineItem(f"Item {item_id} listed twice", field="purchase_item_id")
        seen.add(item_id)

        line = by_id[item_id]
        quantity = parse_quantity(item.get("returned_quantity"), "returned_quantity")
        if quantity <= 0:
            raise InvalidLineItem("Returned quantity must be greater than 0", field="returned_quantity")
        if to_cents(quantity) > to_cents(line.quantity):
            raise ReturnQuantityExceeded(
                f"Cannot return {quantity:g} units. Purchase line only had {line.quantity:g} units.",
                field="returned_quantity",
            )

        price = item.get("price")
        price = line.price if price is None else parse_quantity(price, "price")
        if price < 0:
            raise InvalidLineItem("Price cannot be negative", field="price")

        result.append(PurchaseReturnItem(
            purchase_item_id=item_id,
            product_id=line.product_id,
            returned_quantity=quantity,
            price=price,
        ))

    if not result:
        raise MissingField("Select at least one item to return", field="items")
    return result


def return_total(items: Iterable[PurchaseReturnItem]) -> float:
    return from_cents(sum(to_cents(i.returned_quantity * i.price) for i in items))


def build_purchase_return_payload(purchase: Purchase, *, reason: Any, items: Iterable[dict]) -> dict:
    """
    Validate a new return and build the POST /purchase-returns body.

    Raises:
        TransitionError: the purchase was cancelled
        MissingField: reason missing or no items
        InvalidLineItem, ReturnQuantityExceeded: see build_return_items
    """
    if purchase.status == PURCHASE_STATUS_CANCELLED:
        raise TransitionError(f"Purchase {purchase.po_no} is cancelled; nothing to return")

    reason = require_text(reason, "reason")
    lines = build_return_items(purchase, items)

    return {
        "purchase_id": purchase.id,
        "supplier_id": purchase.supplier_id,
        "warehouse_id": purchase.warehouse_id,
        "reason": reason,
        "items": [line.to_dict() for line in lines],
        "total": return_total(lines),
    }


def build_update_payload(
    purchase_return: PurchaseReturn,
    purchase: Purchase | None = None,
    *,
    reason: Any = None,
    items: Iterable[dict] | None = None,
    note: str | None = None,
    return_date: str | None = None,
) -> dict:
    """
    PATCH body for a draft edit. Only fields that were passed are sent.

    Raises:
        TransitionError: return is no longer a draft
    """
    if purchase_return.status != RETURN_STATUS_DRAFT:
        raise TransitionError(
            f"Can only edit draft returns. Return {purchase_return.return_no} is {purchase_return.status}"
        )

    payload: dict = {}
    if reason is not None:
        payload["reason"] = require_text(reason, "reason")
    if items is not None:
        if purchase is None:
            raise ValidationError("The original purchase is needed to edit items", field="items")
        lines = build_return_items(purchase, items)
        payload["items"] = [line.to_dict() for line in lines]
        payload["total"] = return_total(lines)
    if optional_text(note):
        payload["note"] = optional_text(note)
    if return_date:
        payload["return_date"] = return_date

    if not payload:
        raise MissingField("Nothing to update")
    return payload


# =============================================================================
# TRANSITION BODIES
# =============================================================================

def build_approval_payload(purchase_return: PurchaseReturn, fields: dict) -> dict:
    notes = optional_text(fields.get("approval_notes"))
    return {"approval_notes": notes} if notes else {}


def build_processing_payload(purchase_return: PurchaseReturn, fields: dict) -> dict:
    notes = optional_text(fields.get("processing_notes"))
    return {"processing_notes": notes} if notes else {}


def build_refund_payload(purchase_return: PurchaseReturn, fields: dict) -> dict:
    """
    One refund entry against a processed return.

    No ceiling is applied against earlier refunds: a processed return stays
    refundable. The receiving account must match the method (cash/bank).

    Raises:
        AmountNotPositive, MissingField, IneligibleAccount
    """
    amount = parse_money(fields.get("amount"), "amount")
    if to_cents(amount) <= 0:
        raise AmountNotPositive("Refund amount must be greater than 0", field="amount")

    variant = build_method(
        fields.get("method"),
        fields.get("account_code", fields.get("payment_account_code")),
        fields.get("accounts") or (),
    )

    payload = {
        "amount": from_cents(to_cents(amount)),
        "method": variant.method,
        "account_code": variant.account.code,
    }
    supplier_account = optional_text(fields.get("supplier_account_code"))
    if supplier_account:
        payload["supplier_account_code"] = supplier_account
    reference = optional_text(fields.get("reference"))
    if reference:
        payload["reference"] = reference
    note = optional_text(fields.get("note"))
    if note:
        payload["note"] = note
    return payload


# =============================================================================
# WORKFLOW
# =============================================================================

PURCHASE_RETURN_ACTIONS = (
    WorkflowAction(
        name=ACTION_APPROVE,
        label="Approve",
        permission=WorkflowPermission.PURCHASE_RETURN_APPROVE,
        mutation=mutations.PURCHASE_RETURN_APPROVE,
        modal="purchase-return-approval",
        optional_fields=("approval_notes",),
    ),
    WorkflowAction(
        name=ACTION_PROCESS,
        label="Process",
        permission=WorkflowPermission.PURCHASE_RETURN_PROCESS,
        mutation=mutations.PURCHASE_RETURN_PROCESS,
        modal="purchase-return-processing",
        confirm="Processing return {number} posts ledger entries and updates inventory. It cannot be reversed.",
        optional_fields=("processing_notes",),
    ),
    WorkflowAction(
        name=ACTION_REFUND,
        label="Record Refund",
        permission=WorkflowPermission.PURCHASE_RETURN_REFUND,
        mutation=mutations.PURCHASE_RETURN_REFUND,
        modal="purchase-return-refund",
        required_fields=("amount", "method", "account_code"),
        optional_fields=("supplier_account_code", "reference", "note"),
        needs_accounts=True,
    ),
    WorkflowAction(
        name=ACTION_CANCEL,
        label="Cancel",
        permission=WorkflowPermission.PURCHASE_RETURN_CANCEL,
        mutation=mutations.PURCHASE_RETURN_CANCEL,
        modal="purchase-return-cancel",
        confirm="Cancel purchase return {number}?",
    ),
)

PURCHASE_RETURN_WORKFLOW = EntityWorkflow(
    entity_type="purchase_return",
    machine=PURCHASE_RETURN_LIFECYCLE,
    actions=PURCHASE_RETURN_ACTIONS,
    handlers={
        ACTION_APPROVE: ActionHandler(
            prepare=build_approval_payload,
            send=lambda api, pr, body: api.approve_purchase_return(pr.id, body),
        ),
        ACTION_PROCESS: ActionHandler(
            prepare=build_processing_payload,
            send=lambda api, pr, body: api.process_purchase_return(pr.id, body),
        ),
        ACTION_REFUND: ActionHandler(
            prepare=build_refund_payload,
            send=lambda api, pr, body: api.refund_purchase_return(pr.id, body),
        ),
        ACTION_CANCEL: ActionHandler(
            prepare=lambda pr, fields: None,
            send=lambda api, pr, body: api.cancel_purchase_return(pr.id),
        ),
    },
    number=lambda pr: pr.return_no,
)
