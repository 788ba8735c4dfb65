# Overview: Client-side copies of the remote entities; refetchable, never authoritative.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .validation import parse_money, round_money


# =============================================================================
# STATUS CONSTANTS
# =============================================================================

PURCHASE_STATUS_ORDERED = "ordered"
PURCHASE_STATUS_RECEIVED = "received"
PURCHASE_STATUS_CANCELLED = "cancelled"

RETURN_STATUS_DRAFT = "draft"
RETURN_STATUS_APPROVED = "approved"
RETURN_STATUS_PROCESSED = "processed"
RETURN_STATUS_CANCELLED = "cancelled"

ACCOUNT_TYPES = {"asset", "liability", "equity", "income", "expense"}


def parse_timestamp(value: Any) -> datetime | None:
    """ISO-8601 string (trailing Z allowed) -> aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


# =============================================================================
# LEDGER
# =============================================================================

@dataclass(frozen=True)
class Account:
    code: str
    name: str = ""
    type: str = "asset"
    is_cash: bool = False
    is_bank: bool = False
    debit: float = 0.0
    credit: float = 0.0
    # Read-only projection from the server; never recomputed locally
    balance: float = 0.0
    account_number: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Account":
        return cls(
            code=str(data["code"]),
            name=data.get("name") or "",
            type=data.get("type") or "asset",
            is_cash=bool(data.get("isCash", data.get("is_cash", False))),
            is_bank=bool(data.get("isBank", data.get("is_bank", False))),
            debit=parse_money(data.get("debit"), "debit"),
            credit=parse_money(data.get("credit"), "credit"),
            balance=parse_money(data.get("balance"), "balance"),
            account_number=data.get("account_number"),
        )

    @property
    def label(self) -> str:
        parts = [self.name, self.code]
        if self.account_number:
            parts.append(self.account_number)
        return " - ".join(p for p in parts if p)


# =============================================================================
# PURCHASES
# =============================================================================

@dataclass(frozen=True)
class PurchaseItem:
    id: int | None
    product_id: int
    quantity: float
    price: float
    received_quantity: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "PurchaseItem":
        received = data.get("received_quantity")
        return cls(
            id=_int_or_none(data.get("id")),
            product_id=int(data["product_id"]),
            quantity=parse_money(data.get("quantity"), "quantity"),
            price=parse_money(data.get("price", data.get("unit_price")), "price"),
            received_quantity=None if received is None else parse_money(received, "received_quantity"),
        )


@dataclass(frozen=True)
class Purchase:
    id: int
    po_no: str
    supplier_id: int | None
    warehouse_id: int | None
    status: str
    total: float
    paid_amount: float
    due_amount: float
    items: tuple[PurchaseItem, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "Purchase":
        total = parse_money(data.get("total"), "total")
        paid = parse_money(data.get("paid_amount"), "paid_amount")
        if data.get("due_amount") is None:
            due = round_money(total - paid)
        else:
            due = parse_money(data.get("due_amount"), "due_amount")
        return cls(
            id=int(data["id"]),
            po_no=data.get("po_no") or f"PO #{data['id']}",
            supplier_id=_int_or_none(data.get("supplier_id")),
            warehouse_id=_int_or_none(data.get("warehouse_id")),
            status=data.get("status") or PURCHASE_STATUS_ORDERED,
            total=total,
            paid_amount=paid,
            due_amount=due,
            items=tuple(PurchaseItem.from_dict(i) for i in data.get("items") or []),
        )


# =============================================================================
# PURCHASE RETURNS
# =============================================================================

@dataclass(frozen=True)
class PurchaseReturnItem:
    purchase_item_id: int
    product_id: int
    returned_quantity: float
    price: float
    id: int | None = None

    @property
    def line_total(self) -> float:
        return round_money(self.returned_quantity * self.price)

    @classmethod
    def from_dict(cls, data: dict) -> "PurchaseReturnItem":
        return cls(
            id=_int_or_none(data.get("id")),
            purchase_item_id=int(data["purchase_item_id"]),
            product_id=int(data["product_id"]),
            returned_quantity=parse_money(data.get("returned_quantity"), "returned_quantity"),
            price=parse_money(data.get("price"), "price"),
        )

    def to_dict(self) -> dict:
        return {
            "purchase_item_id": self.purchase_item_id,
            "product_id": self.product_id,
            "returned_quantity": self.returned_quantity,
            "price": self.price,
        }


@dataclass(frozen=True)
class RefundEntry:
    """One refund received against a processed return."""
    amount: float
    method: str
    account_code: str | None
    supplier_account_code: str | None = None
    reference: str | None = None
    refunded_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "RefundEntry":
        return cls(
            amount=parse_money(data.get("amount", data.get("refund_amount")), "refund_amount"),
            method=data.get("method") or data.get("refund_payment_method") or "",
            account_code=data.get("account_code") or data.get("payment_account_code"),
            supplier_account_code=data.get("supplier_account_code"),
            reference=data.get("reference") or data.get("refund_reference"),
            refunded_at=parse_timestamp(data.get("refunded_at") or data.get("created_at")),
        )


@dataclass(frozen=True)
class PurchaseReturn:
    id: int
    return_no: str
    purchase_id: int
    supplier_id: int | None
    warehouse_id: int | None
    reason: str
    status: str
    total: float
    items: tuple[PurchaseReturnItem, ...] = ()
    approved_by: int | None = None
    approval_notes: str | None = None
    processing_notes: str | None = None
    refund_to_supplier: bool = False
    refunds: tuple[RefundEntry, ...] = ()

    @property
    def refunded_total(self) -> float:
        return round_money(sum(r.amount for r in self.refunds))

    @classmethod
    def from_dict(cls, data: dict) -> "PurchaseReturn":
        refunds = [RefundEntry.from_dict(r) for r in data.get("refunds") or []]
        # Older payloads carry a single refund inline instead of a history list
        if not refunds and data.get("refund_amount") not in (None, "", 0, "0"):
            refunds = [RefundEntry.from_dict(data)]
        return cls(
            id=int(data["id"]),
            return_no=data.get("return_no") or f"PR #{data['id']}",
            purchase_id=int(data["purchase_id"]),
            supplier_id=_int_or_none(data.get("supplier_id")),
            warehouse_id=_int_or_none(data.get("warehouse_id")),
            reason=data.get("reason") or "",
            status=data.get("status") or RETURN_STATUS_DRAFT,
            total=parse_money(data.get("total"), "total"),
            items=tuple(PurchaseReturnItem.from_dict(i) for i in data.get("items") or []),
            approved_by=_int_or_none(data.get("approved_by")),
            approval_notes=data.get("approval_notes"),
            processing_notes=data.get("processing_notes"),
            refund_to_supplier=bool(data.get("refund_to_supplier", False)),
            refunds=tuple(refunds),
        )


# =============================================================================
# SALES
# =============================================================================

@dataclass(frozen=True)
class SaleItem:
    product_id: int
    warehouse_id: int | None
    quantity: float
    unit_price: float

    @classmethod
    def from_dict(cls, data: dict) -> "SaleItem":
        return cls(
            product_id=int(data["product_id"]),
            warehouse_id=_int_or_none(data.get("warehouse_id")),
            quantity=parse_money(data.get("quantity"), "quantity"),
            unit_price=parse_money(data.get("unit_price", data.get("price")), "unit_price"),
        )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


@dataclass(frozen=True)
class SalePayment:
    method: str
    amount: float
    account_code: str | None
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "SalePayment":
        return cls(
            method=data.get("method") or "",
            amount=parse_money(data.get("amount"), "amount"),
            account_code=data.get("account_code") or data.get("payment_account_code"),
            created_at=parse_timestamp(data.get("created_at")),
        )


@dataclass(frozen=True)
class Sale:
    id: int
    invoice_no: str
    customer_id: int | None
    # Server-reported; the client never derives it from the due amount
    status: str
    subtotal: float
    discount: float
    tax: float
    total: float
    paid_amount: float
    items: tuple[SaleItem, ...] = ()
    payments: tuple[SalePayment, ...] = field(default_factory=tuple)

    @property
    def due_amount(self) -> float:
        return round_money(self.total - self.paid_amount)

    @classmethod
    def from_dict(cls, data: dict) -> "Sale":
        customer = data.get("customer") or {}
        payments = sorted(
            (SalePayment.from_dict(p) for p in data.get("payments") or []),
            key=lambda p: p.created_at or datetime.min.replace(tzinfo=timezone.utc),
        )
        return cls(
            id=int(data["id"]),
            invoice_no=data.get("invoice_no") or f"INV #{data['id']}",
            customer_id=_int_or_none(data.get("customer_id", customer.get("id"))),
            status=data.get("status") or "",
            subtotal=parse_money(data.get("subtotal"), "subtotal"),
            discount=parse_money(data.get("discount"), "discount"),
            tax=parse_money(data.get("tax"), "tax"),
            total=parse_money(data.get("total"), "total"),
            paid_amount=parse_money(data.get("paid_amount"), "paid_amount"),
            items=tuple(SaleItem.from_dict(i) for i in data.get("items") or []),
            payments=tuple(payments),
        )
