# Overview: In-memory business data for the sandbox API, with the server-side rules re-applied.

"""
Sandbox Store

Plays the remote API's role for local development and integration tests:
purchases, purchase returns, sales, payments, accounts and products kept in
plain dicts behind one lock.

SERVER RULES (re-validated here, independent of the client):
- Payment amount must be > 0 and <= the current due
- Status transitions follow the same lifecycles as the console
- Fund transfers cannot exceed the source balance
- Processing a return moves stock out and posts ledger entries in one step

LEDGER:
Every money movement is a double entry (debit account, credit account).
Asset/expense balances are debit - credit; the rest are credit - debit.
"""

from __future__ import annotations

import itertools
import threading
from datetime import datetime, timezone
from typing import Any

from flask import current_app

from ..models import (
    PURCHASE_STATUS_CANCELLED,
    PURCHASE_STATUS_ORDERED,
    PURCHASE_STATUS_RECEIVED,
    RETURN_STATUS_APPROVED,
    RETURN_STATUS_CANCELLED,
    RETURN_STATUS_DRAFT,
    RETURN_STATUS_PROCESSED,
)
from ..services.amount_service import derive_amounts
from ..validation import ValidationError, from_cents, parse_money, round_money, to_cents


SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_PENDING = "pending"

ACCOUNT_CASH = "1000"
ACCOUNT_RECEIVABLE = "1100"
ACCOUNT_INVENTORY = "1200"
ACCOUNT_PAYABLE = "2000"
ACCOUNT_EQUITY = "3000"
ACCOUNT_SALES = "4000"

_DEBIT_NORMAL = {"asset", "expense"}


class SandboxError(Exception):
    """Business rule rejected by the sandbox; becomes a non-2xx envelope."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFound(SandboxError):
    def __init__(self, what: str, entity_id: Any):
        super().__init__(f"{what} {entity_id} not found", 404)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _money(value: float) -> str:
    # The remote API sends decimals as strings
    return f"{round_money(value):.2f}"


def _amount(value: Any, field: str = "amount") -> float:
    try:
        return round_money(parse_money(value, field))
    except ValidationError as exc:
        raise SandboxError(exc.message)


def _int(value: Any, field: str) -> int:
    if value is None or value == "":
        raise SandboxError(f"{field} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SandboxError(f"{field} must be an integer")


class SandboxStore:
    def __init__(self):
        self._lock = threading.RLock()
        self.reset()

    def reset(self):
        with self._lock:
            self.accounts: dict[str, dict] = {}
            self.suppliers: dict[int, dict] = {}
            self.customers: dict[int, dict] = {}
            self.products: dict[int, dict] = {}
            self.stock: dict[tuple[int, int], float] = {}
            self.purchases: dict[int, dict] = {}
            self.purchase_returns: dict[int, dict] = {}
            self.sales: dict[int, dict] = {}
            self.payments: list[dict] = []
            self.journal: list[dict] = []
            self._ids = {
                name: itertools.count(1)
                for name in ("product", "purchase", "purchase_item", "purchase_return", "sale", "payment")
            }

    def _next_id(self, name: str) -> int:
        return next(self._ids[name])

    # =========================================================================
    # LEDGER
    # =========================================================================

    def add_account(self, code: str, name: str, type: str = "asset", *, is_cash=False, is_bank=False,
                    account_number: str | None = None) -> dict:
        with self._lock:
            account = {
                "code": code,
                "name": name,
                "type": type,
                "isCash": is_cash,
                "isBank": is_bank,
                "account_number": account_number,
                "debit": 0.0,
                "credit": 0.0,
                "balance": 0.0,
            }
            self.accounts[code] = account
            return account

    def _account(self, code: Any) -> dict:
        account = self.accounts.get(str(code)) if code is not None else None
        if account is None:
            raise SandboxError(f"Account {code} not found")
        return account

    def _post(self, debit_code: str, credit_code: str, amount: float, narration: str) -> None:
        debit = self._account(debit_code)
        credit = self._account(credit_code)
        debit["debit"] = round_money(debit["debit"] + amount)
        credit["credit"] = round_money(credit["credit"] + amount)
        for account in (debit, credit):
            if account["type"] in _DEBIT_NORMAL:
                account["balance"] = round_money(account["debit"] - account["credit"])
            else:
                account["balance"] = round_money(account["credit"] - account["debit"])
        self.journal.append({
            "debit_account": debit_code,
            "credit_account": credit_code,
            "amount": amount,
            "narration": narration,
            "created_at": _now(),
        })

    def _check_method_account(self, method: Any, account: dict) -> str:
        method = str(method or "").lower()
        if method in ("bkash", "wallet"):
            method = "mobile"
        if method not in ("cash", "bank", "mobile"):
            raise SandboxError(f"Invalid payment method: {method or None}")
        if method == "cash" and not account["isCash"]:
            raise SandboxError(f"Account {account['code']} is not a cash account")
        if method == "bank" and not account["isBank"]:
            raise SandboxError(f"Account {account['code']} is not a bank account")
        return method

    def serialize_account(self, account: dict) -> dict:
        return {
            **account,
            "debit": _money(account["debit"]),
            "credit": _money(account["credit"]),
            "balance": _money(account["balance"]),
        }

    def list_accounts(self) -> list[dict]:
        with self._lock:
            return [self.serialize_account(a) for a in sorted(self.accounts.values(), key=lambda a: a["code"])]

    def account_balances(self) -> list[dict]:
        with self._lock:
            return [
                {"code": a["code"], "name": a["name"], "balance": _money(a["balance"])}
                for a in sorted(self.accounts.values(), key=lambda a: a["code"])
            ]

    def add_cash(self, payload: dict) -> dict:
        with self._lock:
            amount = _amount(payload.get("amount"))
            if to_cents(amount) <= 0:
                raise SandboxError("Amount must be greater than 0")
            self._post(ACCOUNT_CASH, ACCOUNT_EQUITY, amount, payload.get("narration") or "Cash added")
            return self.serialize_account(self.accounts[ACCOUNT_CASH])

    def add_bank_balance(self, payload: dict) -> dict:
        with self._lock:
            account = self._account(payload.get("bankAccountCode"))
            if not account["isBank"]:
                raise SandboxError(f"Account {account['code']} is not a bank account")
            amount = _amount(payload.get("amount"))
            if to_cents(amount) <= 0:
                raise SandboxError("Amount must be greater than 0")
            self._post(account["code"], ACCOUNT_EQUITY, amount, payload.get("narration") or "Bank balance added")
            return self.serialize_account(account)

    def fund_transfer(self, payload: dict) -> dict:
        with self._lock:
            source = self._account(payload.get("fromAccountCode"))
            target = self._account(payload.get("toAccountCode"))
            if source["code"] == target["code"]:
                raise SandboxError("Source and destination accounts must differ")
            if not (target["isCash"] or target["isBank"]):
                raise SandboxError(f"Account {target['code']} cannot receive transfers")
            amount = _amount(payload.get("amount"))
            if to_cents(amount) <= 0:
                raise SandboxError("Amount must be greater than 0")
            if to_cents(amount) > to_cents(source["balance"]):
                raise SandboxError("Insufficient balance")
            self._post(target["code"], source["code"], amount, payload.get("narration") or "Fund transfer")
            return {
                "from": self.serialize_account(source),
                "to": self.serialize_account(target),
            }

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    def create_product(self, payload: dict) -> dict:
        with self._lock:
            name = (payload.get("name") or "").strip()
            if not name:
                raise SandboxError("name is required")
            product = {
                "id": self._next_id("product"),
                "name": name,
                "sku": payload.get("sku"),
                "price": _amount(payload.get("price"), "price"),
                "supplier_id": payload.get("supplier_id"),
            }
            self.products[product["id"]] = product
            return dict(product)

    def update_product(self, product_id: int, payload: dict) -> dict:
        with self._lock:
            product = self.products.get(product_id)
            if product is None:
                raise NotFound("Product", product_id)
            for key in ("name", "sku", "supplier_id"):
                if key in payload:
                    product[key] = payload[key]
            if "price" in payload:
                product["price"] = _amount(payload["price"], "price")
            return dict(product)

    def delete_product(self, product_id: int) -> None:
        with self._lock:
            if self.products.pop(product_id, None) is None:
                raise NotFound("Product", product_id)

    def _move_stock(self, product_id: int, warehouse_id: int, quantity: float) -> None:
        key = (product_id, warehouse_id)
        self.stock[key] = round_money(self.stock.get(key, 0.0) + quantity)

    def stock_level(self, product_id: int, warehouse_id: int) -> float:
        with self._lock:
            return self.stock.get((product_id, warehouse_id), 0.0)

    # =========================================================================
    # PURCHASES
    # =========================================================================

    def serialize_purchase(self, purchase: dict) -> dict:
        return {
            **purchase,
            "total": _money(purchase["total"]),
            "paid_amount": _money(purchase["paid_amount"]),
            "due_amount": _money(purchase["due_amount"]),
            "items": [dict(item) for item in purchase["items"]],
        }

    def _purchase(self, purchase_id: Any) -> dict:
        purchase = self.purchases.get(_int(purchase_id, "purchase_id"))
        if purchase is None:
            raise NotFound("Purchase", purchase_id)
        return purchase

    def list_purchases(self) -> list[dict]:
        with self._lock:
            return [self.serialize_purchase(p) for p in self.purchases.values()]

    def get_purchase(self, purchase_id: int) -> dict:
        with self._lock:
            return self.serialize_purchase(self._purchase(purchase_id))

    def create_purchase(self, payload: dict) -> dict:
        with self._lock:
            supplier_id = _int(payload.get("supplier_id"), "supplier_id")
            if supplier_id not in self.suppliers:
                raise NotFound("Supplier", supplier_id)
            warehouse_id = _int(payload.get("warehouse_id"), "warehouse_id")

            items = []
            for raw in payload.get("items") or []:
                quantity = _amount(raw.get("quantity"), "quantity")
                price = _amount(raw.get("price"), "price")
                if quantity <= 0 or price < 0:
                    raise SandboxError("Each item needs a positive quantity and a non-negative price")
                items.append({
                    "id": self._next_id("purchase_item"),
                    "product_id": _int(raw.get("product_id"), "product_id"),
                    "quantity": quantity,
                    "price": price,
                    "received_quantity": 0,
                })
            if not items:
                raise SandboxError("At least one item is required")

            total = from_cents(sum(to_cents(i["quantity"] * i["price"]) for i in items))
            purchase_id = self._next_id("purchase")
            purchase = {
                "id": purchase_id,
                "po_no": f"PO-{purchase_id:04d}",
                "supplier_id": supplier_id,
                "warehouse_id": warehouse_id,
                "status": PURCHASE_STATUS_ORDERED,
                "total": total,
                "paid_amount": 0.0,
                "due_amount": total,
                "note": payload.get("note"),
                "items": items,
                "created_at": _now(),
            }
            self.purchases[purchase_id] = purchase
            return self.serialize_purchase(purchase)

    def update_purchase(self, purchase_id: int, payload: dict) -> dict:
        with self._lock:
            purchase = self._purchase(purchase_id)
            if purchase["status"] != PURCHASE_STATUS_ORDERED:
                raise SandboxError(f"Cannot edit purchase in status {purchase['status']}", 409)
            if "note" in payload:
                purchase["note"] = payload["note"]
            return self.serialize_purchase(purchase)

    def receive_purchase(self, purchase_id: int, payload: dict) -> dict:
        with self._lock:
            purchase = self._purchase(purchase_id)
            if purchase["status"] != PURCHASE_STATUS_ORDERED:
                raise SandboxError(f"Cannot receive purchase in status {purchase['status']}", 409)

            lines = {item["id"]: item for item in purchase["items"]}
            received = {}
            for raw in payload.get("items") or []:
                item_id = _int(raw.get("purchase_item_id"), "purchase_item_id")
                if item_id not in lines:
                    raise SandboxError(f"Item {item_id} does not belong to this purchase")
                quantity = _amount(raw.get("received_quantity"), "received_quantity")
                if quantity < 0 or to_cents(quantity) > to_cents(lines[item_id]["quantity"]):
                    raise SandboxError("Received quantity must be between 0 and the ordered quantity")
                received[item_id] = (quantity, raw)

            value = 0
            for item_id, (quantity, raw) in received.items():
                line = lines[item_id]
                line["received_quantity"] = quantity
                if raw.get("batch_no"):
                    line["batch_no"] = raw["batch_no"]
                if raw.get("expiry_date"):
                    line["expiry_date"] = raw["expiry_date"]
                self._move_stock(line["product_id"], purchase["warehouse_id"], quantity)
                value += to_cents(quantity * line["price"])

            if value:
                self._post(ACCOUNT_INVENTORY, ACCOUNT_PAYABLE, from_cents(value), f"Received {purchase['po_no']}")
            purchase["status"] = PURCHASE_STATUS_RECEIVED
            return self.serialize_purchase(purchase)

    def cancel_purchase(self, purchase_id: int) -> dict:
        with self._lock:
            purchase = self._purchase(purchase_id)
            if purchase["status"] != PURCHASE_STATUS_ORDERED:
                raise SandboxError(f"Cannot cancel purchase in status {purchase['status']}", 409)
            purchase["status"] = PURCHASE_STATUS_CANCELLED
            return self.serialize_purchase(purchase)

    # =========================================================================
    # PURCHASE RETURNS
    # =========================================================================

    def serialize_return(self, purchase_return: dict) -> dict:
        return {
            **purchase_return,
            "total": _money(purchase_return["total"]),
            "items": [dict(item) for item in purchase_return["items"]],
            "refunds": [{**r, "amount": _money(r["amount"])} for r in purchase_return["refunds"]],
        }

    def _return(self, return_id: Any) -> dict:
        purchase_return = self.purchase_returns.get(_int(return_id, "return_id"))
        if purchase_return is None:
            raise NotFound("Purchase return", return_id)
        return purchase_return

    def _return_items(self, purchase: dict, raw_items: list) -> list[dict]:
        lines = {item["id"]: item for item in purchase["items"]}
        items = []
        for raw in raw_items or []:
            item_id = _int(raw.get("purchase_item_id"), "purchase_item_id")
            line = lines.get(item_id)
            if line is None:
                raise SandboxError(f"Item {item_id} does not belong to purchase {purchase['po_no']}")
            quantity = _amount(raw.get("returned_quantity"), "returned_quantity")
            if quantity <= 0:
                raise SandboxError("Returned quantity must be greater than 0")
            if to_cents(quantity) > to_cents(line["quantity"]):
                raise SandboxError(f"Cannot return more than {line['quantity']:g} units of item {item_id}")
            price = _amount(raw.get("price", line["price"]), "price")
            items.append({
                "purchase_item_id": item_id,
                "product_id": line["product_id"],
                "returned_quantity": quantity,
                "price": price,
            })
        if not items:
            raise SandboxError("At least one item is required")
        return items

    def list_purchase_returns(self) -> list[dict]:
        with self._lock:
            return [self.serialize_return(r) for r in self.purchase_returns.values()]

    def get_purchase_return(self, return_id: int) -> dict:
        with self._lock:
            return self.serialize_return(self._return(return_id))

    def create_purchase_return(self, payload: dict) -> dict:
        with self._lock:
            purchase = self._purchase(payload.get("purchase_id"))
            if purchase["status"] == PURCHASE_STATUS_CANCELLED:
                raise SandboxError("Cannot return items from a cancelled purchase", 409)
            reason = (payload.get("reason") or "").strip()
            if not reason:
                raise SandboxError("reason is required")
            items = self._return_items(purchase, payload.get("items"))

            return_id = self._next_id("purchase_return")
            purchase_return = {
                "id": return_id,
                "return_no": f"PR-{return_id:04d}",
                "purchase_id": purchase["id"],
                "supplier_id": purchase["supplier_id"],
                "warehouse_id": purchase["warehouse_id"],
                "reason": reason,
                "status": RETURN_STATUS_DRAFT,
                "total": from_cents(sum(to_cents(i["returned_quantity"] * i["price"]) for i in items)),
                "items": items,
                "approved_by": None,
                "approval_notes": None,
                "processing_notes": None,
                "refunds": [],
                "created_at": _now(),
            }
            self.purchase_returns[return_id] = purchase_return
            return self.serialize_return(purchase_return)

    def update_purchase_return(self, return_id: int, payload: dict) -> dict:
        with self._lock:
            purchase_return = self._return(return_id)
            if purchase_return["status"] != RETURN_STATUS_DRAFT:
                raise SandboxError("Only draft returns can be edited", 409)
            if "reason" in payload:
                reason = (payload.get("reason") or "").strip()
                if not reason:
                    raise SandboxError("reason is required")
                purchase_return["reason"] = reason
            if "items" in payload:
                purchase = self._purchase(purchase_return["purchase_id"])
                items = self._return_items(purchase, payload["items"])
                purchase_return["items"] = items
                purchase_return["total"] = from_cents(
                    sum(to_cents(i["returned_quantity"] * i["price"]) for i in items)
                )
            for key in ("note", "return_date"):
                if key in payload:
                    purchase_return[key] = payload[key]
            return self.serialize_return(purchase_return)

    def _move_return(self, return_id: int, allowed: tuple[str, ...], target: str) -> dict:
        purchase_return = self._return(return_id)
        if purchase_return["status"] not in allowed:
            raise SandboxError(
                f"Cannot move return {purchase_return['return_no']} from {purchase_return['status']} to {target}",
                409,
            )
        purchase_return["status"] = target
        return purchase_return

    def approve_purchase_return(self, return_id: int, payload: dict, user_id: int | None = None) -> dict:
        with self._lock:
            purchase_return = self._move_return(return_id, (RETURN_STATUS_DRAFT,), RETURN_STATUS_APPROVED)
            purchase_return["approved_by"] = user_id
            purchase_return["approval_notes"] = payload.get("approval_notes")
            return self.serialize_return(purchase_return)

    def process_purchase_return(self, return_id: int, payload: dict) -> dict:
        with self._lock:
            purchase_return = self._move_return(return_id, (RETURN_STATUS_APPROVED,), RETURN_STATUS_PROCESSED)
            purchase_return["processing_notes"] = payload.get("processing_notes")
            for item in purchase_return["items"]:
                self._move_stock(item["product_id"], purchase_return["warehouse_id"], -item["returned_quantity"])
            if purchase_return["total"]:
                self._post(
                    ACCOUNT_PAYABLE, ACCOUNT_INVENTORY, purchase_return["total"],
                    f"Processed {purchase_return['return_no']}",
                )
            return self.serialize_return(purchase_return)

    def cancel_purchase_return(self, return_id: int) -> dict:
        with self._lock:
            purchase_return = self._move_return(
                return_id, (RETURN_STATUS_DRAFT, RETURN_STATUS_APPROVED), RETURN_STATUS_CANCELLED,
            )
            return self.serialize_return(purchase_return)

    def refund_purchase_return(self, return_id: int, payload: dict) -> dict:
        with self._lock:
            purchase_return = self._return(return_id)
            if purchase_return["status"] != RETURN_STATUS_PROCESSED:
                raise SandboxError("Only processed returns can be refunded", 409)
            amount = _amount(payload.get("amount"))
            if to_cents(amount) <= 0:
                raise SandboxError("Refund amount must be greater than 0")
            account = self._account(payload.get("account_code"))
            method = self._check_method_account(payload.get("method"), account)

            self._post(account["code"], ACCOUNT_PAYABLE, amount, f"Refund for {purchase_return['return_no']}")
            purchase_return["refunds"].append({
                "amount": amount,
                "method": method,
                "account_code": account["code"],
                "supplier_account_code": payload.get("supplier_account_code"),
                "reference": payload.get("reference"),
                "refunded_at": _now(),
            })
            return self.serialize_return(purchase_return)

    # =========================================================================
    # SALES
    # =========================================================================

    def serialize_sale(self, sale: dict) -> dict:
        return {
            **sale,
            "subtotal": _money(sale["subtotal"]),
            "discount": _money(sale["discount"]),
            "tax": _money(sale["tax"]),
            "total": _money(sale["total"]),
            "paid_amount": _money(sale["paid_amount"]),
            "due_amount": _money(sale["total"] - sale["paid_amount"]),
            "items": [dict(item) for item in sale["items"]],
            "payments": [{**p, "amount": _money(p["amount"])} for p in sale["payments"]],
        }

    def _sale(self, sale_id: Any) -> dict:
        sale = self.sales.get(_int(sale_id, "sale_id"))
        if sale is None:
            raise NotFound("Sale", sale_id)
        return sale

    @staticmethod
    def _sale_status(sale: dict) -> str:
        if to_cents(sale["paid_amount"]) >= to_cents(sale["total"]):
            return SALE_STATUS_COMPLETED
        return SALE_STATUS_PENDING

    def list_sales(self, page: int = 1, limit: int = 10) -> tuple[list[dict], int]:
        with self._lock:
            sales = sorted(self.sales.values(), key=lambda s: s["id"], reverse=True)
            start = max(page - 1, 0) * limit
            return [self.serialize_sale(s) for s in sales[start:start + limit]], len(sales)

    def get_sale(self, sale_id: int) -> dict:
        with self._lock:
            return self.serialize_sale(self._sale(sale_id))

    def create_sale(self, payload: dict) -> dict:
        with self._lock:
            customer_id = _int(payload.get("customer_id"), "customer_id")
            if customer_id not in self.customers:
                raise NotFound("Customer", customer_id)
            raw_items = payload.get("items") or []
            if not raw_items:
                raise SandboxError("Cart is empty")

            try:
                amounts = derive_amounts(
                    raw_items,
                    {"type": payload.get("discount_type") or "fixed", "value": payload.get("discount_value") or 0},
                    payload.get("tax_percentage") or 0,
                    payload.get("paid_amount") or 0,
                )
            except ValidationError as exc:
                raise SandboxError(exc.message)
            if amounts.is_overpaid:
                raise SandboxError("Paid amount cannot exceed total")

            payments = []
            for raw in payload.get("payments") or []:
                account = self._account(raw.get("account_code"))
                method = self._check_method_account(raw.get("method"), account)
                payments.append((method, _amount(raw.get("amount")), account))
            if sum(to_cents(p[1]) for p in payments) != to_cents(amounts.paid_amount):
                raise SandboxError("Payments do not add up to the paid amount")

            sale_id = self._next_id("sale")
            sale = {
                "id": sale_id,
                "invoice_no": f"INV-{sale_id:04d}",
                "customer_id": customer_id,
                "branch_id": payload.get("branch_id"),
                "subtotal": amounts.subtotal,
                "discount": amounts.discount,
                "tax": amounts.tax,
                "total": amounts.total,
                "paid_amount": 0.0,
                "items": [dict(item) for item in raw_items],
                "payments": [],
                "created_at": _now(),
            }
            for item in raw_items:
                if item.get("warehouse_id"):
                    self._move_stock(int(item["product_id"]), int(item["warehouse_id"]), -_amount(item["quantity"]))
            self._post(ACCOUNT_RECEIVABLE, ACCOUNT_SALES, amounts.total, f"Sale {sale['invoice_no']}")
            for method, amount, account in payments:
                self._apply_customer_payment(sale, amount, method, account, note="Paid at checkout")
            sale["status"] = self._sale_status(sale)
            self.sales[sale_id] = sale
            return self.serialize_sale(sale)

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def _record_payment(self, **fields) -> dict:
        payment = {"id": self._next_id("payment"), "created_at": _now(), **fields}
        self.payments.append(payment)
        return payment

    def _apply_customer_payment(self, sale: dict, amount: float, method: str, account: dict, note: str) -> dict:
        self._post(account["code"], ACCOUNT_RECEIVABLE, amount, f"Payment for {sale['invoice_no']}")
        sale["paid_amount"] = round_money(sale["paid_amount"] + amount)
        payment = self._record_payment(
            type="customer", sale_id=sale["id"], customer_id=sale["customer_id"],
            amount=amount, method=method, account_code=account["code"], note=note,
        )
        sale["payments"].append({
            "method": method,
            "amount": amount,
            "account_code": account["code"],
            "created_at": payment["created_at"],
        })
        return payment

    def list_payments(self) -> list[dict]:
        with self._lock:
            return [{**p, "amount": _money(p["amount"])} for p in self.payments]

    def create_payment(self, payload: dict) -> dict:
        """Supplier payment against a purchase or customer payment against a sale."""
        with self._lock:
            payment_type = payload.get("type")
            amount = _amount(payload.get("amount"))
            if to_cents(amount) <= 0:
                raise SandboxError("Amount must be greater than 0")
            account = self._account(payload.get("payment_account_code"))
            method = self._check_method_account(payload.get("method"), account)
            note = payload.get("note")

            if payment_type == "supplier":
                purchase = self._purchase(payload.get("purchase_id", payload.get("entity_id")))
                if purchase["status"] == PURCHASE_STATUS_CANCELLED:
                    raise SandboxError("Cannot pay a cancelled purchase", 409)
                if to_cents(amount) > to_cents(purchase["due_amount"]):
                    raise SandboxError("Payment amount exceeds due amount")
                self._post(ACCOUNT_PAYABLE, account["code"], amount, f"Payment for {purchase['po_no']}")
                purchase["paid_amount"] = round_money(purchase["paid_amount"] + amount)
                purchase["due_amount"] = round_money(purchase["total"] - purchase["paid_amount"])
                payment = self._record_payment(
                    type="supplier", purchase_id=purchase["id"], supplier_id=purchase["supplier_id"],
                    amount=amount, method=method, account_code=account["code"], note=note,
                )
            elif payment_type == "customer":
                sale = self._sale(payload.get("sale_id", payload.get("entity_id")))
                if to_cents(amount) > to_cents(sale["total"] - sale["paid_amount"]):
                    raise SandboxError("Payment amount exceeds due amount")
                payment = self._apply_customer_payment(sale, amount, method, account, note)
                sale["status"] = self._sale_status(sale)
            else:
                raise SandboxError(f"Invalid payment type: {payment_type}")

            return {**payment, "amount": _money(payment["amount"])}

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "accounts": list(self.accounts.values()),
                "suppliers": list(self.suppliers.values()),
                "customers": list(self.customers.values()),
                "products": list(self.products.values()),
                "stock": [
                    {"product_id": p, "warehouse_id": w, "quantity": q}
                    for (p, w), q in self.stock.items()
                ],
            }

    def load(self, data: dict) -> None:
        """Load master data written by snapshot(); transactional data starts empty."""
        with self._lock:
            self.reset()
            for account in data.get("accounts") or []:
                self.accounts[str(account["code"])] = dict(account)
            for supplier in data.get("suppliers") or []:
                self.suppliers[int(supplier["id"])] = dict(supplier)
            for customer in data.get("customers") or []:
                self.customers[int(customer["id"])] = dict(customer)
            for product in data.get("products") or []:
                self.products[int(product["id"])] = dict(product)
            for row in data.get("stock") or []:
                self.stock[(int(row["product_id"]), int(row["warehouse_id"]))] = float(row["quantity"])
            if self.products:
                self._ids["product"] = itertools.count(max(self.products) + 1)


def seed_demo(store: SandboxStore) -> SandboxStore:
    """Chart of accounts, two suppliers, two customers and a few products."""
    store.reset()
    store.add_account(ACCOUNT_CASH, "Cash in Hand", is_cash=True)
    store.add_account("1010", "Petty Cash", is_cash=True)
    store.add_account("1020", "City Bank", is_bank=True, account_number="0012-3456")
    store.add_account("1030", "Mobile Wallet")
    store.add_account(ACCOUNT_RECEIVABLE, "Accounts Receivable")
    store.add_account(ACCOUNT_INVENTORY, "Inventory")
    store.add_account(ACCOUNT_PAYABLE, "Accounts Payable", "liability")
    store.add_account(ACCOUNT_EQUITY, "Owner's Equity", "equity")
    store.add_account(ACCOUNT_SALES, "Sales Revenue", "income")

    with store._lock:
        store._post(ACCOUNT_CASH, ACCOUNT_EQUITY, 5000.0, "Opening cash")
        store._post("1020", ACCOUNT_EQUITY, 20000.0, "Opening bank balance")

    store.suppliers.update({
        1: {"id": 1, "name": "Acme Wholesale"},
        2: {"id": 2, "name": "Delta Traders"},
    })
    store.customers.update({
        1: {"id": 1, "name": "Walk-in Customer"},
        2: {"id": 2, "name": "Rahim Stores"},
    })
    for name, price in (("Basmati Rice 5kg", 50.0), ("Sunflower Oil 1L", 100.0), ("Sugar 1kg", 12.5)):
        store.create_product({"name": name, "price": price, "supplier_id": 1})
    return store


def get_store() -> SandboxStore:
    return current_app.extensions["retailflow_sandbox"]
