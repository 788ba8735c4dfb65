# Overview: Validates a proposed payment against an outstanding due and builds the ledger payload.

"""
Payment Allocator

WHY: Supplier payments (against a purchase) and customer payments (against a
sale) share one ledger endpoint. Before anything is posted, the amount must be
checked against the due the server last reported, the note classified, and
the paying account matched to the method.

DESIGN PRINCIPLES:
- amount <= due (equality allowed) and amount > 0, compared in cents
- Auto note: "Full payment" when amount == due, else "Partial payment";
  a note the user typed is never overwritten
- Method is a tagged variant (Cash/Bank/Mobile) validated at construction
- An allocation is posted at most once. A submission the server rejected or
  never received releases the claim, so the user can retry with it
- The server re-validates amount vs due; this is only the first line
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Iterable

from ..models import Account
from ..validation import (
    AmountExceedsDue,
    AmountNotPositive,
    IneligibleAccount,
    MissingField,
    ValidationError,
    from_cents,
    optional_text,
    parse_money,
    to_cents,
)


logger = logging.getLogger(__name__)


class DuplicateSubmissionError(ValidationError):
    """Raised when an allocation is claimed for submission a second time."""

    code = "DUPLICATE_SUBMISSION"


# =============================================================================
# METHODS & PARTY TYPES (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_BANK = "bank"
METHOD_MOBILE = "mobile"

VALID_METHODS = [METHOD_CASH, METHOD_BANK, METHOD_MOBILE]

# Wallet brand names the console has used for the mobile method
METHOD_ALIASES = {"bkash": METHOD_MOBILE, "wallet": METHOD_MOBILE}

PAYMENT_TYPE_SUPPLIER = "supplier"
PAYMENT_TYPE_CUSTOMER = "customer"

NOTE_FULL_PAYMENT = "Full payment"
NOTE_PARTIAL_PAYMENT = "Partial payment"
AUTO_NOTES = frozenset({NOTE_FULL_PAYMENT, NOTE_PARTIAL_PAYMENT})

CLASSIFICATION_FULL = "FULL"
CLASSIFICATION_PARTIAL = "PARTIAL"


def normalize_method(method: str | None) -> str | None:
    if method is None:
        return None
    value = str(method).strip().lower()
    if not value:
        return None
    value = METHOD_ALIASES.get(value, value)
    if value not in VALID_METHODS:
        raise ValidationError(
            f"Invalid payment method: {method}. Must be one of {VALID_METHODS}",
            field="method",
        )
    return value


# =============================================================================
# TAGGED METHOD VARIANTS
# =============================================================================

@dataclass(frozen=True)
class CashMethod:
    account: Account
    method = METHOD_CASH

    def __post_init__(self):
        if not self.account.is_cash:
            raise IneligibleAccount(
                f"Account {self.account.code} is not a cash account",
                field="payment_account_code",
            )


@dataclass(frozen=True)
class BankMethod:
    account: Account
    method = METHOD_BANK

    def __post_init__(self):
        if not self.account.is_bank:
            raise IneligibleAccount(
                f"Account {self.account.code} is not a bank account",
                field="payment_account_code",
            )


@dataclass(frozen=True)
class MobileMethod:
    """Wallet payments: no account filter, but the account must be chosen explicitly."""
    account: Account
    method = METHOD_MOBILE


PaymentMethod = CashMethod | BankMethod | MobileMethod

_VARIANTS = {
    METHOD_CASH: CashMethod,
    METHOD_BANK: BankMethod,
    METHOD_MOBILE: MobileMethod,
}


def eligible_accounts(method: str | None, accounts: Iterable[Account]) -> list[Account]:
    """
    Accounts the method may post to.

    cash -> isCash accounts, bank -> isBank accounts, mobile -> every account
    (no predicate). With no method chosen yet nothing is selectable.
    """
    method = normalize_method(method)
    if method is None:
        return []
    if method == METHOD_CASH:
        return [a for a in accounts if a.is_cash]
    if method == METHOD_BANK:
        return [a for a in accounts if a.is_bank]
    return list(accounts)


@dataclass(frozen=True)
class AccountSelector:
    enabled: bool
    options: tuple[Account, ...]


def account_selector(method: str | None, accounts: Iterable[Account]) -> AccountSelector:
    """The account picker stays disabled until a method is set."""
    options = tuple(eligible_accounts(method, accounts))
    return AccountSelector(enabled=normalize_method(method) is not None, options=options)


def build_method(method: str | None, account_code: str | None, accounts: Iterable[Account]) -> PaymentMethod:
    """
    Resolve method + account code into a validated variant.

    Raises:
        MissingField: method or account not chosen
        IneligibleAccount: account unknown or of the wrong kind for the method
    """
    method = normalize_method(method)
    if method is None:
        raise MissingField("Payment method is required", field="method")
    code = optional_text(account_code)
    if code is None:
        raise MissingField("Payment account is required", field="payment_account_code")

    account = next((a for a in accounts if a.code == code), None)
    if account is None:
        raise IneligibleAccount(f"Unknown payment account: {code}", field="payment_account_code")

    return _VARIANTS[method](account)


# =============================================================================
# ALLOCATION
# =============================================================================

def classify_payment(amount: float, due_amount: float) -> str:
    return CLASSIFICATION_FULL if to_cents(amount) == to_cents(due_amount) else CLASSIFICATION_PARTIAL


def auto_note(amount: float, due_amount: float) -> str:
    if classify_payment(amount, due_amount) == CLASSIFICATION_FULL:
        return NOTE_FULL_PAYMENT
    return NOTE_PARTIAL_PAYMENT


def resolve_note(note: str | None, amount: float, due_amount: float) -> str:
    """
    Empty notes and notes that are themselves auto notes get re-derived;
    anything the user typed is kept verbatim.
    """
    if note is None or not note.strip() or note in AUTO_NOTES:
        return auto_note(amount, due_amount)
    return note


def validate_amount(amount: Any, due_amount: Any) -> float:
    """
    Raises:
        AmountNotPositive: amount <= 0
        AmountExceedsDue: amount > due (equality allowed)
    """
    value = parse_money(amount, "amount")
    due = parse_money(due_amount, "due_amount")

    if to_cents(value) <= 0:
        raise AmountNotPositive("Amount must be greater than 0", field="amount")
    if to_cents(value) > to_cents(due):
        raise AmountExceedsDue(f"Amount cannot exceed {from_cents(to_cents(due)):.2f}", field="amount")
    return from_cents(to_cents(value))


@dataclass
class PaymentAllocation:
    """
    An accepted payment, ready to be posted once.

    claim() hands out the payload and flips the allocation to submitted; a
    second claim raises DuplicateSubmissionError until release() re-opens it.
    """
    type: str
    entity_id: int
    amount: float
    due_amount: float
    method: PaymentMethod
    note: str
    party_id: int | None = None

    def __post_init__(self):
        self._submitted = False
        self._lock = threading.Lock()

    @property
    def classification(self) -> str:
        return classify_payment(self.amount, self.due_amount)

    @property
    def is_full(self) -> bool:
        return self.classification == CLASSIFICATION_FULL

    @property
    def remaining_due(self) -> float:
        return from_cents(to_cents(self.due_amount) - to_cents(self.amount))

    @property
    def submitted(self) -> bool:
        return self._submitted

    def to_payload(self) -> dict:
        payload = {
            "type": self.type,
            "entity_id": self.entity_id,
            "amount": self.amount,
            "method": self.method.method,
            "payment_account_code": self.method.account.code,
            "note": self.note,
        }
        if self.type == PAYMENT_TYPE_SUPPLIER:
            payload["purchase_id"] = self.entity_id
            if self.party_id is not None:
                payload["supplier_id"] = self.party_id
        else:
            payload["sale_id"] = self.entity_id
            if self.party_id is not None:
                payload["customer_id"] = self.party_id
        return payload

    def claim(self) -> dict:
        with self._lock:
            if self._submitted:
                raise DuplicateSubmissionError(
                    f"Payment for {self.type} #{self.entity_id} was already submitted"
                )
            self._submitted = True
        return self.to_payload()

    def release(self) -> None:
        """Re-open the allocation after a submission that did not go through."""
        with self._lock:
            self._submitted = False


def allocate_payment(
    *,
    payment_type: str,
    entity_id: int,
    due_amount: Any,
    amount: Any,
    method: str | None,
    account_code: str | None,
    accounts: Iterable[Account],
    note: str | None = None,
    party_id: int | None = None,
) -> PaymentAllocation:
    """
    Validate a proposed payment and produce a one-shot allocation.

    Args:
        payment_type: "supplier" (purchase) or "customer" (sale)
        entity_id: purchase id or sale id
        due_amount: outstanding due as last reported by the server
        amount: proposed amount
        method: cash, bank or mobile
        account_code: chosen payment account
        accounts: accounts the user may pick from
        note: user note; empty or auto notes get re-derived
        party_id: supplier_id / customer_id

    Raises:
        AmountNotPositive, AmountExceedsDue, MissingField, IneligibleAccount
    """
    if payment_type not in (PAYMENT_TYPE_SUPPLIER, PAYMENT_TYPE_CUSTOMER):
        raise ValidationError(f"Invalid payment type: {payment_type}", field="type")

    accounts = list(accounts)
    value = validate_amount(amount, due_amount)
    due = from_cents(to_cents(parse_money(due_amount, "due_amount")))
    variant = build_method(method, account_code, accounts)

    allocation = PaymentAllocation(
        type=payment_type,
        entity_id=entity_id,
        amount=value,
        due_amount=due,
        method=variant,
        note=resolve_note(note, value, due),
        party_id=party_id,
    )
    logger.debug(
        "Allocated %s payment %.2f of %.2f due on #%s (%s)",
        payment_type, value, due, entity_id, allocation.classification,
    )
    return allocation


def prepare_payment(
    fields: dict,
    *,
    payment_type: str,
    entity_id: int,
    due_amount: Any,
    party_id: int | None = None,
) -> dict:
    """
    Turn submitted form fields into a claimed payment payload.

    `fields` either carries a ready "allocation" (built while the user was
    typing, so the note preview matched) or the raw amount / method /
    payment_account_code / accounts / note values.
    """
    allocation = fields.get("allocation")
    if allocation is None:
        allocation = allocate_payment(
            payment_type=payment_type,
            entity_id=entity_id,
            due_amount=due_amount,
            amount=fields.get("amount"),
            method=fields.get("method"),
            account_code=fields.get("payment_account_code", fields.get("account_code")),
            accounts=fields.get("accounts") or (),
            note=fields.get("note"),
            party_id=party_id,
        )
    else:
        if allocation.type != payment_type or allocation.entity_id != entity_id:
            raise ValidationError(
                f"Allocation belongs to {allocation.type} #{allocation.entity_id}",
                field="allocation",
            )
        # The due may have moved since the allocation was built
        validate_amount(allocation.amount, due_amount)
    return allocation.claim()
