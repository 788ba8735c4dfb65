# Overview: Cash/bank top-ups and fund transfers between ledger accounts.

"""
Account Operations

All three operations post ledger entries on the server; balances shown here
are the server's last report and are never recomputed locally. The balance
check on transfers is a courtesy: the server re-validates.

PAYLOADS:
    add-cash          {amount, narration}
    add-bank-balance  {bankAccountCode, amount, narration}
    fund-transfer     {fromAccountCode, toAccountCode, amount, narration}
"""

from __future__ import annotations

from typing import Any, Iterable

from ..models import Account
from ..validation import (
    AmountNotPositive,
    IneligibleAccount,
    InsufficientBalance,
    MissingField,
    from_cents,
    optional_text,
    parse_money,
    to_cents,
)


def _positive_amount(value: Any) -> float:
    amount = parse_money(value, "amount")
    if to_cents(amount) <= 0:
        raise AmountNotPositive("Amount must be greater than 0", field="amount")
    return from_cents(to_cents(amount))


def _find(accounts: Iterable[Account], code: Any, field: str) -> Account:
    code = optional_text(code)
    if code is None:
        raise MissingField("Account is required", field=field)
    for account in accounts:
        if account.code == code:
            return account
    raise IneligibleAccount(f"Unknown account: {code}", field=field)


def bank_accounts(accounts: Iterable[Account]) -> list[Account]:
    return [a for a in accounts if a.is_bank]


def transfer_targets(source_code: str | None, accounts: Iterable[Account]) -> list[Account]:
    """Destinations offered for a transfer: cash or bank, never the source itself."""
    return [
        a for a in accounts
        if a.code != source_code and (a.is_cash or a.is_bank)
    ]


def build_add_cash_payload(amount: Any, narration: str | None = None) -> dict:
    payload = {"amount": _positive_amount(amount)}
    narration = optional_text(narration)
    if narration:
        payload["narration"] = narration
    return payload


def build_add_bank_balance_payload(
    bank_account_code: Any,
    amount: Any,
    accounts: Iterable[Account],
    narration: str | None = None,
) -> dict:
    """
    Raises:
        MissingField / IneligibleAccount: no account, unknown, or not a bank account
        AmountNotPositive
    """
    account = _find(accounts, bank_account_code, "bankAccountCode")
    if not account.is_bank:
        raise IneligibleAccount(f"Account {account.code} is not a bank account", field="bankAccountCode")

    payload = {"bankAccountCode": account.code, "amount": _positive_amount(amount)}
    narration = optional_text(narration)
    if narration:
        payload["narration"] = narration
    return payload


def build_fund_transfer_payload(
    from_account_code: Any,
    to_account_code: Any,
    amount: Any,
    accounts: Iterable[Account],
    narration: str | None = None,
) -> dict:
    """
    Move money between two of the company's own accounts.

    Raises:
        MissingField: source or destination not chosen
        IneligibleAccount: same account twice, or destination neither cash nor bank
        AmountNotPositive
        InsufficientBalance: amount above the source's reported balance
    """
    accounts = list(accounts)
    source = _find(accounts, from_account_code, "fromAccountCode")
    target = _find(accounts, to_account_code, "toAccountCode")

    if source.code == target.code:
        raise IneligibleAccount("Source and destination accounts must differ", field="toAccountCode")
    if not (target.is_cash or target.is_bank):
        raise IneligibleAccount(
            f"Account {target.code} cannot receive transfers (not cash or bank)",
            field="toAccountCode",
        )

    value = _positive_amount(amount)
    if to_cents(value) > to_cents(source.balance):
        raise InsufficientBalance("Insufficient balance", field="amount")

    payload = {
        "fromAccountCode": source.code,
        "toAccountCode": target.code,
        "amount": value,
    }
    narration = optional_text(narration)
    if narration:
        payload["narration"] = narration
    return payload
