from __future__ import annotations

import math
from typing import Any


class ValidationError(ValueError):
    """
    Client-side input problem.

    Blocks submission and is shown inline next to `field`. A ValidationError
    is never sent to the server.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class AmountNotPositive(ValidationError):
    code = "AMOUNT_NOT_POSITIVE"


class AmountExceedsDue(ValidationError):
    code = "AMOUNT_EXCEEDS_DUE"


class InvalidLineItem(ValidationError):
    code = "INVALID_LINE_ITEM"


class InvalidDiscount(ValidationError):
    code = "INVALID_DISCOUNT"


class IneligibleAccount(ValidationError):
    code = "INELIGIBLE_ACCOUNT"


class MissingField(ValidationError):
    code = "MISSING_FIELD"


class InsufficientBalance(ValidationError):
    code = "INSUFFICIENT_BALANCE"


class ReturnQuantityExceeded(ValidationError):
    code = "RETURN_QUANTITY_EXCEEDED"


def parse_money(value: Any, field: str = "amount") -> float:
    """
    Normalize a monetary value from the API into a float.

    The remote API sends money either as a number or as a numeric string
    ("1200.50"). None and "" mean zero.
    """
    if value is None:
        return 0.0

    # bool is a subclass of int; never treat True as 1.00
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValidationError(f"{field} must be a finite number", field=field)
        return float(value)

    if isinstance(value, str):
        stripped = value.strip().replace(",", "")
        if not stripped:
            return 0.0
        try:
            parsed = float(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be a number", field=field)
        if not math.isfinite(parsed):
            raise ValidationError(f"{field} must be a finite number", field=field)
        return parsed

    raise ValidationError(f"{field} must be a number", field=field)


def parse_quantity(value: Any, field: str = "quantity") -> float:
    if value is None or value == "":
        raise InvalidLineItem(f"{field} is required", field=field)
    try:
        return parse_money(value, field)
    except ValidationError as exc:
        raise InvalidLineItem(exc.message, field=field)


def parse_line_id(value: Any, field: str = "purchase_item_id") -> int | None:
    """Purchase line reference from a form row; None when missing."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidLineItem(f"{field} must be a whole number", field=field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidLineItem(f"{field} must be a whole number", field=field)


def to_cents(amount: float) -> int:
    """Money comparisons are done in whole cents to dodge float drift."""
    return int(round(amount * 100))


def from_cents(cents: int) -> float:
    return cents / 100


def round_money(amount: float) -> float:
    return from_cents(to_cents(amount))


def require_text(value: Any, field: str) -> str:
    """Mandatory free-text field (e.g. a return reason)."""
    text = str(value).strip() if value is not None else ""
    if not text:
        raise MissingField(f"{field} is required", field=field)
    return text


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
