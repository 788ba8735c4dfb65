# Overview: Sandbox routes for the chart of accounts, top-ups and fund transfers.

from flask import Blueprint, current_app, request

from ..decorators import envelope, error, require_auth
from ..store import SandboxError, get_store


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")


@accounts_bp.get("")
@require_auth
def list_accounts_route():
    accounts = get_store().list_accounts()
    return envelope(accounts, meta={"total": len(accounts)})


@accounts_bp.get("/balances")
@require_auth
def account_balances_route():
    return envelope(get_store().account_balances())


@accounts_bp.post("/add-cash")
@require_auth
def add_cash_route():
    """Request body: {"amount": 1000, "narration": "optional"}"""
    try:
        data = request.get_json() or {}
        return envelope(get_store().add_cash(data), "Cash added", 201)
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to add cash")
        return error("Internal server error", 500)


@accounts_bp.post("/add-bank-balance")
@require_auth
def add_bank_balance_route():
    """Request body: {"bankAccountCode": "1020", "amount": 1000, "narration": "optional"}"""
    try:
        data = request.get_json() or {}
        return envelope(get_store().add_bank_balance(data), "Bank balance added", 201)
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to add bank balance")
        return error("Internal server error", 500)


@accounts_bp.post("/fund-transfer")
@require_auth
def fund_transfer_route():
    """Request body: {"fromAccountCode": "1020", "toAccountCode": "1000", "amount": 500, "narration": "optional"}"""
    try:
        data = request.get_json() or {}
        return envelope(get_store().fund_transfer(data), "Transfer completed", 201)
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to transfer funds")
        return error("Internal server error", 500)
