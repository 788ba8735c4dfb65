# Overview: Sandbox routes for supplier and customer payments.

from flask import Blueprint, current_app, request

from ..decorators import envelope, error, require_auth
from ..store import SandboxError, get_store


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_auth
def list_payments_route():
    payments = get_store().list_payments()
    return envelope(payments, meta={"total": len(payments)})


@payments_bp.post("")
@require_auth
def create_payment_route():
    """
    Request body:
    {
        "type": "supplier",
        "entity_id": 1,
        "purchase_id": 1,  (or "sale_id" for customer payments)
        "amount": 500,
        "method": "cash",
        "payment_account_code": "1000",
        "note": "Full payment"
    }

    Returns:
        201: Payment recorded
        400: Amount not positive, exceeds due, or account/method mismatch
        404: Purchase or sale not found
    """
    try:
        data = request.get_json() or {}
        return envelope(get_store().create_payment(data), "Payment recorded", 201)
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return error("Internal server error", 500)
