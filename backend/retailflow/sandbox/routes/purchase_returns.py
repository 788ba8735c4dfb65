# Overview: Sandbox routes for purchase returns: draft edits, approval, processing, refunds.

from flask import Blueprint, current_app, g, request

from ..decorators import envelope, error, require_auth
from ..store import SandboxError, get_store


purchase_returns_bp = Blueprint("purchase_returns", __name__, url_prefix="/api/purchase-returns")


@purchase_returns_bp.get("")
@require_auth
def list_purchase_returns_route():
    returns = get_store().list_purchase_returns()
    return envelope(returns, meta={"total": len(returns)})


@purchase_returns_bp.get("/<int:return_id>")
@require_auth
def get_purchase_return_route(return_id: int):
    try:
        return envelope(get_store().get_purchase_return(return_id))
    except SandboxError as e:
        return error(e.message, e.status_code)


@purchase_returns_bp.post("")
@require_auth
def create_purchase_return_route():
    """
    Request body:
    {
        "purchase_id": 1,
        "reason": "Damaged in transit",
        "items": [{"purchase_item_id": 1, "returned_quantity": 2, "price": 50}]
    }
    """
    try:
        data = request.get_json() or {}
        return envelope(get_store().create_purchase_return(data), "Purchase return created", 201)
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to create purchase return")
        return error("Internal server error", 500)


@purchase_returns_bp.patch("/<int:return_id>")
@require_auth
def update_purchase_return_route(return_id: int):
    try:
        data = request.get_json() or {}
        return envelope(get_store().update_purchase_return(return_id, data), "Purchase return updated")
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to update purchase return")
        return error("Internal server error", 500)


@purchase_returns_bp.patch("/<int:return_id>/approve")
@require_auth
def approve_purchase_return_route(return_id: int):
    try:
        data = request.get_json(silent=True) or {}
        purchase_return = get_store().approve_purchase_return(return_id, data, user_id=g.current_user_id)
        return envelope(purchase_return, "Purchase return approved")
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to approve purchase return")
        return error("Internal server error", 500)


@purchase_returns_bp.patch("/<int:return_id>/process")
@require_auth
def process_purchase_return_route(return_id: int):
    try:
        data = request.get_json(silent=True) or {}
        return envelope(get_store().process_purchase_return(return_id, data), "Purchase return processed")
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to process purchase return")
        return error("Internal server error", 500)


@purchase_returns_bp.patch("/<int:return_id>/cancel")
@require_auth
def cancel_purchase_return_route(return_id: int):
    try:
        return envelope(get_store().cancel_purchase_return(return_id), "Purchase return cancelled")
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to cancel purchase return")
        return error("Internal server error", 500)


@purchase_returns_bp.post("/<int:return_id>/refund")
@require_auth
def refund_purchase_return_route(return_id: int):
    """
    Request body:
    {
        "amount": 100,
        "method": "cash",
        "account_code": "1000",
        "supplier_account_code": "2000",  (optional)
        "reference": "CHQ-991"  (optional)
    }
    """
    try:
        data = request.get_json() or {}
        return envelope(get_store().refund_purchase_return(return_id, data), "Refund recorded", 201)
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to record refund")
        return error("Internal server error", 500)
