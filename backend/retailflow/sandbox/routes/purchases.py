# Overview: Sandbox routes for purchase orders: create, edit, receive and cancel.

from flask import Blueprint, current_app, request

from ..decorators import envelope, error, require_auth
from ..store import SandboxError, get_store


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    purchases = get_store().list_purchases()
    return envelope(purchases, meta={"total": len(purchases)})


@purchases_bp.get("/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    try:
        return envelope(get_store().get_purchase(purchase_id))
    except SandboxError as e:
        return error(e.message, e.status_code)


@purchases_bp.post("")
@require_auth
def create_purchase_route():
    """
    Request body:
    {
        "supplier_id": 1,
        "warehouse_id": 1,
        "items": [{"product_id": 1, "quantity": 10, "price": 50}],
        "note": "optional"
    }
    """
    try:
        data = request.get_json() or {}
        return envelope(get_store().create_purchase(data), "Purchase created", 201)
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return error("Internal server error", 500)


@purchases_bp.patch("/<int:purchase_id>")
@require_auth
def update_purchase_route(purchase_id: int):
    try:
        data = request.get_json() or {}
        return envelope(get_store().update_purchase(purchase_id, data), "Purchase updated")
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to update purchase")
        return error("Internal server error", 500)


@purchases_bp.post("/<int:purchase_id>/receive")
@require_auth
def receive_purchase_route(purchase_id: int):
    """
    Request body:
    {
        "items": [{"purchase_item_id": 1, "received_quantity": 10,
                   "batch_no": "B-01", "expiry_date": "2027-01-31"}]
    }
    """
    try:
        data = request.get_json() or {}
        return envelope(get_store().receive_purchase(purchase_id, data), "Purchase received")
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to receive purchase")
        return error("Internal server error", 500)


@purchases_bp.patch("/<int:purchase_id>/cancel")
@require_auth
def cancel_purchase_route(purchase_id: int):
    try:
        return envelope(get_store().cancel_purchase(purchase_id), "Purchase cancelled")
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to cancel purchase")
        return error("Internal server error", 500)
