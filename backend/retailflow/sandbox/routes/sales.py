# Overview: Sandbox routes for POS checkout and sale lookups.

from flask import Blueprint, current_app, request

from ..decorators import envelope, error, require_auth
from ..store import SandboxError, get_store


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("/list")
@require_auth
def list_sales_route():
    page = request.args.get("page", 1, type=int)
    limit = request.args.get("limit", 10, type=int)
    sales, total = get_store().list_sales(page, limit)
    return envelope(sales, meta={"total": total, "page": page, "limit": limit})


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        return envelope(get_store().get_sale(sale_id))
    except SandboxError as e:
        return error(e.message, e.status_code)


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Request body:
    {
        "customer_id": 1,
        "discount_type": "fixed",
        "discount_value": 20,
        "tax_percentage": 10,
        "paid_amount": 100,
        "items": [{"product_id": 1, "warehouse_id": 1, "quantity": 2, "unit_price": 50}],
        "payments": [{"method": "cash", "amount": 100, "account_code": "1000"}]
    }

    Totals are recomputed here; the client's figures are not trusted.
    """
    try:
        data = request.get_json() or {}
        return envelope(get_store().create_sale(data), "Sale created", 201)
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return error("Internal server error", 500)
