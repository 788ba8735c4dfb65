# Overview: Sandbox routes for product create, update and delete.

from flask import Blueprint, current_app, request

from ..decorators import envelope, error, require_auth
from ..store import SandboxError, get_store


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("")
@require_auth
def create_product_route():
    try:
        data = request.get_json() or {}
        return envelope(get_store().create_product(data), "Product created", 201)
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return error("Internal server error", 500)


@products_bp.patch("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    try:
        data = request.get_json() or {}
        return envelope(get_store().update_product(product_id, data), "Product updated")
    except SandboxError as e:
        return error(e.message, e.status_code)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return error("Internal server error", 500)


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        get_store().delete_product(product_id)
        return envelope(None, "Product deleted")
    except SandboxError as e:
        return error(e.message, e.status_code)
