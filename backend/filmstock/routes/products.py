# Overview: Flask API routes for product lots; parses input and returns JSON responses.

# backend/filmstock/routes/products.py
"""
Product lot routes.

SECURITY: creating a lot is open to operators; edits and deletes require
the admin token.
"""
from flask import Blueprint, request, current_app

from ..services import product_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_admin

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    Query params:
    - film_type: virgin | colored (optional)
    - include_catalog: true to include the price catalog rows
    """
    include_catalog = request.args.get("include_catalog", "").lower() in {"1", "true", "yes"}
    try:
        products = product_service.list_products(
            film_type=request.args.get("film_type"),
            include_catalog=include_catalog,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.post("")
def create_product_route():
    """
    Create a lot from in-process or outsourced stock.

    Body: {"source": "inProcess", "film_type": "virgin", "input_quantity": 40, "start_date": "..."}
    """
    data = request.get_json(silent=True) or {}
    try:
        product = product_service.create_product(
            source=data.get("source"),
            film_type=data.get("film_type"),
            input_quantity=data.get("input_quantity"),
            start_date=data.get("start_date"),
        )
        return {"product": product.to_dict()}, 201
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = product_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    history = product_service.list_product_history(product_id)
    return {"product": product.to_dict(), "history": [h.to_dict() for h in history]}


@products_bp.put("/<int:product_id>")
@require_admin
def update_product_route(product_id: int):
    """Body: any of {"name", "price", "quantity"}"""
    payload = request.get_json(silent=True) or {}
    try:
        product = product_service.update_product(product_id, payload)
        return {"product": product.to_dict()}, 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Internal server error"}, 500


@products_bp.delete("/<int:product_id>")
@require_admin
def delete_product_route(product_id: int):
    try:
        product_service.delete_product(product_id)
        return {"deleted": True, "product_id": product_id}, 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return {"error": "Internal server error"}, 500
