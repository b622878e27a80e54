# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/filmstock/routes/sales.py
from flask import Blueprint, request, current_app

from ..services import sales_service
from ..validation import ValidationError, ConflictError, NotFoundError

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales_route():
    """
    Query params:
    - film_type: virgin | colored (optional)
    - product_id: int (optional)
    - limit: int (default 200)
    """
    try:
        sales = sales_service.list_sales(
            film_type=request.args.get("film_type"),
            product_id=request.args.get("product_id", type=int),
            limit=request.args.get("limit", default=200, type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [s.to_dict() for s in sales], "count": len(sales)}


@sales_bp.post("")
def record_sale_route():
    """
    Record a sale by product lot or by variant.

    Body:
    {
        "quantity": 10,
        "date": "2025-03-05",
        "product_id": 1,           # or
        "film_type": "virgin",
        "destination": "external"  # or "local"
    }

    The cash ledger is notified after the sale commits; a notification
    failure does not fail the request.
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.record_sale(
            quantity=data.get("quantity"),
            sale_date=data.get("date"),
            product_id=data.get("product_id"),
            film_type=data.get("film_type"),
            destination=data.get("destination", "external"),
        )
        notification = sale.notification
        return {
            "sale": sale.to_dict(),
            "notification": notification.to_dict() if notification else None,
        }, 201
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return {"error": "Internal server error"}, 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    notification = sale.notification
    return {
        "sale": sale.to_dict(),
        "notification": notification.to_dict() if notification else None,
    }
