# Overview: Flask API routes for the per-variant price catalog.

# backend/filmstock/routes/prices.py
from flask import Blueprint, request, current_app

from ..services import price_service
from ..validation import ValidationError
from ..decorators import require_admin

prices_bp = Blueprint("prices", __name__, url_prefix="/api/prices")


@prices_bp.get("")
def get_prices_route():
    return {"prices": price_service.get_prices()}


@prices_bp.get("/history")
def price_history_route():
    try:
        history = price_service.list_price_history(
            request.args.get("film_type"),
            limit=request.args.get("limit", default=100, type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": history, "count": len(history)}


@prices_bp.put("/<film_type>")
@require_admin
def set_price_route(film_type: str):
    """Body: {"price": 1600}  (FCFA per kg)"""
    data = request.get_json(silent=True) or {}
    try:
        product = price_service.set_price(film_type, data.get("price"))
        return {"film_type": film_type, "price": product.price, "product_id": product.id}, 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to set %s price", film_type)
        return {"error": "Internal server error"}, 500
