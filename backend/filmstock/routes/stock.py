# Overview: Flask API routes for stock pools, pool history and the transaction log.

# backend/filmstock/routes/stock.py
from flask import Blueprint, request, current_app

from ..services import stock_service
from ..validation import ValidationError, ConflictError
from ..decorators import require_admin

stock_bp = Blueprint("stock", __name__, url_prefix="/api")


@stock_bp.get("/stock")
def get_all_pools_route():
    return {"pools": stock_service.get_all_pools()}


@stock_bp.get("/stock/<pool>")
def get_pool_route(pool: str):
    try:
        levels = stock_service.get_pool(pool)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"pool": pool, **levels}


@stock_bp.get("/stock/<pool>/history")
def list_history_route(pool: str):
    limit = request.args.get("limit", default=200, type=int)
    try:
        entries = stock_service.list_history(pool, limit=limit)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [e.to_dict() for e in entries], "count": len(entries)}


@stock_bp.post("/stock/<pool>/adjust")
@require_admin
def adjust_pool_route(pool: str):
    """
    Admin stock addition.

    Body: {"film_type": "virgin", "delta": 100, "description": "...", "date": "..."}
    """
    data = request.get_json(silent=True) or {}
    try:
        row = stock_service.adjust(
            pool,
            data.get("film_type"),
            data.get("delta"),
            description=data.get("description"),
            occurred_at=data.get("date"),
        )
        return {"pool": row.to_dict()}, 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to adjust stock pool %s", pool)
        return {"error": "Internal server error"}, 500


@stock_bp.put("/stock/<pool>")
@require_admin
def set_levels_route(pool: str):
    """Admin overwrite. Body: {"virgin": 0, "colored": 0}"""
    data = request.get_json(silent=True) or {}
    try:
        row = stock_service.set_levels(pool, virgin=data.get("virgin"), colored=data.get("colored"))
        return {"pool": row.to_dict()}, 200
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to set stock levels for %s", pool)
        return {"error": "Internal server error"}, 500


@stock_bp.post("/stock/move")
@require_admin
def move_route():
    """
    Admin transfer between pools.

    Body: {"from_pool": "...", "to_pool": "...", "film_type": "...", "amount": 10}
    """
    data = request.get_json(silent=True) or {}
    try:
        tx = stock_service.move(
            data.get("from_pool"),
            data.get("to_pool"),
            data.get("film_type"),
            data.get("amount"),
            description=data.get("description"),
        )
        return {"transaction": tx.to_dict()}, 201
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to move stock")
        return {"error": "Internal server error"}, 500


@stock_bp.get("/transactions")
def list_transactions_route():
    """
    Query params:
    - limit: int (default 200)
    - film_type: virgin | colored (optional)
    - kind: input | output | transfer (optional)
    """
    limit = request.args.get("limit", default=200, type=int)
    try:
        txs = stock_service.list_transactions(
            limit=limit,
            film_type=request.args.get("film_type"),
            kind=request.args.get("kind"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [t.to_dict() for t in txs], "count": len(txs)}
