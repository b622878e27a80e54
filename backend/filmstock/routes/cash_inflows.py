# Overview: Admin routes for the cash-ledger outbox.

# backend/filmstock/routes/cash_inflows.py
from flask import Blueprint, request, current_app

from ..services import cash_ledger_service
from ..validation import ValidationError
from ..decorators import require_admin

cash_inflows_bp = Blueprint("cash_inflows", __name__, url_prefix="/api/cash-inflows")


@cash_inflows_bp.get("")
@require_admin
def list_notifications_route():
    """Query params: status (PENDING | SENT | FAILED), limit"""
    try:
        rows = cash_ledger_service.list_notifications(
            status=request.args.get("status"),
            limit=request.args.get("limit", default=100, type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}


@cash_inflows_bp.post("/dispatch")
@require_admin
def dispatch_route():
    """
    Deliver pending cash inflow notifications.

    Body (optional): {"limit": 50, "requeue_failed": false}
    """
    data = request.get_json(silent=True) or {}
    try:
        requeued = cash_ledger_service.requeue_failed() if data.get("requeue_failed") else 0
        result = cash_ledger_service.dispatch_pending(limit=int(data.get("limit", 50)))
        return {**result, "requeued": requeued}, 200
    except (ValidationError, ValueError, TypeError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to dispatch cash inflow notifications")
        return {"error": "Internal server error"}, 500
