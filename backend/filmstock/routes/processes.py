# Overview: Flask API routes for recycling and outsourcing cycles.

# backend/filmstock/routes/processes.py
from flask import Blueprint, request, current_app

from ..services import process_service
from ..validation import ValidationError, ConflictError, NotFoundError

processes_bp = Blueprint("processes", __name__, url_prefix="/api/processes")


def _parse_bool(value) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@processes_bp.get("")
def list_processes_route():
    """
    Query params:
    - status: pending | processing | completed (optional)
    - outsourced: true | false (optional)
    """
    try:
        processes = process_service.list_processes(
            status=request.args.get("status"),
            outsourced=_parse_bool(request.args.get("outsourced")),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [p.to_dict() for p in processes], "count": len(processes)}


@processes_bp.post("")
def start_process_route():
    """
    Start a cycle: moves input_quantity out of raw material.

    Body:
    {
        "film_type": "virgin",
        "input_quantity": 40,
        "start_date": "2025-03-01",
        "expected_days": 3,
        "outsourced": false,
        "outsourcing_partner": null
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        process = process_service.start_process(
            film_type=data.get("film_type"),
            input_quantity=data.get("input_quantity"),
            start_date=data.get("start_date"),
            expected_days=data.get("expected_days", 3),
            outsourced=bool(_parse_bool(data.get("outsourced"))),
            outsourcing_partner=data.get("outsourcing_partner"),
        )
        return {"process": process.to_dict()}, 201
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to start process")
        return {"error": "Internal server error"}, 500


@processes_bp.get("/<int:process_id>")
def get_process_route(process_id: int):
    try:
        process = process_service.get_process(process_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"process": process.to_dict()}


@processes_bp.post("/<int:process_id>/complete")
def complete_process_route(process_id: int):
    """Body: {"output_quantity": 38, "end_date": "2025-03-04"}"""
    data = request.get_json(silent=True) or {}
    try:
        process = process_service.complete_process(
            process_id,
            output_quantity=data.get("output_quantity"),
            end_date=data.get("end_date"),
        )
        return {"process": process.to_dict()}, 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to complete process %s", process_id)
        return {"error": "Internal server error"}, 500
