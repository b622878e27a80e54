# backend/filmstock/services/process_service.py
"""
Recycling and outsourcing cycles.

WHY: A cycle is the only way raw material leaves the raw pool. Starting a
cycle moves the input quantity to inProcess (or outsourcing) and records the
cycle in one DB transaction.

LIFECYCLE:
1. processing: created by start_process() after the stock move
2. completed: complete_process() records output quantity and end date.
   Completion moves no stock; finished goods come from product creation.
"""
from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import RecyclingProcess
from ..models.stock import POOL_RAW_MATERIAL, POOL_IN_PROCESS, POOL_OUTSOURCING
from ..models.processes import (
    PROCESS_STATUSES,
    PROCESS_STATUS_PROCESSING,
    PROCESS_STATUS_COMPLETED,
)
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    require_film_type,
    require_positive_quantity,
    require_non_negative,
)
from filmstock.time_utils import coerce_datetime, utcnow
from .concurrency import lock_for_update, run_with_retry, WRITE_RETRY_POLICY
from .sequence_service import next_cycle_number
from .stock_service import move_inner, POOL_LABELS

# Informational yield conventions (percent)
YIELD_RATES = {
    "virgin": 95,
    "colored": 92,
}

MAX_EXPECTED_DAYS = 365


class ProcessError(ConflictError):
    """Raised for invalid process state transitions."""


def start_process(
    *,
    film_type: str,
    input_quantity: int,
    start_date=None,
    expected_days: int = 3,
    outsourced: bool = False,
    outsourcing_partner: str | None = None,
) -> RecyclingProcess:
    """
    Start a recycling (or outsourcing) cycle.

    Raises:
        ValidationError: bad input (checked before any write)
        InsufficientStockError: raw material holds less than input_quantity
    """
    require_film_type(film_type)
    quantity = require_positive_quantity("input_quantity", input_quantity)
    days = require_non_negative("expected_days", expected_days, maximum=MAX_EXPECTED_DAYS)

    partner = (outsourcing_partner or "").strip() or None
    if outsourced and partner is None:
        raise ValidationError("outsourcing_partner is required for outsourced cycles")
    if not outsourced:
        partner = None

    try:
        start_dt = coerce_datetime(start_date)
    except ValueError:
        raise ValidationError("start_date must be an ISO-8601 date or datetime")

    target_pool = POOL_OUTSOURCING if outsourced else POOL_IN_PROCESS

    def _op():
        process = RecyclingProcess(
            cycle_number=next_cycle_number(start_dt.year),
            start_date=start_dt,
            expected_completion=start_dt + timedelta(days=days),
            input_quantity=quantity,
            status=PROCESS_STATUS_PROCESSING,
            outsourced=bool(outsourced),
            outsourcing_partner=partner,
            film_type=film_type,
            yield_rate=YIELD_RATES[film_type],
            source=POOL_RAW_MATERIAL,
        )
        db.session.add(process)
        db.session.flush()

        move_inner(
            from_pool=POOL_RAW_MATERIAL,
            to_pool=target_pool,
            film_type=film_type,
            amount=quantity,
            description=f"Transfer from {POOL_LABELS[POOL_RAW_MATERIAL]} to {POOL_LABELS[target_pool]}",
            process_id=process.id,
        )

        db.session.commit()
        return process

    return run_with_retry(_op, policy=WRITE_RETRY_POLICY)


def complete_process(process_id: int, *, output_quantity: int, end_date=None) -> RecyclingProcess:
    """
    Mark a processing cycle completed.

    Records output_quantity and end_date only; yield is not reconciled
    against stock.
    """
    output = require_non_negative("output_quantity", output_quantity)
    try:
        end_dt = coerce_datetime(end_date)
    except ValueError:
        raise ValidationError("end_date must be an ISO-8601 date or datetime")

    def _op():
        process = lock_for_update(
            db.session.query(RecyclingProcess).filter_by(id=process_id)
        ).first()
        if process is None:
            raise NotFoundError(f"Process {process_id} not found")
        if process.status != PROCESS_STATUS_PROCESSING:
            raise ProcessError(f"Cannot complete process in {process.status} status")
        if end_dt < process.start_date:
            raise ValidationError("end_date cannot be before start_date")

        process.status = PROCESS_STATUS_COMPLETED
        process.output_quantity = output
        process.end_date = end_dt
        db.session.commit()
        return process

    return run_with_retry(_op)


def get_process(process_id: int) -> RecyclingProcess:
    process = db.session.get(RecyclingProcess, process_id)
    if process is None:
        raise NotFoundError(f"Process {process_id} not found")
    return process


def list_processes(*, status: str | None = None, outsourced: bool | None = None) -> list[RecyclingProcess]:
    q = RecyclingProcess.query
    if status is not None:
        if status not in PROCESS_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(PROCESS_STATUSES)}")
        q = q.filter(RecyclingProcess.status == status)
    if outsourced is not None:
        q = q.filter(RecyclingProcess.outsourced.is_(outsourced))
    return q.order_by(RecyclingProcess.start_date.desc(), RecyclingProcess.id.desc()).all()


def overdue_processes(as_of=None) -> list[RecyclingProcess]:
    """Processing cycles past their expected completion."""
    as_of_dt = coerce_datetime(as_of) if as_of is not None else utcnow()
    return (
        RecyclingProcess.query.filter(
            RecyclingProcess.status == PROCESS_STATUS_PROCESSING,
            RecyclingProcess.expected_completion < as_of_dt,
        )
        .order_by(RecyclingProcess.expected_completion.asc())
        .all()
    )
