# Overview: Service-layer operations for the stock ledger; the only code that writes pool quantities.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import StockPool, StockHistoryEntry, StockTransaction
from ..models.stock import (
    POOLS,
    POOL_RAW_MATERIAL,
    POOL_IN_PROCESS,
    POOL_OUTSOURCING,
    POOL_FINISHED,
    FILM_TYPES,
    HISTORY_INCREMENT,
    HISTORY_DECREMENT,
    HISTORY_UPDATE,
    TRANSACTION_INPUT,
    TRANSACTION_TRANSFER,
)
from ..validation import (
    ConflictError,
    ValidationError,
    require_film_type,
    require_pool,
    require_positive_quantity,
    require_non_negative,
)
from filmstock.time_utils import coerce_datetime, utcnow
from .concurrency import lock_for_update, run_with_retry, WRITE_RETRY_POLICY
"""
Stock Ledger Invariants (authoritative)

- Four pools (rawMaterial, inProcess, outsourcing, finished), each holding
  virgin and colored quantities in whole kilograms.
- Quantities never go negative.
- Every pool mutation appends a StockHistoryEntry in the same DB transaction.
- move() appends exactly one "transfer" StockTransaction.
- The source row is re-read under lock immediately before it is written, and
  the write is version-checked. A concurrent depletion surfaces as
  StaleDataError; the unit of work is re-run and re-validated, so a stale read
  fails with InsufficientStockError instead of going negative.
- A pool row that does not exist yet reads as zero and is created on first write.
"""

POOL_LABELS = {
    POOL_RAW_MATERIAL: "Raw Material",
    POOL_IN_PROCESS: "In Process",
    POOL_OUTSOURCING: "Outsourcing",
    POOL_FINISHED: "Finished Products",
}


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds what the pool (or product lot) holds."""

    def __init__(
        self,
        pool: str,
        film_type: str,
        available: int,
        requested: int,
        product_id: int | None = None,
    ):
        details = {
            "pool": pool,
            "film_type": film_type,
            "available": available,
            "requested": requested,
        }
        if product_id is not None:
            details["product_id"] = product_id
            message = (
                f"Insufficient quantity on product {product_id}. "
                f"Available: {available} kg, requested: {requested} kg"
            )
        else:
            message = (
                f"Insufficient {film_type} stock in {pool}. "
                f"Available: {available} kg, requested: {requested} kg"
            )
        super().__init__(message, details=details)
        self.pool = pool
        self.film_type = film_type
        self.available = available
        self.requested = requested
        self.product_id = product_id


def _empty_levels() -> dict:
    return {film_type: 0 for film_type in FILM_TYPES}


def _load_pool(pool: str, *, lock: bool = False) -> StockPool:
    """
    Fetch the pool row from the database, creating it at zero if missing.

    populate_existing() refreshes an identity-mapped row, so callers always
    validate against the latest persisted quantities.
    """
    query = db.session.query(StockPool).filter_by(pool=pool).populate_existing()
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if row is None:
        row = StockPool(pool=pool, virgin=0, colored=0)
        db.session.add(row)
        db.session.flush()
    return row


def _append_history(
    row: StockPool,
    kind: str,
    *,
    film_type: str | None = None,
    delta: int | None = None,
    description: str | None = None,
) -> StockHistoryEntry:
    added_virgin = added_colored = None
    if film_type is not None and delta is not None:
        added_virgin = delta if film_type == "virgin" else 0
        added_colored = delta if film_type == "colored" else 0

    entry = StockHistoryEntry(
        pool=row.pool,
        kind=kind,
        virgin=row.virgin,
        colored=row.colored,
        added_virgin=added_virgin,
        added_colored=added_colored,
        description=description,
        timestamp=utcnow(),
    )
    db.session.add(entry)
    return entry


def record_transaction(
    *,
    kind: str,
    quantity: int,
    film_type: str,
    description: str,
    from_section: str | None = None,
    to_section: str | None = None,
    process_id: int | None = None,
    product_id: int | None = None,
    sale_id: int | None = None,
    occurred_at: datetime | None = None,
) -> StockTransaction:
    """Append an audit Transaction. No commit; caller owns the DB transaction."""
    tx = StockTransaction(
        date=occurred_at or utcnow(),
        kind=kind,
        quantity=quantity,
        film_type=film_type,
        description=description,
        from_section=from_section,
        to_section=to_section,
        process_id=process_id,
        product_id=product_id,
        sale_id=sale_id,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


# =============================================================================
# Reads
# =============================================================================

def get_pool(pool: str) -> dict:
    """Current {virgin, colored} for a pool; zeros if never written."""
    require_pool(pool)
    row = db.session.query(StockPool).filter_by(pool=pool).populate_existing().first()
    if row is None:
        return _empty_levels()
    return row.levels()


def get_all_pools() -> dict:
    levels = {pool: _empty_levels() for pool in POOLS}
    for row in db.session.query(StockPool).populate_existing().all():
        if row.pool in levels:
            levels[row.pool] = row.levels()
    return levels


def list_history(pool: str, limit: int = 200) -> list[StockHistoryEntry]:
    require_pool(pool)
    return (
        StockHistoryEntry.query.filter_by(pool=pool)
        .order_by(StockHistoryEntry.timestamp.desc(), StockHistoryEntry.id.desc())
        .limit(limit)
        .all()
    )


def list_transactions(
    *,
    limit: int = 200,
    film_type: str | None = None,
    kind: str | None = None,
) -> list[StockTransaction]:
    q = StockTransaction.query
    if film_type is not None:
        q = q.filter(StockTransaction.film_type == require_film_type(film_type))
    if kind is not None:
        q = q.filter(StockTransaction.kind == kind)
    return (
        q.order_by(StockTransaction.date.desc(), StockTransaction.id.desc())
        .limit(limit)
        .all()
    )


# =============================================================================
# Writes: *_inner variants flush but never commit, so lifecycle services can
# compose them into one unit of work.
# =============================================================================

def decrement_inner(
    pool: str,
    film_type: str,
    amount: int,
    *,
    description: str | None = None,
) -> StockPool:
    row = _load_pool(pool, lock=True)
    available = row.quantity(film_type)
    if available < amount:
        raise InsufficientStockError(pool, film_type, available, amount)

    setattr(row, film_type, available - amount)
    _append_history(row, HISTORY_DECREMENT, film_type=film_type, delta=-amount, description=description)
    db.session.flush()
    return row


def increment_inner(
    pool: str,
    film_type: str,
    amount: int,
    *,
    description: str | None = None,
) -> StockPool:
    row = _load_pool(pool, lock=True)
    setattr(row, film_type, row.quantity(film_type) + amount)
    _append_history(row, HISTORY_INCREMENT, film_type=film_type, delta=amount, description=description)
    db.session.flush()
    return row


def move_inner(
    *,
    from_pool: str,
    to_pool: str,
    film_type: str,
    amount: int,
    description: str | None = None,
    process_id: int | None = None,
    product_id: int | None = None,
    occurred_at: datetime | None = None,
) -> StockTransaction:
    """Core move logic without retry or commit."""
    from_label = POOL_LABELS[from_pool]
    to_label = POOL_LABELS[to_pool]

    decrement_inner(from_pool, film_type, amount, description=f"Stock transferred to {to_label}")
    increment_inner(to_pool, film_type, amount, description=f"Stock added from {from_label}")

    return record_transaction(
        kind=TRANSACTION_TRANSFER,
        quantity=amount,
        film_type=film_type,
        description=description or f"Transfer from {from_label} to {to_label}",
        from_section=from_pool,
        to_section=to_pool,
        process_id=process_id,
        product_id=product_id,
        occurred_at=occurred_at,
    )


def validate_move(from_pool: str, to_pool: str, film_type: str, amount) -> int:
    require_pool(from_pool)
    require_pool(to_pool)
    require_film_type(film_type)
    if from_pool == to_pool:
        raise ValidationError("from_pool and to_pool must differ")
    return require_positive_quantity("amount", amount)


def move(
    from_pool: str,
    to_pool: str,
    film_type: str,
    amount: int,
    *,
    description: str | None = None,
    process_id: int | None = None,
    product_id: int | None = None,
) -> StockTransaction:
    """
    Atomically move quantity of one variant between pools.

    Raises InsufficientStockError when the source holds less than amount at
    commit time. On success: source decreases by amount, target increases by
    amount, two history entries and one transfer Transaction are written.
    """
    amount = validate_move(from_pool, to_pool, film_type, amount)

    def _op():
        tx = move_inner(
            from_pool=from_pool,
            to_pool=to_pool,
            film_type=film_type,
            amount=amount,
            description=description,
            process_id=process_id,
            product_id=product_id,
        )
        db.session.commit()
        return tx

    return run_with_retry(_op, policy=WRITE_RETRY_POLICY)


def adjust(
    pool: str,
    film_type: str,
    delta: int,
    *,
    description: str | None = None,
    occurred_at=None,
) -> StockPool:
    """
    Admin addition: new quantity = old + delta (delta >= 0).

    Records the added amount and resulting totals in history, plus an
    "input" Transaction.
    """
    require_pool(pool)
    require_film_type(film_type)
    delta = require_non_negative("delta", delta)
    try:
        occurred_dt = coerce_datetime(occurred_at)
    except ValueError:
        raise ValidationError("occurred_at must be an ISO-8601 date or datetime")

    def _op():
        row = increment_inner(pool, film_type, delta, description=description or "Admin stock addition")
        record_transaction(
            kind=TRANSACTION_INPUT,
            quantity=delta,
            film_type=film_type,
            description=description or f"Stock added to {POOL_LABELS[pool]}",
            to_section=pool,
            occurred_at=occurred_dt,
        )
        db.session.commit()
        return row

    return run_with_retry(_op, policy=WRITE_RETRY_POLICY)


def set_levels(pool: str, *, virgin: int, colored: int) -> StockPool:
    """Admin overwrite of both variants; history kind "update"."""
    require_pool(pool)
    virgin = require_non_negative("virgin", virgin)
    colored = require_non_negative("colored", colored)

    def _op():
        row = _load_pool(pool, lock=True)
        row.virgin = virgin
        row.colored = colored
        _append_history(row, HISTORY_UPDATE, description="Admin stock update")
        db.session.commit()
        return row

    return run_with_retry(_op, policy=WRITE_RETRY_POLICY)


def ensure_pools() -> list[StockPool]:
    """Create any missing pool rows at zero. Safe to call repeatedly."""
    rows = [_load_pool(pool) for pool in POOLS]
    db.session.commit()
    return rows
