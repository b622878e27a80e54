# backend/filmstock/services/dashboard_service.py
"""Read-only aggregates for the dashboard."""
from __future__ import annotations

from ..extensions import db
from ..models import RecyclingProcess, Sale, Product
from ..models.stock import FILM_TYPES, POOL_FINISHED
from ..models.processes import PROCESS_STATUSES
from .stock_service import get_all_pools
from .price_service import get_price
from .sales_service import total_revenue
from .cash_ledger_service import count_pending
from .process_service import overdue_processes


def process_counts() -> dict:
    counts = {status: 0 for status in PROCESS_STATUSES}
    rows = (
        db.session.query(RecyclingProcess.status, db.func.count(RecyclingProcess.id))
        .group_by(RecyclingProcess.status)
        .all()
    )
    for status, count in rows:
        counts[status] = count
    return counts


def get_dashboard_summary() -> dict:
    pools = get_all_pools()
    prices = {film_type: get_price(film_type) for film_type in FILM_TYPES}

    # Finished stock valued at the current catalog price
    estimated_value = sum(pools[POOL_FINISHED][ft] * prices[ft] for ft in FILM_TYPES)

    return {
        "pools": pools,
        "prices": prices,
        "total_revenue": total_revenue(),
        "estimated_value": estimated_value,
        "sales_count": db.session.query(db.func.count(Sale.id)).scalar() or 0,
        "product_count": Product.query.filter(Product.is_catalog.is_(False)).count(),
        "processes": process_counts(),
        "overdue_processes": len(overdue_processes()),
        "pending_notifications": count_pending(),
    }
