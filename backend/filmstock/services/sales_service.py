# backend/filmstock/services/sales_service.py
"""
Sales Ledger

One code path for both kinds of sale:
- product-based (product_id): unit price is the lot's price; the lot's
  remaining quantity and the finished pool must both cover the sale.
- variant-based (film_type): unit price is the catalog price; the finished
  pool must cover the sale.

In one DB transaction: finished pool decrement (history), Sale row, lot
quantity decrement, "output" Transaction and the CashInflowNotification
outbox row. The cash ledger is notified after commit with a single attempt,
best-effort: a failed notification stays PENDING for the dispatcher, which
owns the retries, and never undoes the sale.
"""
from __future__ import annotations

import uuid

from flask import current_app

from ..extensions import db
from ..models import Product, Sale, CashInflowNotification
from ..models.stock import POOL_FINISHED, TRANSACTION_OUTPUT
from ..models.sales import DESTINATIONS, DESTINATION_EXTERNAL, NOTIFICATION_PENDING
from ..validation import (
    NotFoundError,
    ValidationError,
    require_film_type,
    require_positive_quantity,
)
from filmstock.time_utils import coerce_datetime
from .concurrency import lock_for_update, run_with_retry, WRITE_RETRY_POLICY
from .price_service import get_price
from .stock_service import InsufficientStockError, decrement_inner, record_transaction
from .cash_ledger_service import dispatch_notification


def _sale_description(quantity: int, film_type: str, product: Product | None) -> str:
    if product is not None:
        return f"Sale of {quantity}kg of {product.name} ({product.source_type})"
    return f"Vente de {quantity} kg de film {film_type}"


def validate_sale_request(*, quantity, product_id, film_type, destination) -> int:
    qty = require_positive_quantity("quantity", quantity)
    if (product_id is None) == (film_type is None):
        raise ValidationError("Provide exactly one of product_id or film_type")
    if film_type is not None:
        require_film_type(film_type)
    if destination not in DESTINATIONS:
        raise ValidationError(f"destination must be one of: {', '.join(DESTINATIONS)}")
    return qty


def record_sale(
    *,
    quantity: int,
    sale_date=None,
    product_id: int | None = None,
    film_type: str | None = None,
    destination: str = DESTINATION_EXTERNAL,
) -> Sale:
    """
    Record a sale of finished film.

    Raises:
        ValidationError: bad quantity, date, destination or product/variant mix
        NotFoundError: product_id does not name a product lot
        InsufficientStockError: lot or finished pool holds less than quantity
    """
    qty = validate_sale_request(
        quantity=quantity,
        product_id=product_id,
        film_type=film_type,
        destination=destination,
    )
    try:
        sale_dt = coerce_datetime(sale_date)
    except ValueError:
        raise ValidationError("date must be an ISO-8601 date or datetime")

    def _op():
        product = None
        variant = film_type
        if product_id is not None:
            product = lock_for_update(
                db.session.query(Product).filter_by(id=product_id, is_catalog=False)
            ).populate_existing().first()
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            if product.quantity < qty:
                raise InsufficientStockError(
                    POOL_FINISHED, product.film_type, product.quantity, qty, product_id=product.id,
                )
            variant = product.film_type
            unit_price = product.price
        else:
            unit_price = get_price(variant)

        description = _sale_description(qty, variant, product)

        # Raises before any row is added when finished stock is short
        decrement_inner(POOL_FINISHED, variant, qty, description=description)

        sale = Sale(
            date=sale_dt,
            product_id=product.id if product is not None else None,
            film_type=variant,
            quantity=qty,
            unit_price=unit_price,
            total_amount=qty * unit_price,
            destination=destination,
        )
        db.session.add(sale)
        db.session.flush()

        if product is not None:
            product.quantity -= qty

        record_transaction(
            kind=TRANSACTION_OUTPUT,
            quantity=qty,
            film_type=variant,
            description=description,
            from_section=POOL_FINISHED,
            product_id=sale.product_id,
            sale_id=sale.id,
            occurred_at=sale_dt,
        )

        notification = CashInflowNotification(
            sale_id=sale.id,
            idempotency_key=uuid.uuid4().hex,
            amount=sale.total_amount,
            description=description,
            use_external=destination == DESTINATION_EXTERNAL,
            status=NOTIFICATION_PENDING,
            attempts=0,
        )
        db.session.add(notification)

        db.session.commit()
        return sale, notification.id

    sale, notification_id = run_with_retry(_op, policy=WRITE_RETRY_POLICY)

    current_app.logger.info(
        "Recorded sale %s: %s kg %s for %s FCFA",
        sale.id, sale.quantity, sale.film_type, sale.total_amount,
    )

    try:
        dispatch_notification(notification_id, attempts=1)
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Cash inflow notification %s for sale %s left pending", notification_id, sale.id,
        )

    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(
    *,
    film_type: str | None = None,
    product_id: int | None = None,
    limit: int = 200,
) -> list[Sale]:
    q = Sale.query
    if film_type is not None:
        q = q.filter(Sale.film_type == require_film_type(film_type))
    if product_id is not None:
        q = q.filter(Sale.product_id == product_id)
    return q.order_by(Sale.date.desc(), Sale.id.desc()).limit(limit).all()


def total_revenue() -> int:
    return int(db.session.query(db.func.coalesce(db.func.sum(Sale.total_amount), 0)).scalar() or 0)
