# backend/filmstock/services/product_service.py
"""
Product lots made from in-process or outsourced stock.

create_product() is the only path into the finished pool: it moves the lot's
input quantity to finished and persists the lot at the current catalog price
in the same DB transaction. Admin edits never touch pool quantities.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, ProductHistoryEntry, Sale
from ..models.stock import POOL_IN_PROCESS, POOL_OUTSOURCING, POOL_FINISHED
from ..models.products import PRODUCT_NAMES, PRODUCT_HISTORY_UPDATE
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    require_film_type,
    require_pool,
    require_positive_quantity,
    validate_payload,
)
from filmstock.time_utils import coerce_datetime, utcnow
from .concurrency import lock_for_update, run_with_retry, WRITE_RETRY_POLICY
from .price_service import get_price
from .stock_service import move_inner, POOL_LABELS

PRODUCT_SOURCES = (POOL_IN_PROCESS, POOL_OUTSOURCING)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "price", "quantity"},
)


def create_product(
    *,
    source: str,
    film_type: str,
    input_quantity: int,
    start_date=None,
) -> Product:
    """
    Turn in-process (or outsourced) stock into a finished product lot.

    Raises:
        ValidationError: bad source, variant or quantity
        InsufficientStockError: the source pool holds less than input_quantity
    """
    require_pool(source, allowed=PRODUCT_SOURCES)
    require_film_type(film_type)
    quantity = require_positive_quantity("input_quantity", input_quantity)
    try:
        start_dt = coerce_datetime(start_date)
    except ValueError:
        raise ValidationError("start_date must be an ISO-8601 date or datetime")

    def _op():
        product = Product(
            name=PRODUCT_NAMES[film_type],
            film_type=film_type,
            source_type=film_type,
            source=source,
            start_date=start_dt,
            input_quantity=quantity,
            price=get_price(film_type),
            quantity=quantity,
            is_catalog=False,
        )
        db.session.add(product)
        db.session.flush()

        move_inner(
            from_pool=source,
            to_pool=POOL_FINISHED,
            film_type=film_type,
            amount=quantity,
            description=f"Transfer from {POOL_LABELS[source]} to {POOL_LABELS[POOL_FINISHED]}",
            product_id=product.id,
        )

        db.session.commit()
        return product

    return run_with_retry(_op, policy=WRITE_RETRY_POLICY)


def _load_lot(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id, is_catalog=False)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def get_product(product_id: int) -> Product:
    return _load_lot(product_id)


def list_products(*, film_type: str | None = None, include_catalog: bool = False) -> list[Product]:
    q = Product.query
    if not include_catalog:
        q = q.filter(Product.is_catalog.is_(False))
    if film_type is not None:
        q = q.filter(Product.film_type == require_film_type(film_type))
    return q.order_by(Product.created_at.desc(), Product.id.desc()).all()


def update_product(product_id: int, payload: dict) -> Product:
    """
    Admin edit of name, price or quantity on a lot.

    Appends one ProductHistoryEntry per call with the quantity before the
    edit, the quantity added (may be negative) and the price change if any.
    """
    patch = validate_payload(
        model=Product,
        payload=payload,
        policy=PRODUCT_UPDATE_POLICY,
    )
    enforce_rules_product(patch)
    if not patch:
        raise ValidationError("No fields to update")

    def _op():
        product = _load_lot(product_id, lock=True)

        previous_quantity = product.quantity
        previous_price = product.price
        for key, value in patch.items():
            setattr(product, key, value)

        price_changed = "price" in patch and patch["price"] != previous_price
        db.session.add(ProductHistoryEntry(
            product_id=product.id,
            action=PRODUCT_HISTORY_UPDATE,
            field="price" if price_changed else None,
            old_value=previous_price if price_changed else None,
            new_value=product.price if price_changed else None,
            previous_quantity=previous_quantity,
            quantity_added=product.quantity - previous_quantity,
            note=", ".join(sorted(patch.keys())),
            timestamp=utcnow(),
        ))
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> None:
    """
    Admin hard delete of a lot.

    Lots referenced by a sale are kept. Stock already moved to finished stays
    there; audit rows keep their product_id.
    """
    def _op():
        product = _load_lot(product_id, lock=True)
        sale_count = db.session.query(Sale.id).filter(Sale.product_id == product.id).count()
        if sale_count:
            raise ConflictError(
                f"Product {product_id} has {sale_count} recorded sale(s) and cannot be deleted",
                details={"product_id": product_id, "sales": sale_count},
            )
        db.session.delete(product)
        db.session.commit()
        current_app.logger.info("Deleted product %s", product_id)

    run_with_retry(_op)


def list_product_history(product_id: int, limit: int = 100) -> list[ProductHistoryEntry]:
    return (
        ProductHistoryEntry.query.filter_by(product_id=product_id)
        .order_by(ProductHistoryEntry.timestamp.desc(), ProductHistoryEntry.id.desc())
        .limit(limit)
        .all()
    )
