# Overview: Service-layer operations for the per-variant price catalog.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, ProductHistoryEntry
from ..models.stock import FILM_TYPES, FILM_VIRGIN
from ..models.products import CATALOG_PRODUCT_NAMES, PRODUCT_HISTORY_PRICE_CHANGE
from ..validation import require_film_type, require_price
from filmstock.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry, WRITE_RETRY_POLICY
"""
Price Catalog

- One catalog Product per film variant (is_catalog=True) carries the current
  unit price in FCFA/kg. It is created on the first set_price() call; a
  partial unique index on film_type keeps it single, and a losing concurrent
  insert re-runs and updates the winner.
- Until then the configured default applies (DEFAULT_VIRGIN_PRICE /
  DEFAULT_COLORED_PRICE).
- New product lots and variant-based sales take the catalog price at the time
  they are recorded. Existing lots keep their own price.
- Every price change appends a ProductHistoryEntry(action="price_change").
"""


def default_price(film_type: str) -> int:
    key = "DEFAULT_VIRGIN_PRICE" if film_type == FILM_VIRGIN else "DEFAULT_COLORED_PRICE"
    return int(current_app.config[key])


def get_catalog_product(film_type: str, *, lock: bool = False) -> Product | None:
    query = db.session.query(Product).filter_by(is_catalog=True, film_type=film_type)
    if lock:
        query = lock_for_update(query)
    return query.order_by(Product.id.asc()).first()


def get_price(film_type: str) -> int:
    require_film_type(film_type)
    product = get_catalog_product(film_type)
    if product is None:
        return default_price(film_type)
    return product.price


def get_prices() -> dict:
    prices = {}
    for film_type in FILM_TYPES:
        product = get_catalog_product(film_type)
        prices[film_type] = {
            "price": product.price if product else default_price(film_type),
            "product_id": product.id if product else None,
            "is_default": product is None,
        }
    return prices


def set_price(film_type: str, new_price: int) -> Product:
    """
    Upsert the catalog product for a variant and record the change.

    Returns the catalog Product.
    """
    require_film_type(film_type)
    price = require_price(new_price)

    def _op():
        product = get_catalog_product(film_type, lock=True)
        if product is None:
            old_price = default_price(film_type)
            product = Product(
                name=CATALOG_PRODUCT_NAMES[film_type],
                film_type=film_type,
                source_type=film_type,
                price=price,
                quantity=0,
                input_quantity=0,
                is_catalog=True,
            )
            db.session.add(product)
            db.session.flush()
        else:
            old_price = product.price
            product.price = price

        db.session.add(ProductHistoryEntry(
            product_id=product.id,
            action=PRODUCT_HISTORY_PRICE_CHANGE,
            field="price",
            old_value=old_price,
            new_value=price,
            timestamp=utcnow(),
        ))
        db.session.commit()

        current_app.logger.info(
            "Catalog price for %s film changed from %s to %s FCFA/kg",
            film_type, old_price, price,
        )
        return product

    return run_with_retry(_op, policy=WRITE_RETRY_POLICY)


def list_price_history(film_type: str | None = None, limit: int = 100) -> list[dict]:
    q = (
        db.session.query(ProductHistoryEntry, Product.film_type)
        .join(Product, Product.id == ProductHistoryEntry.product_id)
        .filter(
            Product.is_catalog.is_(True),
            ProductHistoryEntry.action == PRODUCT_HISTORY_PRICE_CHANGE,
        )
    )
    if film_type is not None:
        q = q.filter(Product.film_type == require_film_type(film_type))

    rows = (
        q.order_by(ProductHistoryEntry.timestamp.desc(), ProductHistoryEntry.id.desc())
        .limit(limit)
        .all()
    )
    return [{**entry.to_dict(), "film_type": ft} for entry, ft in rows]
