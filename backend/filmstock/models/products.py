from __future__ import annotations

from ..extensions import db
from filmstock.time_utils import to_utc_z, utcnow

PRODUCT_NAMES = {
    "virgin": "Virgin PE Pellets",
    "colored": "Colored PE Pellets",
}

CATALOG_PRODUCT_NAMES = {
    "virgin": "Virgin Film",
    "colored": "Colored Film",
}

PRODUCT_HISTORY_PRICE_CHANGE = "price_change"
PRODUCT_HISTORY_UPDATE = "update"


class Product(db.Model):
    """
    Finished product lot, or a per-variant price catalog entry.

    LOTS (is_catalog=False): created from inProcess/outsourcing stock.
    quantity starts at input_quantity and is decremented by sales.

    CATALOG (is_catalog=True): one row per film variant holding the current
    unit price. quantity stays 0; never created from stock.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_catalog_film", "is_catalog", "film_type"),
        # At most one catalog row per variant
        db.Index(
            "uq_products_catalog_film_type",
            "film_type",
            unique=True,
            sqlite_where=db.text("is_catalog = 1"),
            postgresql_where=db.text("is_catalog"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    film_type = db.Column(db.String(16), nullable=False, index=True)
    source_type = db.Column(db.String(16), nullable=False)

    # inProcess | outsourcing (null for catalog rows)
    source = db.Column(db.String(32), nullable=True)
    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    input_quantity = db.Column(db.Integer, nullable=False, default=0)

    # FCFA per kg
    price = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    is_catalog = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "film_type": self.film_type,
            "source_type": self.source_type,
            "source": self.source,
            "start_date": to_utc_z(self.start_date) if self.start_date else None,
            "input_quantity": self.input_quantity,
            "price": self.price,
            "quantity": self.quantity,
            "is_catalog": self.is_catalog,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductHistoryEntry(db.Model):
    """Append-only product history: price changes and admin edits."""
    __tablename__ = "product_history_entries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    # Plain reference: history outlives an admin product delete
    product_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(32), nullable=False)
    field = db.Column(db.String(32), nullable=True)

    old_value = db.Column(db.Integer, nullable=True)
    new_value = db.Column(db.Integer, nullable=True)

    previous_quantity = db.Column(db.Integer, nullable=True)
    quantity_added = db.Column(db.Integer, nullable=True)

    note = db.Column(db.String(255), nullable=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "action": self.action,
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "previous_quantity": self.previous_quantity,
            "quantity_added": self.quantity_added,
            "note": self.note,
            "timestamp": to_utc_z(self.timestamp),
        }
