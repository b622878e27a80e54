from __future__ import annotations

from ..extensions import db
from filmstock.time_utils import to_utc_z, utcnow

# Pool keys are part of the HTTP API (/api/stock/<pool>)
POOL_RAW_MATERIAL = "rawMaterial"
POOL_IN_PROCESS = "inProcess"
POOL_OUTSOURCING = "outsourcing"
POOL_FINISHED = "finished"

POOLS = (POOL_RAW_MATERIAL, POOL_IN_PROCESS, POOL_OUTSOURCING, POOL_FINISHED)

FILM_VIRGIN = "virgin"
FILM_COLORED = "colored"

FILM_TYPES = (FILM_VIRGIN, FILM_COLORED)

HISTORY_INCREMENT = "increment"
HISTORY_DECREMENT = "decrement"
HISTORY_UPDATE = "update"

TRANSACTION_INPUT = "input"
TRANSACTION_OUTPUT = "output"
TRANSACTION_TRANSFER = "transfer"


class StockPool(db.Model):
    """
    Current quantities of one stock stage.

    One row per pool, holding both film variants in kilograms. The row is the
    authoritative "current" document; StockHistoryEntry rows record every change.

    CONCURRENCY: version_id is checked on every UPDATE. A concurrent writer
    that read an older version gets StaleDataError and must re-read.
    """
    __tablename__ = "stock_pools"
    __table_args__ = (
        db.CheckConstraint("virgin >= 0", name="ck_stock_pools_virgin_non_negative"),
        db.CheckConstraint("colored >= 0", name="ck_stock_pools_colored_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pool = db.Column(db.String(32), nullable=False, unique=True, index=True)

    virgin = db.Column(db.Integer, nullable=False, default=0)
    colored = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StockPool {self.pool} virgin={self.virgin} colored={self.colored}>"

    def quantity(self, film_type: str) -> int:
        return int(getattr(self, film_type) or 0)

    def levels(self) -> dict:
        return {FILM_VIRGIN: self.virgin or 0, FILM_COLORED: self.colored or 0}

    def to_dict(self) -> dict:
        return {
            "pool": self.pool,
            "virgin": self.virgin or 0,
            "colored": self.colored or 0,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockHistoryEntry(db.Model):
    """
    Append-only history of a pool.

    virgin/colored are the pool totals after the change; added_* are the
    signed deltas (null for admin overwrites).
    """
    __tablename__ = "stock_history_entries"
    __table_args__ = (
        db.Index("ix_stock_history_pool_timestamp", "pool", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pool = db.Column(db.String(32), nullable=False, index=True)

    # increment | decrement | update
    kind = db.Column(db.String(16), nullable=False)

    virgin = db.Column(db.Integer, nullable=False)
    colored = db.Column(db.Integer, nullable=False)

    added_virgin = db.Column(db.Integer, nullable=True)
    added_colored = db.Column(db.Integer, nullable=True)

    description = db.Column(db.String(255), nullable=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pool": self.pool,
            "kind": self.kind,
            "virgin": self.virgin,
            "colored": self.colored,
            "added_virgin": self.added_virgin,
            "added_colored": self.added_colored,
            "description": self.description,
            "timestamp": to_utc_z(self.timestamp),
        }


class StockTransaction(db.Model):
    """
    Audit record created alongside every stock-affecting operation.

    Never updated once the owning operation commits; listed newest first.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stock_tx_date", "date"),
        db.Index("ix_stock_tx_film_date", "film_type", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    # input | output | transfer
    kind = db.Column(db.String(16), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    film_type = db.Column(db.String(16), nullable=False)

    from_section = db.Column(db.String(32), nullable=True)
    to_section = db.Column(db.String(32), nullable=True)

    process_id = db.Column(db.Integer, db.ForeignKey("recycling_processes.id"), nullable=True, index=True)
    # Plain reference: audit rows outlive an admin product delete
    product_id = db.Column(db.Integer, nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_utc_z(self.date),
            "kind": self.kind,
            "quantity": self.quantity,
            "description": self.description,
            "film_type": self.film_type,
            "from_section": self.from_section,
            "to_section": self.to_section,
            "process_id": self.process_id,
            "product_id": self.product_id,
            "sale_id": self.sale_id,
        }
