from __future__ import annotations

from ..extensions import db
from filmstock.time_utils import to_utc_z, utcnow

DESTINATION_EXTERNAL = "external"
DESTINATION_LOCAL = "local"

DESTINATIONS = (DESTINATION_EXTERNAL, DESTINATION_LOCAL)

NOTIFICATION_PENDING = "PENDING"
NOTIFICATION_SENT = "SENT"
NOTIFICATION_FAILED = "FAILED"


class Sale(db.Model):
    """
    A sale of finished film, by product lot or directly by variant.

    Immutable once created; cash_inflow_id is filled in when the cash
    ledger acknowledges the matching notification.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sales_quantity_positive"),
        db.Index("ix_sales_date", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    film_type = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    total_amount = db.Column(db.Integer, nullable=False)

    # external | local cash ledger
    destination = db.Column(db.String(16), nullable=False, default=DESTINATION_EXTERNAL)
    cash_inflow_id = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_utc_z(self.date),
            "product_id": self.product_id,
            "film_type": self.film_type,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_amount": self.total_amount,
            "destination": self.destination,
            "cash_inflow_id": self.cash_inflow_id,
            "created_at": to_utc_z(self.created_at),
        }


class CashInflowNotification(db.Model):
    """
    Outbox row for the cash ledger.

    Written in the same DB transaction as its Sale. The dispatcher delivers
    PENDING rows; idempotency_key lets the cash ledger drop duplicates.
    """
    __tablename__ = "cash_inflow_notifications"
    __table_args__ = (
        db.Index("ix_cash_notifications_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, unique=True)
    idempotency_key = db.Column(db.String(64), nullable=False, unique=True)

    amount = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    use_external = db.Column(db.Boolean, nullable=False, default=True)

    status = db.Column(db.String(16), nullable=False, default=NOTIFICATION_PENDING, index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.String(255), nullable=True)
    external_id = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("notification", uselist=False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "idempotency_key": self.idempotency_key,
            "amount": self.amount,
            "description": self.description,
            "use_external": self.use_external,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "external_id": self.external_id,
            "created_at": to_utc_z(self.created_at),
            "sent_at": to_utc_z(self.sent_at) if self.sent_at else None,
        }


class LocalCashInflow(db.Model):
    """Local fallback cash ledger, used when a sale is booked to the local till."""
    __tablename__ = "local_cash_inflows"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    source = db.Column(db.String(32), nullable=False, default="sale")
    description = db.Column(db.String(255), nullable=False)
    idempotency_key = db.Column(db.String(64), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat() if self.date else None,
            "amount": self.amount,
            "source": self.source,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
