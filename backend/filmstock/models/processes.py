from __future__ import annotations

from ..extensions import db
from filmstock.time_utils import to_utc_z, utcnow

PROCESS_STATUS_PENDING = "pending"
PROCESS_STATUS_PROCESSING = "processing"
PROCESS_STATUS_COMPLETED = "completed"

PROCESS_STATUSES = (PROCESS_STATUS_PENDING, PROCESS_STATUS_PROCESSING, PROCESS_STATUS_COMPLETED)


class RecyclingProcess(db.Model):
    """
    One recycling or outsourcing cycle.

    LIFECYCLE:
    1. processing: raw material already moved to inProcess/outsourcing
    2. completed: output quantity and end date recorded (no stock movement)

    cycle_number is human-readable and sequential per start year
    (e.g. "RC-2025-001").
    """
    __tablename__ = "recycling_processes"
    __table_args__ = (
        db.Index("ix_processes_status_start", "status", "start_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cycle_number = db.Column(db.String(32), nullable=False, unique=True)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    expected_completion = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)

    input_quantity = db.Column(db.Integer, nullable=False)
    output_quantity = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PROCESS_STATUS_PROCESSING, index=True)

    outsourced = db.Column(db.Boolean, nullable=False, default=False)
    outsourcing_partner = db.Column(db.String(255), nullable=True)

    film_type = db.Column(db.String(16), nullable=False)

    # Informational only (percent)
    yield_rate = db.Column(db.Integer, nullable=False)

    source = db.Column(db.String(32), nullable=False, default="rawMaterial")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<RecyclingProcess {self.cycle_number} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cycle_number": self.cycle_number,
            "start_date": to_utc_z(self.start_date),
            "expected_completion": to_utc_z(self.expected_completion),
            "end_date": to_utc_z(self.end_date) if self.end_date else None,
            "input_quantity": self.input_quantity,
            "output_quantity": self.output_quantity,
            "status": self.status,
            "outsourced": self.outsourced,
            "outsourcing_partner": self.outsourcing_partner,
            "film_type": self.film_type,
            "yield_rate": self.yield_rate,
            "source": self.source,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic sequences for human-readable numbers.

    One row per (sequence_type, scope), e.g. ("CYCLE", "2025").
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("sequence_type", "scope", name="uq_doc_sequences_type_scope"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sequence_type = db.Column(db.String(32), nullable=False, index=True)
    scope = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sequence_type": self.sequence_type,
            "scope": self.scope,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
