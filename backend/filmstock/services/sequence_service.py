# Overview: Service-layer allocation of human-readable sequential numbers.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence

CYCLE_SEQUENCE = "CYCLE"


def next_sequence_number(*, sequence_type: str, scope: str) -> int:
    """
    Allocate the next number for (sequence_type, scope). No commit.

    The UPDATE ... SET next_number = next_number + 1 takes the row lock, so
    concurrent allocators serialize. A first-use insert race surfaces as
    IntegrityError; callers run under WRITE_RETRY_POLICY and re-run.
    """
    if not sequence_type:
        raise ValueError("sequence_type is required")
    if not scope:
        raise ValueError("scope is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.sequence_type == sequence_type,
            DocumentSequence.scope == scope,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(sequence_type=sequence_type, scope=scope)
            .scalar()
        )
        return current - 1

    seq = DocumentSequence(sequence_type=sequence_type, scope=scope, next_number=2)
    db.session.add(seq)
    db.session.flush()
    return 1


def next_cycle_number(year: int) -> str:
    """RC-<year>-<3-digit seq>, sequential within the start year."""
    number = next_sequence_number(sequence_type=CYCLE_SEQUENCE, scope=str(year))
    return f"RC-{year}-{number:03d}"
