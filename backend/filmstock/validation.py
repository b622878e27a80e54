from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models.stock import FILM_TYPES, POOLS

# 999,999,999 FCFA per kg; guards against overflow and typos
MAX_PRICE = 999_999_999

# 1,000 tonnes in a single movement is beyond anything the plant handles
MAX_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., insufficient stock)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level missing entity."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    """
    writable_fields: set[str]


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(name: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


# =============================================================================
# Field rules shared by services and routes
# =============================================================================

def require_film_type(value: Any) -> str:
    if value not in FILM_TYPES:
        raise ValidationError(f"film_type must be one of: {', '.join(FILM_TYPES)}")
    return value


def require_pool(value: Any, allowed: tuple[str, ...] = POOLS) -> str:
    if value not in allowed:
        raise ValidationError(f"pool must be one of: {', '.join(allowed)}")
    return value


def require_positive_quantity(name: str, value: Any) -> int:
    qty = _coerce_int(name, value)
    if qty <= 0:
        raise ValidationError(f"{name} must be > 0")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{name} cannot exceed {MAX_QUANTITY}")
    return qty


def require_non_negative(name: str, value: Any, *, maximum: int = MAX_QUANTITY) -> int:
    qty = _coerce_int(name, value)
    if qty < 0:
        raise ValidationError(f"{name} must be >= 0")
    if qty > maximum:
        raise ValidationError(f"{name} cannot exceed {maximum}")
    return qty


def require_price(value: Any) -> int:
    return require_non_negative("price", value, maximum=MAX_PRICE)


def enforce_rules_product(patch: dict) -> None:
    """Product rules not captured by SQLAlchemy metadata alone."""
    if "price" in patch:
        require_price(patch["price"])
    if "quantity" in patch:
        require_non_negative("quantity", patch["quantity"])
