from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from backoffice.money import to_decimal
from backoffice.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 99,999,999.99 baht (Numeric(10, 2))
MAX_PRICE = Decimal("99999999.99")


class DomainError(Exception):
    """
    Business error with a stable API code.

    Routes turn these into {"error": message, "code": CODE} with `status`.
    """
    code = "ERROR"
    status = 400

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
        suggestion: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status
        self.suggestion = suggestion
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.suggestion:
            body["suggestion"] = self.suggestion
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DomainError, ValueError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"
    status = 400


class ConflictError(DomainError, ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    code = "CONFLICT"
    status = 409


class NotFoundError(DomainError, LookupError):
    code = "NOT_FOUND"
    status = 404


class PermissionDeniedError(DomainError):
    code = "FORBIDDEN"
    status = 403


def error_response(exc: DomainError):
    return exc.to_dict(), exc.status


def clean_text(value: Any, field: str) -> str:
    """Stripped free-text field from a JSON body. None becomes ""; other non-strings are rejected."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip()


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - ignored_fields: accepted in the payload but dropped (read-only echoes from the UI)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    ignored_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    # Money / rates: JSON numbers or numeric strings, kept as Decimal
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            d = to_decimal(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be a number")
        if coltype.scale is not None and d.as_tuple().exponent < -coltype.scale:
            raise ValidationError(f"{col.key} allows at most {coltype.scale} decimal places")
        return d

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    ignored = policy.ignored_fields or set()
    payload = {k: v for k, v in payload.items() if k not in ignored}

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

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


def _check_money(patch: dict, field: str, *, allow_zero: bool = True) -> None:
    value = patch.get(field)
    if value is None:
        return
    if value < 0 or (not allow_zero and value == 0):
        raise ValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    if value > MAX_PRICE:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE:,}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_money(patch, "price_excluding_vat", allow_zero=False)
    _check_money(patch, "cost_price_excluding_vat")

    if patch.get("vat_rate") is not None:
        rate = patch["vat_rate"]
        if rate < 0 or rate > 100:
            raise ValidationError("vat_rate must be between 0 and 100", code="INVALID_VAT_RATE")

    for field in ("stock_quantity", "low_stock_threshold"):
        if patch.get(field) is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")


def enforce_rules_voucher(patch: dict) -> None:
    from .models.vouchers import DISCOUNT_PERCENTAGE, VALID_DISCOUNT_TYPES

    discount_type = patch.get("discount_type")
    if discount_type is not None and discount_type not in VALID_DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of: {', '.join(VALID_DISCOUNT_TYPES)}")

    _check_money(patch, "discount_value", allow_zero=False)
    _check_money(patch, "minimum_order_amount")
    _check_money(patch, "max_discount_amount")

    if discount_type == DISCOUNT_PERCENTAGE and patch.get("discount_value") is not None:
        if patch["discount_value"] > 100:
            raise ValidationError("percentage discount_value cannot exceed 100")

    for field in ("usage_limit", "usage_limit_per_customer"):
        if patch.get(field) is not None and patch[field] < 1:
            raise ValidationError(f"{field} must be >= 1")

    start, end = patch.get("start_date"), patch.get("end_date")
    if start is not None and end is not None and end <= start:
        raise ValidationError("end_date must be after start_date")
