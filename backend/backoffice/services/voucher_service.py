# Overview: Service-layer operations for vouchers; encapsulates business logic and database work.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Voucher, VoucherUsage
from ..models.vouchers import DISCOUNT_PERCENTAGE, VOUCHER_STATUS_ACTIVE, VOUCHER_STATUS_INACTIVE
from ..money import quantize_money, to_decimal
from ..validation import ConflictError, DomainError, NotFoundError, ValidationError, enforce_rules_voucher, clean_text
from backoffice.time_utils import utcnow

VOUCHER_MUTABLE_FIELDS = {
    "name",
    "description",
    "discount_type",
    "discount_value",
    "minimum_order_amount",
    "max_discount_amount",
    "usage_limit",
    "usage_limit_per_customer",
    "start_date",
    "end_date",
    "status",
}


class VoucherError(DomainError):
    """Voucher cannot be used for this order."""
    code = "VOUCHER_INVALID"
    status = 400


def normalize_code(code: str | None) -> str:
    return clean_text(code, "code").upper()


def get_voucher_or_404(voucher_id: int) -> Voucher:
    voucher = db.session.get(Voucher, voucher_id)
    if not voucher:
        raise NotFoundError("Voucher not found", code="VOUCHER_NOT_FOUND")
    return voucher


def get_by_code(code: str) -> Voucher | None:
    return db.session.query(Voucher).filter(Voucher.code == normalize_code(code)).first()


# =============================================================================
# ADMIN CRUD
# =============================================================================

def list_vouchers(*, status: str | None = None, search: str | None = None) -> dict:
    query = db.session.query(Voucher)
    if status:
        query = query.filter(Voucher.status == status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Voucher.code.ilike(like), Voucher.name.ilike(like)))
    vouchers = query.order_by(Voucher.created_at.desc(), Voucher.id.desc()).all()
    return {"items": [v.to_dict() for v in vouchers], "count": len(vouchers)}


def _validate_status(status: str | None) -> None:
    if status is not None and status not in (VOUCHER_STATUS_ACTIVE, VOUCHER_STATUS_INACTIVE):
        raise ValidationError("status must be one of: active, inactive")


def create_voucher(*, patch: dict) -> dict:
    code = normalize_code(patch.get("code"))
    if not code:
        raise ValidationError("code is required")
    if get_by_code(code):
        raise ConflictError(f"Voucher code {code} already exists", code="DUPLICATE_VOUCHER_CODE")

    _validate_status(patch.get("status"))
    enforce_rules_voucher(patch)

    voucher = Voucher(code=code, usage_count=0)
    for k, v in patch.items():
        if k in VOUCHER_MUTABLE_FIELDS:
            setattr(voucher, k, v)
    if voucher.minimum_order_amount is None:
        voucher.minimum_order_amount = Decimal("0")
    if voucher.usage_limit_per_customer is None:
        voucher.usage_limit_per_customer = 1
    if not voucher.status:
        voucher.status = VOUCHER_STATUS_ACTIVE

    db.session.add(voucher)
    db.session.commit()
    return voucher.to_dict()


def update_voucher(*, voucher_id: int, patch: dict) -> dict:
    voucher = get_voucher_or_404(voucher_id)
    _validate_status(patch.get("status"))

    if "code" in patch:
        code = normalize_code(patch["code"])
        if code != voucher.code:
            existing = get_by_code(code)
            if existing and existing.id != voucher.id:
                raise ConflictError(f"Voucher code {code} already exists", code="DUPLICATE_VOUCHER_CODE")
            if not code:
                raise ValidationError("code cannot be blank")
            voucher.code = code

    # Rules apply to the merged result so a partial update can't break them
    merged = {k: getattr(voucher, k) for k in VOUCHER_MUTABLE_FIELDS}
    merged.update({k: v for k, v in patch.items() if k in VOUCHER_MUTABLE_FIELDS})
    enforce_rules_voucher(merged)

    for k, v in patch.items():
        if k in VOUCHER_MUTABLE_FIELDS:
            setattr(voucher, k, v)

    db.session.commit()
    return voucher.to_dict()


def delete_voucher(*, voucher_id: int) -> None:
    voucher = get_voucher_or_404(voucher_id)
    if voucher.usages.count():
        raise ConflictError(
            "Voucher has been used by orders and cannot be deleted; set status to inactive instead",
            code="VOUCHER_IN_USE",
        )
    db.session.delete(voucher)
    db.session.commit()


def get_usage_history(voucher_id: int) -> dict:
    voucher = get_voucher_or_404(voucher_id)
    rows = voucher.usages.order_by(VoucherUsage.used_at.desc(), VoucherUsage.id.desc()).all()
    return {
        "voucher": voucher.to_dict(),
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
    }


# =============================================================================
# VALIDATION / DISCOUNT
# =============================================================================

def validate_voucher(code: str, subtotal, user_id: int | None = None, *, now=None) -> Voucher:
    """
    Return the voucher if it can be applied to `subtotal` (ex VAT), else raise VoucherError.
    """
    voucher = get_by_code(code)
    if not voucher:
        raise VoucherError("Invalid voucher code", code="VOUCHER_NOT_FOUND", status=404)

    if voucher.status != VOUCHER_STATUS_ACTIVE:
        raise VoucherError("Voucher is not active", code="VOUCHER_INACTIVE")

    now = now or utcnow()
    if now < voucher.start_date:
        raise VoucherError("Voucher not yet active", code="VOUCHER_NOT_STARTED")
    if now > voucher.end_date:
        raise VoucherError("Voucher has expired", code="VOUCHER_EXPIRED")

    if voucher.usage_limit is not None and voucher.usage_count >= voucher.usage_limit:
        raise VoucherError("Voucher usage limit reached", code="VOUCHER_USAGE_LIMIT")

    if user_id is not None and voucher.usage_limit_per_customer:
        used = (
            db.session.query(VoucherUsage.id)
            .filter(VoucherUsage.voucher_id == voucher.id, VoucherUsage.user_id == user_id)
            .count()
        )
        if used >= voucher.usage_limit_per_customer:
            raise VoucherError(
                "You have reached the usage limit for this voucher",
                code="VOUCHER_CUSTOMER_LIMIT",
            )

    subtotal = to_decimal(subtotal)
    if subtotal < voucher.minimum_order_amount:
        raise VoucherError(
            f"Minimum order amount of {quantize_money(voucher.minimum_order_amount)} required",
            code="VOUCHER_MIN_AMOUNT",
            details={"minimum_order_amount": str(quantize_money(voucher.minimum_order_amount))},
        )

    return voucher


def calculate_discount(voucher: Voucher, subtotal) -> Decimal:
    """Discount in baht, capped by max_discount_amount and never above the subtotal."""
    subtotal = to_decimal(subtotal)
    if voucher.discount_type == DISCOUNT_PERCENTAGE:
        discount = subtotal * to_decimal(voucher.discount_value) / Decimal("100")
        if voucher.max_discount_amount is not None and discount > voucher.max_discount_amount:
            discount = to_decimal(voucher.max_discount_amount)
    else:
        discount = to_decimal(voucher.discount_value)

    return quantize_money(max(Decimal("0"), min(discount, subtotal)))


def check_voucher(code: str, subtotal, user_id: int | None = None) -> dict:
    voucher = validate_voucher(code, subtotal, user_id)
    discount = calculate_discount(voucher, subtotal)
    return {
        "valid": True,
        "discount_amount": str(discount),
        "voucher": voucher.to_dict(),
    }


def record_usage(voucher: Voucher, *, order_id: int, user_id: int | None, discount_amount) -> VoucherUsage:
    """Caller commits (runs inside order creation)."""
    usage = VoucherUsage(
        voucher_id=voucher.id,
        user_id=user_id,
        order_id=order_id,
        discount_amount=discount_amount,
    )
    db.session.add(usage)
    voucher.usage_count = Voucher.usage_count + 1
    current_app.logger.info("Voucher %s used by order %s", voucher.code, order_id)
    return usage
