# Overview: Service-layer operations for payments; encapsulates business logic and database work.

"""
Payment Service

Bank-transfer flow:
1. Customer uploads a transfer slip for an order (payment created as pending)
2. Staff verify the slip -> payment verified, receipt number issued, order paid
   or reject it -> payment rejected, order payment_status failed
3. A rejected payment accepts a new slip, which puts it back to pending

Verified payments are final.
"""

from __future__ import annotations

import os
import time

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, Payment, User
from ..models.orders import (
    ORDER_PAYMENT_FAILED,
    ORDER_STATUS_CANCELLED,
    PAYMENT_METHOD_BANK_TRANSFER,
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_REJECTED,
    PAYMENT_STATUS_VERIFIED,
    VALID_PAYMENT_METHODS,
)
from ..money import quantize_money
from ..validation import MAX_PRICE, ConflictError, DomainError, NotFoundError, ValidationError, clean_text
from . import order_service, upload_service
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_receipt_number
from backoffice.time_utils import utcnow

VALID_PAYMENT_STATUSES = (PAYMENT_STATUS_PENDING, PAYMENT_STATUS_VERIFIED, PAYMENT_STATUS_REJECTED)


class PaymentError(DomainError):
    """Raised for payment operation errors."""
    pass


def get_payment_or_404(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("ไม่พบข้อมูลการชำระเงิน", code="PAYMENT_NOT_FOUND")
    return payment


def _resolve_order(order_id: int | None = None, order_number: str | None = None) -> Order:
    order = None
    if order_id is not None:
        if isinstance(order_id, bool) or not isinstance(order_id, int):
            raise ValidationError("order_id must be an integer")
        order = db.session.get(Order, order_id)
    elif order_number:
        order = db.session.query(Order).filter_by(order_number=clean_text(order_number, "order_number")).first()
    else:
        raise ValidationError("order_id or order_number is required")
    if not order:
        raise NotFoundError("ไม่พบคำสั่งซื้อ", code="ORDER_NOT_FOUND")
    return order


def _ensure_order_payable(order: Order) -> None:
    if order.status == ORDER_STATUS_CANCELLED:
        raise PaymentError("คำสั่งซื้อนี้ถูกยกเลิกแล้ว", code="ORDER_CANCELLED")


# =============================================================================
# CREATE / SLIP UPLOAD
# =============================================================================

def create_payment(*, payload: dict) -> dict:
    """
    Record a payment for an order. Amount defaults to the order total.

    Raises:
        NotFoundError(ORDER_NOT_FOUND)
        ConflictError(PAYMENT_EXISTS): order already has a payment
    """
    order = _resolve_order(payload.get("order_id"), payload.get("order_number"))
    _ensure_order_payable(order)

    method = payload.get("payment_method") or PAYMENT_METHOD_BANK_TRANSFER
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(VALID_PAYMENT_METHODS)}")

    if order.payment is not None:
        raise ConflictError("คำสั่งซื้อนี้มีการชำระเงินแล้ว", code="PAYMENT_EXISTS")

    amount = payload.get("amount")
    try:
        amount = quantize_money(amount if amount is not None else order.total_amount)
    except ValueError:
        raise ValidationError("amount must be a number")
    if amount <= 0:
        raise ValidationError("amount must be > 0")
    if amount > MAX_PRICE:
        raise ValidationError(f"amount cannot exceed {MAX_PRICE:,}")

    payment = Payment(
        order_id=order.id,
        payment_method=method,
        amount=amount,
        status=PAYMENT_STATUS_PENDING,
        verified=False,
        notes=clean_text(payload.get("notes"), "notes") or None,
    )
    db.session.add(payment)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("คำสั่งซื้อนี้มีการชำระเงินแล้ว", code="PAYMENT_EXISTS")

    current_app.logger.info("Payment created for order %s amount=%s", order.order_number, amount)
    return payment.to_dict()


def upload_slip(*, file, order_id: int | None = None, order_number: str | None = None) -> dict:
    """
    Store a transfer slip as /uploads/slips/slip-<order_number>-<ms>.<ext>.

    Creates the payment when the order has none yet; otherwise replaces the
    slip on a pending or rejected payment (rejected goes back to pending).
    """
    extension = upload_service.validate_image(file)
    order = _resolve_order(order_id, order_number)
    _ensure_order_payable(order)

    payment = order.payment
    if payment is not None and payment.status == PAYMENT_STATUS_VERIFIED:
        raise PaymentError("การชำระเงินนี้ได้รับการยืนยันแล้ว", code="PAYMENT_ALREADY_VERIFIED")

    filename = f"slip-{order.order_number}-{int(time.time() * 1000)}.{extension}"
    path = os.path.join(upload_service.upload_dir(upload_service.SLIPS_SUBDIR), filename)
    file.save(path)

    old_slip = None
    try:
        if payment is None:
            payment = Payment(
                order_id=order.id,
                payment_method=PAYMENT_METHOD_BANK_TRANSFER,
                amount=quantize_money(order.total_amount),
                verified=False,
            )
            db.session.add(payment)
        else:
            old_slip = payment.slip_image_path

        payment.slip_image_path = upload_service.public_path(upload_service.SLIPS_SUBDIR, filename)
        payment.status = PAYMENT_STATUS_PENDING
        payment.rejection_reason = None
        db.session.commit()
    except Exception:
        db.session.rollback()
        upload_service.remove_quietly(path)
        raise

    if old_slip and old_slip != payment.slip_image_path:
        upload_service.remove_quietly(upload_service.local_path_for(old_slip))

    current_app.logger.info("Slip uploaded for order %s", order.order_number)
    return payment.to_dict()


# =============================================================================
# VERIFICATION
# =============================================================================

def confirm_payment(
    *,
    payment_id: int,
    verified: bool,
    user: User,
    rejection_reason: str | None = None,
) -> dict:
    """
    Verify or reject a pending payment.

    Verify: receipt number issued (RCP-YYYYMMDD-NNNNN), order marked paid.
    Reject: reason required, order payment_status -> failed.
    """
    if not isinstance(verified, bool):
        raise ValidationError("verified must be true or false")
    reason = clean_text(rejection_reason, "rejection_reason") or None
    if not verified and not reason:
        raise ValidationError("rejection_reason is required when rejecting a payment")

    def _op() -> Payment:
        payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).first()
        if not payment:
            raise NotFoundError("ไม่พบข้อมูลการชำระเงิน", code="PAYMENT_NOT_FOUND")
        if payment.status != PAYMENT_STATUS_PENDING:
            raise PaymentError(
                "ตรวจสอบได้เฉพาะการชำระเงินที่รอตรวจสอบ",
                code="INVALID_PAYMENT_STATUS",
                details={"status": payment.status},
            )
        if payment.payment_method == PAYMENT_METHOD_BANK_TRANSFER and not payment.slip_image_path:
            raise PaymentError("ยังไม่มีสลิปการโอนเงิน", code="NO_SLIP_IMAGE")

        order = payment.order
        payment.verified_at = utcnow()
        payment.verified_by = user.id

        if verified:
            payment.status = PAYMENT_STATUS_VERIFIED
            payment.verified = True
            payment.rejection_reason = None
            payment.receipt_number = next_receipt_number()
            order_service.mark_paid(order)
        else:
            payment.status = PAYMENT_STATUS_REJECTED
            payment.verified = False
            payment.rejection_reason = reason
            order.payment_status = ORDER_PAYMENT_FAILED

        db.session.commit()
        return payment

    payment = run_with_retry(_op, retry_on=(IntegrityError,))
    current_app.logger.info(
        "Payment %s %s by user %s", payment.id, payment.status, user.id,
    )
    return payment.to_dict()


# =============================================================================
# QUERIES / DELETE
# =============================================================================

def list_payments(
    *,
    status: str | None = None,
    payment_method: str | None = None,
    order_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Payment)
    if status:
        if status not in VALID_PAYMENT_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(VALID_PAYMENT_STATUSES)}")
        query = query.filter(Payment.status == status)
    if payment_method:
        query = query.filter(Payment.payment_method == payment_method)
    if order_id is not None:
        query = query.filter(Payment.order_id == order_id)

    per_page = min(per_page or 20, 100)
    page = max(page or 1, 1)
    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    payments = (
        query.order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "items": [p.to_dict() for p in payments],
        "count": len(payments),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_payment(payment_id: int) -> dict:
    return get_payment_or_404(payment_id).to_dict()


def get_payment_for_order(order_id: int, *, user: User | None, contact: str | None = None) -> dict:
    """Owner and staff always; guests by the phone or email on the order."""
    order = order_service.get_order_for_viewer(order_id, user=user, contact=contact)
    if order.payment is None:
        raise NotFoundError("ไม่พบข้อมูลการชำระเงิน", code="PAYMENT_NOT_FOUND")
    return order.payment.to_dict()


def delete_payment(*, payment_id: int) -> None:
    payment = get_payment_or_404(payment_id)
    slip = payment.slip_image_path
    db.session.delete(payment)
    db.session.commit()
    upload_service.remove_quietly(upload_service.local_path_for(slip))
