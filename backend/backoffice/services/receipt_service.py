# Overview: Service-layer receipts for verified payments; read-only, no database writes.

"""
Receipt Service

A receipt exists once staff verify a payment (receipt number RCP-YYYYMMDD-NNNNN).
It is built from the order snapshot, so later product or price changes never
alter an issued receipt.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Payment, User
from ..models.orders import PAYMENT_STATUS_VERIFIED
from ..money import quantize_money, to_money_str
from ..validation import NotFoundError
from . import order_service
from backoffice.time_utils import to_thai_display, to_utc_z

PAYMENT_METHOD_LABELS = {
    "bank_transfer": "โอนเงินผ่านธนาคาร",
    "promptpay": "พร้อมเพย์",
    "cash": "เงินสด",
    "other": "อื่นๆ",
}


def _receipt_not_found() -> NotFoundError:
    return NotFoundError("ไม่พบใบเสร็จ", code="RECEIPT_NOT_FOUND")


def get_payment_by_receipt_number(receipt_number: str) -> Payment:
    payment = (
        db.session.query(Payment)
        .filter(Payment.receipt_number == (receipt_number or "").strip().upper())
        .first()
    )
    if not payment or payment.status != PAYMENT_STATUS_VERIFIED:
        raise _receipt_not_found()
    return payment


def _customer(order) -> dict:
    if order.user is not None:
        name = order.user.full_name
        phone = order.user.phone
        email = order.user.email
    else:
        name, phone, email = order.guest_name, order.guest_phone, order.guest_email
    return {
        "name": name,
        "phone": phone,
        "email": email,
        "shipping_address": order.shipping_address,
        "shipping_subdistrict": order.shipping_subdistrict,
        "shipping_district": order.shipping_district,
        "shipping_province": order.shipping_province,
        "shipping_postal_code": order.shipping_postal_code,
    }


def _line(item) -> dict:
    return {
        "product_name": item.product_name,
        "product_sku": item.product_sku,
        "quantity": item.quantity,
        "vat_rate": to_money_str(item.vat_rate),
        "unit_price_excluding_vat": to_money_str(item.unit_price_excluding_vat),
        "unit_vat_amount": to_money_str(item.unit_vat_amount),
        "unit_price_including_vat": to_money_str(item.unit_price_including_vat),
        "line_total_excluding_vat": to_money_str(quantize_money(item.unit_price_excluding_vat * item.quantity)),
        "line_total_vat": to_money_str(quantize_money(item.unit_vat_amount * item.quantity)),
        "line_total_including_vat": to_money_str(item.line_total_including_vat),
    }


def build_receipt(payment: Payment) -> dict:
    order = payment.order
    cfg = current_app.config
    return {
        "receipt_number": payment.receipt_number,
        "issued_at": to_utc_z(payment.verified_at),
        "issued_at_display": to_thai_display(payment.verified_at),
        "order_id": order.id,
        "order_number": order.order_number,
        "shop": {
            "name": cfg.get("SHOP_NAME") or "",
            "phone": cfg.get("SHOP_PHONE") or "",
            "email": cfg.get("SHOP_EMAIL") or "",
            "tax_id": cfg.get("SHOP_TAX_ID") or "",
        },
        "customer": _customer(order),
        "items": [_line(item) for item in order.items],
        "totals": {
            "subtotal_excluding_vat": to_money_str(order.subtotal_excluding_vat),
            "total_vat_amount": to_money_str(order.total_vat_amount),
            "discount_amount": to_money_str(order.discount_amount),
            "voucher_code": order.voucher_code,
            "shipping_cost": to_money_str(order.shipping_cost),
            "total_amount": to_money_str(order.total_amount),
        },
        "payment": {
            "payment_method": payment.payment_method,
            "payment_method_label": PAYMENT_METHOD_LABELS.get(payment.payment_method, payment.payment_method),
            "amount": to_money_str(payment.amount),
            "verified_at": to_utc_z(payment.verified_at),
        },
    }


def get_receipt(receipt_number: str, *, user: User | None, contact: str | None = None) -> dict:
    """
    Receipt for a verified payment. Staff and the ordering customer use their
    token; guests pass the phone or email used on the order.
    """
    payment = get_payment_by_receipt_number(receipt_number)
    order_service.get_order_for_viewer(payment.order_id, user=user, contact=contact)
    return build_receipt(payment)
