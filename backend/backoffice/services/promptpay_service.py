# Overview: Service-layer PromptPay QR payloads for bank-transfer orders.

"""
PromptPay QR

Payload is the EMV merchant-presented format used by Thai banking apps:

    00 payload format    01 static (11) / with amount (12)
    29 merchant info     AID A000000677010111 + 01 mobile | 02 tax ID
    53 currency (764)    54 amount    58 country (TH)    63 CRC-16/CCITT-FALSE

Mobile numbers are sent as 0066 + the number without its leading zero.
"""

from __future__ import annotations

import base64
import re
from io import BytesIO
from typing import Any

import qrcode
from flask import current_app

from ..models import User
from ..models.orders import ORDER_PAYMENT_PAID, ORDER_STATUS_CANCELLED
from ..money import quantize_money
from ..validation import DomainError
from . import order_service

PROMPTPAY_AID = "A000000677010111"
TAG_MOBILE = "01"
TAG_TAX_ID = "02"
CURRENCY_THB = "764"
COUNTRY_TH = "TH"

_NON_DIGITS = re.compile(r"\D")


class PromptPayError(DomainError):
    code = "PROMPTPAY_ERROR"
    status = 400


def _field(tag: str, value: str) -> str:
    return f"{tag}{len(value):02d}{value}"


def crc16_ccitt(data: bytes) -> int:
    crc = 0xFFFF
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = (crc << 1) ^ 0x1021
            else:
                crc <<= 1
        crc &= 0xFFFF
    return crc


def normalize_target(target: Any) -> tuple[str, str]:
    """
    (tag, value) for a PromptPay target.

    Accepts a 10-digit mobile (0812345678), the same number with country code
    (66812345678) or a 13-digit tax / citizen ID. Dashes and spaces are ignored.
    """
    digits = _NON_DIGITS.sub("", str(target or ""))
    if len(digits) == 13:
        return TAG_TAX_ID, digits
    if len(digits) == 10 and digits.startswith("0"):
        return TAG_MOBILE, f"0066{digits[1:]}"
    if len(digits) == 11 and digits.startswith("66"):
        return TAG_MOBILE, f"00{digits}"
    raise PromptPayError(
        "PromptPay ID must be a mobile number or a 13-digit tax ID",
        code="INVALID_PROMPTPAY_ID",
    )


def is_valid_target(target: Any) -> bool:
    try:
        normalize_target(target)
    except PromptPayError:
        return False
    return True


def build_payload(target: Any, amount: Any = None) -> str:
    """EMV payload string; amount None or 0 makes a static QR the payer fills in."""
    tag, value = normalize_target(target)
    amount = quantize_money(amount) if amount is not None else None
    if amount is not None and amount < 0:
        raise PromptPayError("Amount must be >= 0", code="INVALID_AMOUNT")

    payload = _field("00", "01")
    payload += _field("01", "12" if amount else "11")
    payload += _field("29", _field("00", PROMPTPAY_AID) + _field(tag, value))
    payload += _field("53", CURRENCY_THB)
    if amount:
        payload += _field("54", f"{amount:.2f}")
    payload += _field("58", COUNTRY_TH)
    payload += "6304"
    return payload + f"{crc16_ccitt(payload.encode('ascii')):04X}"


def qr_image_data_url(payload: str) -> str:
    """PNG QR code as a data: URL for direct use in an <img> tag."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def format_target(target: Any) -> str:
    """081-234-5678 for mobiles; anything else is returned unchanged."""
    digits = _NON_DIGITS.sub("", str(target or ""))
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    return str(target)


def configured_target() -> str:
    target = current_app.config.get("PROMPTPAY_ID") or current_app.config.get("SHOP_PHONE")
    if not target:
        raise PromptPayError("PromptPay is not configured", code="PROMPTPAY_NOT_CONFIGURED", status=503)
    if not is_valid_target(target):
        current_app.logger.error("PROMPTPAY_ID %r is not a valid PromptPay target", target)
        raise PromptPayError("Invalid PromptPay ID configuration", code="INVALID_PROMPTPAY_ID", status=503)
    return target


def promptpay_for_order(order_id: int, *, user: User | None, contact: str | None = None) -> dict:
    """
    QR payload and bank details for paying an order by transfer.

    Raises:
        NotFoundError(ORDER_NOT_FOUND)
        PromptPayError(ORDER_CANCELLED | ORDER_ALREADY_PAID)
        PromptPayError(PROMPTPAY_NOT_CONFIGURED | INVALID_PROMPTPAY_ID): 503
    """
    order = order_service.get_order_for_viewer(order_id, user=user, contact=contact)
    if order.status == ORDER_STATUS_CANCELLED:
        raise PromptPayError("คำสั่งซื้อนี้ถูกยกเลิกแล้ว", code="ORDER_CANCELLED")
    if order.payment_status == ORDER_PAYMENT_PAID:
        raise PromptPayError("คำสั่งซื้อนี้ชำระเงินแล้ว", code="ORDER_ALREADY_PAID")

    target = configured_target()
    amount = quantize_money(order.total_amount)
    payload = build_payload(target, amount)
    cfg = current_app.config

    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "amount": str(amount),
        "promptpay_id": format_target(target),
        "qr_code": {
            "format": "EMV",
            "payload": payload,
            "image": qr_image_data_url(payload),
        },
        "bank_account": {
            "bank_name": cfg.get("BANK_NAME") or "",
            "account_number": cfg.get("BANK_ACCOUNT_NUMBER") or "",
            "account_name": cfg.get("BANK_ACCOUNT_NAME") or "",
        },
    }
