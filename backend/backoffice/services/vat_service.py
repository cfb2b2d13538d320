# Overview: Service-layer VAT arithmetic (Thai VAT, 7% default); pure functions, no database work.

"""
VAT Calculator

All amounts are Decimal and rounded half-up to 2 decimals at each step that
produces a displayed figure, so unit, line and total values add up the same
way on receipts and in the back office.

- exclusive mode: the given amount excludes VAT (price_excluding_vat)
- inclusive mode: the given amount already includes VAT (shelf price)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from ..money import quantize_money, to_decimal, to_money_str
from ..validation import DomainError

DEFAULT_VAT_RATE = Decimal("7")
MODE_EXCLUSIVE = "exclusive"
MODE_INCLUSIVE = "inclusive"
VALID_MODES = (MODE_EXCLUSIVE, MODE_INCLUSIVE)

_HUNDRED = Decimal("100")

# Upper bound for calculator input; keeps every derived figure within Decimal precision
MAX_AMOUNT = Decimal("999999999999.99")


class VatError(DomainError):
    code = "VAT_ERROR"
    status = 400


def _rate(vat_rate: Any) -> Decimal:
    if vat_rate is None:
        return DEFAULT_VAT_RATE
    try:
        rate = to_decimal(vat_rate)
    except ValueError:
        raise VatError("VAT rate must be a number between 0 and 100", code="INVALID_VAT_RATE")
    if rate < 0 or rate > _HUNDRED:
        raise VatError("VAT rate must be a number between 0 and 100", code="INVALID_VAT_RATE")
    return rate


def _amount(value: Any, label: str) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError:
        raise VatError(f"{label} must be a non-negative number", code="INVALID_AMOUNT")
    if amount < 0:
        raise VatError(f"{label} must be a non-negative number", code="INVALID_AMOUNT")
    if amount > MAX_AMOUNT:
        raise VatError(f"{label} cannot exceed {MAX_AMOUNT:,}", code="INVALID_AMOUNT")
    return amount


# =============================================================================
# SINGLE AMOUNTS
# =============================================================================

def calculate_vat_amount(price_excluding_vat: Any, vat_rate: Any = None) -> Decimal:
    price = _amount(price_excluding_vat, "Price excluding VAT")
    return quantize_money(price * _rate(vat_rate) / _HUNDRED)


def calculate_price_including_vat(price_excluding_vat: Any, vat_rate: Any = None) -> Decimal:
    price = _amount(price_excluding_vat, "Price excluding VAT")
    return quantize_money(price + calculate_vat_amount(price, vat_rate))


def calculate_price_excluding_vat(price_including_vat: Any, vat_rate: Any = None) -> Decimal:
    price = _amount(price_including_vat, "Price including VAT")
    return quantize_money(price / (1 + _rate(vat_rate) / _HUNDRED))


def extract_vat_amount(price_including_vat: Any, vat_rate: Any = None) -> Decimal:
    price = _amount(price_including_vat, "Price including VAT")
    return quantize_money(price - calculate_price_excluding_vat(price, vat_rate))


def breakdown(amount: Any, vat_rate: Any = None, mode: str = MODE_EXCLUSIVE) -> dict:
    """
    {"price_excluding_vat", "vat_rate", "vat_amount", "price_including_vat"}
    """
    if mode not in VALID_MODES:
        raise VatError('Mode must be either "exclusive" or "inclusive"', code="INVALID_VAT_MODE")

    rate = _rate(vat_rate)
    if mode == MODE_EXCLUSIVE:
        price_ex = quantize_money(_amount(amount, "Price excluding VAT"))
        vat = calculate_vat_amount(price_ex, rate)
        price_inc = quantize_money(price_ex + vat)
    else:
        price_inc = quantize_money(_amount(amount, "Price including VAT"))
        price_ex = calculate_price_excluding_vat(price_inc, rate)
        vat = quantize_money(price_inc - price_ex)

    return {
        "price_excluding_vat": price_ex,
        "vat_rate": rate,
        "vat_amount": vat,
        "price_including_vat": price_inc,
    }


# =============================================================================
# CARTS / ORDERS
# =============================================================================

def calculate_cart_vat(items: Iterable[dict], mode: str = MODE_EXCLUSIVE) -> dict:
    """
    items: [{"price": ..., "quantity": ..., "vat_rate": optional}]

    Unit figures are rounded first, then multiplied by quantity, which is how
    order items store them.
    """
    if items is None or isinstance(items, (str, bytes, dict)):
        raise VatError("Items must be a list", code="INVALID_ITEMS")

    lines = []
    subtotal = Decimal("0")
    total_vat = Decimal("0")
    total_inc = Decimal("0")

    for item in items:
        if not isinstance(item, dict) or item.get("price") is None or not item.get("quantity"):
            raise VatError("Each item must have price and quantity", code="INVALID_ITEMS")
        quantity = item["quantity"]
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise VatError("quantity must be a positive integer", code="INVALID_ITEMS")

        unit = breakdown(item["price"], item.get("vat_rate"), mode)
        try:
            line = {
                "quantity": quantity,
                "vat_rate": unit["vat_rate"],
                "unit_price_excluding_vat": unit["price_excluding_vat"],
                "unit_vat_amount": unit["vat_amount"],
                "unit_price_including_vat": unit["price_including_vat"],
                "line_total_excluding_vat": quantize_money(unit["price_excluding_vat"] * quantity),
                "line_total_vat": quantize_money(unit["vat_amount"] * quantity),
                "line_total_including_vat": quantize_money(unit["price_including_vat"] * quantity),
            }
        except ValueError:
            raise VatError("Line total is out of range", code="INVALID_ITEMS")
        subtotal += line["line_total_excluding_vat"]
        total_vat += line["line_total_vat"]
        total_inc += line["line_total_including_vat"]
        lines.append(line)

    return {
        "items": lines,
        "totals": {
            "subtotal_excluding_vat": quantize_money(subtotal),
            "total_vat": quantize_money(total_vat),
            "total_including_vat": quantize_money(total_inc),
        },
    }


def apply_discount_and_recalculate(price_excluding_vat: Any, discount_amount: Any, vat_rate: Any = None) -> dict:
    """VAT is charged on the discounted price, not the original."""
    original = _amount(price_excluding_vat, "Original price")
    discount = _amount(discount_amount, "Discount amount")
    if discount > original:
        raise VatError("Discount amount cannot exceed original price", code="INVALID_DISCOUNT")

    after = breakdown(original - discount, vat_rate, MODE_EXCLUSIVE)
    return {
        "original_price_excluding_vat": quantize_money(original),
        "discount_amount": quantize_money(discount),
        "discounted_price_excluding_vat": after["price_excluding_vat"],
        "vat_rate": after["vat_rate"],
        "vat_amount": after["vat_amount"],
        "final_price_including_vat": after["price_including_vat"],
    }


def serialize(result: dict) -> dict:
    """Decimal -> 2-decimal strings, recursively, for JSON responses."""
    out = {}
    for key, value in result.items():
        if isinstance(value, Decimal):
            out[key] = to_money_str(value)
        elif isinstance(value, dict):
            out[key] = serialize(value)
        elif isinstance(value, list):
            out[key] = [serialize(v) if isinstance(v, dict) else v for v in value]
        else:
            out[key] = value
    return out
