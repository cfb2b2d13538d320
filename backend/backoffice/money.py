from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce int/str/float/Decimal to Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, float):
        d = Decimal(str(value))
    else:
        try:
            d = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    if not d.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return d


def quantize_money(value: Any) -> Decimal:
    """Round half-up to satang (2 decimals)."""
    d = to_decimal(value)
    try:
        return d.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"amount out of range: {value!r}")


def to_money_str(value: Any) -> Optional[str]:
    """Serialize a money value as a fixed 2-decimal string (None stays None)."""
    if value is None:
        return None
    return str(quantize_money(value))
