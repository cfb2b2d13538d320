# Overview: Service-layer operations for SKU generation; encapsulates business logic and database work.

"""
SKU Generator

Format: PREFIX + 5-digit zero-padded sequence, e.g. DRES00001.

- PREFIX comes from the product's category (3-4 uppercase letters).
  Products without a category, or whose category has no prefix, use GEN.
- The sequence is per prefix: highest existing number for that prefix + 1.
- 99999 is the last number a prefix can hand out.
- SKUs are immutable once a product is created (enforced in products_service).
"""

from __future__ import annotations

import re

from flask import current_app

from ..extensions import db
from ..models import Product, ProductCategory
from ..validation import DomainError


class SkuGenerationError(DomainError):
    """Raised for SKU generation and validation errors."""
    pass


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_PREFIX = "GEN"
SEQUENCE_DIGITS = 5
MAX_SEQUENTIAL_NUMBER = 10 ** SEQUENCE_DIGITS - 1

PREFIX_PATTERN = re.compile(r"^[A-Z]{3,4}$")
SKU_PATTERN = re.compile(r"^([A-Z]{3,4})(\d{5})$")


# =============================================================================
# FORMAT
# =============================================================================

def validate_sku_format(sku: str | None) -> bool:
    if not sku or not isinstance(sku, str):
        return False
    return SKU_PATTERN.match(sku) is not None


def parse_sku(sku: str) -> tuple[str, int]:
    """Split a SKU into (prefix, sequential_number)."""
    match = SKU_PATTERN.match(sku or "")
    if not match:
        raise SkuGenerationError(
            f"รูปแบบ SKU ไม่ถูกต้อง: {sku}",
            code="INVALID_SKU_FORMAT",
        )
    return match.group(1), int(match.group(2))


def format_sku(prefix: str, sequential_number: int) -> str:
    return f"{prefix}{sequential_number:0{SEQUENCE_DIGITS}d}"


# =============================================================================
# PREFIX / SEQUENCE LOOKUP
# =============================================================================

def get_category_prefix(category_id: int | None) -> str:
    if category_id is None:
        return DEFAULT_PREFIX

    category = db.session.get(ProductCategory, category_id)
    if not category:
        raise SkuGenerationError(
            "ไม่พบหมวดหมู่สินค้า",
            code="CATEGORY_NOT_FOUND",
            status=404,
        )

    return category.prefix or DEFAULT_PREFIX


def get_max_sequential_number(prefix: str) -> int:
    """
    Highest sequence already used by `prefix` (0 if none).

    Only SKUs that are exactly prefix + 5 digits count, so GEN does not pick
    up GENX00012 and legacy hand-typed SKUs are ignored.
    """
    candidates = (
        db.session.query(Product.sku)
        .filter(Product.sku.like(f"{prefix}%"))
        .all()
    )

    highest = 0
    for (sku,) in candidates:
        match = SKU_PATTERN.match(sku or "")
        if match and match.group(1) == prefix:
            highest = max(highest, int(match.group(2)))
    return highest


def get_next_sequential_number(prefix: str) -> int:
    next_number = get_max_sequential_number(prefix) + 1
    if next_number > MAX_SEQUENTIAL_NUMBER:
        raise SkuGenerationError(
            f"เลขลำดับสำหรับหมวดหมู่นี้ถึงขีดจำกัดแล้ว ({MAX_SEQUENTIAL_NUMBER})",
            code="SKU_LIMIT_REACHED",
            suggestion="กรุณาสร้างหมวดหมู่ใหม่หรือใช้ Prefix อื่น",
            details={"prefix": prefix},
        )
    return next_number


def is_sku_unique(sku: str, exclude_product_id: int | None = None) -> bool:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_product_id is not None:
        query = query.filter(Product.id != exclude_product_id)
    return query.first() is None


def ensure_sku_available(sku: str) -> None:
    if not is_sku_unique(sku):
        raise SkuGenerationError(
            "SKU นี้มีอยู่ในระบบแล้ว",
            code="DUPLICATE_SKU",
            status=409,
            details={"sku": sku},
        )


# =============================================================================
# GENERATION
# =============================================================================

def generate_sku(category_id: int | None = None) -> dict:
    """
    Build the next SKU for a category.

    Returns {"sku", "prefix", "sequential_number"}. Does not reserve the number:
    the product insert is what claims it, and the unique constraint on
    products.sku rejects a concurrent duplicate.
    """
    prefix = get_category_prefix(category_id)
    sequential_number = get_next_sequential_number(prefix)
    sku = format_sku(prefix, sequential_number)

    if not validate_sku_format(sku):
        raise SkuGenerationError(
            f"รูปแบบ SKU ไม่ถูกต้อง: {sku}",
            code="INVALID_SKU_FORMAT",
        )
    ensure_sku_available(sku)

    current_app.logger.info("Generated SKU %s (prefix=%s, category_id=%s)", sku, prefix, category_id)
    return {
        "sku": sku,
        "prefix": prefix,
        "sequential_number": sequential_number,
    }
