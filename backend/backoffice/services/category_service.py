# Overview: Service-layer operations for product categories; encapsulates business logic and database work.

"""
Product categories and their SKU prefixes.

- prefix is optional, 3-4 uppercase letters, unique across categories
- changing a prefix is allowed but only affects products created afterwards
- a category cannot be deleted while products still reference it
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, ProductCategory
from ..models.catalog import CATEGORY_STATUS_ACTIVE, CATEGORY_STATUS_INACTIVE
from ..validation import ConflictError, DomainError, NotFoundError, ValidationError
from .sku_service import PREFIX_PATTERN

VALID_CATEGORY_STATUSES = (CATEGORY_STATUS_ACTIVE, CATEGORY_STATUS_INACTIVE)

PREFIX_CHANGE_WARNING = "PREFIX_CHANGE_WARNING"


class CategoryError(DomainError):
    """Raised for category rule violations."""
    pass


def normalize_prefix(prefix: str | None) -> str | None:
    """
    Strip/uppercase and validate a prefix. Blank means "no prefix".
    """
    if prefix is None:
        return None
    value = str(prefix).strip().upper()
    if not value:
        return None
    if not PREFIX_PATTERN.match(value):
        raise CategoryError(
            "Prefix ต้องเป็นตัวอักษรภาษาอังกฤษ 3-4 ตัว (A-Z)",
            code="INVALID_PREFIX",
            suggestion="ตัวอย่าง: DRES, WORK, JEAN",
        )
    return value


def _ensure_prefix_free(prefix: str, exclude_id: int | None = None) -> None:
    query = db.session.query(ProductCategory).filter(ProductCategory.prefix == prefix)
    if exclude_id is not None:
        query = query.filter(ProductCategory.id != exclude_id)
    owner = query.first()
    if owner:
        raise ConflictError(
            f'Prefix "{prefix}" ถูกใช้งานแล้วโดยหมวดหมู่ "{owner.name}"',
            code="DUPLICATE_PREFIX",
            suggestion="กรุณาเลือก Prefix อื่น",
            details={"category_id": owner.id, "category_name": owner.name},
        )


def _validate_status(status: str | None) -> None:
    if status is not None and status not in VALID_CATEGORY_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(VALID_CATEGORY_STATUSES)}")


def get_category_or_404(category_id: int) -> ProductCategory:
    category = db.session.get(ProductCategory, category_id)
    if not category:
        raise NotFoundError("ไม่พบหมวดหมู่ที่ระบุ", code="CATEGORY_NOT_FOUND")
    return category


def _product_counts() -> dict[int, int]:
    rows = (
        db.session.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.isnot(None))
        .group_by(Product.category_id)
        .all()
    )
    return {category_id: count for category_id, count in rows}


def list_categories(*, status: str | None = None) -> dict:
    query = db.session.query(ProductCategory)
    if status:
        _validate_status(status)
        query = query.filter(ProductCategory.status == status)

    categories = query.order_by(ProductCategory.name.asc(), ProductCategory.id.asc()).all()
    counts = _product_counts()

    items = []
    for category in categories:
        data = category.to_dict()
        data["product_count"] = counts.get(category.id, 0)
        items.append(data)
    return {"items": items, "count": len(items)}


def get_category(category_id: int) -> dict:
    category = get_category_or_404(category_id)
    data = category.to_dict()
    data["product_count"] = _product_counts().get(category.id, 0)
    return data


def create_category(*, patch: dict) -> dict:
    _validate_status(patch.get("status"))
    prefix = normalize_prefix(patch.get("prefix"))
    if prefix:
        _ensure_prefix_free(prefix)

    category = ProductCategory(
        name=patch["name"],
        prefix=prefix,
        description=patch.get("description"),
        status=patch.get("status") or CATEGORY_STATUS_ACTIVE,
    )
    db.session.add(category)
    db.session.commit()

    current_app.logger.info("Created category %s (prefix=%s)", category.name, category.prefix)
    return category.to_dict()


def update_category(*, category_id: int, patch: dict) -> tuple[dict, list[dict]]:
    """
    Returns (category, warnings). A prefix change yields PREFIX_CHANGE_WARNING:
    existing products keep their SKUs.
    """
    category = get_category_or_404(category_id)
    _validate_status(patch.get("status"))

    warnings: list[dict] = []

    if "prefix" in patch:
        new_prefix = normalize_prefix(patch["prefix"])
        if new_prefix and new_prefix != category.prefix:
            _ensure_prefix_free(new_prefix, exclude_id=category.id)
        if category.prefix and new_prefix != category.prefix:
            warnings.append({
                "code": PREFIX_CHANGE_WARNING,
                "message": "การเปลี่ยน Prefix จะมีผลกับสินค้าใหม่เท่านั้น",
                "suggestion": "สินค้าที่มีอยู่จะยังคงใช้ SKU เดิม",
                "old_prefix": category.prefix,
                "new_prefix": new_prefix,
            })
        category.prefix = new_prefix

    for field in ("name", "description", "status"):
        if field in patch:
            setattr(category, field, patch[field])

    db.session.commit()
    if warnings:
        current_app.logger.info("Category %s prefix changed to %s", category.id, category.prefix)
    return category.to_dict(), warnings


def delete_category(*, category_id: int) -> None:
    category = get_category_or_404(category_id)

    product_count = db.session.query(Product.id).filter(Product.category_id == category.id).count()
    if product_count:
        raise ConflictError(
            "ไม่สามารถลบหมวดหมู่ที่มีสินค้าอยู่ได้",
            code="CATEGORY_HAS_PRODUCTS",
            details={"product_count": product_count},
        )

    db.session.delete(category)
    db.session.commit()


def seed_categories(entries: list[tuple[str, str, str]]) -> dict:
    """
    Insert (name, prefix, description) rows, skipping prefixes that already exist.

    Returns {"created": [...prefixes], "skipped": [...prefixes]}.
    """
    created, skipped = [], []
    for name, prefix, description in entries:
        prefix = normalize_prefix(prefix)
        exists = db.session.query(ProductCategory.id).filter_by(prefix=prefix).first()
        if exists:
            skipped.append(prefix)
            continue
        db.session.add(ProductCategory(
            name=name,
            prefix=prefix,
            description=description,
            status=CATEGORY_STATUS_ACTIVE,
        ))
        created.append(prefix)

    db.session.commit()
    return {"created": created, "skipped": skipped}
