# backend/backoffice/services/products_service.py
"""
Products Service

SKU RULES:
- SKU is optional on create; when missing it is generated from the category prefix
- A supplied SKU must match PREFIX + 5 digits and be unique
- SKU never changes after creation (SKU_IMMUTABLE)

Deleting a product is a soft delete (status -> inactive); order items keep
pointing at it.
"""
from __future__ import annotations

import os

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, StockHistory
from ..models.catalog import (
    PRODUCT_STATUS_ACTIVE,
    PRODUCT_STATUS_INACTIVE,
    PRODUCT_STATUS_OUT_OF_STOCK,
    STOCK_CHANGE_ADJUSTMENT,
    STOCK_CHANGE_DAMAGE,
    STOCK_CHANGE_INITIAL,
    STOCK_CHANGE_SALE,
    VALID_PRODUCT_STATUSES,
    VALID_STOCK_CHANGE_TYPES,
)
from ..validation import ConflictError, DomainError, NotFoundError, ValidationError
from . import file_naming_service, sku_service, upload_service, vat_service
from .category_service import get_category_or_404
from .concurrency import lock_for_update, run_with_retry

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "defects",
    "category_id",
    "price_excluding_vat",
    "vat_rate",
    "cost_price_excluding_vat",
    "low_stock_threshold",
    "status",
}

SORTABLE_FIELDS = {
    "name": Product.name,
    "price": Product.price_excluding_vat,
    "created_at": Product.created_at,
    "stock_quantity": Product.stock_quantity,
    "sku": Product.sku,
}

# Change types that always take stock out
OUTBOUND_CHANGE_TYPES = {STOCK_CHANGE_SALE, STOCK_CHANGE_DAMAGE}


class ProductError(DomainError):
    """Raised for product rule violations."""
    pass


def _not_found() -> NotFoundError:
    return NotFoundError("ไม่พบสินค้า", code="PRODUCT_NOT_FOUND")


def get_product_or_404(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise _not_found()
    return product


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _apply_vat(p: Product) -> None:
    figures = vat_service.breakdown(p.price_excluding_vat, p.vat_rate, vat_service.MODE_EXCLUSIVE)
    p.price_excluding_vat = figures["price_excluding_vat"]
    p.vat_rate = figures["vat_rate"]
    p.vat_amount = figures["vat_amount"]
    p.price_including_vat = figures["price_including_vat"]


def _sync_stock_status(p: Product) -> None:
    if p.status == PRODUCT_STATUS_INACTIVE:
        return
    if p.stock_quantity <= 0:
        p.status = PRODUCT_STATUS_OUT_OF_STOCK
    elif p.status == PRODUCT_STATUS_OUT_OF_STOCK:
        p.status = PRODUCT_STATUS_ACTIVE


def _validate_status(status: str | None) -> None:
    if status is not None and status not in VALID_PRODUCT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(VALID_PRODUCT_STATUSES)}")


# =============================================================================
# QUERIES
# =============================================================================

def list_products(
    *,
    search: str | None = None,
    category_id: int | None = None,
    status: str | None = None,
    min_price=None,
    max_price=None,
    sort: str | None = None,
    order: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with search, filters and pagination.

    search matches name, description or SKU (case-insensitive substring).
    sort: name | price | created_at | stock_quantity | sku (default created_at desc).
    """
    query = db.session.query(Product)

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(like),
            Product.description.ilike(like),
            Product.sku.ilike(like),
        ))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if status:
        _validate_status(status)
        query = query.filter(Product.status == status)
    if min_price is not None:
        query = query.filter(Product.price_excluding_vat >= min_price)
    if max_price is not None:
        query = query.filter(Product.price_excluding_vat <= max_price)

    sort_key = sort or "created_at"
    if sort_key not in SORTABLE_FIELDS:
        raise ValidationError(f"sort must be one of: {', '.join(sorted(SORTABLE_FIELDS))}")
    column = SORTABLE_FIELDS[sort_key]
    descending = (order or ("desc" if sort_key == "created_at" else "asc")).lower() == "desc"
    query = query.order_by(column.desc() if descending else column.asc(), Product.id.desc() if descending else Product.id.asc())

    per_page = min(per_page or 20, 100)
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> dict:
    return get_product_or_404(product_id).to_dict()


def list_low_stock_products() -> dict:
    products = (
        db.session.query(Product)
        .filter(
            Product.status != PRODUCT_STATUS_INACTIVE,
            Product.stock_quantity <= Product.low_stock_threshold,
        )
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .all()
    )
    return {"items": [p.to_dict() for p in products], "count": len(products)}


def get_stock_history(product_id: int, *, limit: int = 50) -> dict:
    get_product_or_404(product_id)
    limit = min(max(limit, 1), 500)
    rows = (
        db.session.query(StockHistory)
        .filter(StockHistory.product_id == product_id)
        .order_by(StockHistory.created_at.desc(), StockHistory.id.desc())
        .limit(limit)
        .all()
    )
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}


# =============================================================================
# CREATE / UPDATE / DELETE
# =============================================================================

def create_product(*, patch: dict, user_id: int | None = None) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError / SkuGenerationError(DUPLICATE_SKU): SKU already taken
        SkuGenerationError(INVALID_SKU_FORMAT): supplied SKU is malformed
        NotFoundError(CATEGORY_NOT_FOUND): unknown category_id
    """
    _validate_status(patch.get("status"))
    if patch.get("category_id") is not None:
        get_category_or_404(patch["category_id"])

    supplied_sku = patch.get("sku")
    if supplied_sku:
        supplied_sku = supplied_sku.upper()
        if not sku_service.validate_sku_format(supplied_sku):
            raise sku_service.SkuGenerationError(
                f"รูปแบบ SKU ไม่ถูกต้อง: {supplied_sku}",
                code="INVALID_SKU_FORMAT",
                suggestion="SKU ต้องเป็น Prefix 3-4 ตัวอักษร ตามด้วยตัวเลข 5 หลัก เช่น DRES00001",
            )

    def _op() -> Product:
        sku = supplied_sku
        if sku:
            sku_service.ensure_sku_available(sku)
        else:
            sku = sku_service.generate_sku(patch.get("category_id"))["sku"]

        p = Product(
            sku=sku,
            stock_quantity=patch.get("stock_quantity") or 0,
            vat_rate=patch.get("vat_rate") if patch.get("vat_rate") is not None else current_app.config["DEFAULT_VAT_RATE"],
            low_stock_threshold=patch.get("low_stock_threshold") if patch.get("low_stock_threshold") is not None else 10,
            status=PRODUCT_STATUS_ACTIVE,
        )
        apply_product_patch(p, patch)
        _apply_vat(p)
        _sync_stock_status(p)

        db.session.add(p)
        db.session.flush()  # ensure p.id exists before the history row

        if p.stock_quantity:
            db.session.add(StockHistory(
                product_id=p.id,
                quantity_change=p.stock_quantity,
                quantity_before=0,
                quantity_after=p.stock_quantity,
                change_type=STOCK_CHANGE_INITIAL,
                notes="Initial stock",
                created_by=user_id,
            ))

        db.session.commit()
        return p

    try:
        # A generated SKU can lose a race to a concurrent insert; regenerate.
        p = run_with_retry(_op, retry_on=() if supplied_sku else (IntegrityError,))
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("SKU นี้มีอยู่ในระบบแล้ว", code="DUPLICATE_SKU")

    current_app.logger.info("Created product %s (id=%s)", p.sku, p.id)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    """
    Patch a product. `sku` may be echoed back unchanged; any other value is
    rejected with SKU_IMMUTABLE.
    """
    p = get_product_or_404(product_id)

    if "sku" in patch:
        requested = (patch.get("sku") or "").upper()
        if requested != p.sku:
            raise ProductError(
                "ไม่สามารถแก้ไข SKU ได้หลังจากสร้างสินค้าแล้ว",
                code="SKU_IMMUTABLE",
                details={"sku": p.sku},
            )

    _validate_status(patch.get("status"))
    if patch.get("category_id") is not None:
        get_category_or_404(patch["category_id"])
    if "price_excluding_vat" in patch and patch["price_excluding_vat"] is None:
        raise ValidationError("price_excluding_vat cannot be null")

    apply_product_patch(p, patch)
    if "price_excluding_vat" in patch or "vat_rate" in patch:
        _apply_vat(p)
    _sync_stock_status(p)

    db.session.commit()
    return p.to_dict()


def delete_product(*, product_id: int) -> dict:
    """Soft delete: product stays for order history but is hidden from sale."""
    p = get_product_or_404(product_id)
    p.status = PRODUCT_STATUS_INACTIVE
    db.session.commit()
    current_app.logger.info("Deactivated product %s (id=%s)", p.sku, p.id)
    return p.to_dict()


# =============================================================================
# STOCK
# =============================================================================

def record_stock_change(
    p: Product,
    *,
    delta: int,
    change_type: str,
    reference_id: int | None = None,
    reference_type: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> StockHistory:
    """
    Apply a stock delta and append the history row. Caller commits.
    """
    before = p.stock_quantity
    after = before + delta
    if after < 0:
        raise ProductError(
            f"สินค้าในสต็อกไม่เพียงพอ: {p.name}",
            code="INSUFFICIENT_STOCK",
            details={"product_id": p.id, "available": before, "requested": -delta},
        )

    p.stock_quantity = after
    _sync_stock_status(p)

    entry = StockHistory(
        product_id=p.id,
        quantity_change=delta,
        quantity_before=before,
        quantity_after=after,
        change_type=change_type,
        reference_id=reference_id,
        reference_type=reference_type,
        notes=notes,
        created_by=user_id,
    )
    db.session.add(entry)
    return entry


def update_stock(
    *,
    product_id: int,
    quantity: int,
    change_type: str,
    notes: str | None = None,
    user_id: int | None = None,
) -> dict:
    """
    Manual stock movement from the back office.

    quantity is a magnitude for purchase/return/initial (+) and sale/damage (-);
    for adjustment it is the signed delta.
    """
    if change_type not in VALID_STOCK_CHANGE_TYPES:
        raise ValidationError(f"change_type must be one of: {', '.join(VALID_STOCK_CHANGE_TYPES)}")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity == 0:
        raise ValidationError("quantity must be non-zero")
    if change_type != STOCK_CHANGE_ADJUSTMENT and quantity < 0:
        raise ValidationError(f"quantity must be > 0 for {change_type}")

    delta = -quantity if change_type in OUTBOUND_CHANGE_TYPES else quantity

    def _op() -> dict:
        p = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not p:
            raise _not_found()
        entry = record_stock_change(p, delta=delta, change_type=change_type, notes=notes, user_id=user_id)
        db.session.commit()
        return {"product": p.to_dict(), "history": entry.to_dict()}

    return run_with_retry(_op)


# =============================================================================
# IMAGES
# =============================================================================

def upload_product_image(*, product_id: int, file) -> dict:
    """
    Save an uploaded image as /uploads/products/{SKU}.{ext}.

    Flow: temp file -> product lookup -> rename to SKU (old images removed)
    -> DB update. The temp file is removed if the product is missing; both temp
    and renamed files are removed if the DB update fails.
    """
    temp_path = upload_service.save_temp_image(file, subdir=upload_service.PRODUCTS_SUBDIR, label="product")
    renamed_path = None

    try:
        p = db.session.get(Product, product_id)
        if not p:
            raise _not_found()

        new_filename = file_naming_service.rename_to_sku_format(temp_path, p.sku)
        renamed_path = os.path.join(os.path.dirname(temp_path), new_filename)

        p.image_path = upload_service.public_path(upload_service.PRODUCTS_SUBDIR, new_filename)
        db.session.commit()
    except Exception:
        db.session.rollback()
        upload_service.remove_quietly(temp_path)
        upload_service.remove_quietly(renamed_path)
        raise

    current_app.logger.info("Product %s image saved as %s", p.sku, p.image_path)
    return p.to_dict()


def delete_product_image(*, product_id: int) -> dict:
    p = get_product_or_404(product_id)
    if not p.image_path:
        raise NotFoundError("สินค้านี้ไม่มีรูปภาพ", code="IMAGE_NOT_FOUND")

    local_path = upload_service.local_path_for(p.image_path)
    if local_path and os.path.exists(local_path):
        os.remove(local_path)

    p.image_path = None
    db.session.commit()
    return p.to_dict()
