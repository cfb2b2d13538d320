from __future__ import annotations

from ..extensions import db
from backoffice.money import to_money_str
from backoffice.time_utils import to_utc_z

CATEGORY_STATUS_ACTIVE = "active"
CATEGORY_STATUS_INACTIVE = "inactive"

PRODUCT_STATUS_ACTIVE = "active"
PRODUCT_STATUS_INACTIVE = "inactive"
PRODUCT_STATUS_OUT_OF_STOCK = "out_of_stock"
VALID_PRODUCT_STATUSES = (
    PRODUCT_STATUS_ACTIVE,
    PRODUCT_STATUS_INACTIVE,
    PRODUCT_STATUS_OUT_OF_STOCK,
)


class ProductCategory(db.Model):
    """
    Product category.

    SKU DESIGN DECISION:
    `prefix` (3-4 uppercase letters) is the first half of every SKU generated
    for products in this category. Changing it only affects products created
    afterwards; existing SKUs are immutable.
    """
    __tablename__ = "product_categories"
    __table_args__ = (
        db.UniqueConstraint("prefix", name="uq_product_categories_prefix"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    prefix = db.Column(db.String(4), nullable=True)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=CATEGORY_STATUS_ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<ProductCategory id={self.id} name={self.name!r} prefix={self.prefix!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "prefix": self.prefix,
            "description": self.description,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data.

    SKU is globally unique and never changes after creation. The product image
    lives at /uploads/products/{SKU}.{ext}, so the file name follows the SKU too.

    Prices are stored excluding VAT; vat_amount and price_including_vat are
    derived from price_excluding_vat and vat_rate whenever either changes.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_category_status", "category_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(32), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    # Flaws disclosed to buyers (second-hand / outlet stock)
    defects = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=True, index=True)

    price_excluding_vat = db.Column(db.Numeric(10, 2), nullable=False)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=7)
    vat_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    price_including_vat = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    cost_price_excluding_vat = db.Column(db.Numeric(10, 2), nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    image_path = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=PRODUCT_STATUS_ACTIVE, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("ProductCategory", backref=db.backref("products", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.low_stock_threshold or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "defects": self.defects,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "price_excluding_vat": to_money_str(self.price_excluding_vat),
            "vat_rate": to_money_str(self.vat_rate),
            "vat_amount": to_money_str(self.vat_amount),
            "price_including_vat": to_money_str(self.price_including_vat),
            "cost_price_excluding_vat": to_money_str(self.cost_price_excluding_vat),
            "stock_quantity": self.stock_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "image_path": self.image_path,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


STOCK_CHANGE_PURCHASE = "purchase"
STOCK_CHANGE_SALE = "sale"
STOCK_CHANGE_ADJUSTMENT = "adjustment"
STOCK_CHANGE_RETURN = "return"
STOCK_CHANGE_DAMAGE = "damage"
STOCK_CHANGE_INITIAL = "initial"
VALID_STOCK_CHANGE_TYPES = (
    STOCK_CHANGE_PURCHASE,
    STOCK_CHANGE_SALE,
    STOCK_CHANGE_ADJUSTMENT,
    STOCK_CHANGE_RETURN,
    STOCK_CHANGE_DAMAGE,
    STOCK_CHANGE_INITIAL,
)


class StockHistory(db.Model):
    """Append-only record of every stock quantity change."""
    __tablename__ = "stock_history"
    __table_args__ = (
        db.Index("ix_stock_history_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_change = db.Column(db.Integer, nullable=False)
    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)
    change_type = db.Column(db.String(16), nullable=False, index=True)

    # e.g. reference_type="order", reference_id=<order id>
    reference_id = db.Column(db.Integer, nullable=True)
    reference_type = db.Column(db.String(32), nullable=True)

    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("stock_history", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity_change": self.quantity_change,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "change_type": self.change_type,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
