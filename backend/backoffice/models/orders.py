from __future__ import annotations

from ..extensions import db
from backoffice.money import quantize_money, to_money_str
from backoffice.time_utils import to_utc_z

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PAID = "paid"
ORDER_STATUS_PACKING = "packing"
ORDER_STATUS_PACKED = "packed"
ORDER_STATUS_SHIPPED = "shipped"
ORDER_STATUS_DELIVERED = "delivered"
ORDER_STATUS_CANCELLED = "cancelled"
VALID_ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PAID,
    ORDER_STATUS_PACKING,
    ORDER_STATUS_PACKED,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
)
CANCELLABLE_ORDER_STATUSES = (ORDER_STATUS_PENDING, ORDER_STATUS_PAID)

ORDER_PAYMENT_PENDING = "pending"
ORDER_PAYMENT_PAID = "paid"
ORDER_PAYMENT_FAILED = "failed"
ORDER_PAYMENT_REFUNDED = "refunded"
VALID_ORDER_PAYMENT_STATUSES = (
    ORDER_PAYMENT_PENDING,
    ORDER_PAYMENT_PAID,
    ORDER_PAYMENT_FAILED,
    ORDER_PAYMENT_REFUNDED,
)


class Order(db.Model):
    """
    Customer order.

    Either user_id (registered customer) or the guest_* contact fields identify
    the buyer. Money columns are snapshots taken at order time; later product
    price changes never touch existing orders.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    guest_name = db.Column(db.String(200), nullable=True)
    guest_email = db.Column(db.String(255), nullable=True)
    guest_phone = db.Column(db.String(20), nullable=True)

    shipping_address = db.Column(db.Text, nullable=False)
    shipping_subdistrict = db.Column(db.String(100), nullable=True)
    shipping_district = db.Column(db.String(100), nullable=True)
    shipping_province = db.Column(db.String(100), nullable=True)
    shipping_postal_code = db.Column(db.String(10), nullable=True)

    subtotal_excluding_vat = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_vat_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    shipping_cost = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    voucher_code = db.Column(db.String(50), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=ORDER_PAYMENT_PENDING, index=True)
    tracking_number = db.Column(db.String(100), nullable=True)

    # website / facebook / line / shopee ...
    source_platform = db.Column(db.String(32), nullable=False, default="website")
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("orders", lazy="dynamic"))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "guest_name": self.guest_name,
            "guest_email": self.guest_email,
            "guest_phone": self.guest_phone,
            "shipping_address": self.shipping_address,
            "shipping_subdistrict": self.shipping_subdistrict,
            "shipping_district": self.shipping_district,
            "shipping_province": self.shipping_province,
            "shipping_postal_code": self.shipping_postal_code,
            "subtotal_excluding_vat": to_money_str(self.subtotal_excluding_vat),
            "total_vat_amount": to_money_str(self.total_vat_amount),
            "discount_amount": to_money_str(self.discount_amount),
            "shipping_cost": to_money_str(self.shipping_cost),
            "total_amount": to_money_str(self.total_amount),
            "voucher_code": self.voucher_code,
            "status": self.status,
            "payment_status": self.payment_status,
            "tracking_number": self.tracking_number,
            "source_platform": self.source_platform,
            "notes": self.notes,
            "created_by": self.created_by,
            "shipped_at": to_utc_z(self.shipped_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Order line with product name/SKU/price snapshot."""
    __tablename__ = "order_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    unit_price_excluding_vat = db.Column(db.Numeric(10, 2), nullable=False)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False)
    unit_vat_amount = db.Column(db.Numeric(10, 2), nullable=False)
    unit_price_including_vat = db.Column(db.Numeric(10, 2), nullable=False)

    product = db.relationship("Product")

    @property
    def line_total_including_vat(self):
        return quantize_money(self.unit_price_including_vat * self.quantity)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price_excluding_vat": to_money_str(self.unit_price_excluding_vat),
            "vat_rate": to_money_str(self.vat_rate),
            "unit_vat_amount": to_money_str(self.unit_vat_amount),
            "unit_price_including_vat": to_money_str(self.unit_price_including_vat),
            "line_total_including_vat": to_money_str(self.line_total_including_vat),
        }


PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_VERIFIED = "verified"
PAYMENT_STATUS_REJECTED = "rejected"

PAYMENT_METHOD_BANK_TRANSFER = "bank_transfer"
VALID_PAYMENT_METHODS = (PAYMENT_METHOD_BANK_TRANSFER, "promptpay", "cash", "other")


class Payment(db.Model):
    """
    Payment for an order (one per order).

    Status lifecycle: pending -> verified | rejected. A customer may upload a
    new slip on a rejected payment, which puts it back to pending.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_payments_order_id"),
        db.UniqueConstraint("receipt_number", name="uq_payments_receipt_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    payment_method = db.Column(db.String(32), nullable=False, default=PAYMENT_METHOD_BANK_TRANSFER)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)

    slip_image_path = db.Column(db.String(255), nullable=True)

    verified = db.Column(db.Boolean, nullable=False, default=False)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    verified_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejection_reason = db.Column(db.String(500), nullable=True)
    receipt_number = db.Column(db.String(32), nullable=True)

    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    order = db.relationship("Order", backref=db.backref("payment", uselist=False))
    verifier = db.relationship("User", foreign_keys=[verified_by])

    def __repr__(self) -> str:
        return f"<Payment id={self.id} order_id={self.order_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order.order_number if self.order else None,
            "payment_method": self.payment_method,
            "amount": to_money_str(self.amount),
            "status": self.status,
            "slip_image_path": self.slip_image_path,
            "verified": self.verified,
            "verified_at": to_utc_z(self.verified_at),
            "verified_by": self.verified_by,
            "rejection_reason": self.rejection_reason,
            "receipt_number": self.receipt_number,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
