from __future__ import annotations

from ..extensions import db
from backoffice.money import to_money_str
from backoffice.time_utils import to_utc_z

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
VALID_DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)

VOUCHER_STATUS_ACTIVE = "active"
VOUCHER_STATUS_INACTIVE = "inactive"


class Voucher(db.Model):
    """
    Discount code.

    percentage: discount_value is a percent of the order subtotal (ex VAT),
    capped by max_discount_amount when set.
    fixed: discount_value baht off, never more than the subtotal.
    """
    __tablename__ = "vouchers"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_vouchers_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    discount_type = db.Column(db.String(16), nullable=False)
    discount_value = db.Column(db.Numeric(10, 2), nullable=False)
    minimum_order_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    max_discount_amount = db.Column(db.Numeric(10, 2), nullable=True)

    # NULL usage_limit means unlimited
    usage_limit = db.Column(db.Integer, nullable=True)
    usage_limit_per_customer = db.Column(db.Integer, nullable=False, default=1)
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=VOUCHER_STATUS_ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Voucher id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": to_money_str(self.discount_value),
            "minimum_order_amount": to_money_str(self.minimum_order_amount),
            "max_discount_amount": to_money_str(self.max_discount_amount),
            "usage_limit": self.usage_limit,
            "usage_limit_per_customer": self.usage_limit_per_customer,
            "usage_count": self.usage_count,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class VoucherUsage(db.Model):
    __tablename__ = "voucher_usage"
    __table_args__ = (
        db.Index("ix_voucher_usage_voucher_user", "voucher_id", "user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    voucher_id = db.Column(db.Integer, db.ForeignKey("vouchers.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    voucher = db.relationship("Voucher", backref=db.backref("usages", lazy="dynamic"))
    order = db.relationship("Order")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "voucher_id": self.voucher_id,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "order_number": self.order.order_number if self.order else None,
            "discount_amount": to_money_str(self.discount_amount),
            "used_at": to_utc_z(self.used_at),
        }
