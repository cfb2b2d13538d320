from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z

ADDRESS_TYPE_SHIPPING = "shipping"
ADDRESS_TYPE_BILLING = "billing"
VALID_ADDRESS_TYPES = (ADDRESS_TYPE_SHIPPING, ADDRESS_TYPE_BILLING)


class Address(db.Model):
    """
    Saved address book entry for a registered user.

    At most one address per user is the default; setting a new default clears
    the flag on the others.
    """
    __tablename__ = "addresses"
    __table_args__ = (
        db.Index("ix_addresses_user_default", "user_id", "is_default"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    address_type = db.Column(db.String(16), nullable=False, default=ADDRESS_TYPE_SHIPPING)

    recipient_name = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    address_line1 = db.Column(db.String(255), nullable=False)
    address_line2 = db.Column(db.String(255), nullable=True)
    subdistrict = db.Column(db.String(100), nullable=False)
    district = db.Column(db.String(100), nullable=False)
    province = db.Column(db.String(100), nullable=False)
    postal_code = db.Column(db.String(5), nullable=False)

    is_default = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("addresses", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<Address id={self.id} user_id={self.user_id} default={self.is_default}>"

    def one_line(self) -> str:
        """Address as a single shipping line, in Thai postal order."""
        parts = [
            self.address_line1,
            self.address_line2,
            self.subdistrict,
            self.district,
            self.province,
            self.postal_code,
        ]
        return " ".join(p for p in parts if p)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "address_type": self.address_type,
            "recipient_name": self.recipient_name,
            "phone": self.phone,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "subdistrict": self.subdistrict,
            "district": self.district,
            "province": self.province,
            "postal_code": self.postal_code,
            "is_default": self.is_default,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
