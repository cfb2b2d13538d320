# Overview: Service-layer operations for the customer address book; encapsulates business logic and database work.

from __future__ import annotations

import re

from ..extensions import db
from ..models import Address
from ..models.addresses import ADDRESS_TYPE_SHIPPING, VALID_ADDRESS_TYPES
from ..validation import NotFoundError, ValidationError
from .auth_service import PHONE_PATTERN

POSTAL_CODE_PATTERN = re.compile(r"^[0-9]{5}$")

ADDRESS_MUTABLE_FIELDS = {
    "address_type",
    "recipient_name",
    "phone",
    "address_line1",
    "address_line2",
    "subdistrict",
    "district",
    "province",
    "postal_code",
    "is_default",
}


def enforce_rules_address(values: dict) -> None:
    """Formats the column metadata cannot express."""
    phone = values.get("phone")
    if phone is not None and not PHONE_PATTERN.match(phone):
        raise ValidationError("เบอร์โทรศัพท์ต้องเป็นตัวเลข 10 หลัก")

    postal_code = values.get("postal_code")
    if postal_code is not None and not POSTAL_CODE_PATTERN.match(postal_code):
        raise ValidationError("รหัสไปรษณีย์ต้องเป็นตัวเลข 5 หลัก")

    address_type = values.get("address_type")
    if address_type is not None and address_type not in VALID_ADDRESS_TYPES:
        raise ValidationError(f"address_type must be one of: {', '.join(VALID_ADDRESS_TYPES)}")


def get_address_for_user(user_id: int, address_id: int) -> Address:
    """Another user's address is reported as missing, not forbidden."""
    address = (
        db.session.query(Address)
        .filter(Address.id == address_id, Address.user_id == user_id)
        .first()
    )
    if not address:
        raise NotFoundError("ไม่พบที่อยู่", code="ADDRESS_NOT_FOUND")
    return address


def list_addresses(user_id: int) -> dict:
    rows = (
        db.session.query(Address)
        .filter(Address.user_id == user_id)
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
        .all()
    )
    return {"items": [a.to_dict() for a in rows], "count": len(rows)}


def _clear_default(user_id: int, keep_id: int | None = None) -> None:
    query = db.session.query(Address).filter(Address.user_id == user_id, Address.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(Address.id != keep_id)
    query.update({Address.is_default: False}, synchronize_session="fetch")


def create_address(*, user_id: int, patch: dict) -> dict:
    enforce_rules_address(patch)

    address = Address(user_id=user_id, address_type=ADDRESS_TYPE_SHIPPING, is_default=False)
    for k, v in patch.items():
        if k in ADDRESS_MUTABLE_FIELDS:
            setattr(address, k, v)
    if address.is_default:
        _clear_default(user_id)
    db.session.add(address)
    db.session.commit()
    return address.to_dict()


def update_address(*, user_id: int, address_id: int, patch: dict) -> dict:
    address = get_address_for_user(user_id, address_id)
    enforce_rules_address(patch)

    for k, v in patch.items():
        if k in ADDRESS_MUTABLE_FIELDS:
            setattr(address, k, v)

    if patch.get("is_default"):
        _clear_default(user_id, keep_id=address.id)
    db.session.commit()
    return address.to_dict()


def delete_address(*, user_id: int, address_id: int) -> None:
    address = get_address_for_user(user_id, address_id)
    db.session.delete(address)
    db.session.commit()
