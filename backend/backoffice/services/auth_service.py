# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every back-office action must be attributable to a user, and customers
log in to see their orders. Uses bcrypt for password hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_LOG_ROUNDS)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_CUSTOMER, USER_STATUS_ACTIVE, VALID_ROLES
from ..validation import ConflictError, DomainError, ValidationError, clean_text
from backoffice.time_utils import utcnow

PASSWORD_MIN_LENGTH = 8
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^[0-9]{10}$")


class AuthError(DomainError):
    code = "AUTH_ERROR"
    status = 401


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
        raise PasswordValidationError(f"รหัสผ่านต้องมีอย่างน้อย {PASSWORD_MIN_LENGTH} ตัวอักษร")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("รหัสผ่านต้องมีตัวอักษรอย่างน้อย 1 ตัว")

    if not re.search(r'\d', password):
        raise PasswordValidationError("รหัสผ่านต้องมีตัวเลขอย่างน้อย 1 ตัว")


def normalize_email(email: str | None) -> str:
    value = clean_text(email, "email").lower()
    if not EMAIL_PATTERN.match(value):
        raise ValidationError("รูปแบบอีเมลไม่ถูกต้อง")
    return value


def validate_phone(phone: str | None) -> str | None:
    if phone is None:
        return None
    value = str(phone).strip()
    if not value:
        return None
    if not PHONE_PATTERN.match(value):
        raise ValidationError("เบอร์โทรศัพท์ต้องเป็นตัวเลข 10 หลัก")
    return value


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt (cost factor BCRYPT_LOG_ROUNDS, 12 by default).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    bcrypt.checkpw is timing-safe. A malformed stored hash counts as a mismatch.
    """
    if not isinstance(password, str) or not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str = ROLE_CUSTOMER,
    phone: str | None = None,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: bad email/phone/role or missing names
        PasswordValidationError: weak password
        ConflictError(EMAIL_EXISTS): email already registered
    """
    email = normalize_email(email)
    phone = validate_phone(phone)

    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")

    first_name = clean_text(first_name, "first_name")
    last_name = clean_text(last_name, "last_name")
    if not first_name:
        raise ValidationError("กรุณากรอกชื่อ")
    if not last_name:
        raise ValidationError("กรุณากรอกนามสกุล")

    if db.session.query(User.id).filter_by(email=email).first():
        raise ConflictError("อีเมลนี้ถูกใช้งานแล้ว", code="EMAIL_EXISTS")

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=role,
        status=USER_STATUS_ACTIVE,
    )
    db.session.add(user)
    db.session.commit()
    return user


def register_customer(payload: dict) -> User:
    """Storefront self-registration; always creates a customer."""
    return create_user(
        email=payload.get("email"),
        password=payload.get("password") or "",
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
        phone=payload.get("phone"),
        role=ROLE_CUSTOMER,
    )


def authenticate(email: str, password: str) -> User:
    """
    Return the user for valid credentials.

    Raises AuthError(INVALID_CREDENTIALS) for unknown email or wrong password
    (same message for both), AuthError(ACCOUNT_INACTIVE) for a disabled account.
    """
    email = clean_text(email, "email").lower()
    user = db.session.query(User).filter_by(email=email).first()

    if not user or not verify_password(password, user.password_hash):
        raise AuthError("อีเมลหรือรหัสผ่านไม่ถูกต้อง", code="INVALID_CREDENTIALS")

    if not user.is_active:
        raise AuthError("บัญชีผู้ใช้ถูกระงับ", code="ACCOUNT_INACTIVE", status=403)

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def update_profile(user: User, payload: dict) -> User:
    """Customers and staff may edit their own name and phone."""
    unknown = set(payload) - {"first_name", "last_name", "phone"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    for field in ("first_name", "last_name"):
        if field in payload:
            value = clean_text(payload[field], field)
            if not value:
                raise ValidationError(f"{field} cannot be blank")
            setattr(user, field, value)

    if "phone" in payload:
        user.phone = validate_phone(payload["phone"])

    db.session.commit()
    return user


def change_password(user: User, *, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise AuthError("รหัสผ่านปัจจุบันไม่ถูกต้อง", code="INVALID_CREDENTIALS", status=400)
    user.password_hash = hash_password(new_password)
    db.session.commit()
