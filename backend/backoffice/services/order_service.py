# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Service

DESIGN PRINCIPLES:
- Order items snapshot product name, SKU, prices and VAT at order time
- Totals: subtotal ex VAT + VAT - discount + shipping
- A voucher discount applies to the subtotal ex VAT; VAT is then recomputed
  on the discounted subtotal at the order's effective VAT rate
- Stock is taken when the order is created ("sale" history rows) and given
  back when it is cancelled ("return" history rows)
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, OrderItem, Product, User
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..models.catalog import PRODUCT_STATUS_ACTIVE, STOCK_CHANGE_RETURN, STOCK_CHANGE_SALE
from ..models.orders import (
    CANCELLABLE_ORDER_STATUSES,
    ORDER_PAYMENT_PAID,
    ORDER_PAYMENT_PENDING,
    ORDER_PAYMENT_REFUNDED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_PAID,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_SHIPPED,
    VALID_ORDER_PAYMENT_STATUSES,
    VALID_ORDER_STATUSES,
)
from ..money import quantize_money
from ..validation import MAX_PRICE, DomainError, NotFoundError, PermissionDeniedError, ValidationError, clean_text
from . import address_service, vat_service, voucher_service
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_order_number
from .products_service import record_stock_change
from backoffice.time_utils import utcnow

STAFF_ROLES = (ROLE_ADMIN, ROLE_STAFF)
MAX_ITEMS_PER_ORDER = 100

SHIPPING_FIELDS = (
    "shipping_address",
    "shipping_subdistrict",
    "shipping_district",
    "shipping_province",
    "shipping_postal_code",
)


class OrderError(DomainError):
    """Raised for order operation errors."""
    pass


def is_staff(user: User | None) -> bool:
    return bool(user and user.role in STAFF_ROLES)


def _order_not_found() -> NotFoundError:
    return NotFoundError("ไม่พบคำสั่งซื้อ", code="ORDER_NOT_FOUND")


def get_order_or_404(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise _order_not_found()
    return order


def ensure_can_view(order: Order, user: User | None) -> None:
    """Staff see every order; customers only their own."""
    if is_staff(user):
        return
    if user is None or order.user_id != user.id:
        raise PermissionDeniedError("You do not have access to this order")


def get_order_for_viewer(order_id: int, *, user: User | None, contact: str | None = None) -> Order:
    """Owner and staff by token; guests by the phone or email used on the order."""
    order = get_order_or_404(order_id)
    if user is None and contact:
        return find_guest_order(order.order_number, contact)
    ensure_can_view(order, user)
    return order


# =============================================================================
# CREATION
# =============================================================================

def _clean_items(items) -> list[tuple[int, int]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item")
    if len(items) > MAX_ITEMS_PER_ORDER:
        raise ValidationError(f"Order cannot contain more than {MAX_ITEMS_PER_ORDER} items")

    merged: dict[int, int] = {}
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object with product_id and quantity")
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError("product_id must be an integer")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("quantity must be a positive integer")
        merged[product_id] = merged.get(product_id, 0) + quantity
    return list(merged.items())


def _clean_contact(payload: dict, user: User | None) -> dict:
    contact = {
        "guest_name": clean_text(payload.get("guest_name"), "guest_name") or None,
        "guest_email": clean_text(payload.get("guest_email"), "guest_email").lower() or None,
        "guest_phone": clean_text(payload.get("guest_phone"), "guest_phone") or None,
    }
    if user is None:
        if not contact["guest_name"]:
            raise ValidationError("guest_name is required for guest orders")
        if not contact["guest_phone"] and not contact["guest_email"]:
            raise ValidationError("guest_phone or guest_email is required for guest orders")
    return contact


def _shipping_details(payload: dict, owner_id: int | None) -> dict:
    """Shipping columns from the payload, or copied from a saved address when address_id is given."""
    address_id = payload.get("address_id")
    if address_id is not None:
        if owner_id is None:
            raise ValidationError("address_id can only be used by a signed-in customer")
        if isinstance(address_id, bool) or not isinstance(address_id, int):
            raise ValidationError("address_id must be an integer")
        address = address_service.get_address_for_user(owner_id, address_id)
        return {
            "shipping_address": " ".join(p for p in (address.address_line1, address.address_line2) if p),
            "shipping_subdistrict": address.subdistrict,
            "shipping_district": address.district,
            "shipping_province": address.province,
            "shipping_postal_code": address.postal_code,
        }

    details = {field: clean_text(payload.get(field), field) or None for field in SHIPPING_FIELDS}
    if not details["shipping_address"]:
        raise ValidationError("shipping_address is required")
    return details


def create_order(*, payload: dict, user: User | None = None) -> dict:
    """
    Create an order directly from a list of {product_id, quantity}.

    Anonymous callers must provide guest contact details. Staff creating an
    order on behalf of a customer (phone / LINE orders) may pass user_id.
    A signed-in customer (or staff on their behalf) may pass address_id to
    ship to a saved address instead of sending the shipping fields.

    Raises:
        ValidationError: malformed payload
        NotFoundError(PRODUCT_NOT_FOUND): product missing or not active
        ProductError(INSUFFICIENT_STOCK): not enough stock
        VoucherError: voucher_code given but not applicable
    """
    lines = _clean_items(payload.get("items"))
    contact = _clean_contact(payload, user)

    try:
        shipping_cost = quantize_money(payload.get("shipping_cost") or 0)
    except ValueError:
        raise ValidationError("shipping_cost must be a number")
    if shipping_cost < 0:
        raise ValidationError("shipping_cost must be >= 0")
    if shipping_cost > MAX_PRICE:
        raise ValidationError(f"shipping_cost cannot exceed {MAX_PRICE:,}")

    owner_id = user.id if user else None
    if is_staff(user) and payload.get("user_id") is not None:
        customer_id = payload["user_id"]
        if isinstance(customer_id, bool) or not isinstance(customer_id, int):
            raise ValidationError("user_id must be an integer")
        customer = db.session.get(User, customer_id)
        if not customer:
            raise NotFoundError("Customer not found", code="USER_NOT_FOUND")
        owner_id = customer.id

    shipping = _shipping_details(payload, owner_id)

    source_platform = clean_text(payload.get("source_platform"), "source_platform") or "website"
    voucher_code = voucher_service.normalize_code(payload.get("voucher_code")) or None

    def _op() -> Order:
        order_items = []
        subtotal = Decimal("0")
        total_vat = Decimal("0")

        for product_id, quantity in lines:
            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            if not product or product.status != PRODUCT_STATUS_ACTIVE:
                raise NotFoundError(
                    f"ไม่พบสินค้า: {product_id}",
                    code="PRODUCT_NOT_FOUND",
                    details={"product_id": product_id},
                )
            if product.stock_quantity < quantity:
                raise OrderError(
                    f"สินค้าในสต็อกไม่เพียงพอ: {product.name}",
                    code="INSUFFICIENT_STOCK",
                    details={"product_id": product.id, "available": product.stock_quantity, "requested": quantity},
                )

            unit = vat_service.breakdown(product.price_excluding_vat, product.vat_rate)
            subtotal += quantize_money(unit["price_excluding_vat"] * quantity)
            total_vat += quantize_money(unit["vat_amount"] * quantity)
            order_items.append((product, quantity, unit))

        discount = Decimal("0")
        voucher = None
        if voucher_code:
            voucher = voucher_service.validate_voucher(voucher_code, subtotal, owner_id)
            discount = voucher_service.calculate_discount(voucher, subtotal)
            if discount > 0 and subtotal > 0:
                # VAT follows the discounted subtotal at the same effective rate
                total_vat = quantize_money(total_vat * (subtotal - discount) / subtotal)

        total = quantize_money(subtotal + total_vat - discount + shipping_cost)

        order = Order(
            order_number=next_order_number(),
            user_id=owner_id,
            subtotal_excluding_vat=quantize_money(subtotal),
            total_vat_amount=quantize_money(total_vat),
            discount_amount=discount,
            shipping_cost=shipping_cost,
            total_amount=total,
            voucher_code=voucher.code if voucher else None,
            status=ORDER_STATUS_PENDING,
            payment_status=ORDER_PAYMENT_PENDING,
            source_platform=source_platform[:32],
            notes=clean_text(payload.get("notes"), "notes") or None,
            created_by=user.id if user else None,
            **shipping,
            **contact,
        )

        db.session.add(order)
        db.session.flush()

        for product, quantity, unit in order_items:
            order.items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                product_sku=product.sku,
                quantity=quantity,
                unit_price_excluding_vat=unit["price_excluding_vat"],
                vat_rate=unit["vat_rate"],
                unit_vat_amount=unit["vat_amount"],
                unit_price_including_vat=unit["price_including_vat"],
            ))
            record_stock_change(
                product,
                delta=-quantity,
                change_type=STOCK_CHANGE_SALE,
                reference_id=order.id,
                reference_type="order",
                notes=f"Order {order.order_number}",
                user_id=user.id if user else None,
            )

        if voucher and discount > 0:
            voucher_service.record_usage(voucher, order_id=order.id, user_id=owner_id, discount_amount=discount)

        db.session.commit()
        return order

    # Retry covers lock waits and a lost race on the per-day order counter
    try:
        order = run_with_retry(_op, retry_on=(IntegrityError,))
    except DomainError:
        db.session.rollback()
        raise
    current_app.logger.info("Created order %s total=%s", order.order_number, order.total_amount)
    return order.to_dict()


# =============================================================================
# QUERIES
# =============================================================================

def list_orders(
    *,
    user: User,
    own_only: bool = False,
    status: str | None = None,
    payment_status: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Order)

    if own_only or not is_staff(user):
        query = query.filter(Order.user_id == user.id)

    if status:
        if status not in VALID_ORDER_STATUSES:
            raise ValidationError("Invalid order status")
        query = query.filter(Order.status == status)
    if payment_status:
        if payment_status not in VALID_ORDER_PAYMENT_STATUSES:
            raise ValidationError("Invalid payment status")
        query = query.filter(Order.payment_status == payment_status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Order.order_number.ilike(like),
            Order.guest_name.ilike(like),
            Order.guest_email.ilike(like),
            Order.guest_phone.ilike(like),
        ))

    per_page = min(per_page or 20, 100)
    page = max(page or 1, 1)
    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "items": [o.to_dict(include_items=False) for o in orders],
        "count": len(orders),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_order(order_id: int, *, user: User) -> dict:
    order = get_order_or_404(order_id)
    ensure_can_view(order, user)
    return order.to_dict()


def get_order_by_number(order_number: str, *, user: User) -> dict:
    order = db.session.query(Order).filter_by(order_number=order_number).first()
    if not order:
        raise _order_not_found()
    ensure_can_view(order, user)
    return order.to_dict()


def find_guest_order(order_number: str, contact: str) -> Order:
    """Guest order lookup by order number plus the phone or email used at checkout."""
    order_number = clean_text(order_number, "order_number")
    contact = clean_text(contact, "contact")
    if not order_number or not contact:
        raise ValidationError("order_number and phone or email are required")

    order = (
        db.session.query(Order)
        .filter(
            Order.order_number == order_number,
            or_(Order.guest_phone == contact, Order.guest_email == contact.lower()),
        )
        .first()
    )
    if not order:
        raise _order_not_found()
    return order


# =============================================================================
# STATUS CHANGES
# =============================================================================

def update_status(*, order_id: int, status: str) -> dict:
    if status not in VALID_ORDER_STATUSES:
        raise ValidationError("Invalid order status", code="INVALID_STATUS")
    if status == ORDER_STATUS_CANCELLED:
        raise OrderError("Use the cancel endpoint to cancel an order", code="INVALID_STATUS")

    order = get_order_or_404(order_id)
    if order.status == ORDER_STATUS_CANCELLED:
        raise OrderError("Cancelled orders cannot change status", code="ORDER_CANCELLED")

    order.status = status
    now = utcnow()
    if status == ORDER_STATUS_SHIPPED and order.shipped_at is None:
        order.shipped_at = now
    if status == ORDER_STATUS_DELIVERED and order.delivered_at is None:
        order.delivered_at = now

    db.session.commit()
    return order.to_dict()


def mark_paid(order: Order) -> None:
    """Payment confirmed: payment_status -> paid and a pending order -> paid. Caller commits."""
    order.payment_status = ORDER_PAYMENT_PAID
    if order.status == ORDER_STATUS_PENDING:
        order.status = ORDER_STATUS_PAID


def update_payment_status(*, order_id: int, payment_status: str) -> dict:
    if payment_status not in VALID_ORDER_PAYMENT_STATUSES:
        raise ValidationError("Invalid payment status", code="INVALID_PAYMENT_STATUS")

    order = get_order_or_404(order_id)
    if payment_status == ORDER_PAYMENT_PAID:
        mark_paid(order)
    else:
        order.payment_status = payment_status

    db.session.commit()
    return order.to_dict()


def update_tracking_number(*, order_id: int, tracking_number: str) -> dict:
    tracking_number = clean_text(tracking_number, "tracking_number")
    if not tracking_number:
        raise ValidationError("tracking_number is required")
    if len(tracking_number) > 100:
        raise ValidationError("tracking_number exceeds max length 100")

    order = get_order_or_404(order_id)
    order.tracking_number = tracking_number
    db.session.commit()
    return order.to_dict()


def cancel_order(*, order_id: int, user: User | None) -> dict:
    """
    Cancel a pending or paid order and put its stock back.

    Customers may cancel their own orders; staff any order.
    """
    def _op() -> Order:
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise _order_not_found()
        ensure_can_view(order, user)

        if order.status not in CANCELLABLE_ORDER_STATUSES:
            raise OrderError(
                "ไม่สามารถยกเลิกคำสั่งซื้อในสถานะนี้ได้",
                code="ORDER_NOT_CANCELLABLE",
                details={"status": order.status},
            )

        for item in order.items:
            product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
            if product is None:
                continue
            record_stock_change(
                product,
                delta=item.quantity,
                change_type=STOCK_CHANGE_RETURN,
                reference_id=order.id,
                reference_type="order_cancellation",
                notes=f"Order {order.order_number} cancelled",
                user_id=user.id if user else None,
            )

        if order.payment_status == ORDER_PAYMENT_PAID:
            order.payment_status = ORDER_PAYMENT_REFUNDED
        order.status = ORDER_STATUS_CANCELLED
        order.cancelled_at = utcnow()
        order.cancelled_by = user.id if user else None

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Cancelled order %s", order.order_number)
    return order.to_dict()
