# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

"""
Order routes.

- POST /api/orders works for guests and signed-in customers (optional auth)
- Customers see and cancel their own orders
- Staff/admin see every order and drive status, payment status and tracking
"""
from flask import Blueprint, request, jsonify, g

from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import order_service
from ..validation import DomainError, error_response
from ..decorators import current_user_or_none, optional_auth, require_auth, require_role

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@optional_auth
def create_order_route():
    """
    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}],
        "guest_name", "guest_email", "guest_phone": required when not signed in,
        "shipping_address", "shipping_subdistrict", "shipping_district",
        "shipping_province", "shipping_postal_code",
        "shipping_cost", "voucher_code", "notes", "source_platform"
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(payload=payload, user=current_user_or_none())
    except DomainError as e:
        return error_response(e)
    return jsonify(order), 201


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    Query params: status, payment_status, search (staff only), page, per_page
    """
    try:
        result = order_service.list_orders(
            user=g.current_user,
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
            search=request.args.get("search") if order_service.is_staff(g.current_user) else None,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(result), 200


@orders_bp.post("/guest-lookup")
def guest_lookup_route():
    """Request body: order_number plus phone or email used at checkout."""
    payload = request.get_json(silent=True) or {}
    contact = payload.get("phone") or payload.get("email")
    try:
        order = order_service.find_guest_order(payload.get("order_number"), contact)
    except DomainError as e:
        return error_response(e)
    return jsonify(order.to_dict()), 200


@orders_bp.get("/number/<order_number>")
@require_auth
def get_order_by_number_route(order_number: str):
    try:
        return jsonify(order_service.get_order_by_number(order_number, user=g.current_user)), 200
    except DomainError as e:
        return error_response(e)


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order(order_id, user=g.current_user)), 200
    except DomainError as e:
        return error_response(e)


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_status_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.update_status(order_id=order_id, status=payload.get("status"))
    except DomainError as e:
        return error_response(e)
    return jsonify(order), 200


@orders_bp.put("/<int:order_id>/payment-status")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_payment_status_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.update_payment_status(
            order_id=order_id,
            payment_status=payload.get("payment_status"),
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(order), 200


@orders_bp.put("/<int:order_id>/tracking")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_tracking_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.update_tracking_number(
            order_id=order_id,
            tracking_number=payload.get("tracking_number"),
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(order), 200


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    """Owner or staff/admin; only pending or paid orders. Stock is restored."""
    try:
        order = order_service.cancel_order(order_id=order_id, user=g.current_user)
    except DomainError as e:
        return error_response(e)
    return jsonify(order), 200
