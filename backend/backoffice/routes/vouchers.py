# Overview: Flask API routes for vouchers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..models import Voucher
from ..models.auth import ROLE_ADMIN
from ..money import to_decimal
from ..services import voucher_service
from ..validation import (
    MAX_PRICE,
    DomainError,
    ModelValidationPolicy,
    error_response,
    validate_payload,
)
from ..decorators import current_user_or_none, optional_auth, require_auth, require_role

VOUCHER_POLICY = ModelValidationPolicy(
    writable_fields={
        "code",
        "name",
        "description",
        "discount_type",
        "discount_value",
        "minimum_order_amount",
        "max_discount_amount",
        "usage_limit",
        "usage_limit_per_customer",
        "start_date",
        "end_date",
        "status",
    },
    required_on_create={"code", "name", "discount_type", "discount_value", "start_date", "end_date"},
    ignored_fields={"id", "usage_count", "created_at", "updated_at"},
)

vouchers_bp = Blueprint("vouchers", __name__, url_prefix="/api/vouchers")


@vouchers_bp.post("/validate")
@optional_auth
def validate_voucher_route():
    """
    Check a code against a subtotal (ex VAT) before checkout.

    Request body: code, subtotal
    Returns {valid, discount_amount, voucher} or the VOUCHER_* error.
    """
    payload = request.get_json(silent=True) or {}
    code = payload.get("code")
    if not code:
        return jsonify({"error": "code is required", "code": "VALIDATION_ERROR"}), 400

    try:
        subtotal = to_decimal(payload.get("subtotal", 0))
    except ValueError:
        return jsonify({"error": "subtotal must be a number", "code": "VALIDATION_ERROR"}), 400
    if subtotal < 0 or subtotal > MAX_PRICE:
        return jsonify({
            "error": f"subtotal must be between 0 and {MAX_PRICE:,}",
            "code": "VALIDATION_ERROR",
        }), 400

    user = current_user_or_none()
    try:
        result = voucher_service.check_voucher(code, subtotal, user.id if user else None)
    except DomainError as e:
        return error_response(e)
    return jsonify(result), 200


@vouchers_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_vouchers_route():
    """Query params: status, search (code or name)"""
    result = voucher_service.list_vouchers(
        status=request.args.get("status"),
        search=request.args.get("search"),
    )
    return jsonify(result), 200


@vouchers_bp.get("/<int:voucher_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_voucher_route(voucher_id: int):
    try:
        return jsonify(voucher_service.get_voucher_or_404(voucher_id).to_dict()), 200
    except DomainError as e:
        return error_response(e)


@vouchers_bp.get("/<int:voucher_id>/usage")
@require_auth
@require_role(ROLE_ADMIN)
def voucher_usage_route(voucher_id: int):
    try:
        return jsonify(voucher_service.get_usage_history(voucher_id)), 200
    except DomainError as e:
        return error_response(e)


@vouchers_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_voucher_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Voucher, payload=payload, policy=VOUCHER_POLICY, partial=False)
        created = voucher_service.create_voucher(patch=patch)
    except DomainError as e:
        return error_response(e)
    return jsonify(created), 201


@vouchers_bp.put("/<int:voucher_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_voucher_route(voucher_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Voucher, payload=payload, policy=VOUCHER_POLICY, partial=True)
        updated = voucher_service.update_voucher(voucher_id=voucher_id, patch=patch)
    except DomainError as e:
        return error_response(e)
    return jsonify(updated), 200


@vouchers_bp.delete("/<int:voucher_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_voucher_route(voucher_id: int):
    try:
        voucher_service.delete_voucher(voucher_id=voucher_id)
    except DomainError as e:
        return error_response(e)
    return jsonify({"ok": True}), 200
