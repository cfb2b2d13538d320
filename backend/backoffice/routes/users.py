# Overview: Flask API routes for the signed-in user's own profile, address book and orders.

from flask import Blueprint, request, jsonify, g

from ..models import Address
from ..services import address_service, auth_service, order_service, session_service
from ..validation import DomainError, ModelValidationPolicy, error_response, validate_payload
from ..decorators import require_auth


ADDRESS_POLICY = ModelValidationPolicy(
    writable_fields=set(address_service.ADDRESS_MUTABLE_FIELDS),
    required_on_create={
        "recipient_name",
        "phone",
        "address_line1",
        "subdistrict",
        "district",
        "province",
        "postal_code",
    },
    ignored_fields={"id", "user_id", "created_at", "updated_at"},
)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/profile")
@require_auth
def get_profile_route():
    return jsonify(g.current_user.to_dict()), 200


@users_bp.put("/profile")
@require_auth
def update_profile_route():
    """Update first_name / last_name / phone."""
    payload = request.get_json(silent=True) or {}
    try:
        user = auth_service.update_profile(g.current_user, payload)
    except DomainError as e:
        return error_response(e)
    return jsonify(user.to_dict()), 200


@users_bp.put("/password")
@require_auth
def change_password_route():
    """
    Change own password. Other sessions of the user are revoked; the
    current one stays valid.
    """
    payload = request.get_json(silent=True) or {}
    try:
        auth_service.change_password(
            g.current_user,
            current_password=payload.get("current_password") or "",
            new_password=payload.get("new_password") or "",
        )
    except DomainError as e:
        return error_response(e)

    session_service.revoke_all_user_sessions(
        g.current_user.id,
        reason="Password changed",
        keep_session_id=g.session_context.session.id,
    )
    return jsonify({"message": "Password updated"}), 200


@users_bp.get("/orders")
@require_auth
def my_orders_route():
    """Own order history (staff included: only orders placed under their account)."""
    try:
        result = order_service.list_orders(
            user=g.current_user,
            own_only=True,
            status=request.args.get("status"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(result), 200


# =============================================================================
# ADDRESS BOOK
# =============================================================================

@users_bp.get("/addresses")
@require_auth
def list_addresses_route():
    """Default address first, then newest."""
    return jsonify(address_service.list_addresses(g.current_user.id)), 200


@users_bp.post("/addresses")
@require_auth
def create_address_route():
    """
    Request body: recipient_name, phone (10 digits), address_line1, address_line2,
    subdistrict, district, province, postal_code (5 digits),
    address_type (shipping | billing), is_default
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Address, payload=payload, policy=ADDRESS_POLICY, partial=False)
        address = address_service.create_address(user_id=g.current_user.id, patch=patch)
    except DomainError as e:
        return error_response(e)
    return jsonify(address), 201


@users_bp.put("/addresses/<int:address_id>")
@require_auth
def update_address_route(address_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Address, payload=payload, policy=ADDRESS_POLICY, partial=True)
        address = address_service.update_address(
            user_id=g.current_user.id,
            address_id=address_id,
            patch=patch,
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(address), 200


@users_bp.delete("/addresses/<int:address_id>")
@require_auth
def delete_address_route(address_id: int):
    try:
        address_service.delete_address(user_id=g.current_user.id, address_id=address_id)
    except DomainError as e:
        return error_response(e)
    return jsonify({"ok": True}), 200
