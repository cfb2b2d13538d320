# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/backoffice/routes/payments.py
"""
Payment API routes.

- Slip upload is public so guest buyers can pay by bank transfer
- Recording, listing and verifying payments requires staff or admin
- Deleting a payment requires admin
- PromptPay QR and receipts: owner or staff by token, guests by ?phone= or ?email=
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import payment_service, promptpay_service, receipt_service
from ..validation import DomainError, error_response
from ..decorators import current_user_or_none, optional_auth, require_auth, require_role


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_payment_route():
    """
    Request body: order_id (or order_number), payment_method, amount, notes
    """
    payload = request.get_json(silent=True) or {}
    try:
        payment = payment_service.create_payment(payload=payload)
    except DomainError as e:
        return error_response(e)
    return jsonify(payment), 201


@payments_bp.post("/upload-slip")
def upload_slip_route():
    """
    Multipart form: slip_image (file), order_id or order_number.
    """
    order_id = request.form.get("order_id", type=int)
    order_number = request.form.get("order_number")
    try:
        payment = payment_service.upload_slip(
            file=request.files.get("slip_image"),
            order_id=order_id,
            order_number=order_number,
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to store payment slip")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(payment), 200


@payments_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_payments_route():
    """Query params: status, payment_method, order_id, page, per_page"""
    try:
        result = payment_service.list_payments(
            status=request.args.get("status"),
            payment_method=request.args.get("payment_method"),
            order_id=request.args.get("order_id", type=int),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(result), 200


@payments_bp.get("/order/<int:order_id>")
@optional_auth
def get_payment_for_order_route(order_id: int):
    """
    Owner and staff use their token; guests pass ?phone= or ?email= matching the order.
    """
    user = current_user_or_none()
    contact = request.args.get("phone") or request.args.get("email")
    if user is None and not contact:
        return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401

    try:
        payment = payment_service.get_payment_for_order(order_id, user=user, contact=contact)
    except DomainError as e:
        return error_response(e)
    return jsonify(payment), 200


@payments_bp.get("/promptpay/<int:order_id>")
@optional_auth
def promptpay_route(order_id: int):
    """QR payload (and PNG data URL) for the order total plus the shop bank account."""
    user = current_user_or_none()
    contact = request.args.get("phone") or request.args.get("email")
    if user is None and not contact:
        return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401

    try:
        result = promptpay_service.promptpay_for_order(order_id, user=user, contact=contact)
    except DomainError as e:
        return error_response(e)
    return jsonify(result), 200


@payments_bp.get("/receipt/<receipt_number>")
@optional_auth
def receipt_route(receipt_number: str):
    """Receipt with the VAT breakdown of a verified payment."""
    user = current_user_or_none()
    contact = request.args.get("phone") or request.args.get("email")
    if user is None and not contact:
        return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401

    try:
        receipt = receipt_service.get_receipt(receipt_number, user=user, contact=contact)
    except DomainError as e:
        return error_response(e)
    return jsonify(receipt), 200


@payments_bp.get("/<int:payment_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def get_payment_route(payment_id: int):
    try:
        return jsonify(payment_service.get_payment(payment_id)), 200
    except DomainError as e:
        return error_response(e)


@payments_bp.post("/<int:payment_id>/confirm")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def confirm_payment_route(payment_id: int):
    """
    Request body:
    - {"verified": true}
    - {"verified": false, "rejection_reason": "..."}
    """
    payload = request.get_json(silent=True) or {}
    try:
        payment = payment_service.confirm_payment(
            payment_id=payment_id,
            verified=payload.get("verified"),
            rejection_reason=payload.get("rejection_reason"),
            user=g.current_user,
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(payment), 200


@payments_bp.delete("/<int:payment_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_payment_route(payment_id: int):
    try:
        payment_service.delete_payment(payment_id=payment_id)
    except DomainError as e:
        return error_response(e)
    return jsonify({"ok": True}), 200
