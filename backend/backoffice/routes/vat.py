# Overview: Flask API route for the public VAT calculator.

from flask import Blueprint, request, jsonify

from ..services import vat_service
from ..validation import DomainError, error_response

vat_bp = Blueprint("vat", __name__, url_prefix="/api/vat")


@vat_bp.get("/calculate")
def calculate_route():
    """
    Query params:
    - amount: required
    - rate: VAT percent (default 7)
    - mode: exclusive (amount excludes VAT, default) | inclusive
    """
    amount = request.args.get("amount")
    if amount in (None, ""):
        return jsonify({"error": "amount is required", "code": "INVALID_AMOUNT"}), 400

    try:
        result = vat_service.breakdown(
            amount,
            request.args.get("rate") or None,
            request.args.get("mode") or vat_service.MODE_EXCLUSIVE,
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(vat_service.serialize(result)), 200
