# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/backoffice/routes/products.py
"""
Product management routes.

SECURITY:
- Catalogue reads (list, detail) are public
- Stock views and stock movements require admin or staff
- Create / update / delete / images / SKU preview require admin
"""
from flask import Blueprint, request, jsonify, g

from ..models import Product
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..money import to_decimal
from ..services import products_service, sku_service
from ..validation import (
    DomainError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    error_response,
    validate_payload,
)
from ..decorators import require_auth, require_role

# Server-computed fields the admin UI may echo back
READ_ONLY_FIELDS = {
    "id",
    "vat_amount",
    "price_including_vat",
    "image_path",
    "category_name",
    "is_low_stock",
    "created_at",
    "updated_at",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "description",
        "defects",
        "category_id",
        "price_excluding_vat",
        "vat_rate",
        "cost_price_excluding_vat",
        "stock_quantity",
        "low_stock_threshold",
        "status",
    },
    required_on_create={"name", "price_excluding_vat"},
    ignored_fields=READ_ONLY_FIELDS,
)

# stock_quantity changes go through POST /<id>/stock so they are recorded
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_CREATE_POLICY.writable_fields - {"stock_quantity"},
    ignored_fields=READ_ONLY_FIELDS,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _price_arg(name: str):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return to_decimal(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number")


@products_bp.get("")
def list_products():
    """
    List products with search, filters and pagination.

    Query params:
    - search: matches name, description or SKU
    - category_id, status, min_price, max_price
    - sort: name | price | created_at | stock_quantity | sku; order: asc | desc
    - page (1-indexed), per_page (default 20, max 100)
    """
    try:
        result = products_service.list_products(
            search=request.args.get("search"),
            category_id=request.args.get("category_id", type=int),
            status=request.args.get("status"),
            min_price=_price_arg("min_price"),
            max_price=_price_arg("max_price"),
            sort=request.args.get("sort"),
            order=request.args.get("order"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(result), 200


@products_bp.get("/alerts/low-stock")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def low_stock_route():
    return jsonify(products_service.list_low_stock_products()), 200


@products_bp.post("/generate-sku")
@require_auth
@require_role(ROLE_ADMIN)
def generate_sku_route():
    """Preview the next SKU for a category (nothing is reserved)."""
    payload = request.get_json(silent=True) or {}
    category_id = payload.get("category_id")
    if category_id is not None and (isinstance(category_id, bool) or not isinstance(category_id, int)):
        return jsonify({"error": "category_id must be an integer", "code": "VALIDATION_ERROR"}), 400

    try:
        result = sku_service.generate_sku(category_id)
    except DomainError as e:
        return error_response(e)
    return jsonify(result), 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product(product_id)), 200
    except DomainError as e:
        return error_response(e)


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_product_route():
    """
    Create a new product. SKU is optional and generated from the category
    prefix when omitted.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch=patch, user_id=g.current_user.id)
    except DomainError as e:
        return error_response(e)

    return jsonify(created), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_product_route(product_id: int):
    """Update a product. Sending a different sku fails with SKU_IMMUTABLE."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except DomainError as e:
        return error_response(e)

    return jsonify(updated), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: int):
    try:
        product = products_service.delete_product(product_id=product_id)
    except DomainError as e:
        return error_response(e)
    return jsonify({"ok": True, "product": product}), 200


@products_bp.post("/<int:product_id>/stock")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_stock_route(product_id: int):
    """
    Record a stock movement.

    Request body: quantity, change_type (purchase|sale|adjustment|return|damage|initial), notes
    """
    payload = request.get_json(silent=True) or {}
    try:
        result = products_service.update_stock(
            product_id=product_id,
            quantity=payload.get("quantity"),
            change_type=payload.get("change_type"),
            notes=payload.get("notes"),
            user_id=g.current_user.id,
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(result), 200


@products_bp.get("/<int:product_id>/stock-history")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def stock_history_route(product_id: int):
    try:
        result = products_service.get_stock_history(
            product_id,
            limit=request.args.get("limit", default=50, type=int),
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(result), 200


@products_bp.post("/<int:product_id>/image")
@require_auth
@require_role(ROLE_ADMIN)
def upload_image_route(product_id: int):
    """Multipart upload, field `image`. Stored as /uploads/products/{SKU}.{ext}."""
    try:
        product = products_service.upload_product_image(
            product_id=product_id,
            file=request.files.get("image"),
        )
    except DomainError as e:
        return error_response(e)
    return jsonify(product), 200


@products_bp.delete("/<int:product_id>/image")
@require_auth
@require_role(ROLE_ADMIN)
def delete_image_route(product_id: int):
    try:
        product = products_service.delete_product_image(product_id=product_id)
    except DomainError as e:
        return error_response(e)
    return jsonify(product), 200
