# Overview: Flask API routes for product categories; parses input and returns JSON responses.

"""
Category routes.

Reads are public (storefront filters); writes require admin.
The prefix is validated by category_service so that bad prefixes come back
as INVALID_PREFIX rather than a generic length error.
"""
from flask import Blueprint, request, jsonify

from ..models import ProductCategory
from ..models.auth import ROLE_ADMIN
from ..services import category_service
from ..validation import (
    DomainError,
    ModelValidationPolicy,
    error_response,
    validate_payload,
)
from ..decorators import require_auth, require_role

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "status"},
    required_on_create={"name"},
    ignored_fields={"id", "created_at", "updated_at", "product_count"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


def _split_prefix(payload: dict) -> tuple[dict, dict]:
    payload = dict(payload)
    extra = {}
    if "prefix" in payload:
        extra["prefix"] = payload.pop("prefix")
    return payload, extra


@categories_bp.get("")
def list_categories_route():
    """Query params: status (active | inactive)"""
    try:
        return jsonify(category_service.list_categories(status=request.args.get("status"))), 200
    except DomainError as e:
        return error_response(e)


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    try:
        return jsonify(category_service.get_category(category_id)), 200
    except DomainError as e:
        return error_response(e)


@categories_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_category_route():
    payload, extra = _split_prefix(request.get_json(silent=True) or {})
    try:
        patch = validate_payload(model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=False)
        patch.update(extra)
        created = category_service.create_category(patch=patch)
    except DomainError as e:
        return error_response(e)
    return jsonify(created), 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_category_route(category_id: int):
    """
    Update a category. A prefix change succeeds with a PREFIX_CHANGE_WARNING
    entry in `warnings`; existing SKUs keep their old prefix.
    """
    payload, extra = _split_prefix(request.get_json(silent=True) or {})
    try:
        patch = validate_payload(model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=True)
        patch.update(extra)
        updated, warnings = category_service.update_category(category_id=category_id, patch=patch)
    except DomainError as e:
        return error_response(e)

    body = dict(updated)
    if warnings:
        body["warnings"] = warnings
    return jsonify(body), 200


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_category_route(category_id: int):
    try:
        category_service.delete_category(category_id=category_id)
    except DomainError as e:
        return error_response(e)
    return jsonify({"ok": True}), 200
