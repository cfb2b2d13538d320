# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/backoffice/routes/auth.py
"""
Authentication API routes

- Customers self-register from the storefront
- Admin/staff accounts are created via CLI (flask users create)
- Session management with token-based auth
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..validation import DomainError, error_response
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _login_response(user, status: int):
    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }), status


@auth_bp.post("/register")
def register_route():
    """
    Customer self-registration. Returns the new user and a session token.

    Request body: email, password, first_name, last_name, phone (optional, 10 digits)
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.register_customer(data)
        current_app.logger.info("Registered customer %s", user.email)
        return _login_response(user, 201)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required", "code": "VALIDATION_ERROR"}), 400

    try:
        user = auth_service.authenticate(email, password)
        return _login_response(user, 200)
    except DomainError as e:
        current_app.logger.info("Login failed for %s: %s", email, e.code)
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return jsonify({"error": "Authorization header required", "code": "UNAUTHORIZED"}), 401

    token = auth_header.split(" ", 1)[1]
    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"error": "Invalid or expired token", "code": "INVALID_TOKEN"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": g.current_user.to_dict(),
        "session": g.session_context.session.to_dict(),
    }), 200
