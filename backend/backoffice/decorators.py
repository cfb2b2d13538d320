# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _establish_context(token: str) -> bool:
    context = session_service.validate_session(token)
    if not context:
        return False
    g.current_user = context.user
    g.session_context = context
    return True


def current_user_or_none():
    return getattr(g, "current_user", None)


def require_auth(f):
    """
    Require a valid session token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or idle token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401

        if not _establish_context(token):
            return jsonify({"error": "Invalid or expired token", "code": "INVALID_TOKEN"}), 401

        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """
    Attach the user when a valid token is sent; otherwise continue as a guest.

    Used by storefront endpoints that serve both guests and customers
    (order creation, voucher validation).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if token:
            _establish_context(token)
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require the authenticated user to have one of `roles`.

    Must be stacked below @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = current_user_or_none()
            if user is None:
                return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401

            if user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "code": "FORBIDDEN",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
