# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object
    - g.token: The plaintext bearer token (for logout)

    Returns 401 if the header is missing, or the token is invalid, expired
    or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({
                "error": "Authentication required",
                "kind": "authentication_error",
                "details": {},
            }), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({
                "error": "Invalid or expired token",
                "kind": "authentication_error",
                "details": {},
            }), 401

        g.current_user = context.user
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated user to hold one of `roles`.

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({
                    "error": "Authentication required",
                    "kind": "authentication_error",
                    "details": {},
                }), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "kind": "permission_denied",
                    "details": {"required_roles": list(roles), "role": g.current_user.role},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
