# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/app/routes/auth.py
"""
Authentication API routes

- Self-registration creates Employee accounts; other roles come from the CLI
- Session management with bearer tokens
- Password reset: request issues a logged token, redeem sets the password
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError, error_response
from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Register a new Employee account.

    Body: {"name", "email", "phone", "password"}
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            name=data.get("name"),
            email=data.get("email"),
            phone=data.get("phone"),
            password=data.get("password"),
        )
        return jsonify({"user": user.to_dict(), "message": "User registered successfully"}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({
                "error": "email and password required",
                "kind": "validation_error",
                "details": {},
            }), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({
                "error": "Invalid credentials",
                "kind": "authentication_error",
                "details": {},
            }), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500


@auth_bp.post("/reset-password-request")
def reset_password_request_route():
    """Body: {"email"}. The token goes to the server log, not the response."""
    data = request.get_json(silent=True) or {}
    try:
        auth_service.request_password_reset(data.get("email"))
        return jsonify({"message": "Password reset token issued"}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to issue password reset")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500


@auth_bp.post("/reset-password")
def reset_password_route():
    """Body: {"email", "token", "password"}. Revokes existing sessions."""
    data = request.get_json(silent=True) or {}
    try:
        auth_service.reset_password(data.get("email"), data.get("token"), data.get("password"))
        return jsonify({"message": "Password successfully reset"}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reset password")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the presented bearer token."""
    try:
        session_service.revoke_session(g.token)
        return jsonify({"message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
