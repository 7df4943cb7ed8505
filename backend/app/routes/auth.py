# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/app/routes/auth.py
"""
Authentication API routes

- Customers self-register; admins are created from the CLI
- Session management with bearer tokens (see session_service)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import AuthError
from ..decorators import require_auth, bearer_token
from ..validation import ValidationError, json_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_response(user, status_code: int, message: str):
    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "message": message,
    }), status_code


@auth_bp.post("/register")
def register_route():
    """
    Create a customer account and log it in.

    Request body:
    {
        "email": "buyer@example.com",
        "password": "...",
        "full_name": "...", "phone": "...", "company_name": "...",
        "country": "...", "city": "..."   (all optional)
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    profile = {k: data.get(k) for k in auth_service.PROFILE_FIELDS if k in data}

    try:
        user = auth_service.create_user(email=email, password=password, profile=profile)
        return _session_response(user, 201, "Registration successful")
    except AuthError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = json_object(request.get_json(silent=True))
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        return _session_response(user, 200, "Login successful")

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.patch("/me")
@require_auth
def update_me_route():
    """Update profile fields (full_name, phone, company_name, country, city)."""
    data = request.get_json(silent=True)
    try:
        user = auth_service.update_profile(g.current_user, data)
        return jsonify({"user": user.to_dict()}), 200
    except AuthError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500
