# Overview: Flask API routes for login, logout and token validation.

# backend/app/routes/auth.py
"""
Authentication API routes

- Login returns an opaque bearer token (stored server-side as a hash)
- Logout revokes the presented token
- Self-registration is not offered: admins create users
"""

from flask import Blueprint, request, jsonify, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth
from ..http_errors import json_error


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body: {"username": "...", "password": "..."}

    Returns:
        200: {"user", "token", "session"}
        400: Missing credentials
        401: Invalid credentials
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "Username and password are required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            # Generic message: do not confirm which usernames exist
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception as e:
        return json_error(e, "login user")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the presented bearer token."""
    try:
        session_service.revoke_session(g.auth_token, reason="User logout")
        return jsonify({"message": "Logout successful"}), 200
    except Exception as e:
        return json_error(e, "logout user")


@auth_bp.post("/validate")
@require_auth
def validate_route():
    """Frontend check that the stored token is still valid."""
    return jsonify({"user": g.current_user.to_dict(), "message": "Session valid"}), 200
