# Overview: Flask API routes for user profile and admin user management.

from flask import Blueprint, request, jsonify, g

from ..services import auth_service
from ..decorators import require_auth, require_admin
from ..http_errors import json_error


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/profile")
@require_auth
def profile_route():
    return jsonify({"user": g.current_user.to_dict()})


@users_bp.post("/register")
@require_auth
@require_admin
def register_user_route():
    """
    Create a user account (admin only).

    Request body:
    {
        "username": "clerk1",
        "password": "Str0ng!pass",
        "role": "USER"  (optional, USER or ADMIN)
    }

    Returns:
        201: User created
        400: Invalid input or weak password
        409: Username taken
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            username=data.get("username"),
            password=data.get("password"),
            role=data.get("role"),
        )
        return jsonify({"user": user.to_dict(), "message": "User registered successfully"}), 201
    except Exception as e:
        return json_error(e, "register user")


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    """
    Query params:
    - page, limit: pagination
    - sort_by: username | role | created_at | updated_at (default created_at)
    - sort_order: asc | desc (default desc)
    """
    try:
        result = auth_service.list_users(
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            sort_by=request.args.get("sort_by"),
            sort_order=request.args.get("sort_order"),
        )
        return jsonify(result)
    except Exception as e:
        return json_error(e, "list users")


@users_bp.put("/promote/<int:user_id>")
@require_auth
@require_admin
def promote_user_route(user_id: int):
    try:
        user = auth_service.promote_user(user_id)
        return jsonify({
            "user": user.to_dict(),
            "message": f"User {user.username} promoted to admin successfully",
        })
    except Exception as e:
        return json_error(e, "promote user")
