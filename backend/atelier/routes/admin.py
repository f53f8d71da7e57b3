# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

"""
Admin routes for staff user management.

- List users / tailors
- Create staff accounts (privileged creation path)
- Change role / location, delete users (self-protection enforced)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AtelierError
from ..services import auth_service, user_service
from ..decorators import require_auth, bearer_token

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
def list_users_route():
    """
    List staff users, newest first.

    Query params:
    - include_inactive: bool (default false)
    """
    try:
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        users = user_service.list_users(g.principal, include_inactive=include_inactive)
        return jsonify({"users": [u.to_dict() for u in users], "count": len(users)}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/tailors")
@require_auth
def list_tailors_route():
    """Active tailors for assignment pickers. Admins and managers."""
    try:
        tailors = user_service.list_tailors(g.principal)
        return jsonify({"tailors": [t.to_dict() for t in tailors]}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list tailors")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users")
@require_auth
def create_user_route():
    """
    Create a staff account.

    Request body:
    - email, password, name: str (required)
    - role: admin | manager | tailor (default from config)
    - location: str (default from config)
    """
    try:
        data = request.get_json(silent=True) or {}
        user_id = auth_service.create_staff_account(bearer_token(), data)
        return jsonify({"id": user_id}), 201
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create staff account")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/users/<int:user_id>/role")
@require_auth
def change_role_route(user_id: int):
    """Request body: {"role": "admin" | "manager" | "tailor"}"""
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.change_role(g.principal, user_id, data.get("role"))
        return jsonify({"user": user.to_dict()}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change user role")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/users/<int:user_id>/location")
@require_auth
def change_location_route(user_id: int):
    """Request body: {"location": "Unit 2"} (null or blank clears it)"""
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.change_location(g.principal, user_id, data.get("location"))
        return jsonify({"user": user.to_dict()}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change user location")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/users/<int:user_id>")
@require_auth
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(g.principal, user_id)
        return jsonify({"message": "User deleted"}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500
