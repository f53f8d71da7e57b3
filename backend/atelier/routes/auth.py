# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes.

Staff accounts are created only by admins (POST /api/admin/users or the
CLI); there is no self-registration.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.identity_service import principal_from_user
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password and create a session token.

    The token must be sent as "Authorization: Bearer <token>" on every
    protected route.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required", "code": "VALIDATION_ERROR"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(email, password)

        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource="auth",
                action="login",
                reason=f"Invalid credentials for {str(email).strip().lower()}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials", "code": "UNAUTHENTICATED"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )

        return jsonify({
            "user": user.to_dict(),
            "principal": principal_from_user(user).to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the presented session token."""
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required", "code": "UNAUTHENTICATED"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token", "code": "UNAUTHENTICATED"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout-all")
@require_auth
def logout_all_route():
    """Revoke every session of the current user (all devices)."""
    try:
        count = session_service.revoke_all_user_sessions(g.principal.user_id, reason="User logout (all devices)")
        return jsonify({"message": "Logged out everywhere", "revoked": count}), 200
    except Exception:
        current_app.logger.exception("Failed to revoke user sessions")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user and the principal the access policy evaluates."""
    return jsonify({
        "user": g.current_user.to_dict(),
        "principal": g.principal.to_dict(),
    }), 200
