# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session and resolve the request's Principal.

    Sets the following Flask g attributes:
    - g.principal: immutable Principal passed into every service call
    - g.current_user: the authenticated User row
    - g.session_token: the raw bearer token (for create_staff_account)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated or deleted
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED"}), 401

        context = session_service.get_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token", "code": "UNAUTHENTICATED"}), 401

        g.principal = context.principal
        g.current_user = context.user
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function
