# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .models import UserRole
from .services.user_service import get_user_by_token


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the active User owning the token. Returns 401 when
    the header is missing, the token is unknown, or the user is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        user = get_user_by_token(token)
        if user is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: UserRole):
    """
    Restrict a route to the given roles. SUPER_ADMIN always passes.

    Must be stacked under @require_auth.
    """
    allowed = {UserRole(r) for r in roles} | {UserRole.SUPER_ADMIN}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if user.role not in allowed:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": sorted(r.value for r in allowed),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator
