# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify

from .errors import UnauthorizedError
from .services import session_service


def require_admin(f):
    """
    Require an admin bearer token and hand the resolved Actor to the view.

    The view receives `actor` as a keyword argument; identity is never read
    from request globals.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - Admin account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": UnauthorizedError("Authentication required").to_dict()}), 401

        token = auth_header.split(" ", 1)[1].strip()
        actor = session_service.validate_session(token)

        if actor is None:
            return jsonify({"error": UnauthorizedError("Invalid or expired token").to_dict()}), 401

        kwargs["actor"] = actor
        return f(*args, **kwargs)

    return decorated_function
