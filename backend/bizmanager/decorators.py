# Overview: Request decorators that resolve the acting principal for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import user_service

PRINCIPAL_HEADER = "X-User-Id"


def require_principal(f):
    """
    Resolve the acting user from the X-User-Id header.

    The identity provider in front of this API authenticates the caller and
    forwards its user id; this decorator only loads the profile.

    Sets g.current_user. Returns 401 if the header is missing or malformed,
    403 if the user is unknown or not approved.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(PRINCIPAL_HEADER, "").strip()
        if not raw.isdigit():
            return jsonify({"error": "Principal required"}), 401

        user = user_service.get_user(int(raw))
        if user is None or not user.approved:
            return jsonify({"error": "Principal not allowed"}), 403

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Restrict a route to principals holding one of `roles`."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Principal required"}), 401
            if user.role not in roles:
                return jsonify({"error": "Forbidden"}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
