# Overview: Request decorators for API routes (authentication and role checks).

from functools import wraps
from flask import jsonify, g

from .identity import current_profile


def require_auth(f):
    """
    Require a signed-in user with a portal profile.

    Sets g.current_profile. Returns 401 when the identity header is missing
    or does not match any profile.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        profile = current_profile()
        if profile is None:
            return jsonify({"error": "Authentication required"}), 401

        g.current_profile = profile
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require one of the given roles. Must be applied after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            profile = getattr(g, "current_profile", None)
            if profile is None:
                return jsonify({"error": "Authentication required"}), 401

            if profile.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_role": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator
