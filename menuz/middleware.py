"""
Middleware for Menuz backend routes.

Provides decorators for bearer-token authentication and role checks.

Usage:
    from menuz.middleware import require_auth, require_master

    @bp.route("/api/me")
    @require_auth
    def me():
        # g.user and g.token are available
        return jsonify({"user": g.user["email"]})

    @bp.route("/api/restaurants", methods=["POST"])
    @require_master
    def create_restaurant():
        ...

Note: service imports are lazy (inside functions) to avoid circular import issues.
"""

from functools import wraps
from flask import request, g

from menuz.utils.error_handlers import ApiError


def require_auth(f):
    """
    Decorator that requires a valid bearer session.
    Sets g.user (full user record) and g.token; answers 401 otherwise.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        from menuz.services.identity_service import IdentityService
        from menuz.services.store import get_store

        token = IdentityService.get_bearer_token(request)
        user = IdentityService.validate_session(get_store(), token)
        if not user:
            raise ApiError("unauthorized", 401)

        g.user = user
        g.token = token
        return f(*args, **kwargs)

    return decorated


def require_master(f):
    """
    Decorator that requires a master user.
    Answers 401 without a session and 403 for client users.
    """
    @wraps(f)
    @require_auth
    def decorated(*args, **kwargs):
        from menuz.services.identity_service import ROLE_MASTER

        if g.user.get("role") != ROLE_MASTER:
            raise ApiError("forbidden", 403)
        return f(*args, **kwargs)

    return decorated
