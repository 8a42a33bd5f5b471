"""
Auth Routes Blueprint
---------------------
Bearer-token login for admin users.

Endpoints:
- POST /api/login   {email, password} -> {token, user}
- POST /api/logout  revokes the presented token
- GET  /api/me      current user
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from menuz.middleware import require_auth
from menuz.services.identity_service import IdentityService
from menuz.services.store import get_store
from menuz.utils.error_handlers import ApiError, json_body
from menuz.utils.helpers import log_event

bp = Blueprint("auth", __name__)


@bp.route("/login", methods=["POST"])
def login():
    body = json_body()
    log_event("auth/login:incoming", body)
    store = get_store()

    user = IdentityService.authenticate(store, body.get("email"), body.get("password"))
    if not user:
        raise ApiError("invalid_credentials", 401)

    token = IdentityService.create_session(store, user["id"])
    print(f"[AUTH] Login ok for {user['email']} ({user['role']})")
    return jsonify({"token": token, "user": IdentityService.public_user(user)})


@bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    IdentityService.revoke_session(get_store(), g.token)
    return jsonify({"ok": True})


@bp.route("/me", methods=["GET"])
@require_auth
def me():
    return jsonify({"user": IdentityService.public_user(g.user)})
