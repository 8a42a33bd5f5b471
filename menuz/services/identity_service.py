"""
Identity Service - Manages admin users and bearer sessions.

- Passwords are stored as werkzeug hashes, never in clear
- Tokens are handed out once; only their sha256 is persisted
- Expired sessions are swept on every login and on every validation

Usage:
    from menuz.services.identity_service import IdentityService

    user = IdentityService.authenticate(store, email, password)
    token = IdentityService.create_session(store, user["id"])
    user = IdentityService.validate_session(store, token)
"""

from typing import Optional, Dict, Any
import secrets
import uuid

from werkzeug.security import check_password_hash, generate_password_hash

from menuz.config import config
from menuz.services.store import BaseStore
from menuz.utils.error_handlers import ApiError
from menuz.utils.helpers import now_s, sha256_hex

ROLE_MASTER = "master"
ROLE_CLIENT = "client"
ROLES = (ROLE_MASTER, ROLE_CLIENT)


class IdentityService:
    """Service for managing users and sessions."""

    @staticmethod
    def hash_for_storage(value: str) -> str:
        """Hash a bearer token before it touches the store."""
        return sha256_hex(value)

    @staticmethod
    def public_user(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """User dict safe to return to a client (no password hash)."""
        if not user:
            return None
        return {
            "id": user["id"],
            "email": user["email"],
            "role": user["role"],
            "restaurantId": user.get("restaurantId"),
        }

    # ─────────────────────────────────────────────────────────────
    # Users
    # ─────────────────────────────────────────────────────────────
    @staticmethod
    def create_user(
        store: BaseStore,
        email: str,
        password: str,
        role: str = ROLE_CLIENT,
        restaurant_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            raise ValueError("a valid email is required")
        if not password:
            raise ValueError("password is required")
        if role not in ROLES:
            raise ValueError(f"role must be one of {', '.join(ROLES)}")
        if role == ROLE_CLIENT and not restaurant_id:
            raise ValueError("client users need a restaurant")
        if store.get_user_by_email(email):
            raise ValueError(f"user {email} already exists")

        user = {
            "id": f"u-{uuid.uuid4()}",
            "email": email,
            "role": role,
            "restaurantId": restaurant_id if role == ROLE_CLIENT else None,
            "passwordHash": generate_password_hash(password),
        }
        store.create_user(user)
        print(f"[AUTH] Created {role} user {email}")
        return user

    @staticmethod
    def authenticate(store: BaseStore, email: str, password: str) -> Optional[Dict[str, Any]]:
        """User for matching credentials, else None."""
        user = store.get_user_by_email((email or "").strip().lower())
        if not user or not password:
            return None
        if not check_password_hash(user.get("passwordHash") or "", password):
            return None
        return user

    @staticmethod
    def can_access_restaurant(user: Optional[Dict[str, Any]], restaurant_id: Optional[str]) -> bool:
        """Masters reach every restaurant; clients only their own."""
        if not user or not restaurant_id:
            return False
        if user.get("role") == ROLE_MASTER:
            return True
        return user.get("role") == ROLE_CLIENT and user.get("restaurantId") == restaurant_id

    @staticmethod
    def require_restaurant_access(user: Optional[Dict[str, Any]], restaurant_id: Optional[str]) -> None:
        if not IdentityService.can_access_restaurant(user, restaurant_id):
            raise ApiError("forbidden", 403)

    # ─────────────────────────────────────────────────────────────
    # Sessions
    # ─────────────────────────────────────────────────────────────
    @staticmethod
    def cleanup_expired_sessions(store: BaseStore) -> int:
        removed = store.sweep_sessions(now_s())
        if removed:
            print(f"[AUTH] Swept {removed} expired session(s)")
        return removed

    @staticmethod
    def create_session(store: BaseStore, user_id: str) -> str:
        """Start a session and return the plain token (shown to the client once)."""
        IdentityService.cleanup_expired_sessions(store)
        token = secrets.token_urlsafe(32)
        created = now_s()
        store.create_session(
            IdentityService.hash_for_storage(token),
            user_id,
            expires_at=created + config.SESSION_TTL_SECONDS,
            created_at=created,
        )
        return token

    @staticmethod
    def validate_session(store: BaseStore, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """User behind a live token, else None."""
        if not token:
            return None
        IdentityService.cleanup_expired_sessions(store)
        session = store.get_session(IdentityService.hash_for_storage(token))
        if not session or int(session.get("expiresAt") or 0) <= now_s():
            return None
        return store.get_user(session["userId"])

    @staticmethod
    def revoke_session(store: BaseStore, token: Optional[str]) -> None:
        if token:
            store.delete_session(IdentityService.hash_for_storage(token))

    @staticmethod
    def get_bearer_token(request) -> Optional[str]:
        header = request.headers.get("Authorization", "")
        scheme, _, value = header.partition(" ")
        if scheme.lower() != "bearer" or not value.strip():
            return None
        return value.strip()
