"""
Municipal Project Management System
Authentication & Authorization Middleware.

Provides:
    - Session-based authentication (Flask signed cookie, ``session["user_id"]``)
    - The acting identity for the current request (``current_actor()``)
    - Role-based access control decorator
    - CSRF mitigation for state-changing requests (JSON Content-Type)

Security model:
    - All /api/v1/* endpoints require a logged-in user, except health,
      login and signup.
    - Admin-only endpoints (archive, role management) require the
      'Admin' role.

Configuration:
    API_AUTH_ENABLED  — "false" disables enforcement (development only);
                        requests then act as the anonymous System identity.
"""

import functools
import logging
import os
from dataclasses import dataclass

from flask import current_app, g, jsonify, request, session

from app.models import db

logger = logging.getLogger(__name__)

ADMIN_ROLE = "Admin"

# Paths reachable without a session.
_PUBLIC_PATHS = frozenset({
    "/api/v1/health",
    "/api/v1/auth/login",
    "/api/v1/auth/signup",
})


@dataclass(frozen=True)
class Actor:
    """Identity performing an action.  ``id`` is None for the system."""

    id: str | None
    name: str
    roles: tuple = ()

    @property
    def is_system(self) -> bool:
        return self.id is None


SYSTEM_ACTOR = Actor(id=None, name="System")


def _is_auth_enabled() -> bool:
    """Check whether authentication is enabled (env var or app config)."""
    env_val = os.getenv("API_AUTH_ENABLED", "")
    if env_val:
        return env_val.lower() not in ("false", "0", "no", "off")
    try:
        return str(current_app.config.get("API_AUTH_ENABLED", "true")).lower() not in ("false", "0", "no", "off")
    except RuntimeError:
        # Outside app context
        return True


def _load_session_user():
    """Return the active User bound to the session cookie, or None."""
    from app.models.auth import User

    user_id = session.get("user_id")
    if not user_id:
        return None
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        session.pop("user_id", None)
        return None
    return user


def login_user(user) -> None:
    """Bind *user* to the session cookie."""
    session.clear()
    session["user_id"] = user.id
    session.permanent = True
    g.pop("current_user", None)


def logout_user() -> None:
    session.clear()
    g.pop("current_user", None)


def current_user():
    """The logged-in User for this request, or None."""
    if "current_user" not in g:
        g.current_user = _load_session_user()
    return g.current_user


def current_actor() -> Actor:
    """The acting identity for this request.

    Falls back to SYSTEM_ACTOR only when authentication is disabled.
    """
    user = current_user()
    if user is None:
        return SYSTEM_ACTOR
    return Actor(id=user.id, name=user.name, roles=tuple(user.role_names))


# ── Authentication decorator ─────────────────────────────────────────────────

def require_auth(f):
    """
    Decorator: require a logged-in user for the endpoint.

    Sets g.actor.  When auth is disabled (development), acts as System.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user = current_user()
        if user is None and _is_auth_enabled():
            return jsonify({"error": "Unauthorized", "code": "ERR_UNAUTHORIZED"}), 401
        g.actor = current_actor()
        return f(*args, **kwargs)

    return decorated


def require_role(role_name: str):
    """
    Decorator: require the current user to hold *role_name* (or Admin).

    Usage:
        @require_auth
        @require_role("Admin")
        def archive_program(pid): ...
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            if not _is_auth_enabled():
                return f(*args, **kwargs)

            actor = current_actor()
            if actor.is_system:
                return jsonify({"error": "Unauthorized", "code": "ERR_UNAUTHORIZED"}), 401
            if role_name not in actor.roles and ADMIN_ROLE not in actor.roles:
                logger.warning(
                    "Access denied: user '%s' lacks role '%s' for %s",
                    actor.id, role_name, request.path,
                )
                return jsonify({"error": "Insufficient permissions", "code": "ERR_FORBIDDEN"}), 403

            return f(*args, **kwargs)
        return decorated
    return decorator


# ── CSRF protection for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    For state-changing requests (POST/PUT/PATCH/DELETE), require
    Content-Type: application/json. HTML forms cannot send that content
    type, so cross-site form posts cannot ride the session cookie.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if "application/json" not in ct and request.content_length and request.content_length > 0:
            return jsonify({
                "error": "Content-Type must be application/json for state-changing requests"
            }), 415
    return None


# ── App-level before_request hook installer ──────────────────────────────────

def init_auth(app):
    """
    Install authentication middleware on the Flask app.

    - Rejects anonymous API calls with 401 when auth is enabled
    - Skips health, login, signup and pre-flight requests
    """
    @app.before_request
    def _before_request_auth():
        g.pop("current_user", None)
        g.pop("actor", None)
        if not request.path.startswith("/api/v1/"):
            return None
        if request.method == "OPTIONS":
            return None

        csrf_error = _check_content_type()
        if csrf_error:
            return csrf_error

        if request.path in _PUBLIC_PATHS or request.path.startswith("/api/v1/health/"):
            return None

        if not _is_auth_enabled():
            return None

        if current_user() is None:
            return jsonify({"error": "Unauthorized", "code": "ERR_UNAUTHORIZED"}), 401
        return None

    logger.info(
        "Auth middleware installed (enabled=%s)", app.config.get("API_AUTH_ENABLED")
    )
