"""
Auth Blueprint — session authentication endpoints.

  POST /api/v1/auth/login    — Email + password → session cookie
  POST /api/v1/auth/logout   — Clear the session
  GET  /api/v1/auth/me       — Current user profile
  POST /api/v1/auth/signup   — Self-service account creation
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import current_user, login_user, logout_user
from app.services.user_service import authenticate_user, signup_user
from app.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")
register_error_handlers(auth_bp)


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password and start a session.

    Body: { "email": "...", "password": "..." }
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""

    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    user = authenticate_user(email, password)
    login_user(user)
    logger.info("User logged in", extra={"user_id": user.id})
    return jsonify({"user": user.to_dict(include_roles=True)})


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/logout", methods=["POST"])
def logout():
    logout_user()
    return jsonify({"message": "Logged out"})


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
def me():
    user = current_user()
    if user is None:
        return api_error(E.UNAUTHORIZED, "Unauthorized")
    return jsonify({"user": user.to_dict(include_roles=True)})


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/signup
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/signup", methods=["POST"])
def signup():
    """
    Body: { "name": "...", "email": "...", "password": "...", "wardId": "..." }
    """
    data = request.get_json(silent=True) or {}
    user = signup_user(data)
    return jsonify({"message": "User created successfully", "user": user.to_dict(include_roles=True)}), 201
