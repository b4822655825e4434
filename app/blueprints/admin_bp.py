"""
Admin Blueprint — users and roles.

API Endpoints (JSON):
  GET    /api/v1/users                  — List active users (?includeInactive=true)
  POST   /api/v1/users/<id>/roles       — Assign role (Admin)
  GET    /api/v1/roles                  — List roles with user counts
  POST   /api/v1/roles                  — Create role (Admin)
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import ADMIN_ROLE, require_auth, require_role
from app.models import db
from app.models.auth import User
from app.services.user_service import assign_role, create_role, list_roles, list_users
from app.utils.errors import E, api_error, register_error_handlers
from app.utils.helpers import get_or_raise

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1")
register_error_handlers(admin_bp)


# ═══════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/users", methods=["GET"])
@require_auth
def get_users():
    include_inactive = request.args.get("includeInactive", "").lower() in ("true", "1")
    users = list_users(include_inactive=include_inactive)
    return jsonify({"users": [u.to_dict(include_roles=True) for u in users]})


@admin_bp.route("/users/<user_id>/roles", methods=["POST"])
@require_auth
@require_role(ADMIN_ROLE)
def add_user_role(user_id):
    """Body: {"role": "<role name>"}"""
    data = request.get_json(silent=True) or {}
    role_name = (data.get("role") or "").strip()
    if not role_name:
        return api_error(E.VALIDATION_REQUIRED, "role is required")

    user = get_or_raise(User, user_id, "User")
    assign_role(user, role_name)
    db.session.commit()
    logger.info("Role %s assigned", role_name, extra={"user_id": user.id})
    return jsonify({"user": user.to_dict(include_roles=True)})


# ═══════════════════════════════════════════════════════════════
# Roles
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/roles", methods=["GET"])
@require_auth
def get_roles():
    return jsonify({"roles": [r.to_dict(include_user_count=True) for r in list_roles()]})


@admin_bp.route("/roles", methods=["POST"])
@require_auth
@require_role(ADMIN_ROLE)
def post_role():
    """Body: {"name": "...", "description": "..."}"""
    role = create_role(request.get_json(silent=True) or {})
    return jsonify({"role": role.to_dict()}), 201
