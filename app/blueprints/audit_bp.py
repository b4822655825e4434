"""
Municipal Project Management System
Activity Log blueprint.

Endpoints:
    GET  /api/v1/activity-logs   — paginated activity feed
    POST /api/v1/activity-logs   — append a client-reported entry

The log is append-only: there is no update or delete endpoint.
"""

from flask import Blueprint, g, jsonify, request

from app.auth import require_auth
from app.services import activity_service
from app.utils.errors import register_error_handlers

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1")
register_error_handlers(audit_bp)


# ── List / filter ────────────────────────────────────────────────────────────

@audit_bp.route("/activity-logs", methods=["GET"])
@require_auth
def list_activity_logs():
    """
    Return the newest activity first.

    Query params:
        limit        — page size (default 10, max 100)
        offset       — rows to skip (default 0)
        entityType   — filter by entity type
        action       — filter by exact action code
    """
    limit = request.args.get("limit", 10, type=int)
    offset = request.args.get("offset", 0, type=int)
    rows, total = activity_service.list_activity(
        limit=limit,
        offset=offset,
        entity_type=request.args.get("entityType") or None,
        action=request.args.get("action") or None,
    )
    return jsonify({
        "activityLogs": [activity_service.present(r) for r in rows],
        "total": total,
        "hasMore": offset + len(rows) < total,
    })


# ── Append ───────────────────────────────────────────────────────────────────

@audit_bp.route("/activity-logs", methods=["POST"])
@require_auth
def create_activity_log():
    """Body: {action, description, entityType?, entityId?, metadata?}"""
    data = request.get_json(silent=True) or {}
    log = activity_service.record_activity(data, user_id=g.actor.id)
    return jsonify({"activityLog": log.to_dict()}), 201
