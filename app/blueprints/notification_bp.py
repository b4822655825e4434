"""
Municipal Project Management System
Notification Blueprint.

Provides:
    - Inbox listing with unread count (expired rows hidden)
    - Notification creation (targeted or broadcast)
    - Read-flag updates (selected ids, or everything for one user)
    - Hard delete
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from app.auth import require_auth
from app.services.notification import NotificationService
from app.utils.errors import E, api_error, register_error_handlers
from app.utils.helpers import parse_datetime_input

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification", __name__, url_prefix="/api/v1")
register_error_handlers(notification_bp)


def _parse_bool(value):
    if value is None or value == "":
        return None
    return value.lower() in ("true", "1", "yes")


# ═══════════════════════════════════════════════════════════════════════════
#  NOTIFICATION CRUD
# ═══════════════════════════════════════════════════════════════════════════

@notification_bp.route("/notifications", methods=["GET"])
@require_auth
def list_notifications():
    """Query params: userId, isRead, type, priority, limit (20), offset (0)."""
    user_id = request.args.get("userId") or None
    limit = request.args.get("limit", 20, type=int)
    offset = request.args.get("offset", 0, type=int)
    if limit < 1 or offset < 0:
        return api_error(E.VALIDATION_INVALID, "limit must be positive and offset non-negative")

    items, total = NotificationService.list_for_user(
        user_id=user_id,
        is_read=_parse_bool(request.args.get("isRead")),
        type=request.args.get("type") or None,
        priority=request.args.get("priority") or None,
        limit=min(limit, 100),
        offset=offset,
    )
    return jsonify({
        "notifications": [n.to_dict() for n in items],
        "unreadCount": NotificationService.unread_count(user_id=user_id),
        "total": total,
    })


@notification_bp.route("/notifications", methods=["POST"])
@require_auth
def create_notification():
    """Body: {title, message, type, priority, userId?, entityType?, entityId?, expiresAt?}"""
    data = request.get_json(silent=True) or {}

    title = (data.get("title") or "").strip()
    message = (data.get("message") or "").strip()
    if not title or not message:
        return api_error(E.VALIDATION_REQUIRED, "title and message are required")

    notif = NotificationService.create(
        title=title,
        message=message,
        type=data.get("type") or "info",
        priority=data.get("priority") or "medium",
        user_id=data.get("userId") or None,
        entity_type=data.get("entityType") or None,
        entity_id=data.get("entityId") or None,
        expires_at=parse_datetime_input(data.get("expiresAt"), "expiresAt"),
    )
    return jsonify({"notification": notif.to_dict()}), 201


@notification_bp.route("/notifications", methods=["PUT"])
@require_auth
def mark_notifications_read():
    """Body: {notificationIds: [...]} or {markAllAsRead: true, userId}."""
    data = request.get_json(silent=True) or {}

    if data.get("notificationIds"):
        count = NotificationService.mark_read(data["notificationIds"])
        return jsonify({"message": f"{count} notification(s) marked as read", "updated": count})

    if data.get("markAllAsRead") and data.get("userId"):
        count = NotificationService.mark_all_read(data["userId"])
        return jsonify({"message": "All notifications marked as read", "updated": count})

    return api_error(
        E.VALIDATION_REQUIRED,
        "Provide notificationIds, or markAllAsRead with userId",
    )


@notification_bp.route("/notifications", methods=["DELETE"])
@require_auth
def delete_notification():
    """Query param: id."""
    notification_id = request.args.get("id")
    if not notification_id:
        return api_error(E.VALIDATION_REQUIRED, "Notification id is required")

    NotificationService.delete(notification_id)
    return jsonify({"message": "Notification deleted", "id": notification_id})
