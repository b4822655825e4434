"""
Activity feed service — read side of the activity log.

ActivityLog rows are written by the domain services through
``write_activity``; this module pages through them and decorates each row
for the activity feed (humanised action, type bucket, relative time, link).
"""

import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.audit import ActivityLog, write_activity
from app.utils.helpers import time_ago

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

# First matching substring wins.
_ACTIVITY_TYPES = [
    ("upload", "upload"),
    ("approval", "approval"),
    ("reject", "rejection"),
    ("submit", "submission"),
    ("create", "creation"),
    ("update", "update"),
    ("delete", "deletion"),
]


def humanize_action(action: str) -> str:
    """``approval_approve`` → ``Approval Approve``."""
    return " ".join(word.capitalize() for word in (action or "").split("_") if word)


def classify_action(action: str) -> str:
    for needle, kind in _ACTIVITY_TYPES:
        if needle in (action or ""):
            return kind
    return "other"


def entity_link(entity_type, entity_id, metadata=None) -> str:
    """Front-end route for the entity a log row points at (``#`` if none)."""
    if not entity_type or not entity_id:
        return "#"
    program_id = (metadata or {}).get("programId")
    if entity_type == "program":
        return f"/programs/{entity_id}"
    if entity_type == "approval":
        return f"/programs/{program_id}" if program_id else "/approvals"
    if entity_type == "payment":
        return "/payments"
    if entity_type == "document":
        return f"/programs/{program_id}" if program_id else "#"
    return "#"


def present(log: ActivityLog, now=None) -> dict:
    meta = log.meta
    return {
        "id": log.id,
        "action": humanize_action(log.action),
        "raw_action": log.action,
        "description": log.description,
        "time": time_ago(log.created_at, now=now),
        "type": classify_action(log.action),
        "user": log.user.name if log.user else "System",
        "entity_type": log.entity_type,
        "entity_id": log.entity_id,
        "metadata": meta,
        "created_at": log.created_at.isoformat() if log.created_at else None,
        "link": entity_link(log.entity_type, log.entity_id, meta),
    }


def list_activity(*, limit=10, offset=0, entity_type=None, action=None):
    """Newest-first page of activity.

    Returns:
        (rows, total)
    """
    if limit < 1 or offset < 0:
        raise ValidationError("limit must be positive and offset non-negative")
    limit = min(limit, MAX_PAGE_SIZE)

    q = ActivityLog.query
    if entity_type:
        q = q.filter(ActivityLog.entity_type == entity_type)
    if action:
        q = q.filter(ActivityLog.action == action)
    total = q.count()
    rows = (
        q.order_by(ActivityLog.created_at.desc(), ActivityLog.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def record_activity(data: dict, user_id=None) -> ActivityLog:
    """Append a client-reported activity entry."""
    action = (data.get("action") or "").strip()
    description = (data.get("description") or "").strip()
    if not action or not description:
        raise ValidationError("Action and description are required")
    metadata = data.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object", details={"metadata": str(metadata)})

    log = write_activity(
        action=action,
        description=description,
        entity_type=data.get("entityType"),
        entity_id=data.get("entityId"),
        user_id=user_id,
        metadata=metadata,
    )
    db.session.commit()
    return log
