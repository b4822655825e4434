"""
Municipal Project Management System
Notification domain model.

Models:
    - Notification: in-app inbox row with read tracking and optional expiry
"""

import uuid
from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {"deadline", "approval", "payment", "info", "warning", "error"}
NOTIFICATION_PRIORITIES = {"low", "medium", "high"}

# Sort rank for "most urgent first" listings.
PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}


def _uuid():
    return str(uuid.uuid4())


class Notification(db.Model):
    """
    In-app notification entity.

    A NULL ``user_id`` marks a system-wide (broadcast) notification.
    """

    __tablename__ = "notifications"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False, default="info")
    priority = db.Column(db.String(10), nullable=False, default="medium")

    # Link to source entity
    entity_type = db.Column(db.String(30), nullable=True, comment="program/approval/payment/...")
    entity_id = db.Column(db.String(36), nullable=True)

    # Read tracking
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    user = db.relationship("User")

    @property
    def is_system_wide(self) -> bool:
        return self.user_id is None

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "priority": self.priority,
            "is_read": self.is_read,
            "is_system_wide": self.is_system_wide,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
