"""
Municipal Project Management System
Activity log domain model.

Models:
    - ActivityLog: immutable, append-only audit trail of user and system actions.
"""

import json
import uuid
from datetime import UTC, datetime

from app.models import db


def _uuid():
    return str(uuid.uuid4())


class ActivityLog(db.Model):
    """
    Immutable audit trail entry.

    ``entity_type`` + ``entity_id`` form a polymorphic reference, not a
    foreign key; use :func:`resolve_entity` to dereference.  A NULL
    ``user_id`` means the action was performed by the system.
    """

    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("idx_activity_entity", "entity_type", "entity_id"),
        db.Index("idx_activity_action", "action"),
        db.Index("idx_activity_created", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    action = db.Column(
        db.String(60), nullable=False,
        comment="approval_approve | document_uploaded | program_created | …",
    )
    description = db.Column(db.Text, nullable=False)

    # Polymorphic entity reference
    entity_type = db.Column(db.String(30), nullable=True, comment="program | approval | document | …")
    entity_id = db.Column(db.String(36), nullable=True)

    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    metadata_json = db.Column("metadata", db.Text, default="{}")

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    user = db.relationship("User")

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def meta(self) -> dict:
        """Deserialise the metadata bag to a Python dict."""
        try:
            return json.loads(self.metadata_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "description": self.description,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "user": self.user.name if self.user else "System",
            "metadata": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ActivityLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_activity(
    *,
    action: str,
    description: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    user_id: str | None = None,
    metadata: dict | None = None,
) -> ActivityLog:
    """
    Append a single activity row.  Uses ``flush`` so callers keep
    transaction control: a failed write surfaces before the caller commits.

    Returns the (flushed) ActivityLog instance.
    """
    log = ActivityLog(
        action=action,
        description=description,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        user_id=user_id,
        metadata_json=json.dumps(metadata or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log


# ── Polymorphic dereference ──────────────────────────────────────────────────

def resolve_entity(entity_type: str | None, entity_id: str | None):
    """Load the row an ActivityLog / Notification points at.

    Returns None for unknown types or dangling ids.
    """
    if not entity_type or not entity_id:
        return None

    from app.models.approval import ProgramApproval
    from app.models.notification import Notification
    from app.models.program import Program, ProgramDocument

    model = {
        "program": Program,
        "approval": ProgramApproval,
        "document": ProgramDocument,
        "notification": Notification,
    }.get(entity_type)
    if model is None:
        return None
    return db.session.get(model, str(entity_id))
