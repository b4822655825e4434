"""
Municipal Project Management System
Notification Service.

Central service for creating and querying in-app notifications.
Integrated with the document-upload pipeline (new documents needing review).
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import case, or_

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.notification import (
    NOTIFICATION_PRIORITIES,
    NOTIFICATION_TYPES,
    PRIORITY_RANK,
    Notification,
)

logger = logging.getLogger(__name__)


def _not_expired(now):
    return or_(Notification.expires_at.is_(None), Notification.expires_at > now)


def _visible_to(user_id):
    """A user's own rows plus broadcast rows."""
    return or_(Notification.user_id == user_id, Notification.user_id.is_(None))


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, title, message, type="info", priority="medium", user_id=None,
               entity_type=None, entity_id=None, expires_at=None, commit=True):
        """
        Create a single notification record.

        ``user_id=None`` broadcasts to everyone.  Pass ``commit=False`` to
        join the caller's transaction (the row is flushed, not committed).

        Returns:
            The created Notification instance.
        """
        if not title or not message:
            raise ValidationError("title and message are required")
        if type not in NOTIFICATION_TYPES:
            raise ValidationError(
                f"Invalid type. Must be one of: {', '.join(sorted(NOTIFICATION_TYPES))}",
                details={"type": type},
            )
        if priority not in NOTIFICATION_PRIORITIES:
            raise ValidationError(
                f"Invalid priority. Must be one of: {', '.join(sorted(NOTIFICATION_PRIORITIES))}",
                details={"priority": priority},
            )

        notif = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            priority=priority,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            expires_at=expires_at,
        )
        db.session.add(notif)
        if commit:
            db.session.commit()
        else:
            db.session.flush()
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id=None, is_read=None, type=None, priority=None,
                      limit=20, offset=0, now=None):
        """
        Retrieve live (non-expired) notifications, most urgent first.

        With ``user_id`` the result holds that user's rows plus broadcasts;
        without it, every row.

        Returns:
            (items, total)
        """
        now = now or datetime.now(timezone.utc)
        q = Notification.query.filter(_not_expired(now))
        if user_id:
            q = q.filter(_visible_to(user_id))
        if is_read is not None:
            q = q.filter(Notification.is_read.is_(is_read))
        if type:
            q = q.filter(Notification.type == type)
        if priority:
            q = q.filter(Notification.priority == priority)

        total = q.count()
        rank = case(PRIORITY_RANK, value=Notification.priority, else_=0)
        items = (
            q.order_by(rank.desc(), Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def unread_count(user_id=None, now=None):
        """Return count of unread, non-expired notifications."""
        now = now or datetime.now(timezone.utc)
        q = Notification.query.filter(_not_expired(now)).filter_by(is_read=False)
        if user_id:
            q = q.filter(_visible_to(user_id))
        return q.count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_ids):
        """Mark the given notifications as read.  Unknown ids are ignored."""
        if not isinstance(notification_ids, list) or not notification_ids:
            raise ValidationError("notificationIds must be a non-empty list")
        now = datetime.now(timezone.utc)
        count = (
            Notification.query.filter(Notification.id.in_([str(i) for i in notification_ids]))
            .filter_by(is_read=False)
            .update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        )
        db.session.commit()
        return count

    @staticmethod
    def mark_all_read(user_id):
        """Mark every unread notification visible to *user_id* as read."""
        if not user_id:
            raise ValidationError("userId is required to mark all as read")
        now = datetime.now(timezone.utc)
        count = (
            Notification.query.filter(_visible_to(user_id))
            .filter_by(is_read=False)
            .update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        )
        db.session.commit()
        logger.info("Marked %d notifications read for user %s", count, user_id)
        return count

    @staticmethod
    def delete(notification_id):
        """Hard-delete one notification."""
        notif = db.session.get(Notification, str(notification_id))
        if notif is None:
            raise NotFoundError(resource="Notification", resource_id=notification_id)
        db.session.delete(notif)
        db.session.commit()

    # ── Upload pipeline helpers ───────────────────────────────────────────

    @staticmethod
    def notify_document_uploaded(program, document):
        """Broadcast that a program has a new document waiting for review.

        Joins the caller's transaction.
        """
        return NotificationService.create(
            title="New Document Requires Approval",
            message=f"{document.file_name} was uploaded for program {program.name} ({program.code}).",
            type="approval",
            priority="medium",
            entity_type="program",
            entity_id=program.id,
            commit=False,
        )
