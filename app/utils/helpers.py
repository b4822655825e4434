"""Shared utility functions for blueprints and services.

get_or_raise:        load by PK or raise NotFoundError
parse_date:          lenient (None on bad input)
parse_date_input:    strict (ValidationError on bad input)
parse_datetime_input strict ISO datetime parsing for expiry timestamps
time_ago:            compact relative time ("5m ago") for activity feeds
"""
from datetime import date, datetime, timezone

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db


def get_or_raise(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    label = label or model.__name__
    obj = db.session.get(model, str(pk)) if pk is not None else None
    if obj is None:
        raise NotFoundError(resource=label, resource_id=pk)
    return obj


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input.
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value, field="date"):
    """Parse a date string, raising ValidationError on bad input."""
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(
            f"Invalid {field}. Use YYYY-MM-DD or DD.MM.YYYY.",
            details={field: str(value)},
        )
    return parsed


def parse_datetime_input(value, field="datetime"):
    """Parse an ISO-8601 timestamp (``Z`` accepted) to an aware datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"Invalid {field}", details={field: str(value)}) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def as_aware(value):
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def time_ago(moment, now=None):
    """Compact relative time: ``42s ago``, ``5m ago``, ``3h ago``, ``2d ago``."""
    if moment is None:
        return ""
    now = now or datetime.now(timezone.utc)
    seconds = max(0, int((now - as_aware(moment)).total_seconds()))
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"
