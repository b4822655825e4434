"""
Auth Models — users and roles.

Roles are named after the municipal offices that act in the approval
workflow (Ward Secretary, Planning Officer, CAO, ...).  A user may hold
several roles and is optionally attached to one ward.
"""

import uuid
from datetime import datetime, timezone

from app.models import db


def _uuid():
    return str(uuid.uuid4())


# ═══════════════════════════════════════════════════════════════
# 1. USER_ROLES (Junction table)
# ═══════════════════════════════════════════════════════════════
user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    db.Column("role_id", db.String(36), db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


# ═══════════════════════════════════════════════════════════════
# 2. ROLES
# ═══════════════════════════════════════════════════════════════
class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    users = db.relationship("User", secondary=user_roles, back_populates="roles", lazy="dynamic")

    def to_dict(self, include_user_count=False):
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
        }
        if include_user_count:
            d["user_count"] = self.users.count()
        return d


# ═══════════════════════════════════════════════════════════════
# 3. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    ward_id = db.Column(
        db.String(36), db.ForeignKey("wards.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    is_active = db.Column(db.Boolean, default=True)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    ward = db.relationship("Ward")
    roles = db.relationship("Role", secondary=user_roles, back_populates="users")

    def to_dict(self, include_roles=False):
        d = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "ward_id": self.ward_id,
            "ward": self.ward.to_dict() if self.ward else None,
            "is_active": self.is_active,
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_roles:
            d["roles"] = self.role_names
        return d

    @property
    def role_names(self):
        """List of role names for this user."""
        return [r.name for r in self.roles]

    def __repr__(self):
        return f"<User {self.email}>"
