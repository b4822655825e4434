"""
User Service — authentication, self-service signup, role management.
"""

import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import ConflictError, UnauthorizedError, ValidationError
from app.models import db
from app.models.audit import write_activity
from app.models.auth import Role, User
from app.models.master_data import Ward
from app.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _normalize_email(email: str) -> str:
    try:
        return validate_email(email or "", check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": email})


# ═══════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════
def authenticate_user(email: str, password: str) -> User:
    """Authenticate a user with email + password. Returns User on success."""
    if not email or not password:
        raise UnauthorizedError("Invalid email or password")

    user = User.query.filter(db.func.lower(User.email) == email.strip().lower()).first()
    if not user or not user.is_active:
        raise UnauthorizedError("Invalid email or password")

    if not verify_password(password, user.password_hash):
        logger.info("Failed login for user %s", user.id, extra={"user_id": user.id})
        raise UnauthorizedError("Invalid email or password")

    # Update last login
    user.last_login_at = datetime.now(timezone.utc)
    db.session.commit()
    return user


# ═══════════════════════════════════════════════════════════════
# Signup / users
# ═══════════════════════════════════════════════════════════════
def signup_user(data: dict) -> User:
    """Create a self-service account.  Roles are granted by an admin later."""
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Name is required", details={"name": "required"})
    email = _normalize_email(data.get("email"))
    password = data.get("password") or ""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )

    if User.query.filter(db.func.lower(User.email) == email.lower()).first():
        raise ConflictError.duplicate("User", "email", email)

    ward_id = data.get("wardId") or None
    if ward_id and db.session.get(Ward, ward_id) is None:
        raise ValidationError("Ward not found", details={"wardId": ward_id})

    user = User(name=name, email=email, password_hash=hash_password(password), ward_id=ward_id)
    db.session.add(user)
    db.session.flush()

    write_activity(
        action="user_created",
        description=f"New user account created: {user.name} ({user.email})",
        entity_type="user",
        entity_id=user.id,
        user_id=user.id,
    )
    db.session.commit()
    logger.info("User signed up id=%s", user.id, extra={"user_id": user.id})
    return user


def list_users(include_inactive: bool = False) -> list[User]:
    q = User.query
    if not include_inactive:
        q = q.filter(User.is_active.is_(True))
    return q.order_by(User.name).all()


# ═══════════════════════════════════════════════════════════════
# Roles
# ═══════════════════════════════════════════════════════════════
def list_roles() -> list[Role]:
    return Role.query.order_by(Role.name).all()


def create_role(data: dict) -> Role:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Name is required", details={"name": "required"})
    if Role.query.filter_by(name=name).first():
        raise ConflictError.duplicate("Role", "name", name)

    role = Role(name=name, description=data.get("description"))
    db.session.add(role)
    db.session.commit()
    return role


def assign_role(user: User, role_name: str) -> None:
    """Grant *role_name* to *user* (no-op when already held).  Caller commits."""
    role = Role.query.filter_by(name=role_name).first()
    if role is None:
        raise ValidationError(f"Role '{role_name}' not found")
    if role not in user.roles:
        user.roles.append(role)
