"""initial_schema

Creates the municipal project management schema:
  - wards, fiscal_years, program_types, funding_sources  — master data
  - roles, users, user_roles                              — accounts
  - programs, program_documents, program_approvals        — program lifecycle
  - activity_logs, notifications                          — audit trail / inbox

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column("id", sa.String(length=36), primary_key=True)


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)


def upgrade():
    bind = op.get_bind()
    existing = set(sa_inspect(bind).get_table_names())

    # ── Master data ───────────────────────────────────────────────────────
    if "wards" not in existing:
        op.create_table(
            "wards",
            _id(),
            sa.Column("code", sa.String(length=20), nullable=False, unique=True),
            sa.Column("name", sa.String(length=120), nullable=False, unique=True),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )

    if "fiscal_years" not in existing:
        op.create_table(
            "fiscal_years",
            _id(),
            sa.Column("year", sa.String(length=20), nullable=False, unique=True,
                      comment="e.g. 2025/26"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
            _created_at(),
        )

    for table in ("program_types", "funding_sources"):
        if table not in existing:
            op.create_table(
                table,
                _id(),
                sa.Column("code", sa.String(length=30), nullable=False, unique=True),
                sa.Column("name", sa.String(length=120), nullable=False),
                sa.Column("description", sa.Text(), nullable=True),
                sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
                _created_at(),
            )

    # ── Accounts ──────────────────────────────────────────────────────────
    if "roles" not in existing:
        op.create_table(
            "roles",
            _id(),
            sa.Column("name", sa.String(length=100), nullable=False, unique=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )

    if "users" not in existing:
        op.create_table(
            "users",
            _id(),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(length=256), nullable=True),
            sa.Column("ward_id", sa.String(length=36),
                      sa.ForeignKey("wards.id", ondelete="SET NULL"), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_users_ward_id", "users", ["ward_id"])

    if "user_roles" not in existing:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.String(length=36),
                      sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.String(length=36),
                      sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )

    # ── Programs ──────────────────────────────────────────────────────────
    if "programs" not in existing:
        op.create_table(
            "programs",
            _id(),
            sa.Column("code", sa.String(length=50), nullable=False, unique=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("fiscal_year_id", sa.String(length=36),
                      sa.ForeignKey("fiscal_years.id"), nullable=False),
            sa.Column("ward_id", sa.String(length=36), sa.ForeignKey("wards.id"), nullable=False),
            sa.Column("program_type_id", sa.String(length=36),
                      sa.ForeignKey("program_types.id"), nullable=True),
            sa.Column("funding_source_id", sa.String(length=36),
                      sa.ForeignKey("funding_sources.id"), nullable=True),
            sa.Column("budget", sa.Numeric(15, 2), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="DRAFT",
                      comment="DRAFT | SUBMITTED | APPROVED | REJECTED | ... | ARCHIVED"),
            sa.Column("tags", sa.JSON(), nullable=True),
            sa.Column("responsible_officer", sa.String(length=200), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("created_by_id", sa.String(length=36),
                      sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_programs_fiscal_year_id", "programs", ["fiscal_year_id"])
        op.create_index("ix_programs_ward_id", "programs", ["ward_id"])
        op.create_index("idx_program_ward_fy", "programs", ["ward_id", "fiscal_year_id"])
        op.create_index("idx_program_status", "programs", ["status"])

    if "program_documents" not in existing:
        op.create_table(
            "program_documents",
            _id(),
            sa.Column("program_id", sa.String(length=36),
                      sa.ForeignKey("programs.id"), nullable=False),
            sa.Column("file_name", sa.String(length=255), nullable=False),
            sa.Column("file_path", sa.String(length=500), nullable=False),
            sa.Column("file_type", sa.String(length=100), nullable=False),
            sa.Column("file_size", sa.Integer(), nullable=False),
            sa.Column("category", sa.String(length=30), nullable=False, server_default="other"),
            sa.Column("uploaded_by_id", sa.String(length=36),
                      sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            _created_at(),
        )
        op.create_index("ix_program_documents_program_id", "program_documents", ["program_id"])

    if "program_approvals" not in existing:
        op.create_table(
            "program_approvals",
            _id(),
            sa.Column("program_id", sa.String(length=36),
                      sa.ForeignKey("programs.id"), nullable=False),
            sa.Column("step", sa.String(length=30), nullable=False,
                      comment="ward_secretary | planning_officer | cao | technical_head"),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="pending",
                      comment="pending | approved | rejected | re-upload-requested"),
            sa.Column("remarks", sa.Text(), nullable=True),
            sa.Column("approved_by_id", sa.String(length=36),
                      sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_program_approvals_program_id", "program_approvals", ["program_id"])
        op.create_index("idx_approval_status_created", "program_approvals", ["status", "created_at"])
        op.create_index("idx_approval_program_step", "program_approvals", ["program_id", "step"])

    # ── Audit trail / inbox ───────────────────────────────────────────────
    if "activity_logs" not in existing:
        op.create_table(
            "activity_logs",
            _id(),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("entity_type", sa.String(length=30), nullable=True),
            sa.Column("entity_id", sa.String(length=36), nullable=True),
            sa.Column("user_id", sa.String(length=36),
                      sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("metadata", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
        op.create_index("idx_activity_entity", "activity_logs", ["entity_type", "entity_id"])
        op.create_index("idx_activity_action", "activity_logs", ["action"])
        op.create_index("idx_activity_created", "activity_logs", ["created_at"])

    if "notifications" not in existing:
        op.create_table(
            "notifications",
            _id(),
            sa.Column("user_id", sa.String(length=36),
                      sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True,
                      comment="NULL = broadcast to everyone"),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="info"),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
            sa.Column("entity_type", sa.String(length=30), nullable=True),
            sa.Column("entity_id", sa.String(length=36), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
        )
        op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade():
    for table in (
        "notifications",
        "activity_logs",
        "program_approvals",
        "program_documents",
        "programs",
        "user_roles",
        "users",
        "roles",
        "funding_sources",
        "program_types",
        "fiscal_years",
        "wards",
    ):
        op.drop_table(table)
