"""
Municipal Project Management System
Program domain models.

Models:
    - Program: capital project tracked from draft to closure
    - ProgramDocument: metadata of a file attached to a program
"""

import enum
import uuid
from datetime import datetime, timezone

from app.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ────────────────────────────────────────────────────────────────


class ProgramStatus(str, enum.Enum):
    """Closed lifecycle enumeration of a Program."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    VERIFIED = "VERIFIED"
    RECOMMENDED = "RECOMMENDED"
    CONTRACTED = "CONTRACTED"
    MONITORING = "MONITORING"
    PAYMENT_RUNNING = "PAYMENT_RUNNING"
    PAYMENT_FINAL = "PAYMENT_FINAL"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


PROGRAM_STATUSES = {s.value for s in ProgramStatus}

DOCUMENT_CATEGORIES = {
    "red_book", "executive_approval", "estimation",
    "monitoring", "contract", "payment", "other",
}

# Uploads in these categories open a ward-secretary review.
APPROVAL_TRIGGER_CATEGORIES = {"red_book", "executive_approval"}

# Documents shown next to an approval in the review queue.
REVIEW_DOCUMENT_CATEGORIES = {"red_book", "executive_approval", "estimation", "monitoring"}

DOCUMENT_CATEGORY_LABELS = {
    "red_book": "Red Book",
    "executive_approval": "Executive Approval",
    "estimation": "Cost Estimation",
    "monitoring": "Monitoring Report",
    "contract": "Contract",
    "payment": "Payment",
    "other": "Other",
}


# ── Program ──────────────────────────────────────────────────────────────────


class Program(db.Model):
    """
    Capital project record.

    Created in DRAFT.  Status moves only through the approval engine or an
    explicit admin action; rows are archived, never deleted.
    """

    __tablename__ = "programs"
    __table_args__ = (
        db.Index("idx_program_ward_fy", "ward_id", "fiscal_year_id"),
        db.Index("idx_program_status", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    code = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default="")

    fiscal_year_id = db.Column(
        db.String(36), db.ForeignKey("fiscal_years.id"), nullable=False, index=True,
    )
    ward_id = db.Column(db.String(36), db.ForeignKey("wards.id"), nullable=False, index=True)
    program_type_id = db.Column(db.String(36), db.ForeignKey("program_types.id"), nullable=True)
    funding_source_id = db.Column(db.String(36), db.ForeignKey("funding_sources.id"), nullable=True)

    budget = db.Column(db.Numeric(15, 2), nullable=True)
    status = db.Column(
        db.String(30),
        nullable=False,
        default=ProgramStatus.DRAFT.value,
        comment="DRAFT | SUBMITTED | APPROVED | REJECTED | ... | ARCHIVED",
    )
    tags = db.Column(db.JSON, default=list)
    responsible_officer = db.Column(db.String(200))
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    created_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # ── Relationships ────────────────────────────────────────────────────
    ward = db.relationship("Ward", back_populates="programs")
    fiscal_year = db.relationship("FiscalYear", back_populates="programs")
    program_type = db.relationship("ProgramType", back_populates="programs")
    funding_source = db.relationship("FundingSource", back_populates="programs")
    created_by = db.relationship("User")
    approvals = db.relationship(
        "ProgramApproval", back_populates="program", lazy="dynamic",
        order_by="ProgramApproval.created_at",
    )
    documents = db.relationship(
        "ProgramDocument", back_populates="program", lazy="dynamic",
        order_by="ProgramDocument.created_at.desc()",
    )

    def to_dict(self, include_children=False):
        """Serialize program to dictionary."""
        result = {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "fiscal_year_id": self.fiscal_year_id,
            "fiscal_year": self.fiscal_year.year if self.fiscal_year else None,
            "ward_id": self.ward_id,
            "ward": self.ward.to_dict() if self.ward else None,
            "program_type_id": self.program_type_id,
            "program_type": self.program_type.name if self.program_type else None,
            "funding_source_id": self.funding_source_id,
            "funding_source": self.funding_source.name if self.funding_source else None,
            "budget": float(self.budget) if self.budget is not None else None,
            "status": self.status,
            "tags": list(self.tags or []),
            "responsible_officer": self.responsible_officer,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            result["approvals"] = [a.to_dict() for a in self.approvals]
            result["documents"] = [d.to_dict() for d in self.documents]
        return result

    def __repr__(self):
        return f"<Program {self.code}: {self.status}>"


# ── ProgramDocument ──────────────────────────────────────────────────────────


class ProgramDocument(db.Model):
    """
    File metadata attached to a program.  The bytes live in external
    storage; only the path is recorded here.
    """

    __tablename__ = "program_documents"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    program_id = db.Column(
        db.String(36), db.ForeignKey("programs.id"), nullable=False, index=True,
    )
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(500), nullable=False)
    file_type = db.Column(db.String(100), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(30), nullable=False, default="other")
    uploaded_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    program = db.relationship("Program", back_populates="documents")
    uploaded_by = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "program_id": self.program_id,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "formatted_file_size": format_file_size(self.file_size),
            "category": self.category,
            "category_label": DOCUMENT_CATEGORY_LABELS.get(self.category, self.category),
            "uploaded_by": self.uploaded_by.name if self.uploaded_by else "System",
            "uploaded_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ProgramDocument {self.file_name} ({self.category})>"


def format_file_size(size):
    """Human-readable byte count, e.g. ``2.5 MB``."""
    if not size:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[idx]}"
