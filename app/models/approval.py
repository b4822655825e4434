"""
Municipal Project Management System
Approval domain model.

Models:
    - ProgramApproval: one row per workflow step instance of a program.

A record is created ``pending`` (normally by the document-upload pipeline)
and resolved exactly once.  Every resolved status is terminal; a new
review round needs a new record.
"""

import enum
import uuid
from datetime import datetime, timezone

from app.models import db


def _uuid():
    return str(uuid.uuid4())


# ── Enumerations ─────────────────────────────────────────────────────────────


class ApprovalStep(str, enum.Enum):
    WARD_SECRETARY = "ward_secretary"
    PLANNING_OFFICER = "planning_officer"
    CAO = "cao"
    TECHNICAL_HEAD = "technical_head"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REUPLOAD_REQUESTED = "re-upload-requested"


APPROVAL_STATUSES = {s.value for s in ApprovalStatus}

# The CAO decision is the only one that moves Program.status.
TERMINAL_STEP = ApprovalStep.CAO


# ── Step-derived projections ─────────────────────────────────────────────────
# Business policy expressed as lookups over the closed step enumeration.

SUBMITTED_BY_BY_STEP = {
    ApprovalStep.WARD_SECRETARY: "Ward Secretary",
    ApprovalStep.PLANNING_OFFICER: "Planning Officer",
    ApprovalStep.CAO: "CAO",
    ApprovalStep.TECHNICAL_HEAD: "Technical Head",
}

DOCUMENT_TYPE_BY_STEP = {
    ApprovalStep.WARD_SECRETARY: "Committee Minutes",
    ApprovalStep.PLANNING_OFFICER: "Program Approval",
    ApprovalStep.CAO: "Executive Approval",
    ApprovalStep.TECHNICAL_HEAD: "Cost Estimation",
}

PRIORITY_BY_STEP = {
    ApprovalStep.WARD_SECRETARY: "low",
    ApprovalStep.PLANNING_OFFICER: "medium",
    ApprovalStep.CAO: "high",
    ApprovalStep.TECHNICAL_HEAD: "low",
}

def check_step_tables(*tables) -> None:
    """Raise RuntimeError unless every table is keyed by exactly the ApprovalStep members."""
    for table in tables:
        if set(table) != set(ApprovalStep):
            missing = sorted(s.value for s in set(ApprovalStep) - set(table))
            raise RuntimeError(f"step lookup must cover every ApprovalStep (missing: {missing})")


check_step_tables(SUBMITTED_BY_BY_STEP, DOCUMENT_TYPE_BY_STEP, PRIORITY_BY_STEP)


def submitted_by_for_step(step) -> str:
    return SUBMITTED_BY_BY_STEP[ApprovalStep(step)]


def document_type_for_step(step) -> str:
    return DOCUMENT_TYPE_BY_STEP[ApprovalStep(step)]


def priority_for_step(step) -> str:
    return PRIORITY_BY_STEP[ApprovalStep(step)]


# ── ProgramApproval ──────────────────────────────────────────────────────────


class ProgramApproval(db.Model):
    """
    Approval record for one workflow step of a program.

    ``approved_by_id`` / ``approved_at`` hold the resolver and the
    resolution time for every outcome, not only approvals.
    """

    __tablename__ = "program_approvals"
    __table_args__ = (
        db.Index("idx_approval_status_created", "status", "created_at"),
        db.Index("idx_approval_program_step", "program_id", "step"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    program_id = db.Column(
        db.String(36), db.ForeignKey("programs.id"), nullable=False, index=True,
    )
    step = db.Column(
        db.String(30), nullable=False,
        comment="ward_secretary | planning_officer | cao | technical_head",
    )
    status = db.Column(
        db.String(30), nullable=False, default=ApprovalStatus.PENDING.value,
        comment="pending | approved | rejected | re-upload-requested",
    )
    remarks = db.Column(db.Text, nullable=True)
    approved_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    program = db.relationship("Program", back_populates="approvals")
    approved_by = db.relationship("User")

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING.value

    @property
    def is_terminal_step(self) -> bool:
        return self.step == TERMINAL_STEP.value

    def to_dict(self):
        return {
            "id": self.id,
            "program_id": self.program_id,
            "step": self.step,
            "status": self.status,
            "remarks": self.remarks,
            "approved_by_id": self.approved_by_id,
            "approved_by": self.approved_by.name if self.approved_by else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ProgramApproval {self.id}: {self.step} {self.status}>"
