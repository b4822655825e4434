"""
Program Approval Engine.

Resolves pending ProgramApproval records and, for the terminal CAO step,
cascades the outcome onto the parent Program.  Every resolution writes one
ActivityLog row inside the same transaction as the status change.

Design decisions:
    - A record is resolved exactly once.  The pending check and the write
      are a single compare-and-swap UPDATE (``WHERE status = 'pending'``),
      so two concurrent resolutions of the same id cannot both succeed.
    - Only the CAO step touches Program.status: approve → APPROVED,
      reject → DRAFT.  Non-terminal steps never change the program, even
      when rejected.
    - Bulk resolution is lenient: unknown ids (and records that are no
      longer pending) are skipped, and the caller compares
      ``processed_count`` with ``total_requested``.  The batch is still one
      storage transaction; a database failure rolls every change back.
    - ``submitted_by`` / ``document_type`` / ``priority`` in the list view
      are derived from the step, never stored.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from app.auth import Actor
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.approval import (
    APPROVAL_STATUSES,
    ApprovalStatus,
    ProgramApproval,
    document_type_for_step,
    priority_for_step,
    submitted_by_for_step,
)
from app.models.audit import write_activity
from app.models.program import REVIEW_DOCUMENT_CATEGORIES, Program, ProgramDocument, ProgramStatus

logger = logging.getLogger(__name__)

VALID_ACTIONS = ("approve", "reject", "request_reupload")
BULK_ACTIONS = ("approve", "reject")

ALREADY_PROCESSED_MESSAGE = "Approval has already been processed"

_ACTION_OUTCOME = {
    "approve": ApprovalStatus.APPROVED,
    "reject": ApprovalStatus.REJECTED,
    "request_reupload": ApprovalStatus.REUPLOAD_REQUESTED,
}

# Program status after a terminal-step resolution.
_TERMINAL_CASCADE = {
    "approve": ProgramStatus.APPROVED,
    "reject": ProgramStatus.DRAFT,
}

_ACTION_PAST_TENSE = {
    "approve": "approved",
    "reject": "rejected",
    "request_reupload": "re-upload requested",
}

EXPORT_COLUMNS = [
    "Program Code",
    "Program Name",
    "Ward",
    "Fiscal Year",
    "Program Type",
    "Budget",
    "Status",
    "Step",
    "Submitted Date",
    "Approved By",
    "Approved Date",
    "Remarks",
]


# ── Private helpers ────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_action(action: str, allowed) -> None:
    if action not in allowed:
        raise ValidationError(
            f"Invalid action '{action}'. Must be one of: {', '.join(allowed)}",
            details={"action": action},
        )


def _validate_remarks(remarks) -> None:
    if remarks is not None and not isinstance(remarks, str):
        raise ValidationError(
            "remarks must be a string",
            details={"remarks": type(remarks).__name__},
        )


def _compare_and_set(approval_id: str, values: dict) -> bool:
    """Write *values* only if the record is still pending.

    Returns True when exactly this call moved the record out of pending.
    """
    result = db.session.execute(
        update(ProgramApproval)
        .where(
            ProgramApproval.id == approval_id,
            ProgramApproval.status == ApprovalStatus.PENDING.value,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _apply_resolution(
    approval: ProgramApproval,
    action: str,
    remarks: str | None,
    actor: Actor,
) -> bool:
    """Resolve one record and run its side effects in the open transaction.

    Returns False (and changes nothing) when the record is not pending.
    """
    values = {
        "status": _ACTION_OUTCOME[action].value,
        "approved_by_id": actor.id,
        "approved_at": _utcnow(),
    }
    if remarks is not None:
        values["remarks"] = remarks

    if not _compare_and_set(approval.id, values):
        return False
    db.session.expire(approval)

    program = approval.program
    cascade = _TERMINAL_CASCADE.get(action)
    if cascade is not None and approval.is_terminal_step:
        logger.info(
            "Program %s status %s -> %s", program.code, program.status, cascade.value,
            extra={"program_id": program.id, "approval_id": approval.id},
        )
        program.status = cascade.value

    write_activity(
        action=f"approval_{action}",
        description=f"Approval {_ACTION_PAST_TENSE[action]} for program: {program.name}",
        entity_type="approval",
        entity_id=approval.id,
        user_id=actor.id,
        metadata={
            "programId": program.id,
            "step": approval.step,
            "remarks": remarks,
        },
    )
    return True


def _commit(context: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Commit failed during %s; transaction rolled back", context)
        raise


# ── Public API ─────────────────────────────────────────────────────────────────


def resolve_approval(
    approval_id: str,
    action: str,
    remarks: str | None,
    actor: Actor,
) -> ProgramApproval:
    """Resolve a single pending approval.

    Args:
        approval_id: Id of the ProgramApproval.
        action:      approve | reject | request_reupload.
        remarks:     Optional free text stored on the record.
        actor:       Acting identity; stamped as ``approved_by``.

    Returns:
        The updated ProgramApproval (resolved fields populated).

    Raises:
        ValidationError: action outside the enumerated set, or non-string remarks.
        NotFoundError:   id does not resolve.
        ConflictError:   record already resolved (no effects).
    """
    _validate_action(action, VALID_ACTIONS)
    _validate_remarks(remarks)

    approval = db.session.get(ProgramApproval, str(approval_id), with_for_update=True)
    if approval is None:
        raise NotFoundError(resource="Approval", resource_id=approval_id)
    if not approval.is_pending:
        raise ConflictError(ALREADY_PROCESSED_MESSAGE, resource="Approval")

    try:
        applied = _apply_resolution(approval, action, remarks, actor)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Approval resolution failed for %s", approval_id)
        raise
    if not applied:
        # Lost the race to a concurrent resolution.
        db.session.rollback()
        raise ConflictError(ALREADY_PROCESSED_MESSAGE, resource="Approval")

    _commit("approval resolution")
    logger.info(
        "Approval resolved",
        extra={
            "approval_id": approval.id,
            "program_id": approval.program_id,
            "step": approval.step,
            "action": action,
        },
    )
    return approval


def resolve_approvals_bulk(
    approval_ids: list,
    action: str,
    remarks: str | None,
    actor: Actor,
) -> dict:
    """Resolve many approvals in one transaction.

    Unknown ids and records that are no longer pending are skipped, not
    errors.  Duplicate ids are counted in ``total_requested`` but resolved
    once.

    Returns:
        {"processed_count": int, "total_requested": int, "approvals": [ProgramApproval]}
    """
    if not isinstance(approval_ids, list) or not approval_ids:
        raise ValidationError("No approvals selected", details={"approvalIds": "must be a non-empty list"})
    if not all(isinstance(i, str) and i for i in approval_ids):
        raise ValidationError("approvalIds must be a list of ids", details={"approvalIds": approval_ids})
    _validate_action(action, BULK_ACTIONS)
    _validate_remarks(remarks)

    effective_remarks = remarks or f"Bulk {action}d by {actor.name}"
    resolved: list[ProgramApproval] = []
    skipped: list[str] = []

    try:
        for approval_id in dict.fromkeys(approval_ids):
            approval = db.session.get(ProgramApproval, approval_id, with_for_update=True)
            if approval is None or not approval.is_pending:
                skipped.append(approval_id)
                continue
            if _apply_resolution(approval, action, effective_remarks, actor):
                resolved.append(approval)
            else:
                skipped.append(approval_id)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Bulk %s failed; batch rolled back", action)
        raise

    _commit(f"bulk {action}")
    logger.info(
        "Bulk %s processed %d/%d approvals (skipped: %s)",
        action, len(resolved), len(approval_ids), ", ".join(skipped) or "none",
        extra={"action": action},
    )
    return {
        "processed_count": len(resolved),
        "total_requested": len(approval_ids),
        "approvals": resolved,
    }


def get_approval(approval_id: str) -> ProgramApproval:
    approval = db.session.get(ProgramApproval, str(approval_id))
    if approval is None:
        raise NotFoundError(resource="Approval", resource_id=approval_id)
    return approval


# ── Queries ────────────────────────────────────────────────────────────────────


def _filtered_select(status: str | None, ward_id: str | None, fiscal_year_id: str | None):
    if status and status not in APPROVAL_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(APPROVAL_STATUSES))}",
            details={"status": status},
        )

    stmt = (
        select(ProgramApproval)
        .join(Program, ProgramApproval.program_id == Program.id)
        .options(
            joinedload(ProgramApproval.program).joinedload(Program.ward),
            joinedload(ProgramApproval.program).joinedload(Program.fiscal_year),
            joinedload(ProgramApproval.program).joinedload(Program.program_type),
            joinedload(ProgramApproval.program).joinedload(Program.funding_source),
            joinedload(ProgramApproval.approved_by),
        )
        .order_by(ProgramApproval.created_at.desc(), ProgramApproval.id)
    )
    if status:
        stmt = stmt.where(ProgramApproval.status == status)
    if ward_id:
        stmt = stmt.where(Program.ward_id == ward_id)
    if fiscal_year_id:
        stmt = stmt.where(Program.fiscal_year_id == fiscal_year_id)
    return stmt


def query_approvals(status=None, ward_id=None, fiscal_year_id=None) -> list[ProgramApproval]:
    """Return ProgramApproval rows matching the filters, newest first."""
    stmt = _filtered_select(status, ward_id, fiscal_year_id)
    return list(db.session.execute(stmt).unique().scalars().all())


def _attached_files(program: Program) -> list[str]:
    docs = program.documents.filter(ProgramDocument.category.in_(REVIEW_DOCUMENT_CATEGORIES))
    return [d.file_name for d in docs]


def project_approval(approval: ProgramApproval) -> dict:
    """Denormalised review-queue view of one approval."""
    program = approval.program
    return {
        "id": approval.id,
        "programId": program.id,
        "programName": program.name,
        "programCode": program.code,
        "ward": program.ward.label,
        "wardName": program.ward.name,
        "submittedBy": submitted_by_for_step(approval.step),
        "submittedDate": approval.created_at.date().isoformat() if approval.created_at else None,
        "documentType": document_type_for_step(approval.step),
        "attachedFiles": _attached_files(program),
        "remarks": approval.remarks or "",
        "status": approval.status,
        "priority": priority_for_step(approval.step),
        "step": approval.step,
        "approvedBy": approval.approved_by.name if approval.approved_by else None,
        "approvedAt": approval.approved_at.isoformat() if approval.approved_at else None,
        "fiscalYear": program.fiscal_year.year,
        "programType": program.program_type.name if program.program_type else None,
        "fundingSource": program.funding_source.name if program.funding_source else None,
        "budget": float(program.budget) if program.budget is not None else None,
    }


def list_approvals(status: str = "pending", ward_id=None, fiscal_year_id=None) -> list[dict]:
    """Review-queue listing; ``status`` defaults to pending."""
    return [
        project_approval(a)
        for a in query_approvals(status or ApprovalStatus.PENDING.value, ward_id, fiscal_year_id)
    ]


# ── Export ─────────────────────────────────────────────────────────────────────


def export_approvals_csv(status=None, ward_id=None, fiscal_year_id=None) -> tuple[str, str]:
    """Render matching approvals as CSV.

    Unlike the listing, a missing ``status`` exports every status.

    Returns:
        (filename, csv_text)
    """
    approvals = query_approvals(status, ward_id, fiscal_year_id)

    buf = io.StringIO()
    # Bare header, quoted data cells.
    csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n").writerow(EXPORT_COLUMNS)
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for a in approvals:
        p = a.program
        writer.writerow([
            p.code,
            p.name,
            p.ward.name,
            p.fiscal_year.year,
            p.program_type.name if p.program_type else "",
            str(p.budget) if p.budget is not None else "",
            a.status,
            a.step,
            a.created_at.date().isoformat() if a.created_at else "",
            a.approved_by.name if a.approved_by else "",
            a.approved_at.date().isoformat() if a.approved_at else "",
            a.remarks or "",
        ])

    filename = f"approvals-{status or 'all'}-{_utcnow().date().isoformat()}.csv"
    logger.info("Exported %d approvals to %s", len(approvals), filename)
    return filename, buf.getvalue()
