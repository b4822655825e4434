"""
Dashboard statistics and recent-items feeds.

The fiscal year is always an explicit argument; the blueprint resolves the
active year and passes it down.  ``fiscal_year_id=None`` means "all years".
"""

import logging

from sqlalchemy import func

from app.core.exceptions import ValidationError
from app.models import db
from app.models.approval import APPROVAL_STATUSES, ApprovalStatus, ProgramApproval
from app.models.master_data import FiscalYear, Ward
from app.models.program import PROGRAM_STATUSES, Program
from app.utils.helpers import time_ago

logger = logging.getLogger(__name__)

MAX_RECENT = 50


def _format_millions(amount: float) -> str:
    return f"Rs. {amount / 1_000_000:.1f}M"


def get_stats(fiscal_year_id=None):
    """Headline KPIs for one fiscal year (or all, when None)."""
    program_q = db.session.query(Program)
    approval_q = db.session.query(ProgramApproval.status, func.count(ProgramApproval.id)).join(
        Program, ProgramApproval.program_id == Program.id
    )
    if fiscal_year_id:
        program_q = program_q.filter(Program.fiscal_year_id == fiscal_year_id)
        approval_q = approval_q.filter(Program.fiscal_year_id == fiscal_year_id)

    total_programs = program_q.count()
    allocated = program_q.with_entities(func.coalesce(func.sum(Program.budget), 0)).scalar()
    allocated = float(allocated or 0)

    status_rows = (
        program_q.with_entities(Program.status, func.count(Program.id))
        .group_by(Program.status)
        .all()
    )
    programs_by_status = {s: 0 for s in sorted(PROGRAM_STATUSES)}
    programs_by_status.update({status: count for status, count in status_rows})

    approvals_by_status = {s: 0 for s in sorted(APPROVAL_STATUSES)}
    approvals_by_status.update(
        {status: count for status, count in approval_q.group_by(ProgramApproval.status).all()}
    )

    fiscal_year = db.session.get(FiscalYear, fiscal_year_id) if fiscal_year_id else None

    return {
        "total_programs": total_programs,
        "pending_approvals": approvals_by_status[ApprovalStatus.PENDING.value],
        "budget": {
            "allocated": allocated,
            "formatted_allocated": _format_millions(allocated),
        },
        "programs_by_status": programs_by_status,
        "approvals_by_status": approvals_by_status,
        "fiscal_year": fiscal_year.year if fiscal_year else None,
    }


def get_ward_stats(fiscal_year_id=None):
    """Per-ward program count and budget total, wards without programs omitted."""
    join_on = Program.ward_id == Ward.id
    if fiscal_year_id:
        join_on = db.and_(join_on, Program.fiscal_year_id == fiscal_year_id)

    rows = (
        db.session.query(
            Ward,
            func.count(Program.id).label("programs"),
            func.coalesce(func.sum(Program.budget), 0).label("budget"),
        )
        .outerjoin(Program, join_on)
        .group_by(Ward.id)
        .order_by(Ward.code)
        .all()
    )

    result = []
    for ward, programs, budget in rows:
        if not programs:
            continue
        budget = float(budget or 0)
        result.append({
            "ward_id": ward.id,
            "ward": ward.label,
            "ward_name": ward.name,
            "programs": programs,
            "budget": budget,
            "formatted_budget": _format_millions(budget),
        })
    return result


def get_recent_programs(limit=5, ward_id=None, now=None):
    """Newest programs with child counts, optionally limited to one ward."""
    if limit < 1:
        raise ValidationError("limit must be positive", details={"limit": limit})
    limit = min(limit, MAX_RECENT)

    q = Program.query
    if ward_id:
        q = q.filter(Program.ward_id == ward_id)
    programs = q.order_by(Program.created_at.desc(), Program.id).limit(limit).all()

    return [
        {
            "id": p.id,
            "code": p.code,
            "name": p.name,
            "status": p.status,
            "budget": float(p.budget) if p.budget is not None else 0.0,
            "ward": p.ward.label,
            "fiscal_year": p.fiscal_year.year,
            "program_type": p.program_type.name if p.program_type else None,
            "created_by": p.created_by.name if p.created_by else None,
            "created_at": p.created_at.isoformat() if p.created_at else None,
            "counts": {
                "documents": p.documents.count(),
                "approvals": p.approvals.count(),
            },
            "time_ago": time_ago(p.created_at, now=now),
        }
        for p in programs
    ]
