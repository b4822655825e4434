"""Program service layer — business logic for programs and their documents.

Transaction policy: public functions call db.session.commit() on success.
Internal helpers use flush() for ID generation within a transaction.

Provides:
- Program create / list / detail / archive (programs are never deleted)
- Document upload pipeline: metadata row, activity log, and for red book /
  executive approval uploads a pending ward-secretary review plus a
  broadcast notification
- Activity log entries for all write operations
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.auth import Actor
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.approval import ApprovalStatus, ApprovalStep, ProgramApproval
from app.models.audit import write_activity
from app.models.master_data import FiscalYear, FundingSource, ProgramType, Ward, get_active_fiscal_year
from app.models.program import (
    APPROVAL_TRIGGER_CATEGORIES,
    DOCUMENT_CATEGORIES,
    PROGRAM_STATUSES,
    Program,
    ProgramDocument,
    ProgramStatus,
)
from app.services.notification import NotificationService
from app.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

# ── Field length limits (matching DB column definitions) ─────────────────

_FIELD_LIMITS: dict[str, int] = {
    "code": 50,
    "name": 255,
    "responsible_officer": 200,
    "file_name": 255,
    "file_path": 500,
    "file_type": 100,
}


def _validate_enum(value: str, allowed: set[str], field_name: str) -> None:
    if value and value not in allowed:
        raise ValidationError(
            f"Invalid {field_name}: '{value}'. Allowed: {sorted(allowed)}",
            details={field_name: value},
        )


def _validate_length(value: str, field_name: str) -> None:
    max_len = _FIELD_LIMITS[field_name]
    if value and len(value) > max_len:
        raise ValidationError(
            f"{field_name} exceeds maximum length of {max_len} characters",
            details={field_name: f"max {max_len}"},
        )


def _required(data: dict, key: str, label: str) -> str:
    value = data.get(key)
    if isinstance(value, str):
        value = value.strip()
    if not value:
        raise ValidationError(f"{label} is required", details={key: "required"})
    return value


def _parse_budget(value) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("Invalid budget amount", details={"budget": str(value)})
    try:
        budget = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("Invalid budget amount", details={"budget": str(value)})
    if not budget.is_finite() or budget < 0:
        raise ValidationError("Invalid budget amount", details={"budget": str(value)})
    return budget.quantize(Decimal("0.01"))


def _reference(model, pk, label: str):
    """Resolve a referenced master-data row; an unknown id is a 400, not a 404."""
    if not pk:
        return None
    obj = db.session.get(model, str(pk))
    if obj is None:
        raise ValidationError(f"{label} not found", details={label: str(pk)})
    return obj


# ═════════════════════════════════════════════════════════════════════════
# Programs
# ═════════════════════════════════════════════════════════════════════════


def list_programs(*, status=None, ward_id=None, fiscal_year_id=None, search=None) -> list[Program]:
    """Programs matching the filters, newest first."""
    if status:
        _validate_enum(status, PROGRAM_STATUSES, "status")
    q = Program.query
    if status:
        q = q.filter(Program.status == status)
    if ward_id:
        q = q.filter(Program.ward_id == ward_id)
    if fiscal_year_id:
        q = q.filter(Program.fiscal_year_id == fiscal_year_id)
    if search:
        pattern = f"%{search}%"
        q = q.filter(db.or_(Program.name.ilike(pattern), Program.code.ilike(pattern)))
    return q.order_by(Program.created_at.desc(), Program.code).all()


def get_program(program_id: str) -> Program:
    program = db.session.get(Program, str(program_id))
    if program is None:
        raise NotFoundError(resource="Program", resource_id=program_id)
    return program


def create_program(data: dict[str, Any], actor: Actor) -> Program:
    """Create a program in DRAFT.

    Args:
        data: Request body (``code``, ``name``, ``wardId``, ``fiscalYearId``,
            ``programTypeId``, ``fundingSourceId``, ``budget``, ``startDate``,
            ``endDate``, ``tags``, ``responsibleOfficer``, ``description``).
            Without ``fiscalYearId`` the active fiscal year is used.
        actor: Creating identity.

    Raises:
        ValidationError: missing/invalid fields or unknown references.
        ConflictError:   duplicate program code.
    """
    code = _required(data, "code", "Program code")
    name = _required(data, "name", "Program name")
    _validate_length(code, "code")
    _validate_length(name, "name")

    if Program.query.filter_by(code=code).first() is not None:
        raise ConflictError.duplicate("Program", "code", code)

    ward = _reference(Ward, _required(data, "wardId", "Ward"), "Ward")
    fiscal_year_id = data.get("fiscalYearId")
    if fiscal_year_id:
        fiscal_year = _reference(FiscalYear, fiscal_year_id, "Fiscal year")
    else:
        fiscal_year = get_active_fiscal_year()
        if fiscal_year is None:
            raise ValidationError("Fiscal year is required (no active fiscal year)",
                                  details={"fiscalYearId": "required"})
    program_type = _reference(ProgramType, data.get("programTypeId"), "Program type")
    funding_source = _reference(FundingSource, data.get("fundingSourceId"), "Funding source")

    start_date = parse_date_input(data.get("startDate"), "startDate")
    end_date = parse_date_input(data.get("endDate"), "endDate")
    if start_date and end_date and end_date < start_date:
        raise ValidationError("endDate must not be before startDate",
                              details={"endDate": end_date.isoformat()})

    tags = data.get("tags") or []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise ValidationError("tags must be a list of strings", details={"tags": str(tags)})

    responsible_officer = (data.get("responsibleOfficer") or "").strip() or None
    _validate_length(responsible_officer, "responsible_officer")

    program = Program(
        code=code,
        name=name,
        description=data.get("description") or "",
        ward=ward,
        fiscal_year=fiscal_year,
        program_type=program_type,
        funding_source=funding_source,
        budget=_parse_budget(data.get("budget")),
        status=ProgramStatus.DRAFT.value,
        tags=tags,
        responsible_officer=responsible_officer,
        start_date=start_date,
        end_date=end_date,
        created_by_id=actor.id,
    )
    db.session.add(program)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError.duplicate("Program", "code", code)

    write_activity(
        action="program_created",
        description=f"Program {code} ({name}) created",
        entity_type="program",
        entity_id=program.id,
        user_id=actor.id,
        metadata={"programId": program.id, "code": code, "wardId": ward.id},
    )
    db.session.commit()
    logger.info("Program created id=%s code=%s", program.id, code, extra={"program_id": program.id})
    return program


def archive_program(program_id: str, actor: Actor) -> Program:
    """Move a program to ARCHIVED.  Programs are never hard-deleted."""
    program = get_program(program_id)
    if program.status == ProgramStatus.ARCHIVED.value:
        raise ConflictError("Program is already archived", resource="Program")

    previous = program.status
    program.status = ProgramStatus.ARCHIVED.value
    write_activity(
        action="program_archived",
        description=f"Program {program.code} archived",
        entity_type="program",
        entity_id=program.id,
        user_id=actor.id,
        metadata={"programId": program.id, "previousStatus": previous},
    )
    db.session.commit()
    logger.info("Program archived id=%s", program.id, extra={"program_id": program.id})
    return program


def open_review(program_id: str, step: str, actor: Actor) -> ProgramApproval:
    """Open a pending review for one workflow step (admin action).

    At most one pending record per step; a DRAFT program becomes SUBMITTED.
    """
    program = get_program(program_id)
    if program.status == ProgramStatus.ARCHIVED.value:
        raise ConflictError("Cannot open a review on an archived program", resource="Program")
    if not step or not isinstance(step, str):
        raise ValidationError("Step is required", details={"step": "required"})
    _validate_enum(step, {s.value for s in ApprovalStep}, "step")

    open_for_step = ProgramApproval.query.filter_by(
        program_id=program.id, step=step, status=ApprovalStatus.PENDING.value,
    ).first()
    if open_for_step is not None:
        raise ConflictError(f"A {step} review is already pending for this program", resource="Approval")

    approval = ProgramApproval(program_id=program.id, step=step, status=ApprovalStatus.PENDING.value)
    db.session.add(approval)
    db.session.flush()
    if program.status == ProgramStatus.DRAFT.value:
        program.status = ProgramStatus.SUBMITTED.value

    write_activity(
        action="approval_requested",
        description=f"{step.replace('_', ' ').title()} review requested for program: {program.name}",
        entity_type="approval",
        entity_id=approval.id,
        user_id=actor.id,
        metadata={"programId": program.id, "step": step},
    )
    db.session.commit()
    logger.info(
        "Review opened for program %s", program.code,
        extra={"program_id": program.id, "approval_id": approval.id, "step": step},
    )
    return approval


# ═════════════════════════════════════════════════════════════════════════
# Documents
# ═════════════════════════════════════════════════════════════════════════


def list_documents(program_id: str, category: str | None = None) -> list[ProgramDocument]:
    program = get_program(program_id)
    q = program.documents
    if category:
        _validate_enum(category, DOCUMENT_CATEGORIES, "category")
        q = q.filter(ProgramDocument.category == category)
    return q.all()


def _validate_file(data: dict) -> dict:
    file_name = _required(data, "fileName", "File name")
    file_path = _required(data, "filePath", "File path")
    file_type = _required(data, "fileType", "File type")
    _validate_length(file_name, "file_name")
    _validate_length(file_path, "file_path")
    _validate_length(file_type, "file_type")

    file_size = data.get("fileSize")
    if isinstance(file_size, bool) or not isinstance(file_size, int) or file_size < 1:
        raise ValidationError("File size is required", details={"fileSize": str(file_size)})
    max_bytes = current_app.config.get("UPLOAD_MAX_BYTES")
    if max_bytes and file_size > max_bytes:
        raise ValidationError(f"File exceeds the {max_bytes} byte upload limit",
                              details={"fileSize": file_size})

    allowed_types = current_app.config.get("UPLOAD_ALLOWED_TYPES") or ()
    if allowed_types and file_type not in allowed_types:
        raise ValidationError(f"File type '{file_type}' is not allowed",
                              details={"fileType": file_type})

    category = data.get("category") or "other"
    _validate_enum(category, DOCUMENT_CATEGORIES, "category")
    return {
        "file_name": file_name,
        "file_path": file_path,
        "file_type": file_type,
        "file_size": file_size,
        "category": category,
    }


def upload_document(program_id: str, data: dict[str, Any], actor: Actor) -> ProgramDocument:
    """Record an uploaded document and open a review where the category asks for one.

    Red book and executive approval uploads additionally:
      - create a pending ward-secretary ProgramApproval,
      - broadcast an ``approval`` notification referencing the program,
      - move a DRAFT program to SUBMITTED.

    All effects commit together.
    """
    program = get_program(program_id)
    if program.status == ProgramStatus.ARCHIVED.value:
        raise ConflictError("Cannot upload documents to an archived program", resource="Program")
    fields = _validate_file(data)

    document = ProgramDocument(program_id=program.id, uploaded_by_id=actor.id, **fields)
    db.session.add(document)
    db.session.flush()

    metadata = {
        "programId": program.id,
        "fileName": document.file_name,
        "category": document.category,
        "fileSize": document.file_size,
    }

    if document.category in APPROVAL_TRIGGER_CATEGORIES:
        approval = ProgramApproval(
            program_id=program.id,
            step=ApprovalStep.WARD_SECRETARY.value,
            status=ApprovalStatus.PENDING.value,
        )
        db.session.add(approval)
        db.session.flush()
        NotificationService.notify_document_uploaded(program, document)
        metadata["approvalId"] = approval.id
        if program.status == ProgramStatus.DRAFT.value:
            program.status = ProgramStatus.SUBMITTED.value
        logger.info(
            "Review opened for program %s", program.code,
            extra={"program_id": program.id, "approval_id": approval.id,
                   "step": ApprovalStep.WARD_SECRETARY.value},
        )

    write_activity(
        action="document_uploaded",
        description=f'Document "{document.file_name}" uploaded for program {program.name}',
        entity_type="document",
        entity_id=document.id,
        user_id=actor.id,
        metadata=metadata,
    )
    db.session.commit()
    return document
