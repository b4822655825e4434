"""
Municipal Project Management System
Program Blueprint — programs and their documents.

Endpoints:
    Programs:
        GET    /api/v1/programs                          — List (status, ward, fiscalYear, search)
        POST   /api/v1/programs                          — Create (always DRAFT)
        GET    /api/v1/programs/<id>                     — Detail (+ approvals, documents)
        POST   /api/v1/programs/<id>/archive             — Archive (Admin)
        POST   /api/v1/programs/<id>/approvals           — Open a pending review step (Admin)

    Documents:
        GET    /api/v1/programs/<id>/documents           — List (category filter)
        POST   /api/v1/programs/<id>/documents           — Record an upload

Programs are never deleted.
"""

import logging

from flask import Blueprint, g, jsonify, request

import app.services.program_service as program_service
from app.auth import ADMIN_ROLE, require_auth, require_role
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

program_bp = Blueprint("program", __name__, url_prefix="/api/v1")
register_error_handlers(program_bp)


# ═════════════════════════════════════════════════════════════════════════════
# PROGRAMS
# ═════════════════════════════════════════════════════════════════════════════

@program_bp.route("/programs", methods=["GET"])
@require_auth
def list_programs():
    """List programs, newest first."""
    programs = program_service.list_programs(
        status=request.args.get("status") or None,
        ward_id=request.args.get("ward") or None,
        fiscal_year_id=request.args.get("fiscalYear") or None,
        search=request.args.get("search") or None,
    )
    return jsonify({"programs": [p.to_dict() for p in programs], "total": len(programs)})


@program_bp.route("/programs", methods=["POST"])
@require_auth
def create_program():
    """Create a new program in DRAFT."""
    data = request.get_json(silent=True) or {}
    program = program_service.create_program(data, g.actor)
    return jsonify({"message": "Program created successfully", "program": program.to_dict()}), 201


@program_bp.route("/programs/<program_id>", methods=["GET"])
@require_auth
def get_program(program_id):
    program = program_service.get_program(program_id)
    return jsonify({"program": program.to_dict(include_children=True)})


@program_bp.route("/programs/<program_id>/archive", methods=["POST"])
@require_auth
@require_role(ADMIN_ROLE)
def archive_program(program_id):
    program = program_service.archive_program(program_id, g.actor)
    return jsonify({"message": "Program archived", "program": program.to_dict()})


@program_bp.route("/programs/<program_id>/approvals", methods=["POST"])
@require_auth
@require_role(ADMIN_ROLE)
def open_review(program_id):
    """Body: {step: ward_secretary|planning_officer|cao|technical_head}"""
    data = request.get_json(silent=True) or {}
    approval = program_service.open_review(program_id, data.get("step"), g.actor)
    return jsonify({"message": "Review opened", "approval": approval.to_dict()}), 201


# ═════════════════════════════════════════════════════════════════════════════
# DOCUMENTS
# ═════════════════════════════════════════════════════════════════════════════

@program_bp.route("/programs/<program_id>/documents", methods=["GET"])
@require_auth
def list_documents(program_id):
    documents = program_service.list_documents(program_id, request.args.get("category") or None)
    return jsonify({"documents": [d.to_dict() for d in documents], "program_id": program_id})


@program_bp.route("/programs/<program_id>/documents", methods=["POST"])
@require_auth
def upload_document(program_id):
    """Body: {fileName, filePath, fileType, fileSize, category}"""
    data = request.get_json(silent=True) or {}
    document = program_service.upload_document(program_id, data, g.actor)
    return jsonify({"message": "Document uploaded successfully", "document": document.to_dict()}), 201
