"""
Municipal Project Management System
Approval Blueprint — review queue and resolution endpoints.

Endpoints:
    GET    /api/v1/approvals               — review queue (status defaults to pending)
    GET    /api/v1/approvals/<id>          — single approval record
    PUT    /api/v1/approvals               — resolve one approval
    PUT    /api/v1/approvals/bulk          — approve / reject many at once
    POST   /api/v1/approvals/export        — CSV export of the filtered queue

Every route requires a logged-in user; the resolver is always the session
user, never a client-supplied id.  Service layer owns the transaction.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, g, jsonify, request

import app.services.approval_service as approval_service
from app.auth import require_auth
from app.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

approval_bp = Blueprint("approval", __name__, url_prefix="/api/v1")
register_error_handlers(approval_bp)

_SUCCESS_MESSAGES = {
    "approve": "Approval approved successfully",
    "reject": "Approval rejected successfully",
    "request_reupload": "Re-upload requested successfully",
}


# ═════════════════════════════════════════════════════════════════════════════
# Review queue
# ═════════════════════════════════════════════════════════════════════════════


@approval_bp.route("/approvals", methods=["GET"])
@require_auth
def list_approvals():
    """List approvals with the denormalised review-queue projection.

    Query params: status (default pending), ward, fiscalYear.
    """
    approvals = approval_service.list_approvals(
        status=request.args.get("status") or "pending",
        ward_id=request.args.get("ward") or None,
        fiscal_year_id=request.args.get("fiscalYear") or None,
    )
    return jsonify({"approvals": approvals, "total": len(approvals)})


@approval_bp.route("/approvals/<approval_id>", methods=["GET"])
@require_auth
def get_approval(approval_id):
    approval = approval_service.get_approval(approval_id)
    return jsonify({"approval": approval_service.project_approval(approval)})


# ═════════════════════════════════════════════════════════════════════════════
# Resolution
# ═════════════════════════════════════════════════════════════════════════════


@approval_bp.route("/approvals", methods=["PUT"])
@require_auth
def resolve_approval():
    """Resolve one pending approval.

    Body: {approvalId, action: approve|reject|request_reupload, remarks?}
    """
    data = request.get_json(silent=True) or {}
    approval_id = data.get("approvalId")
    action = data.get("action")
    if not approval_id or not action:
        return api_error(E.VALIDATION_REQUIRED, "approvalId and action are required")

    approval = approval_service.resolve_approval(
        approval_id, action, data.get("remarks"), g.actor,
    )
    return jsonify({
        "message": _SUCCESS_MESSAGES[action],
        "approval": approval_service.project_approval(approval),
    })


@approval_bp.route("/approvals/bulk", methods=["PUT"])
@require_auth
def resolve_approvals_bulk():
    """Approve or reject several approvals in one transaction.

    Body: {approvalIds: [...], action: approve|reject, remarks?}
    Unknown ids are skipped; compare processedCount with totalRequested.
    """
    data = request.get_json(silent=True) or {}
    action = data.get("action")
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "action is required")

    result = approval_service.resolve_approvals_bulk(
        data.get("approvalIds") or [], action, data.get("remarks"), g.actor,
    )
    processed = result["processed_count"]
    return jsonify({
        "message": f"Successfully {action}d {processed} approval(s)",
        "processedCount": processed,
        "totalRequested": result["total_requested"],
    })


# ═════════════════════════════════════════════════════════════════════════════
# Export
# ═════════════════════════════════════════════════════════════════════════════


@approval_bp.route("/approvals/export", methods=["POST"])
@require_auth
def export_approvals():
    """CSV download of approvals matching {status?, ward?, fiscalYear?}."""
    data = request.get_json(silent=True) or {}
    filename, content = approval_service.export_approvals_csv(
        status=data.get("status") or None,
        ward_id=data.get("ward") or None,
        fiscal_year_id=data.get("fiscalYear") or None,
    )
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
