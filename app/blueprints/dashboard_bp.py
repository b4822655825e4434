"""
Dashboard Blueprint — headline statistics and recent-items cards.

  GET /api/v1/dashboard/stats?fiscalYear=<id>        — KPIs for one fiscal year
  GET /api/v1/dashboard/ward-stats?fiscalYear=<id>   — per-ward program counts and budget
  GET /api/v1/dashboard/recent-programs?limit&ward   — newest programs with child counts
  GET /api/v1/dashboard/recent-activity?limit        — newest activity-log entries

Without ``fiscalYear`` the stats endpoints use the active fiscal year; it is
resolved here and passed to the service explicitly.
"""

from flask import Blueprint, jsonify, request

from app.auth import require_auth
from app.models.master_data import FiscalYear, get_active_fiscal_year
from app.services import activity_service, dashboard_service
from app.utils.errors import register_error_handlers
from app.utils.helpers import get_or_raise

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")
register_error_handlers(dashboard_bp)


def _resolve_fiscal_year():
    fiscal_year_id = request.args.get("fiscalYear")
    if fiscal_year_id:
        return get_or_raise(FiscalYear, fiscal_year_id, "Fiscal year")
    return get_active_fiscal_year()


@dashboard_bp.route("/stats", methods=["GET"])
@require_auth
def stats():
    fiscal_year = _resolve_fiscal_year()
    return jsonify({"stats": dashboard_service.get_stats(fiscal_year.id if fiscal_year else None)})


@dashboard_bp.route("/ward-stats", methods=["GET"])
@require_auth
def ward_stats():
    fiscal_year = _resolve_fiscal_year()
    return jsonify({
        "wardStats": dashboard_service.get_ward_stats(fiscal_year.id if fiscal_year else None),
        "fiscalYear": fiscal_year.year if fiscal_year else None,
    })


@dashboard_bp.route("/recent-programs", methods=["GET"])
@require_auth
def recent_programs():
    programs = dashboard_service.get_recent_programs(
        limit=request.args.get("limit", 5, type=int),
        ward_id=request.args.get("ward") or None,
    )
    return jsonify({"programs": programs})


@dashboard_bp.route("/recent-activity", methods=["GET"])
@require_auth
def recent_activity():
    """Newest activity for the dashboard card; same rows as /activity-logs."""
    rows, _total = activity_service.list_activity(limit=request.args.get("limit", 10, type=int))
    return jsonify({"activities": [activity_service.present(r) for r in rows]})
